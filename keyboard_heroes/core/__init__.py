"""Core gameplay primitives (letters, counters, tick and keystroke handling).

Kept free of FastAPI and redis concerns so it can be reused by API routes, the
async runner, and tests.
"""

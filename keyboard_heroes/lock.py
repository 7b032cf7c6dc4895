from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import redis


def _lock_key(settings_id: int) -> str:
    return f"keyboard_heroes:lock:settings:{settings_id}"


def _release(r: redis.Redis, key: str, token: str) -> None:
    # Delete only while the key still holds our token; an expired lock may
    # already belong to another writer.
    with r.pipeline() as pipe:
        try:
            pipe.watch(key)
            if pipe.get(key) != token:
                return
            pipe.multi()
            pipe.delete(key)
            pipe.execute()
        except redis.WatchError:
            # Taken over between GET and DEL: no longer ours to release.
            return


@contextmanager
def settings_lock(*, r: redis.Redis, settings_id: int, ttl_ms: int = 5_000) -> Iterator[str]:
    """Exclusive hold on one settings record for a read-modify-write.

    Fails fast with ValueError when someone else holds it; the hold expires
    after `ttl_ms` even if the holder dies.
    """

    key = _lock_key(settings_id)
    token = uuid.uuid4().hex
    if not r.set(key, token, nx=True, px=ttl_ms):
        raise ValueError("Settings record is busy")
    try:
        yield token
    finally:
        _release(r, key, token)

from __future__ import annotations

from collections.abc import Iterator

import redis

from keyboard_heroes.infra.redis_client import create_redis


def get_redis() -> Iterator[redis.Redis]:
    """One client per request; its connection pool is released afterwards."""

    client = create_redis()
    try:
        yield client
    finally:
        client.close()

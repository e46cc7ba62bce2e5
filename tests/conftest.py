import os
import uuid
from typing import Iterator

import fakeredis
import pytest
import redis
from fastapi.testclient import TestClient

from task_api.main import create_app
from task_api.repositories import InMemoryTaskStore, TaskStore
from task_api.settings import Settings

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")


def _redis_available(url: str) -> bool:
    try:
        client = redis.Redis.from_url(url)
        return bool(client.ping())
    except Exception:
        return False


requires_redis = pytest.mark.skipif(
    not _redis_available(REDIS_URL),
    reason="Redis not available. Start one locally or set REDIS_URL.",
)


@pytest.fixture()
def key_prefix() -> str:
    return f"testtasks:{uuid.uuid4()}"


@pytest.fixture()
def redis_store(key_prefix: str) -> Iterator[TaskStore]:
    from task_api.redis_store import RedisTaskStore

    s = RedisTaskStore(url=REDIS_URL, key_prefix=key_prefix)
    yield s
    client = redis.Redis.from_url(REDIS_URL)
    for key in client.scan_iter(match=f"{key_prefix}:*"):
        client.delete(key)


@pytest.fixture()
def fake_redis_store(key_prefix: str) -> TaskStore:
    from task_api.redis_store import RedisTaskStore

    return RedisTaskStore(client=fakeredis.FakeRedis(), key_prefix=key_prefix)


@pytest.fixture(params=["memory", "fakeredis", pytest.param("redis", marks=requires_redis)])
def store(request: pytest.FixtureRequest) -> TaskStore:
    """
    Every store contract test runs against both backends. The Redis store runs
    against an in-process fake always, and against a real server when one answers.
    """
    if request.param == "memory":
        return InMemoryTaskStore()
    if request.param == "fakeredis":
        return request.getfixturevalue("fake_redis_store")
    return request.getfixturevalue("redis_store")


@pytest.fixture()
def settings() -> Settings:
    return Settings(app_env="development")


@pytest.fixture()
def client(settings: Settings) -> TestClient:
    # Fresh app and in-memory store per test
    return TestClient(create_app(settings, store=InMemoryTaskStore()))

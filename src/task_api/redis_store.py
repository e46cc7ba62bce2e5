from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, cast

import redis

from .errors import ConfigError, NotFoundError, StorageError
from .models import TaskEntity, from_document, to_document
from .repositories import TaskStore
from .settings import validate_redis_url

logger = logging.getLogger(__name__)


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    """Re-raise Redis failures as StorageError("Failed to <action>")."""
    try:
        yield
    except redis.RedisError as e:
        logger.error("Redis error while trying to %s: %s", action, e)
        raise StorageError(f"Failed to {action}") from e


class RedisTaskStore(TaskStore):
    """
    Redis-backed task store.

    Data structures:
    - Hash per task: key `{prefix}:task:{id}` with field `json` holding the task document
    - Sorted set `{prefix}:index` ordering task ids by `createdAt` epoch seconds
    """

    storage_mode = "durable"

    def __init__(
        self,
        *,
        url: Optional[str] = None,
        key_prefix: str = "tasks",
        client: Optional[redis.Redis] = None,
    ) -> None:
        if client is None:
            if not url:
                raise ConfigError("RedisTaskStore needs either a url or a client")
            try:
                client = redis.Redis.from_url(validate_redis_url(url))
            except ValueError as e:
                raise ConfigError(f"Invalid REDIS_URL: {e}") from e
        self._redis: redis.Redis = client
        self._prefix = key_prefix.rstrip(":")

    # key helpers
    def _task_key(self, task_id: str) -> str:
        return f"{self._prefix}:task:{task_id}"

    @property
    def _index_key(self) -> str:
        return f"{self._prefix}:index"

    def _decode(self, raw: bytes) -> TaskEntity:
        try:
            return from_document(json.loads(raw.decode("utf-8")))
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Stored task document is unreadable: %s", e)
            raise StorageError("Failed to read stored task") from e

    @staticmethod
    def _encode(task: TaskEntity) -> str:
        return json.dumps(to_document(task), separators=(",", ":"))

    def _insert(self, task: TaskEntity) -> None:
        with _storage_errors("create task"):
            p = self._redis.pipeline()
            p.hset(self._task_key(task["id"]), mapping={"json": self._encode(task)})
            p.zadd(self._index_key, {task["id"]: task["created_at"].timestamp()})
            p.execute()

    def _fetch(self, task_id: str) -> Optional[TaskEntity]:
        with _storage_errors("retrieve task"):
            raw = cast(Optional[bytes], self._redis.hget(self._task_key(task_id), "json"))
        if raw is None:
            return None
        return self._decode(raw)

    def _fetch_all(self) -> List[TaskEntity]:
        with _storage_errors("retrieve tasks"):
            ids_bytes = cast(List[bytes], self._redis.zrevrange(self._index_key, 0, -1))
            if not ids_bytes:
                return []
            p = self._redis.pipeline(transaction=False)
            for b in ids_bytes:
                p.hget(self._task_key(b.decode("utf-8")), "json")
            raws = cast(List[Optional[bytes]], p.execute())
        # An id can outlive its hash briefly while a delete is in flight
        return [self._decode(raw) for raw in raws if raw is not None]

    def _write(self, task: TaskEntity) -> None:
        key = self._task_key(task["id"])
        payload = self._encode(task)

        def _replace(pipe: redis.client.Pipeline) -> None:
            if not pipe.exists(key):
                raise NotFoundError(task["id"])
            pipe.multi()
            pipe.hset(key, mapping={"json": payload})

        with _storage_errors("update task"):
            self._redis.transaction(_replace, key)

    def _remove(self, task_id: str) -> bool:
        with _storage_errors("delete task"):
            p = self._redis.pipeline()
            p.delete(self._task_key(task_id))
            p.zrem(self._index_key, task_id)
            deleted, _ = p.execute()
        return int(deleted) > 0


__all__ = ["RedisTaskStore"]

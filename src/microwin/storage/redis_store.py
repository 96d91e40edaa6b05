"""Redis-backed task store shared across devices.

Writes are fire-and-forget: the local buffer is updated immediately and the
Redis write plus change notification run as background tasks. Changes made
by other processes arrive over a pub/sub channel and update the buffer, so
reads never wait on the network after start().
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from pydantic import ValidationError
from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError

from .base import BaseTaskStore, StoreReadFailed
from ..config.store_config import StoreConfig
from ..models.task_models import Task, UserProfile
from ..models.storage_models import StoreEvent, StoreEventKind

logger = logging.getLogger(__name__)


class RedisTaskStore(BaseTaskStore):
    """
    Eventually consistent task store on Redis.

    Key layout (prefix = microwin:{user_id}):
        {prefix}:current        JSON task record
        {prefix}:history        list of archived task ids, insertion order
        {prefix}:history:tasks  hash task id -> JSON task record
        {prefix}:profile        JSON profile record
        {prefix}:events         pub/sub channel carrying full snapshots

    GOTCHA: write failures cannot be raised to the caller; they are emitted
    as WRITE_FAILED events instead.
    """

    def __init__(self, config: StoreConfig, redis: Optional[Redis] = None):
        """
        Initialize Redis task store.

        Args:
            config: Store configuration
            redis: Optional preconfigured client
        """
        super().__init__()
        self.config = config
        self.prefix = f"microwin:{config.user_id}"
        self.current_key = f"{self.prefix}:current"
        self.history_key = f"{self.prefix}:history"
        self.history_tasks_key = f"{self.prefix}:history:tasks"
        self.profile_key = f"{self.prefix}:profile"
        self.channel = f"{self.prefix}:events"

        self.origin = uuid4().hex
        self._pool: Optional[ConnectionPool] = None
        self._redis: Optional[Redis] = redis
        self._pubsub = None
        self._listener_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()
        self._write_lock: Optional[asyncio.Lock] = None
        self._started = False

        self._current: Optional[Task] = None
        self._history: List[Task] = []
        self._profile: Optional[UserProfile] = None

    async def _get_redis(self) -> Redis:
        """
        Get Redis client with connection pooling and retry logic.

        Returns:
            Redis async client
        """
        if self._redis is None:
            self._pool = ConnectionPool.from_url(
                self.config.redis_url,
                max_connections=self.config.connection_pool_size,
                decode_responses=True,
            )
            self._redis = Redis(connection_pool=self._pool)

            max_retries = 3
            for attempt in range(max_retries):
                try:
                    await self._redis.ping()
                    logger.info("Redis connection established successfully")
                    break
                except (RedisConnectionError, RedisError) as e:
                    if attempt == max_retries - 1:
                        logger.error(
                            f"Failed to connect to Redis after {max_retries} attempts: {e}"
                        )
                        raise StoreReadFailed("Could not connect to Redis") from e
                    logger.warning(
                        f"Redis connection attempt {attempt + 1} failed, retrying..."
                    )
                    await asyncio.sleep(1)

        return self._redis

    async def start(self) -> None:
        """
        Load the initial snapshot and subscribe to remote changes.

        Raises:
            StoreReadFailed: Redis could not be reached or read
        """
        if self._started:
            return

        redis = await self._get_redis()
        try:
            await self._refresh(redis)
            self._pubsub = redis.pubsub()
            await self._pubsub.subscribe(self.channel)
        except RedisError as e:
            logger.error(f"Failed to load task store snapshot: {e}")
            raise StoreReadFailed("Could not read task store") from e

        self._listener_task = asyncio.create_task(self._listen())
        self._started = True
        logger.info(f"Subscribed to {self.channel}")

    async def _refresh(self, redis: Redis) -> None:
        current = await redis.get(self.current_key)
        self._current = self._decode_task(current) if current else None

        ids = await redis.lrange(self.history_key, 0, -1)
        history = []
        if ids:
            records = await redis.hmget(self.history_tasks_key, ids)
            for record in records:
                task = self._decode_task(record) if record else None
                if task is not None:
                    history.append(task)
        self._history = history

        profile = await redis.get(self.profile_key)
        if profile:
            try:
                self._profile = UserProfile.model_validate_json(profile)
            except ValidationError as e:
                logger.warning(f"Ignoring invalid profile record: {e}")

    @staticmethod
    def _decode_task(data: str) -> Optional[Task]:
        try:
            return Task.from_record(json.loads(data))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring invalid task record: {e}")
            return None

    async def _listen(self) -> None:
        """Apply change notifications published by other processes."""
        try:
            async for message in self._pubsub.listen():
                if message.get("type") != "message":
                    continue
                self._handle_message(message["data"])
        except asyncio.CancelledError:
            raise
        except RedisError as e:
            logger.error(f"Lost subscription to {self.channel}: {e}")

    def _handle_message(self, data: str) -> None:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed notification: {data[:200]}")
            return

        if payload.get("origin") == self.origin:
            return

        try:
            self._apply_notification(payload)
        except ValidationError as e:
            logger.warning(f"Ignoring notification with invalid records: {e}")

    def _apply_notification(self, payload: Dict[str, Any]) -> None:
        kind = payload.get("kind")
        if kind == "current":
            record = payload.get("task")
            self._current = Task.from_record(record) if record else None
            logger.debug("Received remote current task update")
            self._emit_current(self._current, remote=True)
        elif kind == "history":
            self._history = [Task.from_record(r) for r in payload.get("tasks", [])]
            logger.debug("Received remote history update")
            self._emit_history(list(self._history), remote=True)
        elif kind == "profile":
            self._profile = UserProfile.model_validate(payload.get("profile") or {})
        else:
            logger.warning(f"Unknown notification kind: {kind}")

    def _notification(self, kind: str, **fields: Any) -> str:
        return json.dumps({"origin": self.origin, "kind": kind, **fields})

    def _fire(self, description: str, commands: List[tuple]) -> None:
        """Schedule a transactional write without waiting for it.

        Writes run one at a time in the order they were fired, so the last
        save always wins in Redis.
        """
        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        task = asyncio.create_task(self._write(description, commands))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, description: str, commands: List[tuple]) -> None:
        try:
            async with self._write_lock:
                redis = await self._get_redis()
                async with redis.pipeline(transaction=True) as pipe:
                    for name, *args in commands:
                        getattr(pipe, name)(*args)
                    await pipe.execute()
            logger.debug(f"Redis write done: {description}")
        except (RedisError, StoreReadFailed) as e:
            logger.error(f"Redis write failed ({description}): {e}")
            self._emit(
                StoreEvent(
                    kind=StoreEventKind.WRITE_FAILED,
                    error=f"Could not {description}",
                )
            )

    async def flush(self) -> None:
        """Wait until every scheduled write has settled."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def load_current(self) -> Optional[Task]:
        await self.start()
        return self._current

    async def save_current(self, task: Task) -> None:
        self._current = task
        self._emit_current(task)
        record = task.to_record()
        self._fire(
            "save current task",
            [
                ("set", self.current_key, json.dumps(record)),
                ("publish", self.channel, self._notification("current", task=record)),
            ],
        )

    async def clear_current(self) -> None:
        self._current = None
        self._emit_current(None)
        self._fire(
            "clear current task",
            [
                ("delete", self.current_key),
                ("publish", self.channel, self._notification("current", task=None)),
            ],
        )

    async def archive(self, task: Task) -> None:
        self._history = [t for t in self._history if t.id != task.id] + [task]
        record = task.to_record()
        commands = [
            ("lrem", self.history_key, 0, task.id),
            ("rpush", self.history_key, task.id),
            ("hset", self.history_tasks_key, task.id, json.dumps(record)),
        ]

        if self._current is not None and self._current.id == task.id:
            self._current = None
            self._emit_current(None)
            commands += [
                ("delete", self.current_key),
                ("publish", self.channel, self._notification("current", task=None)),
            ]

        commands.append(("publish", self.channel, self._history_notification()))
        self._emit_history(list(self._history))
        logger.info(f"Archived task {task.id}")
        self._fire(f"archive task {task.id}", commands)

    def _history_notification(self) -> str:
        return self._notification(
            "history", tasks=[t.to_record() for t in self._history]
        )

    async def list_history(self) -> List[Task]:
        await self.start()
        return list(self._history)

    async def delete_from_history(self, task_id: str) -> bool:
        remaining = [t for t in self._history if t.id != task_id]
        if len(remaining) == len(self._history):
            return False

        self._history = remaining
        self._emit_history(list(self._history))
        self._fire(
            f"delete task {task_id}",
            [
                ("lrem", self.history_key, 0, task_id),
                ("hdel", self.history_tasks_key, task_id),
                ("publish", self.channel, self._history_notification()),
            ],
        )
        return True

    async def load_profile(self) -> Optional[UserProfile]:
        await self.start()
        return self._profile

    async def save_profile(self, profile: UserProfile) -> None:
        self._profile = profile
        record = profile.model_dump(mode="json")
        self._fire(
            "save profile",
            [
                ("set", self.profile_key, json.dumps(record)),
                ("publish", self.channel, self._notification("profile", profile=record)),
            ],
        )

    async def close(self) -> None:
        """Drain pending writes and close the Redis connection."""
        await self.flush()

        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
        if self._pubsub is not None:
            await self._pubsub.aclose()
            self._pubsub = None
        if self._redis:
            await self._redis.aclose()
            self._redis = None
        if self._pool:
            await self._pool.aclose()
            self._pool = None
        self._started = False
        logger.info("Redis connection closed")

"""Evaluation job queue clients.

Messages are keyed by the job's own id: a ``SET NX`` marker per job id keeps
at most one live entry per job, so a retried submission for the same job is
dropped by the broker instead of being delivered twice. The Redis client is
constructed explicitly, opened on startup and closed on shutdown; the
orchestrator receives it as a dependency.
"""

import asyncio
import json
import logging
from collections import deque
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from designcoach.errors.exceptions import QueueUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueMessage:
    """Wire payload for a job submission: ``{jobId, versionId, kind}``."""

    job_id: str
    version_id: str
    kind: str

    def to_json(self) -> str:
        return json.dumps({"jobId": self.job_id, "versionId": self.version_id, "kind": self.kind})

    @classmethod
    def from_json(cls, raw: str | bytes) -> "QueueMessage":
        data = json.loads(raw)
        return cls(job_id=str(data["jobId"]), version_id=str(data["versionId"]), kind=str(data["kind"]))


class EvaluationQueue(Protocol):
    async def enqueue(self, queue_name: str, message: QueueMessage) -> bool: ...

    async def dequeue(self, queue_name: str, timeout: float = 1.0) -> QueueMessage | None: ...

    async def release(self, queue_name: str, job_id: str) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...

class RedisEvaluationQueue:
    """Redis list-backed queue with per-job-id deduplication."""

    def __init__(
        self,
        redis_url: str,
        key_prefix: str = "designcoach",
        timeout_seconds: float = 5.0,
        dedup_ttl_seconds: int = 86400,
        client=None,
    ):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.timeout_seconds = timeout_seconds
        self.dedup_ttl_seconds = dedup_ttl_seconds
        self._client = client

    async def open(self) -> "RedisEvaluationQueue":
        if self._client is None:
            self._client = aioredis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_timeout=self.timeout_seconds,
                socket_connect_timeout=self.timeout_seconds,
            )
        return self

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RedisEvaluationQueue":
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def list_key(self, queue_name: str) -> str:
        return f"{self.key_prefix}:queue:{queue_name}"

    def dedup_key(self, queue_name: str, job_id: str) -> str:
        return f"{self.key_prefix}:queue:{queue_name}:job:{job_id}"

    async def enqueue(self, queue_name: str, message: QueueMessage) -> bool:
        """Push a job; returns False when a live entry for the job id already exists."""
        client = self._require_client()
        try:
            return await asyncio.wait_for(self._enqueue(client, queue_name, message), self.timeout_seconds)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            logger.warning("Enqueue of job %s on %s failed: %s", message.job_id, queue_name, exc)
            raise QueueUnavailableError() from exc

    async def _enqueue(self, client, queue_name: str, message: QueueMessage) -> bool:
        marker = self.dedup_key(queue_name, message.job_id)
        claimed = await client.set(marker, "1", nx=True, ex=self.dedup_ttl_seconds)
        if not claimed:
            logger.info("Job %s already live on %s, skipping duplicate", message.job_id, queue_name)
            return False
        try:
            await client.rpush(self.list_key(queue_name), message.to_json())
        except BaseException:
            await client.delete(marker)
            raise
        return True

    async def dequeue(self, queue_name: str, timeout: float = 1.0) -> QueueMessage | None:
        client = self._require_client()
        try:
            popped = await client.blpop([self.list_key(queue_name)], timeout=timeout)
        except (RedisError, OSError) as exc:
            raise QueueUnavailableError() from exc
        if popped is None:
            return None
        _, raw = popped
        return QueueMessage.from_json(raw)

    async def release(self, queue_name: str, job_id: str) -> None:
        """Drop the dedup marker once the job reached a terminal state."""
        client = self._require_client()
        try:
            await client.delete(self.dedup_key(queue_name, job_id))
        except (RedisError, OSError) as exc:
            raise QueueUnavailableError() from exc

    async def ping(self) -> bool:
        client = self._require_client()
        return bool(await client.ping())

    def _require_client(self):
        if self._client is None:
            raise QueueUnavailableError("Evaluation queue is not connected")
        return self._client


class InMemoryEvaluationQueue:
    """In-process queue with the same dedup semantics, for local mode."""

    def __init__(self) -> None:
        self._queues: dict[str, deque[QueueMessage]] = {}
        self._live: set[tuple[str, str]] = set()

    async def open(self) -> "InMemoryEvaluationQueue":
        return self

    async def close(self) -> None:
        self._queues.clear()
        self._live.clear()

    async def __aenter__(self) -> "InMemoryEvaluationQueue":
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def enqueue(self, queue_name: str, message: QueueMessage) -> bool:
        key = (queue_name, message.job_id)
        if key in self._live:
            return False
        self._live.add(key)
        self._queues.setdefault(queue_name, deque()).append(message)
        return True

    async def dequeue(self, queue_name: str, timeout: float = 1.0) -> QueueMessage | None:
        queue = self._queues.get(queue_name)
        if not queue:
            if timeout > 0:
                await asyncio.sleep(timeout)
            return None
        return queue.popleft()

    async def release(self, queue_name: str, job_id: str) -> None:
        self._live.discard((queue_name, job_id))

    async def ping(self) -> bool:
        return True

    def depth(self, queue_name: str) -> int:
        return len(self._queues.get(queue_name, ()))


def create_queue(settings) -> RedisEvaluationQueue | InMemoryEvaluationQueue:
    """Build the queue client for the configured mode (not yet opened)."""
    if settings.local_mode:
        return InMemoryEvaluationQueue()
    return RedisEvaluationQueue(
        settings.redis_url,
        key_prefix=settings.queue_key_prefix,
        timeout_seconds=settings.queue_timeout_seconds,
        dedup_ttl_seconds=settings.queue_dedup_ttl_seconds,
    )

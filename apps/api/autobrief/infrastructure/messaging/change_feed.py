"""
Record change notifications over Redis pub/sub.

The worker publishes the full job record after every status change on
`summary_jobs:{job_id}`; observers subscribe to that one channel.
"""

import json
import logging
from typing import Protocol

import redis
import redis.asyncio as aioredis

from autobrief.core.domain.summary_job import SummaryJob

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "summary_jobs"


def channel_for(job_id: str) -> str:
    return f"{CHANNEL_PREFIX}:{job_id}"


class ChangePublisher(Protocol):
    def publish(self, job: SummaryJob) -> None: ...


class Subscription(Protocol):
    async def get(self) -> SummaryJob: ...

    async def close(self) -> None: ...


class ChangeFeed(Protocol):
    async def subscribe(self, job_id: str) -> Subscription: ...


class RedisChangePublisher:
    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisChangePublisher":
        return cls(
            redis.Redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=0.5,
                socket_timeout=0.5,
            )
        )

    def publish(self, job: SummaryJob) -> None:
        # The record in Postgres stays authoritative; a lost notification only
        # delays observers until their next read.
        try:
            self._client.publish(channel_for(job.job_id), json.dumps(job.to_dict()))
        except redis.RedisError as exc:
            logger.warning(
                "Change publish failed: %s",
                exc.__class__.__name__,
                extra={"job_id": job.job_id},
            )


class RedisSubscription:
    def __init__(self, pubsub: aioredis.client.PubSub, job_id: str) -> None:
        self._pubsub = pubsub
        self._job_id = job_id
        self._closed = False

    async def get(self) -> SummaryJob:
        while True:
            message = await self._pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message is None or message.get("type") != "message":
                continue
            try:
                return SummaryJob.from_dict(json.loads(message["data"]))
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning(
                    "Dropping malformed change event: %s",
                    exc,
                    extra={"job_id": self._job_id},
                )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._pubsub.unsubscribe(channel_for(self._job_id))
        await self._pubsub.aclose()


class RedisChangeFeed:
    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisChangeFeed":
        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    async def subscribe(self, job_id: str) -> RedisSubscription:
        pubsub = self._client.pubsub()
        await pubsub.subscribe(channel_for(job_id))
        return RedisSubscription(pubsub, job_id)

    async def aclose(self) -> None:
        await self._client.aclose()


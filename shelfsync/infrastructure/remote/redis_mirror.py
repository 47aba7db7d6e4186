"""Redis-backed remote mirror.

Each record is a Redis hash whose fields hold JSON-encoded values, so
``HSET`` gives merge-write semantics: fields absent from a write survive on
the server. Every mutation publishes the document id on the user's
``changes`` channel; subscribers answer each message with a fresh snapshot.
"""

import asyncio
import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from shelfsync.core.redis_client import user_key
from shelfsync.domain.entities import BookRecord
from shelfsync.domain.exceptions import RemoteUnavailable, Unauthenticated
from shelfsync.domain.repositories import (
    IIdentityProvider,
    IRemoteMirror,
    IRemoteSubscription,
    SnapshotCallback,
)

logger = logging.getLogger(__name__)


def document_id(book_id: str) -> str:
    """Remote keys cannot contain path separators."""
    return book_id.replace("/", "_")


def _encode(values: dict[str, Any]) -> dict[str, str]:
    return {name: json.dumps(value) for name, value in values.items()}


def _decode(values: dict[str, str]) -> dict[str, Any]:
    return {name: json.loads(value) for name, value in values.items()}


class RedisSubscription(IRemoteSubscription):
    """Live feed for one user; owns a pub/sub connection and a reader task."""

    def __init__(self, mirror: "RedisRemoteMirror", user_id: str, on_change: SnapshotCallback):
        self._mirror = mirror
        self._user_id = user_id
        self._on_change = on_change
        self._pubsub = mirror.client.pubsub()
        self._task: Optional[asyncio.Task] = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    async def open(self) -> None:
        channel = self._mirror.key(self._user_id, "changes")
        try:
            await self._pubsub.subscribe(channel)
            snapshot = await self._mirror.fetch_for(self._user_id)
        except (RedisError, OSError) as exc:
            await self._pubsub.aclose()
            raise RemoteUnavailable(f"Redis subscribe failed: {exc}") from exc
        self._active = True
        await self._deliver(snapshot)
        self._task = asyncio.create_task(self._listen(), name=f"shelfsync-subscription-{self._user_id}")
        logger.info("Remote subscription opened for user %s", self._user_id)

    async def _listen(self) -> None:
        try:
            async for message in self._pubsub.listen():
                if not self._active:
                    break
                if message.get("type") != "message":
                    continue
                snapshot = await self._mirror.fetch_for(self._user_id)
                await self._deliver(snapshot)
        except asyncio.CancelledError:
            raise
        except (RedisError, OSError, RemoteUnavailable) as exc:
            logger.error("Remote subscription for user %s lost: %s", self._user_id, exc)
            self._active = False
        except Exception:
            logger.exception("Remote subscription reader for user %s failed", self._user_id)
            self._active = False

    async def _deliver(self, snapshot: list[BookRecord]) -> None:
        if not self._active:
            return
        try:
            await self._on_change(snapshot)
        except Exception:
            logger.exception("Remote snapshot handler failed")

    async def cancel(self) -> None:
        if not self._active and self._task is None:
            return
        self._active = False
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        try:
            await self._pubsub.unsubscribe()
            await self._pubsub.aclose()
        except (RedisError, OSError) as exc:
            logger.warning("Error closing remote subscription: %s", exc)
        logger.info("Remote subscription cancelled for user %s", self._user_id)


class RedisRemoteMirror(IRemoteMirror):
    """Per-user document store on Redis; the user comes from the identity provider."""

    def __init__(self, client: aioredis.Redis, identity: IIdentityProvider, prefix: str = "shelfsync"):
        self.client = client
        self.identity = identity
        self.prefix = prefix

    def key(self, user_id: str, *parts: str) -> str:
        return user_key(self.prefix, user_id, *parts)

    def _require_user(self) -> str:
        user_id = self.identity.current_user_id
        if not user_id:
            raise Unauthenticated("No signed-in user")
        return user_id

    async def put(self, record: BookRecord) -> None:
        user_id = self._require_user()
        doc_id = document_id(record.id)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.hset(self.key(user_id, "books", doc_id), mapping=_encode(record.to_dict()))
                pipe.sadd(self.key(user_id, "books"), doc_id)
                pipe.publish(self.key(user_id, "changes"), doc_id)
                await pipe.execute()
        except (RedisError, OSError) as exc:
            raise RemoteUnavailable(f"Redis put failed: {exc}") from exc

    async def remove(self, book_id: str) -> None:
        user_id = self._require_user()
        doc_id = document_id(book_id)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(self.key(user_id, "books", doc_id))
                pipe.srem(self.key(user_id, "books"), doc_id)
                pipe.publish(self.key(user_id, "changes"), doc_id)
                await pipe.execute()
        except (RedisError, OSError) as exc:
            raise RemoteUnavailable(f"Redis remove failed: {exc}") from exc

    async def fetch_all(self) -> list[BookRecord]:
        return await self.fetch_for(self._require_user())

    async def fetch_for(self, user_id: str) -> list[BookRecord]:
        try:
            doc_ids = sorted(await self.client.smembers(self.key(user_id, "books")))
            if not doc_ids:
                return []
            async with self.client.pipeline(transaction=False) as pipe:
                for doc_id in doc_ids:
                    pipe.hgetall(self.key(user_id, "books", doc_id))
                documents = await pipe.execute()
        except (RedisError, OSError) as exc:
            raise RemoteUnavailable(f"Redis fetch failed: {exc}") from exc

        records = []
        for doc_id, document in zip(doc_ids, documents):
            if not document:
                continue
            try:
                values = _decode(document)
                values.setdefault("id", doc_id)
                records.append(BookRecord.from_dict(values))
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Skipping malformed remote document %s for user %s: %s", doc_id, user_id, exc)
        return records

    async def subscribe(self, on_change: SnapshotCallback) -> IRemoteSubscription:
        subscription = RedisSubscription(self, self._require_user(), on_change)
        await subscription.open()
        return subscription

    async def fetch_settings(self) -> dict[str, Any]:
        user_id = self._require_user()
        try:
            document = await self.client.hgetall(self.key(user_id, "settings"))
        except (RedisError, OSError) as exc:
            raise RemoteUnavailable(f"Redis settings fetch failed: {exc}") from exc
        return _decode(document)

    async def put_settings(self, values: dict[str, Any]) -> None:
        user_id = self._require_user()
        try:
            await self.client.hset(self.key(user_id, "settings"), mapping=_encode(values))
        except (RedisError, OSError) as exc:
            raise RemoteUnavailable(f"Redis settings write failed: {exc}") from exc

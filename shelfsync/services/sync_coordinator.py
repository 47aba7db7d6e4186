"""Sync coordinator: keeps the local record store and the remote mirror aligned.

State machine::

    SIGNED_OUT --(identity)--> SYNCING --(reconciled)--> SIGNED_IN
        ^                                                    |
        +-------------------(identity cleared)---------------+

Reconciliation (once per sign-in)
---------------------------------
* remote empty, local non-empty: push every local record; local stays as is.
* remote non-empty: remote wins for ids present on both sides, local-only
  records are pushed, and the local store is replaced by remote + local-only.
* both empty: nothing to do.

Any failure leaves the device in local-only mode; sign-in still completes
and the live subscription is attempted.

While signed in, every local mutation is mirrored outward once, best effort,
after the local write has committed. Remote snapshots replace the local
store, except empty ones, which are treated as "not loaded yet".
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from shelfsync.core.events import EventStream, Subscription
from shelfsync.domain.entities import BookRecord, RemoteStatus, SyncEvent, SyncState
from shelfsync.domain.exceptions import RemoteUnavailable, Unauthenticated
from shelfsync.domain.repositories import (
    IIdentityProvider,
    IRecordStore,
    IRemoteMirror,
    IRemoteSubscription,
    ISettingsStore,
)
from shelfsync.domain.services import ISyncCoordinator

logger = logging.getLogger(__name__)

CATEGORIES_SETTING = "categories"


class SyncCoordinator(ISyncCoordinator):
    """Owns the sync session state for one device.

    Nothing here is module-global, so several coordinators (one per simulated
    device in tests) can share a process.
    """

    def __init__(
        self,
        store: IRecordStore,
        settings_store: ISettingsStore,
        mirror: IRemoteMirror,
        identity: IIdentityProvider,
    ):
        self.store = store
        self.settings_store = settings_store
        self.mirror = mirror
        self.identity = identity

        self._state = SyncState.SIGNED_OUT
        self._user_id: Optional[str] = None
        self._subscription: Optional[IRemoteSubscription] = None
        self._gate = asyncio.Lock()
        self._auth_lock = asyncio.Lock()
        self._events: EventStream[SyncEvent] = EventStream()
        self._auth_changes: Optional[Subscription[Optional[str]]] = None
        self._auth_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------
    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def live(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def events(self) -> Subscription[SyncEvent]:
        return self._events.subscribe()

    def mutation_gate(self) -> asyncio.Lock:
        return self._gate

    async def start(self) -> None:
        if self._auth_task is not None:
            return
        self._auth_changes = self.identity.auth_changes()
        self._auth_task = asyncio.create_task(self._follow_identity(), name="shelfsync-auth")
        logger.info("Sync coordinator started")

    async def stop(self) -> None:
        if self._auth_changes is not None:
            self._auth_changes.close()
            self._auth_changes = None
        task, self._auth_task = self._auth_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._cancel_subscription()
        self._events.close()
        logger.info("Sync coordinator stopped")

    async def _follow_identity(self) -> None:
        async for _ in self._auth_changes:
            # The event is only a wake-up; the provider's current identity
            # is authoritative, so queued stale changes collapse into one.
            try:
                await self.handle_auth_change(self.identity.current_user_id)
            except Exception:
                logger.error("Auth change handling failed; still following identity", exc_info=True)

    async def handle_auth_change(self, user_id: Optional[str]) -> None:
        async with self._auth_lock:
            if user_id is None:
                if self._state is not SyncState.SIGNED_OUT:
                    await self._sign_out()
                return
            if user_id == self._user_id and self._state is SyncState.SIGNED_IN:
                return
            if self._user_id is not None and user_id != self._user_id:
                await self._sign_out()
            await self._sign_in(user_id)

    async def _sign_in(self, user_id: str) -> None:
        logger.info("Signing in %s: reconciling local and remote records", user_id)
        self._user_id = user_id
        self._state = SyncState.SYNCING
        self._events.publish(SyncEvent.SYNCING)

        # Mutations wait until the merge and the first snapshot have landed.
        async with self._gate:
            try:
                await self._reconcile_locked()
            except Exception as exc:
                logger.error(f"Reconciliation failed, continuing local-only: {exc}", exc_info=True)
                self._events.publish(SyncEvent.SYNC_ERROR)

            self._state = SyncState.SIGNED_IN
            try:
                self._subscription = await self.mirror.subscribe(self._on_remote_snapshot)
            except (RemoteUnavailable, Unauthenticated) as exc:
                logger.warning("Live sync unavailable for %s: %s", user_id, exc)
            except Exception:
                logger.error("Live sync failed to start for %s", user_id, exc_info=True)
        logger.info("Signed in as %s (live=%s)", user_id, self.live)

    async def _sign_out(self) -> None:
        await self._cancel_subscription()
        logger.info("Signed out %s; local records kept", self._user_id)
        self._user_id = None
        self._state = SyncState.SIGNED_OUT
        self._events.publish(SyncEvent.SIGNED_OUT)

    async def _cancel_subscription(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.cancel()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------
    async def reconcile(self) -> list[BookRecord]:
        """Run the sign-in merge again; remote errors propagate to the caller."""
        async with self._gate:
            return await self._reconcile_locked()

    async def _reconcile_locked(self) -> list[BookRecord]:
        remote_records, local_records = await asyncio.gather(
            self.mirror.fetch_all(), self.store.get_all()
        )

        if not remote_records and local_records:
            for record in local_records:
                await self.mirror.put(record)
            logger.info("Remote copy seeded with %d local records", len(local_records))
            merged = local_records
            self._events.publish(SyncEvent.UPLOADED)
        elif remote_records:
            remote_ids = {record.id for record in remote_records}
            local_only = [record for record in local_records if record.id not in remote_ids]
            for record in local_only:
                await self.mirror.put(record)
            merged = remote_records + local_only
            await self.store.replace_all(merged)
            logger.info(
                "Reconciled: %d remote records, %d local-only records pushed",
                len(remote_records),
                len(local_only),
            )
            self._events.publish(SyncEvent.REFRESH)
            self._events.publish(SyncEvent.SYNCED)
        else:
            merged = []
            logger.info("Reconciled: no records on either side")

        await self._reconcile_settings()
        return merged

    async def _reconcile_settings(self) -> None:
        remote_settings = await self.mirror.fetch_settings()
        remote_labels = remote_settings.get(CATEGORIES_SETTING)
        if remote_labels:
            await self.settings_store.set_category_labels(list(remote_labels))
            return
        local_labels = await self.settings_store.get_category_labels()
        if local_labels:
            await self.mirror.put_settings({CATEGORIES_SETTING: local_labels})

    async def _on_remote_snapshot(self, records: list[BookRecord]) -> None:
        if self._state is SyncState.SIGNED_OUT:
            return
        if not records:
            logger.debug("Ignoring empty remote snapshot")
            return
        await self.store.replace_all(records)
        self._events.publish(SyncEvent.REFRESH)
        self._events.publish(SyncEvent.SYNCED)

    # ------------------------------------------------------------------
    # Outbound propagation
    # ------------------------------------------------------------------
    async def propagate_put(self, record: BookRecord) -> RemoteStatus:
        return await self._propagate("put", record.id, lambda: self.mirror.put(record))

    async def propagate_remove(self, book_id: str) -> RemoteStatus:
        return await self._propagate("remove", book_id, lambda: self.mirror.remove(book_id))

    async def propagate_settings(self, category_labels: list[str]) -> RemoteStatus:
        return await self._propagate(
            "settings",
            CATEGORIES_SETTING,
            lambda: self.mirror.put_settings({CATEGORIES_SETTING: category_labels}),
        )

    async def _propagate(
        self, operation: str, key: str, action: Callable[[], Awaitable[None]]
    ) -> RemoteStatus:
        if self._state is not SyncState.SIGNED_IN:
            return RemoteStatus.SKIPPED
        try:
            await action()
        except Unauthenticated:
            logger.debug("Remote %s of %s skipped: not signed in", operation, key)
            return RemoteStatus.SKIPPED
        except RemoteUnavailable as exc:
            logger.warning("Remote %s of %s failed (saved locally): %s", operation, key, exc)
            return RemoteStatus.FAILED
        return RemoteStatus.SYNCED

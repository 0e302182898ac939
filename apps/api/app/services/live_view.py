"""
Live list views: in-memory snapshots kept consistent with the store.

A LiveListView loads its list on mount and subscribes to the change feed
for the tables the list is derived from. Change callbacks (which may fire
on request worker threads) only post the event onto an asyncio.Queue owned
by the view's loop; a consumer task turns each event into a full refetch.
Starting a refetch cancels any refetch still in flight, so a slow stale
response never overwrites a fresher snapshot.

The app mounts a staff performance view at startup (see app.main) and
serves GET /staff/performance from it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Iterable, TypeVar
from uuid import UUID

import anyio
from sqlalchemy.orm import Session, sessionmaker

from app.db.session import SessionLocal
from app.services import announcement_service, document_service, staff_service
from app.services.change_feed import ChangeEvent, ChangeFeed, Subscription
from app.services.results import ServiceError, ServiceResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

Fetch = Callable[[], Awaitable[ServiceResult[list[T]]]]

DOCUMENT_TABLES = frozenset({"document_requests"})
ANNOUNCEMENT_TABLES = frozenset({"announcements"})
STAFF_TABLES = frozenset({"staff", "profiles"})
# Any of these can move a staff member's counts
STAFF_PERFORMANCE_TABLES = frozenset({"staff", "profiles", "complaints", "document_requests"})


class LiveListView(Generic[T]):
    """Snapshot of a derived list that refetches when its source tables change."""

    def __init__(
        self,
        feed: ChangeFeed,
        tables: str | Iterable[str],
        fetch: Fetch,
        *,
        name: str = "list",
    ):
        self._feed = feed
        self.tables = frozenset([tables] if isinstance(tables, str) else tables)
        self._fetch = fetch
        self.name = name

        self.items: list[T] = []
        self.error: ServiceError | None = None
        self.loading = False
        self.fetch_count = 0

        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[ChangeEvent] | None = None
        self._subscription: Subscription | None = None
        self._consumer: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None

    @property
    def mounted(self) -> bool:
        return self._subscription is not None

    async def mount(self) -> None:
        """Subscribe, then perform the initial load."""
        if self.mounted:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._subscription = self._feed.subscribe(self.tables, self._on_change)
        self._consumer = asyncio.create_task(self._consume())
        await self.refresh()

    async def unmount(self) -> None:
        """Unsubscribe and stop; later changes are ignored and no refetch is left running."""
        self._feed.unsubscribe(self._subscription)
        self._subscription = None
        for task in (self._consumer, self._inflight):
            if task is not None and not task.done():
                task.cancel()
        for task in (self._consumer, self._inflight):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._consumer = None
        self._inflight = None
        self._queue = None
        self._loop = None
        self.loading = False

    async def __aenter__(self) -> "LiveListView[T]":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.unmount()

    def _on_change(self, change: ChangeEvent) -> None:
        loop, queue = self._loop, self._queue
        if loop is None or queue is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(queue.put_nowait, change)

    async def _consume(self) -> None:
        queue = self._queue
        while True:
            change = await queue.get()
            try:
                if self.mounted:
                    logger.debug(
                        "%s view refetching after %s on %s",
                        self.name,
                        change.event_type.value,
                        change.table,
                    )
                    self._start_refetch()
            finally:
                queue.task_done()

    def _start_refetch(self) -> asyncio.Task:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = asyncio.create_task(self._load())
        return self._inflight

    async def _load(self) -> None:
        self.loading = True
        try:
            result = await self._fetch()
        finally:
            if asyncio.current_task() is self._inflight:
                self.loading = False
        self.fetch_count += 1
        if result.ok:
            self.items = list(result.data or [])
            self.error = None
        else:
            # Keep the previous snapshot; the failure has already been surfaced
            self.error = result.error

    async def refresh(self) -> None:
        """Refetch now and wait for it (or for whichever refetch supersedes it)."""
        task = self._start_refetch()
        await self._await_refetch(task)

    async def _await_refetch(self, task: asyncio.Task) -> None:
        while True:
            try:
                await task
                return
            except asyncio.CancelledError:
                if self._inflight is task or self._inflight is None:
                    raise
                task = self._inflight

    async def wait_idle(self) -> None:
        """Wait until queued changes are handled and no refetch is running."""
        while True:
            # Let callbacks posted with call_soon_threadsafe reach the queue
            await asyncio.sleep(0)
            if self._queue is not None:
                await self._queue.join()
            task = self._inflight
            if task is None or task.done():
                if self._queue is None or self._queue.empty():
                    return
                continue
            await self._await_refetch(task)


# =============================================================================
# Fetchers and ready-made views
# =============================================================================


def session_fetch(
    loader: Callable[[Session], ServiceResult[list[T]]],
    session_factory: sessionmaker = SessionLocal,
) -> Fetch:
    """Wrap a sync session-based loader as an async fetch run on a worker thread."""

    def _run() -> ServiceResult[list[T]]:
        with session_factory() as db:
            return loader(db)

    async def fetch() -> ServiceResult[list[T]]:
        return await anyio.to_thread.run_sync(_run)

    return fetch


def document_requests_view(
    feed: ChangeFeed,
    session_factory: sessionmaker = SessionLocal,
    *,
    user_id: UUID | None = None,
) -> LiveListView:
    """All requests (staff) or one citizen's requests."""
    if user_id is None:
        loader = document_service.list_document_requests
    else:
        def loader(db: Session):
            return document_service.list_user_document_requests(db, user_id)
    return LiveListView(
        feed, DOCUMENT_TABLES, session_fetch(loader, session_factory), name="document_requests"
    )


def announcements_view(
    feed: ChangeFeed, session_factory: sessionmaker = SessionLocal
) -> LiveListView:
    return LiveListView(
        feed,
        ANNOUNCEMENT_TABLES,
        session_fetch(announcement_service.list_announcements, session_factory),
        name="announcements",
    )


def staff_members_view(
    feed: ChangeFeed, session_factory: sessionmaker = SessionLocal
) -> LiveListView:
    return LiveListView(
        feed,
        STAFF_TABLES,
        session_fetch(staff_service.list_staff_members, session_factory),
        name="staff",
    )


def staff_performance_view(
    feed: ChangeFeed, session_factory: sessionmaker = SessionLocal
) -> LiveListView:
    async def fetch():
        return await staff_service.compute_staff_performance(session_factory)

    return LiveListView(feed, STAFF_PERFORMANCE_TABLES, fetch, name="staff_performance")

"""
Realtime change feed.

Committed row changes are published as ChangeEvents to in-process
subscribers (list views, the WebSocket relay) and, when REDIS_URL is set,
to other API instances over a Redis pub/sub channel.

Changes are captured from SQLAlchemy session events:
- after_flush: inserts/updates/deletes made through the unit of work
- do_orm_execute: bulk UPDATE/DELETE statements (workflow transitions)
They are buffered on the session and only published after commit; a
rollback discards them.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session

from app.core.redis_client import CHANGE_CHANNEL, get_async_redis_client, get_sync_redis_client
from app.db.enums import ChangeEventType
from app.utils.datetime_parsing import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

# Identifies this process on the Redis backplane
INSTANCE_ID = uuid.uuid4().hex

PENDING_CHANGES_KEY = "portal_pending_changes"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed change to one row of a watched table."""

    table: str
    event_type: ChangeEventType
    record_id: str | None = None
    commit_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source_id: str = INSTANCE_ID

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "event_type": self.event_type.value,
            "record_id": self.record_id,
            "commit_timestamp": format_timestamp(self.commit_timestamp),
            "source_id": self.source_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeEvent":
        """Build an event from a wire payload. Raises ValueError on bad shapes."""
        table = data.get("table")
        if not isinstance(table, str) or not table:
            raise ValueError("change event is missing a table name")
        record_id = data.get("record_id")
        return cls(
            table=table,
            event_type=ChangeEventType(data.get("event_type")),
            record_id=str(record_id) if record_id is not None else None,
            commit_timestamp=parse_timestamp(data.get("commit_timestamp"))
            or datetime.now(timezone.utc),
            source_id=str(data.get("source_id") or ""),
        )


@dataclass(eq=False)
class Subscription:
    """Handle returned by ChangeFeed.subscribe; pass it back to unsubscribe."""

    tables: frozenset[str]
    callback: Callable[[ChangeEvent], None]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    active: bool = True

    def matches(self, change: ChangeEvent) -> bool:
        return self.active and change.table in self.tables


class ChangeFeed:
    """Fan-out of committed changes to subscribers filtered by table name."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        # publish() runs on request worker threads as well as the event loop
        self._lock = threading.Lock()

    def subscribe(
        self,
        tables: str | Iterable[str],
        callback: Callable[[ChangeEvent], None],
    ) -> Subscription:
        """Register a callback for changes to any of the given tables."""
        if isinstance(tables, str):
            tables = [tables]
        watched = frozenset(tables)
        if not watched:
            raise ValueError("subscribe() needs at least one table")
        subscription = Subscription(tables=watched, callback=callback)
        with self._lock:
            self._subscriptions[subscription.id] = subscription
        logger.debug("Subscribed %s to %s", subscription.id, sorted(watched))
        return subscription

    def unsubscribe(self, subscription: Subscription | None) -> None:
        """Remove a subscription. Safe to call more than once."""
        if subscription is None:
            return
        subscription.active = False
        with self._lock:
            self._subscriptions.pop(subscription.id, None)

    def publish(self, change: ChangeEvent) -> int:
        """Deliver a change to matching subscribers. Returns the delivery count."""
        with self._lock:
            targets = [s for s in self._subscriptions.values() if s.matches(change)]

        delivered = 0
        for subscription in targets:
            try:
                subscription.callback(change)
                delivered += 1
            except Exception:
                # One broken subscriber must not starve the others
                logger.exception(
                    "Change subscriber %s failed for %s", subscription.id, change.table
                )
        return delivered

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def clear(self) -> None:
        with self._lock:
            for subscription in self._subscriptions.values():
                subscription.active = False
            self._subscriptions.clear()


# Process-wide feed, created once at import
feed = ChangeFeed()


# =============================================================================
# Capture from SQLAlchemy sessions
# =============================================================================


def _pending(session: Session) -> list[ChangeEvent]:
    return session.info.setdefault(PENDING_CHANGES_KEY, [])


def _table_name(instance: object) -> str | None:
    table = getattr(instance, "__table__", None)
    return getattr(table, "name", None)


def _record_instances(session: Session, instances, event_type: ChangeEventType) -> None:
    pending = _pending(session)
    for instance in instances:
        table = _table_name(instance)
        if not table:
            continue
        record_id = getattr(instance, "id", None)
        pending.append(
            ChangeEvent(
                table=table,
                event_type=event_type,
                record_id=str(record_id) if record_id is not None else None,
            )
        )


def _after_flush(session: Session, flush_context) -> None:
    # new/dirty/deleted still hold the pre-flush state here
    _record_instances(session, list(session.new), ChangeEventType.INSERT)
    _record_instances(
        session,
        [obj for obj in session.dirty if session.is_modified(obj, include_collections=False)],
        ChangeEventType.UPDATE,
    )
    _record_instances(session, list(session.deleted), ChangeEventType.DELETE)


def _do_orm_execute(orm_execute_state: ORMExecuteState) -> None:
    if orm_execute_state.is_update:
        event_type = ChangeEventType.UPDATE
    elif orm_execute_state.is_delete:
        event_type = ChangeEventType.DELETE
    else:
        return
    table = getattr(orm_execute_state.statement, "table", None)
    name = getattr(table, "name", None)
    if name:
        _pending(orm_execute_state.session).append(ChangeEvent(table=name, event_type=event_type))


def _after_commit(session: Session) -> None:
    changes = session.info.pop(PENDING_CHANGES_KEY, None)
    if not changes:
        return
    target = session.info.get("change_feed") or feed
    for change in _dedupe(changes):
        target.publish(change)
        publish_to_backplane(change)


def _after_rollback(session: Session) -> None:
    session.info.pop(PENDING_CHANGES_KEY, None)


def _dedupe(changes: list[ChangeEvent]) -> list[ChangeEvent]:
    """Collapse repeats of the same (table, type, record) within one commit."""
    seen: set[tuple[str, ChangeEventType, str | None]] = set()
    unique: list[ChangeEvent] = []
    for change in changes:
        key = (change.table, change.event_type, change.record_id)
        if key in seen:
            continue
        seen.add(key)
        unique.append(change)
    return unique


_capture_lock = threading.Lock()
_capture_installed = False


def install_change_capture() -> None:
    """Attach the capture listeners to every Session. Idempotent."""
    global _capture_installed
    with _capture_lock:
        if _capture_installed:
            return
        event.listen(Session, "after_flush", _after_flush)
        event.listen(Session, "do_orm_execute", _do_orm_execute)
        event.listen(Session, "after_commit", _after_commit)
        event.listen(Session, "after_rollback", _after_rollback)
        _capture_installed = True
        logger.info("Change capture installed")


# =============================================================================
# Redis backplane
# =============================================================================


def should_deliver_event(payload: dict, instance_id: str) -> bool:
    """Skip events this instance already delivered locally."""
    return payload.get("source_id") != instance_id


def publish_to_backplane(change: ChangeEvent) -> bool:
    """Best-effort publish of a local change to other instances."""
    client = get_sync_redis_client()
    if client is None or change.source_id != INSTANCE_ID:
        return False
    try:
        client.publish(CHANGE_CHANNEL, json.dumps(change.to_dict()))
        return True
    except Exception:
        logger.warning("Failed to publish change on %s", CHANGE_CHANNEL, exc_info=True)
        return False


def handle_backplane_message(raw: str | bytes, target: ChangeFeed | None = None) -> bool:
    """Deliver a change received from another instance. Returns True if delivered."""
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Dropping malformed backplane message")
        return False
    if not isinstance(payload, dict) or not should_deliver_event(payload, INSTANCE_ID):
        return False
    try:
        change = ChangeEvent.from_dict(payload)
    except ValueError:
        logger.warning("Dropping backplane message with unknown shape")
        return False
    (target or feed).publish(change)
    return True


async def run_backplane_listener(target: ChangeFeed | None = None) -> None:
    """Relay changes published by other instances until cancelled."""
    client = get_async_redis_client()
    if client is None:
        return
    pubsub = client.pubsub()
    await pubsub.subscribe(CHANGE_CHANNEL)
    logger.info("Listening for remote changes on %s", CHANGE_CHANNEL)
    try:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            handle_backplane_message(message.get("data"), target)
    finally:
        await pubsub.unsubscribe(CHANGE_CHANNEL)
        await pubsub.aclose()

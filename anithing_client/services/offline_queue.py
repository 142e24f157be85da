"""Offline action queue: local-first writes replayed against the backend."""

import asyncio
import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog
from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from anithing_client.api_client import ApiClient
from anithing_client.database import LocalStore, OfflineAction
from anithing_client.errors import (
    AuthenticationError,
    NetworkError,
    RateLimitedError,
    RemoteRejectedError,
    RemoteTimeoutError,
)
from anithing_client.schemas import ActionType, validate_payload

logger = structlog.get_logger(__name__)

PENDING = "pending"
IN_FLIGHT = "in_flight"
FAILED = "failed"
REJECTED = "rejected"

# Listener event when the backend refuses our token
AUTH_REQUIRED = "auth_required"

# Pause after a 429 that carries no Retry-After
DEFAULT_RATE_LIMIT_BACKOFF = 60.0

Listener = Callable[[str, OfflineAction], None]

_UNSYNCED = {"synchronize_session": False}


@dataclass
class FlushResult:
    """Action ids by outcome of one flush."""

    confirmed: list[str] = field(default_factory=list)
    still_pending: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)


class OfflineQueue:
    """
    Durable queue of library mutations made while offline.

    Actions are replayed in enqueue order per ordering key
    ``(type, entity_id)``: once an action for a key fails with a network
    error, later actions for that key wait for the next flush, so
    ``progress=5`` can never reach the server before ``progress=3``.
    Delivery is at-least-once; the backend endpoints are idempotent.

    Actions that keep failing move to ``failed`` after ``max_retries``
    attempts and keep holding back their key until retried or discarded.
    Actions the server refuses (4xx) move to ``rejected`` and do not
    block anything. Rate limiting and expired credentials are neither:
    the flush stops, nothing is charged against the retry budget, and
    the actions wait for a later flush.

    Several processes may share one database file. Each action is
    claimed with a guarded UPDATE before it is sent, and a key with an
    action in flight anywhere is held back.
    """

    def __init__(
        self,
        store: LocalStore,
        api: ApiClient,
        max_retries: int = 5,
        request_timeout: float | None = None,
        stale_after: timedelta = timedelta(minutes=2),
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.api = api
        self.max_retries = max_retries
        self.request_timeout = request_timeout
        self.stale_after = stale_after
        self.clock = clock
        self._flush_lock = asyncio.Lock()
        self._resume_at: float | None = None
        self._listeners: list[Listener] = []

    # Notifications

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Call ``listener(event, action)`` when an action fails, is rejected,
        or is held back because the API token was refused (``auth_required``).

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str, action: OfflineAction) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, action)
            except Exception:
                logger.exception("queue_listener_error", event=event, action_id=action.id)

    # Writes

    async def enqueue(self, action_type: ActionType | str, payload: dict) -> OfflineAction:
        """
        Validate and store an action locally. Never touches the network.

        Raises:
            ValueError: unknown action type.
            pydantic.ValidationError: payload does not fit the action type.
        """
        action_type = ActionType(action_type)
        validated = validate_payload(action_type, payload)
        action_id = uuid.uuid4().hex

        # seq is computed inside the INSERT so concurrent writers cannot collide
        next_seq = select(func.coalesce(func.max(OfflineAction.seq), 0) + 1).scalar_subquery()

        async with self.store.session() as session:
            await session.execute(
                insert(OfflineAction).values(
                    id=action_id,
                    seq=next_seq,
                    type=action_type.value,
                    entity_id=validated.entity_id,
                    payload=validated.model_dump(mode="json"),
                    enqueued_at=self.clock(),
                    retry_count=0,
                    status=PENDING,
                )
            )
            await session.commit()
            action = await session.get(OfflineAction, action_id)

        logger.info(
            "action_enqueued",
            action_id=action.id,
            type=action.type,
            entity_id=action.entity_id,
            seq=action.seq,
        )
        return action

    async def recover_in_flight(self, older_than: timedelta | None = None) -> int:
        """
        Return stale ``in_flight`` actions to ``pending``.

        Only claims older than ``older_than`` (default ``stale_after``) are
        touched; fresher ones belong to a replay that may still be running
        in another process.
        """
        cutoff = self.clock() - (self.stale_after if older_than is None else older_than)
        async with self.store.session() as session:
            result = await session.execute(
                update(OfflineAction)
                .where(
                    OfflineAction.status == IN_FLIGHT,
                    or_(OfflineAction.claimed_at.is_(None), OfflineAction.claimed_at < cutoff),
                )
                .values(status=PENDING, claimed_at=None),
                execution_options=_UNSYNCED,
            )
            await session.commit()

        if result.rowcount:
            logger.warning("in_flight_recovered", count=result.rowcount)
        return result.rowcount

    async def _replay(self, action: OfflineAction) -> None:
        call = self.api.replay(action.type, action.payload)
        if self.request_timeout is None:
            await call
            return
        try:
            await asyncio.wait_for(call, timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            raise RemoteTimeoutError(f"{action.type} timed out") from e

    async def _claim(self, session: AsyncSession, action: OfflineAction) -> bool:
        result = await session.execute(
            update(OfflineAction)
            .where(OfflineAction.id == action.id, OfflineAction.status == PENDING)
            .values(status=IN_FLIGHT, claimed_at=self.clock()),
            execution_options=_UNSYNCED,
        )
        if result.rowcount != 1:
            await session.rollback()
            return False
        await session.commit()
        action.status = IN_FLIGHT
        return True

    async def _settle(self, session: AsyncSession, action: OfflineAction, **values) -> None:
        """Record the outcome of a claimed action."""
        await session.execute(
            update(OfflineAction)
            .where(OfflineAction.id == action.id, OfflineAction.status == IN_FLIGHT)
            .values(claimed_at=None, **values),
            execution_options=_UNSYNCED,
        )
        await session.commit()
        for name, value in values.items():
            setattr(action, name, value)

    def backoff_remaining(self) -> float:
        """Seconds until the backend's last rate limit expires."""
        if self._resume_at is None:
            return 0.0
        return max(self._resume_at - time.monotonic(), 0.0)

    async def flush(self) -> FlushResult:
        """
        Replay pending actions once.

        Concurrent calls run one after another. Only actions pending when
        the flush starts are attempted; anything enqueued meanwhile waits
        for the next flush. While a rate limit is in force nothing is sent.
        """
        async with self._flush_lock:
            remaining = self.backoff_remaining()
            if remaining > 0:
                pending = await self.pending()
                logger.info("flush_deferred", retry_in=round(remaining, 1), pending=len(pending))
                return FlushResult(still_pending=[a.id for a in pending])
            self._resume_at = None

            await self.recover_in_flight()
            return await self._flush_snapshot()

    async def _flush_snapshot(self) -> FlushResult:
        result = FlushResult()

        async with self.store.session() as session:
            held_keys = await session.execute(
                select(OfflineAction.type, OfflineAction.entity_id)
                .where(OfflineAction.status.in_([FAILED, IN_FLIGHT]))
                .distinct()
            )
            blocked = {(action_type, entity_id) for action_type, entity_id in held_keys}
            snapshot = (
                await session.scalars(
                    select(OfflineAction)
                    .where(OfflineAction.status == PENDING)
                    .order_by(OfflineAction.seq)
                )
            ).all()
            # Outcomes are written with guarded statements, not through these objects
            session.expunge_all()

            for index, action in enumerate(snapshot):
                key = action.ordering_key
                if key in blocked:
                    result.still_pending.append(action.id)
                    continue

                if not await self._claim(session, action):
                    # Another process is replaying it
                    blocked.add(key)
                    continue

                try:
                    await self._replay(action)
                except RateLimitedError as e:
                    await self._settle(session, action, status=PENDING, last_error=str(e))
                    backoff = DEFAULT_RATE_LIMIT_BACKOFF if e.retry_after is None else e.retry_after
                    self._resume_at = time.monotonic() + backoff
                    self._hold_rest(result, snapshot, index)
                    logger.warning(
                        "flush_rate_limited",
                        action_id=action.id,
                        retry_after=backoff,
                        held=len(snapshot) - index,
                    )
                    break
                except AuthenticationError as e:
                    await self._settle(session, action, status=PENDING, last_error=str(e))
                    self._hold_rest(result, snapshot, index)
                    logger.error("flush_auth_required", action_id=action.id, error=str(e))
                    self._notify(AUTH_REQUIRED, action)
                    break
                except NetworkError as e:
                    blocked.add(key)
                    retry_count = action.retry_count + 1
                    if retry_count >= self.max_retries:
                        status = FAILED
                        result.failed.append(action.id)
                    else:
                        status = PENDING
                        result.still_pending.append(action.id)
                    await self._settle(
                        session, action, status=status, retry_count=retry_count, last_error=str(e)
                    )
                    logger.warning(
                        "action_replay_failed",
                        action_id=action.id,
                        type=action.type,
                        entity_id=action.entity_id,
                        retry_count=retry_count,
                        status=status,
                        error=str(e),
                    )
                    if status == FAILED:
                        self._notify(FAILED, action)
                    continue
                except RemoteRejectedError as e:
                    await self._settle(
                        session,
                        action,
                        status=REJECTED,
                        last_error=f"{e.code or e.status_code}: {e.message}",
                    )
                    result.rejected.append(action.id)
                    logger.warning(
                        "action_rejected",
                        action_id=action.id,
                        type=action.type,
                        entity_id=action.entity_id,
                        code=e.code,
                        error=e.message,
                    )
                    self._notify(REJECTED, action)
                    continue

                await session.execute(
                    delete(OfflineAction).where(
                        OfflineAction.id == action.id, OfflineAction.status == IN_FLIGHT
                    ),
                    execution_options=_UNSYNCED,
                )
                await session.commit()
                result.confirmed.append(action.id)

        logger.info(
            "queue_flushed",
            confirmed=len(result.confirmed),
            still_pending=len(result.still_pending),
            failed=len(result.failed),
            rejected=len(result.rejected),
        )
        return result

    @staticmethod
    def _hold_rest(result: FlushResult, snapshot: Sequence[OfflineAction], index: int) -> None:
        result.still_pending.extend(action.id for action in snapshot[index:])

    # Inspection and repair

    async def _by_status(self, status: str) -> list[OfflineAction]:
        async with self.store.session() as session:
            rows = await session.scalars(
                select(OfflineAction)
                .where(OfflineAction.status == status)
                .order_by(OfflineAction.seq)
            )
            return list(rows.all())

    async def pending(self) -> list[OfflineAction]:
        return await self._by_status(PENDING)

    async def failed(self) -> list[OfflineAction]:
        return await self._by_status(FAILED)

    async def rejected(self) -> list[OfflineAction]:
        return await self._by_status(REJECTED)

    async def retry_failed(self, ids: list[str] | None = None) -> int:
        """Move failed actions (all, or the given ids) back to pending with a fresh retry budget."""
        stmt = (
            update(OfflineAction)
            .where(OfflineAction.status == FAILED)
            .values(status=PENDING, retry_count=0)
        )
        if ids is not None:
            stmt = stmt.where(OfflineAction.id.in_(ids))

        async with self._flush_lock, self.store.session() as session:
            result = await session.execute(stmt)
            await session.commit()

        logger.info("failed_actions_requeued", count=result.rowcount)
        return result.rowcount

    async def discard(self, action_id: str) -> bool:
        """Drop an action permanently. Returns False if it does not exist."""
        async with self._flush_lock, self.store.session() as session:
            result = await session.execute(
                delete(OfflineAction).where(OfflineAction.id == action_id)
            )
            await session.commit()

        if result.rowcount:
            logger.info("action_discarded", action_id=action_id)
        return result.rowcount == 1

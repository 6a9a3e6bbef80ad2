from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Optional, Protocol

from pydantic import BaseModel

from db import SyncLogRepository
from errors import SyncFailure
from models import ProgressionState, SyncEvent

logger = logging.getLogger(__name__)


class SyncTransport(Protocol):
    def submit_batch(self, events: list[dict]) -> bool: ...


class FlushResult(BaseModel):
    success: bool = False
    sent: int = 0
    remaining: int = 0
    reason: str = ""


class SyncQueue:
    """FIFO outbox of mutation events delivered to a remote endpoint in batches.

    Events leave the queue only when the endpoint confirms the whole batch;
    any failure keeps every event for the next trigger.
    """

    def __init__(
        self,
        transport: Optional[SyncTransport] = None,
        log_repo: SyncLogRepository | None = None,
        online: bool = True,
    ) -> None:
        self.transport = transport
        self.log_repo = log_repo
        self.online = online

    def enqueue(
        self, state: ProgressionState, event_type: str, payload: dict[str, Any]
    ) -> SyncEvent:
        event = SyncEvent(type=event_type, payload=payload)
        state.sync_queue.append(event)
        self.flush(state)
        return event

    def set_online(self, state: ProgressionState, online: bool) -> FlushResult | None:
        """Record connectivity; coming back online drains the queue."""
        was_online = self.online
        self.online = online
        if online and not was_online:
            logger.info("connection restored, flushing %d events", len(state.sync_queue))
            return self.flush(state)
        return None

    def flush(self, state: ProgressionState) -> FlushResult:
        pending = len(state.sync_queue)
        if not self.online:
            return FlushResult(remaining=pending, reason="offline")
        if self.transport is None:
            return FlushResult(remaining=pending, reason="sync disabled")
        if not pending:
            return FlushResult(success=True, reason="empty")

        batch = list(state.sync_queue)
        documents = [e.model_dump(mode="json", by_alias=True) for e in batch]
        try:
            accepted = self.transport.submit_batch(documents)
        except SyncFailure as e:
            return self._failed(len(batch), pending, str(e))
        if not accepted:
            return self._failed(len(batch), pending, "batch rejected")

        del state.sync_queue[: len(batch)]
        if self.log_repo is not None:
            self.log_repo.log_success(len(batch))
        logger.info("flushed %d sync events", len(batch))
        return FlushResult(
            success=True, sent=len(batch), remaining=len(state.sync_queue)
        )

    def _failed(self, size: int, pending: int, message: str) -> FlushResult:
        logger.warning("sync flush of %d events failed: %s", size, message)
        if self.log_repo is not None:
            self.log_repo.log_error(size, message)
        return FlushResult(remaining=pending, reason=message)


class SyncScheduler(threading.Thread):
    """Background thread draining the outbox at a fixed interval."""

    def __init__(self, drain: Callable[[], Any], interval_seconds: int = 300) -> None:
        super().__init__(daemon=True)
        self.drain = drain
        self.interval = interval_seconds
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                self.drain()
            except Exception:
                logger.exception("scheduled sync flush failed")

    def stop(self) -> None:
        self._stopped.set()

from __future__ import annotations
import logging
from typing import Optional

from pydantic import BaseModel

from algorithms import CalendarTools
from errors import DuplicateResultError, NotFoundError
from models import ProgressionState, Result, Session
from streak_service import StreakService
from sync_service import SyncQueue

logger = logging.getLogger(__name__)


class SessionOutcome(BaseModel):
    session: Optional[Session] = None
    leveled_up: bool = False
    streak: int = 0
    level: int = 1
    confirmation_required: bool = False
    message: str = ""


class SessionLedger:
    """Day-keyed ledger of machine sessions."""

    def __init__(
        self,
        streaks: StreakService,
        sync: SyncQueue | None = None,
        clock=None,
    ) -> None:
        self.streaks = streaks
        self.sync = sync
        self.clock = clock

    def _today(self) -> str:
        return CalendarTools.fmt_date(self.clock() if self.clock else None)

    def sessions_for(self, state: ProgressionState, machine_id: str) -> list[Session]:
        return sorted(
            (s for s in state.sessions if s.machine_id == machine_id),
            key=lambda s: s.date,
        )

    def recent(
        self, state: ProgressionState, machine_id: str, limit: int = 5
    ) -> list[Session]:
        return list(reversed(self.sessions_for(state, machine_id)))[:limit]

    def session_on(
        self, state: ProgressionState, machine_id: str, date: str
    ) -> Session | None:
        for session in state.sessions:
            if session.machine_id == machine_id and session.date == date:
                return session
        return None

    def log_session(
        self,
        state: ProgressionState,
        machine_id: str,
        result: Result | str,
        date: str | None = None,
        notes: str = "",
        photo: str = "",
        progress: str = "",
        confirm: bool = False,
    ) -> SessionOutcome:
        """Record ``result`` for ``machine_id`` on ``date``.

        A second YES for the same day raises ``DuplicateResultError`` without
        touching any state. Replacing a YES with a NO only happens when
        ``confirm`` is set; otherwise the outcome asks for confirmation.
        """
        result = Result(result)
        machine = state.find_machine(machine_id)
        if machine is None:
            raise NotFoundError("machine not found")
        date = date or self._today()
        CalendarTools.parse(date)

        existing = self.session_on(state, machine_id, date)
        if existing is not None:
            if existing.result is Result.YES and result is Result.YES:
                raise DuplicateResultError("Only one YES per machine per day")
            if existing.result is Result.YES and not confirm:
                return SessionOutcome(
                    session=existing,
                    streak=machine.streak,
                    level=machine.level,
                    confirmation_required=True,
                    message=f"Replace YES on {date} with NO?",
                )
            existing.result = result
            existing.notes = notes
            existing.photo = photo
            existing.progress = progress
            session = existing
        else:
            session = Session(
                machine_id=machine_id,
                date=date,
                result=result,
                notes=notes,
                photo=photo,
                progress=progress,
            )
            state.sessions.append(session)

        streak = self.streaks.update_streak(state, machine, date, result)
        message = f"{machine.name} leveled up!" if streak.leveled_up else "Session saved"
        if self.sync is not None:
            self.sync.enqueue(
                state,
                "session",
                {
                    "session": session.model_dump(mode="json", by_alias=True),
                    "streak": streak.streak,
                    "level": streak.level,
                    "leveledUp": streak.leveled_up,
                },
            )
        logger.debug("logged %s for %s on %s", result.value, machine_id, date)
        return SessionOutcome(
            session=session,
            leveled_up=streak.leveled_up,
            streak=streak.streak,
            level=streak.level,
            message=message,
        )

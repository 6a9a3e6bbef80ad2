import logging

from pydantic import BaseModel

from algorithms import CalendarTools, WeightProgression
from models import LevelEntry, Machine, ProgressionState, Result

logger = logging.getLogger(__name__)


class StreakOutcome(BaseModel):
    leveled_up: bool
    streak: int
    level: int


class StreakService:
    """Compute streak continuation and apply auto-advancement."""

    def __init__(
        self,
        threshold: float = WeightProgression.THRESHOLD,
        small_step: float = WeightProgression.SMALL_STEP,
        large_step: float = WeightProgression.LARGE_STEP,
    ) -> None:
        self.threshold = threshold
        self.small_step = small_step
        self.large_step = large_step

    def increment_weight(self, label: str) -> str:
        return WeightProgression.increment_weight(
            label, self.threshold, self.small_step, self.large_step
        )

    def update_streak(
        self, state: ProgressionState, machine: Machine, date: str, result: Result
    ) -> StreakOutcome:
        """Update ``machine`` after a session for ``date`` was committed.

        The committed session must already be part of ``state.sessions``; the
        previous YES is the second to last YES in date order.
        """
        if Result(result) is Result.NO:
            machine.streak = 0
            return StreakOutcome(leveled_up=False, streak=machine.streak, level=machine.level)

        yes_dates = sorted(
            s.date
            for s in state.sessions
            if s.machine_id == machine.id and s.result is Result.YES
        )
        if len(yes_dates) < 2:
            machine.streak = 1
        elif CalendarTools.days_between(date, yes_dates[-2]) == 1:
            machine.streak += 1
        else:
            machine.streak = 1

        if machine.streak >= machine.streak_requirement and machine.auto_advance:
            self._advance(machine, date)
            return StreakOutcome(leveled_up=True, streak=machine.streak, level=machine.level)
        return StreakOutcome(leveled_up=False, streak=machine.streak, level=machine.level)

    def _advance(self, machine: Machine, date: str) -> None:
        machine.level += 1
        machine.current_setup = machine.next_setup
        machine.next_setup = [
            line.model_copy(update={"weight": self.increment_weight(line.weight)})
            for line in machine.current_setup
        ]
        machine.level_history.append(LevelEntry(date=date, level=machine.level))
        machine.streak = 0
        logger.info("%s advanced to level %d on %s", machine.name, machine.level, date)

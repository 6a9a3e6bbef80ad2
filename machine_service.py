from __future__ import annotations
import logging
from typing import Iterable

from algorithms import CalendarTools, SetupParser
from errors import NotFoundError
from models import LevelEntry, Machine, ProgressionState, SetupLine

logger = logging.getLogger(__name__)

SetupInput = str | Iterable[SetupLine | dict] | None


def _setup(value: SetupInput) -> list[SetupLine]:
    if value is None:
        return []
    if isinstance(value, str):
        return SetupParser.parse(value)
    return [
        line if isinstance(line, SetupLine) else SetupLine.model_validate(line)
        for line in value
    ]


class MachineService:
    """Create, edit and remove machines."""

    def __init__(self, default_streak_requirement: int = 3, clock=None) -> None:
        self.default_streak_requirement = default_streak_requirement
        self.clock = clock

    def _today(self) -> str:
        return CalendarTools.fmt_date(self.clock() if self.clock else None)

    def get(self, state: ProgressionState, machine_id: str) -> Machine:
        machine = state.find_machine(machine_id)
        if machine is None:
            raise NotFoundError("machine not found")
        return machine

    def create_machine(
        self,
        state: ProgressionState,
        name: str,
        streak_requirement: int | None = None,
        current_setup: SetupInput = None,
        next_setup: SetupInput = None,
        auto_advance: bool = True,
        photo: str = "",
    ) -> Machine:
        if not name or not name.strip():
            raise ValueError("machine name required")
        if streak_requirement is None:
            streak_requirement = self.default_streak_requirement
        if streak_requirement < 1:
            raise ValueError("streak requirement must be positive")
        machine = Machine(
            name=name.strip(),
            streak_requirement=streak_requirement,
            auto_advance=auto_advance,
            photo=photo,
            current_setup=_setup(current_setup),
            next_setup=_setup(next_setup),
            level_history=[LevelEntry(date=self._today(), level=1)],
        )
        state.machines.append(machine)
        return machine

    def update_machine(
        self,
        state: ProgressionState,
        machine_id: str,
        name: str | None = None,
        streak_requirement: int | None = None,
        current_setup: SetupInput = None,
        next_setup: SetupInput = None,
        auto_advance: bool | None = None,
        photo: str | None = None,
    ) -> Machine:
        """Edit a machine; streak, level and level history are preserved."""
        machine = self.get(state, machine_id)
        if name is not None:
            if not name.strip():
                raise ValueError("machine name required")
            machine.name = name.strip()
        if streak_requirement is not None:
            if streak_requirement < 1:
                raise ValueError("streak requirement must be positive")
            machine.streak_requirement = streak_requirement
        if current_setup is not None:
            machine.current_setup = _setup(current_setup)
        if next_setup is not None:
            machine.next_setup = _setup(next_setup)
        if auto_advance is not None:
            machine.auto_advance = auto_advance
        if photo is not None:
            machine.photo = photo
        return machine

    def delete_machine(self, state: ProgressionState, machine_id: str) -> None:
        machine = self.get(state, machine_id)
        state.machines.remove(machine)
        state.sessions = [s for s in state.sessions if s.machine_id != machine_id]
        for workout in state.workouts:
            workout.machine_ids = [m for m in workout.machine_ids if m != machine_id]
        active = state.active_workout
        if active is not None:
            active.items = [
                i for i in active.items
                if i.machine_id != machine_id or i.result is not None
            ]
            if not active.items:
                logger.info("discarded active workout %s: no machines left", active.id)
                state.active_workout = None
        logger.info("deleted machine %s", machine.name)

    @staticmethod
    def progress_percent(machine: Machine) -> int:
        pct = round(machine.streak / machine.streak_requirement * 100)
        return min(pct, 100)

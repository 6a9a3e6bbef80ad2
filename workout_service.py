from __future__ import annotations
import logging
from typing import Optional

from pydantic import BaseModel

from algorithms import CalendarTools
from errors import (
    EmptyWorkoutError,
    NotFoundError,
    WorkoutInProgressError,
)
from models import (
    ActiveWorkout,
    LevelEntry,
    ProgressionState,
    Result,
    WorkoutHistoryEntry,
    WorkoutItem,
    WorkoutTemplate,
)
from session_service import SessionLedger
from sync_service import SyncQueue

logger = logging.getLogger(__name__)

DEFAULT_WORKOUT_NAME = "Workout 1"


class MarkOutcome(BaseModel):
    item: Optional[WorkoutItem] = None
    leveled_up: bool = False
    workout_completed: bool = False
    history_entry: Optional[WorkoutHistoryEntry] = None
    confirmation_required: bool = False
    message: str = ""


class WorkoutService:
    """Group machines into templates and run active workouts to completion."""

    def __init__(
        self,
        ledger: SessionLedger,
        sync: SyncQueue | None = None,
        clock=None,
    ) -> None:
        self.ledger = ledger
        self.sync = sync
        self.clock = clock

    def _today(self) -> str:
        return CalendarTools.fmt_date(self.clock() if self.clock else None)

    def _known(self, state: ProgressionState, machine_ids: list[str]) -> list[str]:
        known = {m.id for m in state.machines}
        return [mid for mid in machine_ids if mid in known]

    def get_template(self, state: ProgressionState, workout_id: str) -> WorkoutTemplate:
        workout = state.find_workout(workout_id)
        if workout is None:
            raise NotFoundError("template not found")
        return workout

    def create_template(
        self, state: ProgressionState, name: str, machine_ids: list[str] | None = None
    ) -> WorkoutTemplate:
        if not name or not name.strip():
            raise ValueError("workout name required")
        workout = WorkoutTemplate(
            name=name.strip(), machine_ids=self._known(state, machine_ids or [])
        )
        state.workouts.append(workout)
        return workout

    def update_template(
        self,
        state: ProgressionState,
        workout_id: str,
        name: str | None = None,
        machine_ids: list[str] | None = None,
    ) -> WorkoutTemplate:
        workout = self.get_template(state, workout_id)
        if name is not None:
            if not name.strip():
                raise ValueError("workout name required")
            workout.name = name.strip()
        if machine_ids is not None:
            workout.machine_ids = self._known(state, machine_ids)
        return workout

    def delete_template(
        self, state: ProgressionState, workout_id: str, confirm: bool = False
    ) -> bool:
        """Delete a template; returns False while confirmation is pending.

        A running workout started from the template keeps going.
        """
        workout = self.get_template(state, workout_id)
        if not confirm:
            return False
        state.workouts.remove(workout)
        return True

    def reorder_templates(self, state: ProgressionState, order: list[str]) -> None:
        existing = [w.id for w in state.workouts]
        if set(order) != set(existing) or len(order) != len(existing):
            raise ValueError("invalid order")
        by_id = {w.id: w for w in state.workouts}
        state.workouts = [by_id[wid] for wid in order]

    def start_workout(
        self, state: ProgressionState, workout_id: str, date: str | None = None
    ) -> ActiveWorkout:
        if state.active_workout is not None:
            raise WorkoutInProgressError("a workout is already in progress")
        workout = self.get_template(state, workout_id)
        date = date or self._today()
        CalendarTools.parse(date)
        machine_ids = list(dict.fromkeys(self._known(state, workout.machine_ids)))
        if not machine_ids:
            raise EmptyWorkoutError("workout has no machines")
        state.active_workout = ActiveWorkout(
            workout_id=workout.id,
            date=date,
            items=[WorkoutItem(machine_id=mid) for mid in machine_ids],
        )
        logger.info("started %s with %d machines", workout.name, len(machine_ids))
        return state.active_workout

    def mark_item(
        self,
        state: ProgressionState,
        machine_id: str,
        result: Result | str,
        progress: str = "",
        notes: str = "",
        photo: str = "",
        confirm: bool = False,
    ) -> MarkOutcome:
        """Resolve the pending item for ``machine_id``.

        The session is committed through the ledger first so a rejected YES
        leaves the item pending. Resolving the last item archives the workout.
        """
        result = Result(result)
        active = state.active_workout
        if active is None:
            raise NotFoundError("no active workout")
        item = next(
            (i for i in active.items if i.machine_id == machine_id and i.result is None),
            None,
        )
        if item is None:
            raise NotFoundError("workout item not found")
        if result is Result.NO and not confirm:
            return MarkOutcome(
                item=item,
                confirmation_required=True,
                message="Mark this machine as NO?",
            )

        session = self.ledger.log_session(
            state,
            machine_id,
            result,
            date=active.date,
            notes=notes,
            photo=photo,
            progress=progress,
            confirm=True,
        )
        item.result = result
        item.progress = progress
        item.notes = notes
        item.photo = photo

        entry = self.complete_if_resolved(state)
        return MarkOutcome(
            item=item,
            leveled_up=session.leveled_up,
            workout_completed=entry is not None,
            history_entry=entry,
            message="Workout complete" if entry is not None else session.message,
        )

    def complete_if_resolved(self, state: ProgressionState) -> WorkoutHistoryEntry | None:
        active = state.active_workout
        if active is None or active.pending():
            return None
        workout = state.find_workout(active.workout_id)
        entry = WorkoutHistoryEntry(
            workout_id=active.workout_id,
            workout_name=workout.name if workout is not None else "",
            date=active.date,
            items=[i.model_copy() for i in active.items],
        )
        state.workout_history.append(entry)
        state.active_workout = None
        if self.sync is not None:
            self.sync.enqueue(
                state,
                "workout_complete",
                entry.model_dump(mode="json", by_alias=True),
            )
        logger.info("completed workout %s on %s", entry.workout_name, entry.date)
        return entry

    def discard_active_workout(self, state: ProgressionState) -> bool:
        if state.active_workout is None:
            return False
        logger.info("discarded active workout %s", state.active_workout.id)
        state.active_workout = None
        return True

    def normalize_state(self, state: ProgressionState) -> ProgressionState:
        """Repair references after loading or importing a document."""
        known = {m.id for m in state.machines}
        for workout in state.workouts:
            workout.machine_ids = [mid for mid in workout.machine_ids if mid in known]
        if not state.workouts and state.machines:
            state.workouts.append(
                WorkoutTemplate(
                    name=DEFAULT_WORKOUT_NAME,
                    machine_ids=[m.id for m in state.machines],
                )
            )
        active = state.active_workout
        if active is not None and state.find_workout(active.workout_id) is None:
            logger.warning(
                "dropping active workout %s: template %s no longer exists",
                active.id,
                active.workout_id,
            )
            state.active_workout = None
        for machine in state.machines:
            if not machine.level_history:
                machine.level_history.append(
                    LevelEntry(date=self._today(), level=machine.level)
                )
        return state

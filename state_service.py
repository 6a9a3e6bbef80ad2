from __future__ import annotations
import json
import logging

from algorithms import CalendarTools
from db import BackupRepository, StateStoreRepository
from errors import StateValidationError
from models import LevelEntry, Machine, ProgressionState, SetupLine, WorkoutTemplate
from workout_service import DEFAULT_WORKOUT_NAME, WorkoutService

logger = logging.getLogger(__name__)


class StateService:
    """Load, persist, export and snapshot the progression state."""

    def __init__(
        self,
        store: StateStoreRepository,
        backups: BackupRepository,
        workouts: WorkoutService,
        store_key: str = "warriorProgression",
        clock=None,
    ) -> None:
        self.store = store
        self.backups = backups
        self.workouts = workouts
        self.store_key = store_key
        self.clock = clock

    def _today(self) -> str:
        return CalendarTools.fmt_date(self.clock() if self.clock else None)

    def seed(self) -> ProgressionState:
        machine = Machine(
            name="Machine 1",
            streak_requirement=3,
            current_setup=[
                SetupLine(weight="9 plates", rounds=1, min_rep=6, max_rep=12),
                SetupLine(weight="7 plates", rounds=2, min_rep=6, max_rep=12),
            ],
            next_setup=[
                SetupLine(weight="10 plates", rounds=1, min_rep=6, max_rep=12),
                SetupLine(weight="8 plates", rounds=2, min_rep=6, max_rep=12),
            ],
            level_history=[LevelEntry(date=self._today(), level=1)],
        )
        return ProgressionState(
            machines=[machine],
            workouts=[WorkoutTemplate(name=DEFAULT_WORKOUT_NAME, machine_ids=[machine.id])],
        )

    @staticmethod
    def decode(text: str) -> ProgressionState:
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise StateValidationError(f"invalid JSON: {e}") from e
        return ProgressionState.from_document(data)

    @staticmethod
    def encode(state: ProgressionState, indent: int | None = None) -> str:
        return json.dumps(state.to_document(), indent=indent)

    def load(self) -> ProgressionState:
        """Hydrate the state, seeding a fresh one when nothing is stored.

        A stored document that fails validation is kept as a backup and
        replaced by seed data.
        """
        raw = self.store.fetch(self.store_key)
        if raw is None:
            state = self.seed()
            self.save(state)
            return state
        try:
            state = self.decode(raw)
        except StateValidationError as e:
            backup_id = self.backups.add(raw, label="corrupt")
            logger.error("stored state is invalid (kept as backup %d): %s", backup_id, e)
            state = self.seed()
            self.save(state)
            return state
        return self.workouts.normalize_state(state)

    def save(self, state: ProgressionState) -> None:
        self.store.save(self.store_key, self.encode(state))

    def export_json(self, state: ProgressionState) -> str:
        return self.encode(state, indent=2)

    def import_json(self, text: str) -> ProgressionState:
        """Decode an exported document; raises without side effects when malformed."""
        state = self.decode(text)
        return self.workouts.normalize_state(state)

    def backup(self, state: ProgressionState, label: str = "manual") -> int:
        return self.backups.add(self.encode(state), label=label)

    def list_backups(self) -> list[dict]:
        return [
            {"id": bid, "created_at": created, "label": label}
            for bid, created, label in self.backups.fetch_all_backups()
        ]

    def restore_backup(self, backup_id: int) -> ProgressionState:
        return self.import_json(self.backups.fetch(backup_id))

import datetime
import json
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import BackupRepository, StateStoreRepository
from errors import NotFoundError, StateValidationError
from session_service import SessionLedger
from state_service import StateService
from streak_service import StreakService
from workout_service import WorkoutService


class StateServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_state.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        clock = lambda: datetime.date(2024, 1, 1)
        self.store = StateStoreRepository(self.db_path)
        self.backups = BackupRepository(self.db_path)
        workouts = WorkoutService(SessionLedger(StreakService(), clock=clock), clock=clock)
        self.service = StateService(self.store, self.backups, workouts, clock=clock)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def test_first_load_seeds_and_persists(self) -> None:
        state = self.service.load()
        self.assertEqual([m.name for m in state.machines], ["Machine 1"])
        machine = state.machines[0]
        self.assertEqual(machine.current_setup[0].weight, "9 plates")
        self.assertEqual(machine.next_setup[1].weight, "8 plates")
        self.assertEqual(machine.level_history[0].date, "2024-01-01")
        self.assertEqual(state.workouts[0].machine_ids, [machine.id])
        stored = json.loads(self.store.fetch("warriorProgression"))
        self.assertIn("streakRequirement", stored["machines"][0])
        self.assertIn("workoutHistory", stored)

    def test_round_trip_through_store(self) -> None:
        state = self.service.load()
        state.machines[0].streak = 2
        self.service.save(state)
        again = self.service.load()
        self.assertEqual(again.machines[0].streak, 2)
        self.assertEqual(again.machines[0].id, state.machines[0].id)

    def test_corrupt_store_is_backed_up(self) -> None:
        self.store.save("warriorProgression", "{not json")
        with self.assertLogs("state_service", level="ERROR"):
            state = self.service.load()
        self.assertEqual(len(state.machines), 1)
        backups = self.service.list_backups()
        self.assertEqual(backups[0]["label"], "corrupt")
        self.assertEqual(self.backups.fetch(backups[0]["id"]), "{not json")

    def test_import_rejects_invalid_documents(self) -> None:
        bad_date = {
            "machines": [{"id": "m1"}],
            "sessions": [{"machineId": "m1", "date": "2024/01/01", "result": "YES"}],
        }
        bad_history = {
            "machines": [{"id": "m1", "levelHistory": [{"date": "01-02-2024", "level": 1}]}]
        }
        for text in (
            "[]",
            "{bad",
            json.dumps({"machines": [{"streak": -1}]}),
            json.dumps(bad_date),
            json.dumps(bad_history),
        ):
            with self.assertRaises(StateValidationError):
                self.service.import_json(text)

    def test_import_fills_missing_fields(self) -> None:
        state = self.service.import_json(
            json.dumps({"machines": [{"id": "m1", "name": "Old"}]})
        )
        machine = state.machines[0]
        self.assertEqual(machine.streak_requirement, 3)
        self.assertEqual(machine.level, 1)
        self.assertEqual(state.workouts[0].machine_ids, ["m1"])
        self.assertEqual(state.sync_queue, [])

    def test_backup_and_restore(self) -> None:
        state = self.service.load()
        backup_id = self.service.backup(state)
        state.machines[0].name = "Renamed"
        restored = self.service.restore_backup(backup_id)
        self.assertEqual(restored.machines[0].name, "Machine 1")
        with self.assertRaises(NotFoundError):
            self.service.restore_backup(9999)


if __name__ == "__main__":
    unittest.main()

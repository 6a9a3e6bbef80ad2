import datetime
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from errors import DuplicateResultError, EmptyWorkoutError, NotFoundError, WorkoutInProgressError
from machine_service import MachineService
from models import ActiveWorkout, Machine, ProgressionState, Result, WorkoutItem
from session_service import SessionLedger
from streak_service import StreakService
from sync_service import SyncQueue
from workout_service import DEFAULT_WORKOUT_NAME, WorkoutService


class WorkoutServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        clock = lambda: datetime.date(2024, 1, 3)
        self.state = ProgressionState()
        self.machines = MachineService(clock=clock)
        self.sync = SyncQueue()
        self.ledger = SessionLedger(StreakService(), self.sync, clock)
        self.service = WorkoutService(self.ledger, self.sync, clock)
        self.a = self.machines.create_machine(
            self.state, "Row", current_setup="9 plates|1|6|12", next_setup="10 plates|1|6|12"
        )
        self.b = self.machines.create_machine(self.state, "Curl")
        self.template = self.service.create_template(
            self.state, "Upper", [self.a.id, self.b.id]
        )

    def test_create_template_filters_unknown_machines(self) -> None:
        workout = self.service.create_template(self.state, "Mixed", [self.a.id, "ghost"])
        self.assertEqual(workout.machine_ids, [self.a.id])
        with self.assertRaises(ValueError):
            self.service.create_template(self.state, "   ")

    def test_start_workout_creates_pending_items(self) -> None:
        active = self.service.start_workout(self.state, self.template.id)
        self.assertEqual(active.date, "2024-01-03")
        self.assertEqual([i.machine_id for i in active.items], [self.a.id, self.b.id])
        self.assertTrue(all(i.result is None for i in active.items))

    def test_start_workout_collapses_duplicates(self) -> None:
        self.template.machine_ids = [self.a.id, self.a.id, self.b.id]
        active = self.service.start_workout(self.state, self.template.id)
        self.assertEqual(len(active.items), 2)

    def test_start_workout_errors(self) -> None:
        empty = self.service.create_template(self.state, "Empty")
        with self.assertRaises(EmptyWorkoutError):
            self.service.start_workout(self.state, empty.id)
        self.assertIsNone(self.state.active_workout)
        with self.assertRaises(NotFoundError):
            self.service.start_workout(self.state, "missing")
        self.service.start_workout(self.state, self.template.id)
        with self.assertRaises(WorkoutInProgressError):
            self.service.start_workout(self.state, self.template.id)

    def test_completion_archives_history(self) -> None:
        self.service.start_workout(self.state, self.template.id, "2024-01-01")
        first = self.service.mark_item(self.state, self.a.id, "YES", progress="12 reps")
        self.assertFalse(first.workout_completed)

        pending = self.service.mark_item(self.state, self.b.id, "NO")
        self.assertTrue(pending.confirmation_required)
        self.assertIsNone(self.state.active_workout.items[1].result)

        done = self.service.mark_item(self.state, self.b.id, "NO", confirm=True)
        self.assertTrue(done.workout_completed)
        self.assertIsNone(self.state.active_workout)
        self.assertEqual(len(self.state.workout_history), 1)
        entry = self.state.workout_history[0]
        self.assertEqual(entry.workout_name, "Upper")
        self.assertEqual(entry.date, "2024-01-01")
        self.assertEqual([i.result for i in entry.items], [Result.YES, Result.NO])
        self.assertEqual(entry.items[0].progress, "12 reps")

        self.assertEqual(self.a.streak, 1)
        self.assertEqual(self.b.streak, 0)
        dates = {(s.machine_id, s.date, s.result) for s in self.state.sessions}
        self.assertIn((self.a.id, "2024-01-01", Result.YES), dates)
        self.assertIn((self.b.id, "2024-01-01", Result.NO), dates)
        self.assertEqual(self.state.sync_queue[-1].type, "workout_complete")

    def test_rejected_yes_keeps_item_pending(self) -> None:
        self.ledger.log_session(self.state, self.a.id, "YES", "2024-01-03")
        self.service.start_workout(self.state, self.template.id)
        with self.assertRaises(DuplicateResultError):
            self.service.mark_item(self.state, self.a.id, "YES")
        self.assertIsNone(self.state.active_workout.items[0].result)

    def test_mark_unknown_item(self) -> None:
        with self.assertRaises(NotFoundError):
            self.service.mark_item(self.state, self.a.id, "YES")
        self.service.start_workout(self.state, self.template.id)
        with self.assertRaises(NotFoundError):
            self.service.mark_item(self.state, "ghost", "YES")

    def test_delete_template_needs_confirmation(self) -> None:
        self.assertFalse(self.service.delete_template(self.state, self.template.id))
        self.assertIsNotNone(self.state.find_workout(self.template.id))
        self.assertTrue(
            self.service.delete_template(self.state, self.template.id, confirm=True)
        )
        self.assertIsNone(self.state.find_workout(self.template.id))

    def test_reorder_templates(self) -> None:
        other = self.service.create_template(self.state, "Lower", [self.b.id])
        self.service.reorder_templates(self.state, [other.id, self.template.id])
        self.assertEqual([w.name for w in self.state.workouts], ["Lower", "Upper"])
        with self.assertRaises(ValueError):
            self.service.reorder_templates(self.state, [other.id])

    def test_discard_active_workout(self) -> None:
        self.assertFalse(self.service.discard_active_workout(self.state))
        self.service.start_workout(self.state, self.template.id)
        self.assertTrue(self.service.discard_active_workout(self.state))
        self.assertIsNone(self.state.active_workout)
        self.assertEqual(self.state.workout_history, [])

    def test_deleting_machine_prunes_references(self) -> None:
        self.service.start_workout(self.state, self.template.id)
        self.ledger.log_session(self.state, self.b.id, "NO", "2024-01-02")
        self.machines.delete_machine(self.state, self.b.id)
        self.assertEqual(self.template.machine_ids, [self.a.id])
        self.assertEqual(
            [i.machine_id for i in self.state.active_workout.items], [self.a.id]
        )
        self.assertFalse(any(s.machine_id == self.b.id for s in self.state.sessions))

    def test_template_changes_leave_running_workout_alone(self) -> None:
        self.service.start_workout(self.state, self.template.id, "2024-01-01")
        self.service.update_template(
            self.state, self.template.id, name="Renamed", machine_ids=[self.b.id]
        )
        self.assertEqual(self.template.name, "Renamed")
        self.assertEqual(self.template.machine_ids, [self.b.id])
        self.assertEqual(
            [i.machine_id for i in self.state.active_workout.items], [self.a.id, self.b.id]
        )

        self.assertTrue(
            self.service.delete_template(self.state, self.template.id, confirm=True)
        )
        self.assertIsNotNone(self.state.active_workout)
        self.service.mark_item(self.state, self.a.id, "YES")
        done = self.service.mark_item(self.state, self.b.id, "YES")
        self.assertTrue(done.workout_completed)
        entry = self.state.workout_history[0]
        self.assertEqual(entry.workout_id, self.template.id)
        self.assertEqual(entry.workout_name, "")
        self.assertEqual([i.machine_id for i in entry.items], [self.a.id, self.b.id])

    def test_update_template_validation(self) -> None:
        with self.assertRaises(ValueError):
            self.service.update_template(self.state, self.template.id, name=" ")
        with self.assertRaises(NotFoundError):
            self.service.update_template(self.state, "missing", name="X")
        workout = self.service.update_template(
            self.state, self.template.id, machine_ids=[self.b.id, "ghost"]
        )
        self.assertEqual(workout.machine_ids, [self.b.id])
        self.assertEqual(workout.name, "Upper")

    def test_deleting_last_pending_machines_discards_workout(self) -> None:
        self.service.start_workout(self.state, self.template.id)
        self.machines.delete_machine(self.state, self.a.id)
        self.assertIsNotNone(self.state.active_workout)
        self.machines.delete_machine(self.state, self.b.id)
        self.assertIsNone(self.state.active_workout)
        self.assertIsNone(self.service.complete_if_resolved(self.state))
        self.assertEqual(self.state.workout_history, [])
        self.assertEqual(self.state.sync_queue, [])

    def test_create_machine_rejects_zero_requirement(self) -> None:
        with self.assertRaises(ValueError):
            self.machines.create_machine(self.state, "Bad", streak_requirement=0)
        self.assertEqual([m.name for m in self.state.machines], ["Row", "Curl"])
        machine = self.machines.create_machine(self.state, "Default")
        self.assertEqual(machine.streak_requirement, 3)

    def test_normalize_state(self) -> None:
        state = ProgressionState(
            machines=[Machine(name="Solo")],
            active_workout=ActiveWorkout(
                workout_id="gone",
                date="2024-01-01",
                items=[WorkoutItem(machine_id="x")],
            ),
        )
        self.service.normalize_state(state)
        self.assertEqual(len(state.workouts), 1)
        self.assertEqual(state.workouts[0].name, DEFAULT_WORKOUT_NAME)
        self.assertEqual(state.workouts[0].machine_ids, [state.machines[0].id])
        self.assertIsNone(state.active_workout)
        self.assertEqual(state.machines[0].level_history[0].date, "2024-01-03")


if __name__ == "__main__":
    unittest.main()

import datetime
import json
import logging
import threading
from typing import Callable, Optional
from fastapi import (
    FastAPI,
    HTTPException,
    Response,
    Body,
    APIRouter,
)
from pydantic import BaseModel

from client import SyncClient
from config import APP_VERSION, configure_logging
from db import (
    StateStoreRepository,
    AsyncStateStoreRepository,
    BackupRepository,
    SyncLogRepository,
)
from errors import (
    DuplicateResultError,
    NotFoundError,
    WorkoutInProgressError,
)
from machine_service import MachineService
from models import ProgressionState, SetupLine
from session_service import SessionLedger, SessionOutcome
from settings_schema import SettingsSchema, load_settings, save_settings, validate_settings
from state_service import StateService
from stats_service import StatisticsService
from streak_service import StreakService
from sync_service import FlushResult, SyncQueue, SyncScheduler, SyncTransport
from workout_service import MarkOutcome, WorkoutService

logger = logging.getLogger(__name__)


def http_error(e: ValueError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (DuplicateResultError, WorkoutInProgressError)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


class MachinePayload(BaseModel):
    name: Optional[str] = None
    streak_requirement: Optional[int] = None
    auto_advance: Optional[bool] = None
    photo: Optional[str] = None
    current_setup: Optional[list[SetupLine] | str] = None
    next_setup: Optional[list[SetupLine] | str] = None


class ProgressionAPI:
    """Owns the progression state and exposes every engine operation.

    Operations run one at a time behind a lock and the state is persisted
    before the lock is released.
    """

    def __init__(
        self,
        db_path: str = "progression.db",
        yaml_path: str = "settings.yaml",
        *,
        transport: SyncTransport | None = None,
        clock: Callable[[], datetime.date] | None = None,
        online: bool = True,
        start_scheduler: bool = False,
    ) -> None:
        self.db_path = db_path
        self.yaml_path = yaml_path
        self.settings = load_settings(yaml_path)
        self.clock = clock or datetime.date.today
        self.store_repo = StateStoreRepository(db_path)
        self.async_store = AsyncStateStoreRepository(db_path)
        self.backups = BackupRepository(db_path)
        self.sync_logs = SyncLogRepository(db_path)
        self._custom_transport = transport is not None
        self.sync = SyncQueue(
            transport or self._settings_transport(), self.sync_logs, online=online
        )
        self.streaks = StreakService(
            self.settings.weight_increment_threshold,
            self.settings.weight_increment_small,
            self.settings.weight_increment_large,
        )
        self.ledger = SessionLedger(self.streaks, self.sync, self.clock)
        self.machines = MachineService(
            self.settings.default_streak_requirement, self.clock
        )
        self.workouts = WorkoutService(self.ledger, self.sync, self.clock)
        self.statistics = StatisticsService()
        self.state_service = StateService(
            self.store_repo,
            self.backups,
            self.workouts,
            self.settings.store_key,
            self.clock,
        )
        self._lock = threading.RLock()
        self.state: ProgressionState = self.state_service.load()
        self.app = FastAPI(
            title="Warrior Progression API",
            description="Machine progression, streaks and workout tracking",
            version=APP_VERSION,
        )
        self.scheduler: SyncScheduler | None = None
        if start_scheduler:
            self.scheduler = SyncScheduler(
                self.flush_sync, self.settings.sync_interval_seconds
            )
            self.scheduler.start()
            logger.info(
                "sync scheduler draining every %ds", self.settings.sync_interval_seconds
            )
        self._setup_routes()

    def _settings_transport(self) -> SyncTransport | None:
        if not self.settings.sync_url:
            return None
        return SyncClient(
            self.settings.sync_url,
            self.settings.sync_token,
            self.settings.sync_timeout,
        )

    def _persist(self) -> None:
        self.state_service.save(self.state)

    # machines

    def create_machine(self, **fields) -> dict:
        with self._lock:
            machine = self.machines.create_machine(self.state, **fields)
            self._persist()
            return machine.model_dump()

    def update_machine(self, machine_id: str, **fields) -> dict:
        with self._lock:
            machine = self.machines.update_machine(self.state, machine_id, **fields)
            self._persist()
            return machine.model_dump()

    def delete_machine(self, machine_id: str) -> None:
        with self._lock:
            self.machines.delete_machine(self.state, machine_id)
            self.workouts.complete_if_resolved(self.state)
            self._persist()

    # sessions

    def log_session(
        self,
        machine_id: str,
        result: str,
        date: str | None = None,
        notes: str = "",
        photo: str = "",
        progress: str = "",
        confirm: bool = False,
    ) -> SessionOutcome:
        with self._lock:
            outcome = self.ledger.log_session(
                self.state, machine_id, result, date, notes, photo, progress, confirm
            )
            self._persist()
            return outcome

    # workouts

    def create_workout(self, name: str, machine_ids: list[str]) -> dict:
        with self._lock:
            workout = self.workouts.create_template(self.state, name, machine_ids)
            self._persist()
            return workout.model_dump()

    def update_workout(
        self, workout_id: str, name: str | None = None, machine_ids: list[str] | None = None
    ) -> dict:
        with self._lock:
            workout = self.workouts.update_template(
                self.state, workout_id, name, machine_ids
            )
            self._persist()
            return workout.model_dump()

    def delete_workout(self, workout_id: str, confirm: bool = False) -> bool:
        with self._lock:
            deleted = self.workouts.delete_template(self.state, workout_id, confirm)
            if deleted:
                self._persist()
            return deleted

    def reorder_workouts(self, order: list[str]) -> None:
        with self._lock:
            self.workouts.reorder_templates(self.state, order)
            self._persist()

    def start_workout(self, workout_id: str, date: str | None = None) -> dict:
        with self._lock:
            active = self.workouts.start_workout(self.state, workout_id, date)
            self._persist()
            return active.model_dump()

    def mark_item(
        self,
        machine_id: str,
        result: str,
        progress: str = "",
        notes: str = "",
        photo: str = "",
        confirm: bool = False,
    ) -> MarkOutcome:
        with self._lock:
            outcome = self.workouts.mark_item(
                self.state, machine_id, result, progress, notes, photo, confirm
            )
            self._persist()
            return outcome

    def discard_active_workout(self) -> bool:
        with self._lock:
            discarded = self.workouts.discard_active_workout(self.state)
            self._persist()
            return discarded

    # sync

    def flush_sync(self) -> FlushResult:
        with self._lock:
            result = self.sync.flush(self.state)
            self._persist()
            return result

    def set_online(self, online: bool) -> FlushResult | None:
        with self._lock:
            result = self.sync.set_online(self.state, online)
            self._persist()
            return result

    # documents

    def export_state(self) -> str:
        with self._lock:
            return self.state_service.export_json(self.state)

    def import_state(self, text: str) -> None:
        with self._lock:
            self.state = self.state_service.import_json(text)
            self._persist()

    def backup(self, label: str = "manual") -> int:
        with self._lock:
            return self.state_service.backup(self.state, label)

    def restore_backup(self, backup_id: int) -> None:
        with self._lock:
            self.state = self.state_service.restore_backup(backup_id)
            self._persist()

    def update_settings(self, changes: dict) -> SettingsSchema:
        with self._lock:
            merged = self.settings.model_dump()
            merged.update(changes)
            settings = validate_settings(merged)
            save_settings(self.yaml_path, settings)
            self.settings = settings
            self.streaks.threshold = settings.weight_increment_threshold
            self.streaks.small_step = settings.weight_increment_small
            self.streaks.large_step = settings.weight_increment_large
            self.machines.default_streak_requirement = settings.default_streak_requirement
            if not self._custom_transport:
                self.sync.transport = self._settings_transport()
            return settings

    def _setup_routes(self) -> None:
        machines_router = APIRouter(prefix="/machines", tags=["Machines"])
        workouts_router = APIRouter(prefix="/workouts", tags=["Workouts"])
        stats_router = APIRouter(prefix="/stats", tags=["Statistics"])
        sync_router = APIRouter(prefix="/sync", tags=["Sync"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and store connectivity.",
        )
        def health():
            try:
                self.store_repo.updated_at(self.state_service.store_key)
                return {"status": "ok", "version": APP_VERSION}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @machines_router.get("")
        def list_machines():
            return [
                {**m.model_dump(), "progress_percent": self.machines.progress_percent(m)}
                for m in self.state.machines
            ]

        @machines_router.post("")
        def create_machine(payload: MachinePayload):
            fields = payload.model_dump(exclude_none=True)
            fields.setdefault("name", "")
            try:
                return self.create_machine(**fields)
            except ValueError as e:
                raise http_error(e)

        @machines_router.get("/{machine_id}")
        def get_machine(machine_id: str):
            try:
                machine = self.machines.get(self.state, machine_id)
            except ValueError as e:
                raise http_error(e)
            return {
                **machine.model_dump(),
                "progress_percent": self.machines.progress_percent(machine),
            }

        @machines_router.put("/{machine_id}")
        def update_machine(machine_id: str, payload: MachinePayload):
            try:
                return self.update_machine(
                    machine_id, **payload.model_dump(exclude_none=True)
                )
            except ValueError as e:
                raise http_error(e)

        @machines_router.delete("/{machine_id}")
        def delete_machine(machine_id: str):
            try:
                self.delete_machine(machine_id)
                return {"status": "deleted"}
            except ValueError as e:
                raise http_error(e)

        @machines_router.post("/{machine_id}/sessions")
        def log_session(
            machine_id: str,
            result: str,
            date: str = None,
            notes: str = "",
            progress: str = "",
            confirm: bool = False,
            photo: str = Body("", embed=True),
        ):
            try:
                outcome = self.log_session(
                    machine_id, result, date, notes, photo, progress, confirm
                )
            except ValueError as e:
                raise http_error(e)
            return outcome.model_dump(mode="json")

        @machines_router.get("/{machine_id}/sessions")
        def list_sessions(machine_id: str, limit: int = None):
            if self.state.find_machine(machine_id) is None:
                raise HTTPException(status_code=404, detail="machine not found")
            if limit is not None:
                sessions = self.ledger.recent(self.state, machine_id, limit)
            else:
                sessions = self.ledger.sessions_for(self.state, machine_id)
            return [s.model_dump(mode="json") for s in sessions]

        @workouts_router.get("")
        def list_workouts():
            return [w.model_dump() for w in self.state.workouts]

        @workouts_router.post("")
        def create_workout(name: str, machine_ids: str = ""):
            ids = [m for m in machine_ids.split(",") if m]
            try:
                return self.create_workout(name, ids)
            except ValueError as e:
                raise http_error(e)

        @workouts_router.put(
            "/order",
            summary="Reorder workouts",
            description="Update the display order of workouts using comma-separated ids.",
        )
        def reorder_workouts(order: str):
            try:
                self.reorder_workouts([o for o in order.split(",") if o])
                return {"status": "updated"}
            except ValueError as e:
                raise http_error(e)

        @workouts_router.put("/{workout_id}")
        def update_workout(workout_id: str, name: str = None, machine_ids: str = None):
            ids = None
            if machine_ids is not None:
                ids = [m for m in machine_ids.split(",") if m]
            try:
                return self.update_workout(workout_id, name, ids)
            except ValueError as e:
                raise http_error(e)

        @workouts_router.delete("/{workout_id}")
        def delete_workout(workout_id: str, confirm: bool = False):
            try:
                deleted = self.delete_workout(workout_id, confirm)
            except ValueError as e:
                raise http_error(e)
            if not deleted:
                return {"status": "pending", "confirmation_required": True}
            return {"status": "deleted", "confirmation_required": False}

        @workouts_router.post("/{workout_id}/start")
        def start_workout(workout_id: str, date: str = None):
            try:
                return self.start_workout(workout_id, date)
            except ValueError as e:
                raise http_error(e)

        @self.app.get("/active_workout", tags=["Workouts"])
        def get_active_workout():
            active = self.state.active_workout
            return active.model_dump(mode="json") if active else None

        @self.app.post("/active_workout/items/{machine_id}", tags=["Workouts"])
        def mark_item(
            machine_id: str,
            result: str,
            progress: str = "",
            notes: str = "",
            confirm: bool = False,
            photo: str = Body("", embed=True),
        ):
            try:
                outcome = self.mark_item(
                    machine_id, result, progress, notes, photo, confirm
                )
            except ValueError as e:
                raise http_error(e)
            return outcome.model_dump(mode="json")

        @self.app.delete("/active_workout", tags=["Workouts"])
        def discard_active_workout():
            return {"discarded": self.discard_active_workout()}

        @self.app.get("/workout_history", tags=["Workouts"])
        def workout_history():
            return [h.model_dump(mode="json") for h in self.state.workout_history]

        @sync_router.get("/queue")
        def sync_queue():
            return {
                "pending": len(self.state.sync_queue),
                "online": self.sync.online,
                "last_success": self.sync_logs.last_success(),
                "events": [e.model_dump(mode="json") for e in self.state.sync_queue],
            }

        @sync_router.post("/flush")
        def flush():
            return self.flush_sync().model_dump()

        @sync_router.put("/online")
        def set_online(online: bool):
            result = self.set_online(online)
            return {
                "online": self.sync.online,
                "flush": result.model_dump() if result else None,
            }

        @sync_router.get("/errors")
        def sync_errors(limit: int = 5):
            return [
                {"timestamp": ts, "message": msg}
                for ts, msg in self.sync_logs.last_errors(limit)
            ]

        @stats_router.get("/overview")
        def overview():
            return self.statistics.overview(self.state, self.clock())

        @stats_router.get("/streaks")
        def streaks():
            return self.statistics.streak_board(self.state)

        @stats_router.get("/machines/{machine_id}")
        def machine_progress(machine_id: str, year: int = None):
            try:
                return self.statistics.machine_progress(
                    self.state, machine_id, year or self.clock().year
                )
            except ValueError as e:
                raise http_error(e)

        @stats_router.get("/machines/{machine_id}/calendar")
        def machine_calendar(machine_id: str, year: int = None):
            try:
                return self.statistics.calendar(
                    self.state, machine_id, year or self.clock().year
                )
            except ValueError as e:
                raise http_error(e)

        @stats_router.get("/machines/{machine_id}/levels")
        def machine_levels(machine_id: str, year: int = None):
            try:
                return self.statistics.level_series(
                    self.state, machine_id, year or self.clock().year
                )
            except ValueError as e:
                raise http_error(e)

        @self.app.get("/export", tags=["Data"])
        async def export_state():
            raw = await self.async_store.fetch(self.state_service.store_key)
            if raw is None:
                raise HTTPException(status_code=404, detail="no stored state")
            return Response(content=raw, media_type="application/json")

        @self.app.post("/import", tags=["Data"])
        def import_state(document: dict = Body(...)):
            try:
                self.import_state(json.dumps(document))
            except ValueError as e:
                raise http_error(e)
            return {"status": "imported", "machines": len(self.state.machines)}

        @self.app.post("/backups", tags=["Data"])
        def create_backup(label: str = "manual"):
            return {"id": self.backup(label)}

        @self.app.get("/backups", tags=["Data"])
        def list_backups():
            return self.state_service.list_backups()

        @self.app.post("/backups/{backup_id}/restore", tags=["Data"])
        def restore_backup(backup_id: int):
            try:
                self.restore_backup(backup_id)
            except ValueError as e:
                raise http_error(e)
            return {"status": "restored"}

        @self.app.get("/settings", tags=["Settings"])
        def get_settings():
            data = self.settings.model_dump()
            data["sync_token"] = bool(data["sync_token"])
            return data

        @self.app.put("/settings", tags=["Settings"])
        def update_settings(changes: dict = Body(...)):
            try:
                settings = self.update_settings(changes)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            data = settings.model_dump()
            data["sync_token"] = bool(data["sync_token"])
            return data

        self.app.include_router(machines_router)
        self.app.include_router(workouts_router)
        self.app.include_router(stats_router)
        self.app.include_router(sync_router)


api = ProgressionAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    configure_logging(api.settings.log_level)
    uvicorn.run(app)

from __future__ import annotations
import datetime
import uuid
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from errors import StateValidationError


def new_id() -> str:
    return str(uuid.uuid4())


def utc_timestamp() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds")


def _iso_date(value: str) -> str:
    try:
        parsed = datetime.date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"invalid date: {value!r}")
    if parsed.isoformat() != value:
        raise ValueError(f"invalid date: {value!r}")
    return value


IsoDate = Annotated[str, AfterValidator(_iso_date)]


class Result(str, Enum):
    YES = "YES"
    NO = "NO"


class Record(BaseModel):
    """Base model serialized with camelCase keys in stored documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SetupLine(Record):
    weight: str
    rounds: int = 1
    min_rep: int = 0
    max_rep: int = 0


class LevelEntry(Record):
    date: IsoDate
    level: int


class Machine(Record):
    """A trainable station with its own progression state."""

    id: str = Field(default_factory=new_id)
    name: str = ""
    streak_requirement: int = Field(default=3, ge=1)
    streak: int = Field(default=0, ge=0)
    auto_advance: bool = True
    level: int = Field(default=1, ge=1)
    photo: str = ""
    current_setup: list[SetupLine] = Field(default_factory=list)
    next_setup: list[SetupLine] = Field(default_factory=list)
    level_history: list[LevelEntry] = Field(default_factory=list)


class Session(Record):
    id: str = Field(default_factory=new_id)
    machine_id: str
    date: IsoDate
    result: Result
    notes: str = ""
    photo: str = ""
    progress: str = ""


class WorkoutTemplate(Record):
    id: str = Field(default_factory=new_id)
    name: str = ""
    machine_ids: list[str] = Field(default_factory=list)


class WorkoutItem(Record):
    machine_id: str
    result: Optional[Result] = None
    progress: str = ""
    notes: str = ""
    photo: str = ""


class ActiveWorkout(Record):
    id: str = Field(default_factory=new_id)
    workout_id: str
    date: IsoDate
    items: list[WorkoutItem] = Field(default_factory=list)

    def pending(self) -> list[WorkoutItem]:
        return [i for i in self.items if i.result is None]


class WorkoutHistoryEntry(Record):
    id: str = Field(default_factory=new_id)
    workout_id: str
    workout_name: str = ""
    date: IsoDate
    completed_at: str = Field(default_factory=utc_timestamp)
    items: list[WorkoutItem] = Field(default_factory=list)


class SyncEvent(Record):
    id: str = Field(default_factory=new_id)
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    queued_at: str = Field(default_factory=utc_timestamp)


class ProgressionState(Record):
    """Aggregate owning every machine, session, template and queued event."""

    machines: list[Machine] = Field(default_factory=list)
    sessions: list[Session] = Field(default_factory=list)
    workouts: list[WorkoutTemplate] = Field(default_factory=list)
    workout_history: list[WorkoutHistoryEntry] = Field(default_factory=list)
    active_workout: Optional[ActiveWorkout] = None
    sync_queue: list[SyncEvent] = Field(default_factory=list)

    def find_machine(self, machine_id: str) -> Machine | None:
        for machine in self.machines:
            if machine.id == machine_id:
                return machine
        return None

    def find_workout(self, workout_id: str) -> WorkoutTemplate | None:
        for workout in self.workouts:
            if workout.id == workout_id:
                return workout
        return None

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, data: Any) -> "ProgressionState":
        """Build a state from a decoded document.

        Missing fields fall back to empty containers; wrongly typed content
        raises ``StateValidationError``.
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise StateValidationError("state document must be an object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise StateValidationError(str(e)) from e

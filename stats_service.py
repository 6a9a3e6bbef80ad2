from __future__ import annotations
import datetime
from typing import Optional

from algorithms import CalendarTools
from errors import NotFoundError
from machine_service import MachineService
from models import Machine, ProgressionState, Result


class StatisticsService:
    """Compute read-only progression statistics from a state snapshot."""

    @staticmethod
    def _yes_dates(state: ProgressionState, machine_id: str, year: int) -> list[str]:
        return sorted(
            s.date
            for s in state.sessions
            if s.machine_id == machine_id
            and s.result is Result.YES
            and CalendarTools.year_of(s.date) == year
        )

    @staticmethod
    def _machine(state: ProgressionState, machine_id: str) -> Machine:
        machine = state.find_machine(machine_id)
        if machine is None:
            raise NotFoundError("machine not found")
        return machine

    def longest_streak(self, state: ProgressionState, machine_id: str, year: int) -> int:
        """Return the longest run of consecutive YES days within ``year``."""
        best = 0
        current = 0
        prev: Optional[str] = None
        for day in self._yes_dates(state, machine_id, year):
            if prev is None or CalendarTools.days_between(day, prev) == 1:
                current += 1
            else:
                current = 1
            best = max(best, current)
            prev = day
        return best

    @staticmethod
    def consistency_percent(state: ProgressionState) -> int:
        yes = sum(1 for s in state.sessions if s.result is Result.YES)
        return round(100 * yes / max(1, len(state.sessions)))

    @staticmethod
    def level_ups_in_year(machine: Machine, year: int) -> int:
        """Count level-ups recorded in ``year``.

        The first history entry marks creation at level 1 and is never counted,
        whichever year it falls in.
        """
        return sum(
            1
            for entry in machine.level_history[1:]
            if CalendarTools.year_of(entry.date) == year
        )

    def overview(self, state: ProgressionState, today: datetime.date | None = None) -> dict:
        today = today or datetime.date.today()
        day = today.isoformat()
        week_start = (today - datetime.timedelta(days=7)).isoformat()
        done_today = {
            s.machine_id
            for s in state.sessions
            if s.date == day and s.result is Result.YES
        }
        return {
            "date": day,
            "pending_today": sum(1 for m in state.machines if m.id not in done_today),
            "week_workouts": sum(
                1
                for s in state.sessions
                if s.date >= week_start and s.result is Result.YES
            ),
            "level_ups_this_year": sum(
                self.level_ups_in_year(m, today.year) for m in state.machines
            ),
            "consistency_percent": self.consistency_percent(state),
        }

    def machine_progress(self, state: ProgressionState, machine_id: str, year: int) -> dict:
        machine = self._machine(state, machine_id)
        sessions = [
            s
            for s in state.sessions
            if s.machine_id == machine_id and CalendarTools.year_of(s.date) == year
        ]
        yes = sum(1 for s in sessions if s.result is Result.YES)
        no = len(sessions) - yes
        return {
            "machine_id": machine.id,
            "name": machine.name,
            "year": year,
            "yes": yes,
            "no": no,
            "longest_streak": self.longest_streak(state, machine_id, year),
            "level_ups": self.level_ups_in_year(machine, year),
            "consistency_percent": round(100 * yes / max(1, yes + no)),
        }

    def calendar(self, state: ProgressionState, machine_id: str, year: int) -> list[dict]:
        self._machine(state, machine_id)
        by_date = {
            s.date: s
            for s in state.sessions
            if s.machine_id == machine_id and CalendarTools.year_of(s.date) == year
        }
        days = []
        for day in CalendarTools.days_in_year(year):
            session = by_date.get(day)
            days.append(
                {
                    "date": day,
                    "result": session.result.value if session else None,
                    "notes": session.notes if session else "",
                }
            )
        return days

    def level_series(self, state: ProgressionState, machine_id: str, year: int) -> list[dict]:
        """Return the level in force on every YES day of ``year``."""
        machine = self._machine(state, machine_id)
        series = []
        for day in self._yes_dates(state, machine_id, year):
            reached = [h.level for h in machine.level_history if h.date <= day]
            series.append({"date": day, "level": reached[-1] if reached else 1})
        return series

    @staticmethod
    def streak_board(state: ProgressionState) -> list[dict]:
        return [
            {
                "machine_id": m.id,
                "name": m.name,
                "streak": m.streak,
                "streak_requirement": m.streak_requirement,
                "progress_percent": MachineService.progress_percent(m),
                "close": m.streak == m.streak_requirement - 1,
            }
            for m in state.machines
        ]

from .weight_progression import WeightProgression
from .calendar_tools import CalendarTools
from .setup_parser import SetupParser

__all__ = ["WeightProgression", "CalendarTools", "SetupParser"]

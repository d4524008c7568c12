from .events import EventTypes
from .bus import EventBus
from .objects import ReductionReport, StateChange, StepReport

__all__ = ["EventTypes", "EventBus", "ReductionReport", "StateChange", "StepReport"]

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PlanningError(Exception):
    """Base error envelope for the planning engine.

    Generator and adjuster failures are raised as one of the subclasses below;
    each carries a stable ``code`` so callers can branch without string matching.
    """

    message: str
    code: str = "E_PLANNING"
    path: Optional[str] = None

    def __str__(self) -> str:
        loc = self.path or "<goal>"
        return f"{loc}: {self.code}: {self.message}"


@dataclass(frozen=True)
class InsufficientAvailability(PlanningError):
    code: str = "E_INSUFFICIENT_AVAILABILITY"


@dataclass(frozen=True)
class InvalidTargetDate(PlanningError):
    code: str = "E_INVALID_TARGET_DATE"


@dataclass(frozen=True)
class NoExistingSchedule(PlanningError):
    code: str = "E_NO_EXISTING_SCHEDULE"


@dataclass(frozen=True)
class TooSoonToAdjust(PlanningError):
    code: str = "E_TOO_SOON_TO_ADJUST"


@dataclass(frozen=True)
class EmptySchedule(PlanningError):
    code: str = "E_EMPTY_SCHEDULE"


@dataclass(frozen=True)
class UnknownCategory(PlanningError):
    code: str = "E_UNKNOWN_CATEGORY"


@dataclass(frozen=True)
class GoalFileError(Exception):
    """Error envelope for goal files and schedule checks. Returned or printed, like validator output."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<schedule>"
        return f"{loc}: {self.code}: {self.message}"


class GoalLoadError(GoalFileError):
    pass


class ScheduleValidationError(GoalFileError):
    pass

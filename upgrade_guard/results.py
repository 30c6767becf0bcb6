"""Structured outcome of a single guard step."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List

from upgrade_guard.utils import log_warn


class Severity(str, Enum):
    OK = "ok"
    WARNING = "warning"


@dataclass
class StepResult:
    """What a step did and which advisory problems it ran into.

    Fatal problems never end up here; they are raised as ``GuardError``.
    """
    step: str
    warnings: List[str] = field(default_factory=list)
    changed: bool = False

    def warn(self, message: str) -> None:
        """Print a warning immediately and remember it for the summary."""
        log_warn(message)
        self.warnings.append(message)

    @property
    def severity(self) -> Severity:
        return Severity.WARNING if self.warnings else Severity.OK

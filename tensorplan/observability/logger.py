# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Plan Logger

Structured records of what the planner decided and what failed at the
status boundary. Each record is one line of text or JSON.

Two kinds of record carry first-class fields:
- selection: the winning solution and either its timing (duration,
  TFLOPs, bandwidth, candidates timed) or its heuristic score
- failure: the boundary operation and the status code it returned

Example:
    from tensorplan.observability import PlanLogger, Verbosity

    logger = PlanLogger.get()
    logger.set_verbosity(Verbosity.INFO)
    logger.selection("contraction_bilinear<...>", score=0.83)
"""

import json
import logging
import os
import sys
from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import IntEnum
from typing import Callable, Optional, TextIO

_std_logger = logging.getLogger("tensorplan.observability.logger")


class Verbosity(IntEnum):
    """
    Logging verbosity levels.

    Uses IntEnum for numeric comparison (e.g., if verbosity >= INFO).
    """

    SILENT = 0
    ERROR = 1
    WARNING = 2
    INFO = 3
    DEBUG = 4


@dataclass
class LogEntry:
    """
    One planner record.

    Attributes:
        level: Verbosity name of the record
        message: Free text
        timestamp: ISO format timestamp
        component: Emitting area (contraction, api, workspace)
        solution: Solution type string the record is about
        operation: Boundary function name for failures
        status: StatusCode name returned at the boundary
        duration_ms: Mean measured time of the selected solution
        tflops: Achieved throughput of the selected solution
        bandwidth_gbps: Achieved bandwidth of the selected solution
        candidates_timed: Number of candidates the timing pass ran
        score: Heuristic score of the selected solution
        extra: Any other context passed by keyword
    """

    level: str
    message: str
    timestamp: str
    component: str = "tensorplan"
    solution: Optional[str] = None
    operation: Optional[str] = None
    status: Optional[str] = None
    duration_ms: Optional[float] = None
    tflops: Optional[float] = None
    bandwidth_gbps: Optional[float] = None
    candidates_timed: Optional[int] = None
    score: Optional[float] = None
    extra: dict = field(default_factory=dict)

    @property
    def timed(self) -> bool:
        return self.duration_ms is not None

    def to_json(self) -> str:
        data = {k: v for k, v in asdict(self).items() if v is not None}
        if not data.get("extra"):
            data.pop("extra", None)
        return json.dumps(data, default=str)

    def to_text(self) -> str:
        """One line: [LEVEL] [component] message, then whichever fields are set."""
        parts = [f"[{self.level}]", f"[{self.component}]", self.message]
        if self.operation is not None:
            parts.append(f"in {self.operation}")
        if self.status is not None:
            parts.append(f"-> {self.status}")
        if self.solution is not None:
            parts.append(f"<{self.solution}>")
        if self.timed:
            timing = f"{self.duration_ms:.3f}ms"
            if self.tflops is not None:
                timing += f", {self.tflops:.3f} TFLOPs"
            if self.bandwidth_gbps is not None:
                timing += f", {self.bandwidth_gbps:.1f} GB/s"
            if self.candidates_timed is not None:
                timing += f", {self.candidates_timed} timed"
            parts.append(f"({timing})")
        if self.score is not None:
            parts.append(f"(score {self.score:.4f})")
        return " ".join(parts)


_FIELDS = (
    "component",
    "solution",
    "operation",
    "status",
    "duration_ms",
    "tflops",
    "bandwidth_gbps",
    "candidates_timed",
    "score",
)


class PlanLogger:
    """
    Structured logger for planner decisions.

    Singleton pattern ensures consistent logging configuration across the library.
    The TENSORPLAN_VERBOSITY environment variable (0-4) sets the initial level.
    Selections are INFO records and boundary failures are WARNING records, so
    the default level shows failures only.
    """

    _instance: Optional["PlanLogger"] = None

    def __init__(self):
        self._verbosity = Verbosity.WARNING
        self._output: TextIO = sys.stderr
        self._json_format = False
        self._handlers: list[Callable[[LogEntry], None]] = []

        env_verbosity = os.environ.get("TENSORPLAN_VERBOSITY")
        if env_verbosity is not None:
            try:
                self._verbosity = Verbosity(int(env_verbosity))
            except ValueError:
                _std_logger.warning(
                    f"Ignoring invalid TENSORPLAN_VERBOSITY={env_verbosity!r}"
                )

    @classmethod
    def get(cls) -> "PlanLogger":
        """Get the singleton logger instance."""
        if cls._instance is None:
            cls._instance = PlanLogger()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None

    def set_verbosity(self, level: int) -> None:
        """Set verbosity, clamping plain integers to SILENT..DEBUG."""
        if isinstance(level, Verbosity):
            self._verbosity = level
        else:
            self._verbosity = Verbosity(max(0, min(4, level)))

    def get_verbosity(self) -> Verbosity:
        return self._verbosity

    def set_json_format(self, enabled: bool) -> None:
        self._json_format = enabled

    def set_output(self, output: TextIO) -> None:
        self._output = output

    def add_handler(self, handler: Callable[[LogEntry], None]) -> None:
        """Call handler with every emitted LogEntry."""
        self._handlers.append(handler)

    def log(self, level: Verbosity, message: str, **context) -> Optional[LogEntry]:
        """
        Emit one record if level is enabled.

        Keywords naming a LogEntry field fill that field; the rest land in extra.
        Returns the emitted entry, or None when suppressed.
        """
        if self._verbosity < level or level == Verbosity.SILENT:
            return None
        fields = {name: context.pop(name) for name in _FIELDS if name in context}
        entry = LogEntry(
            level=level.name,
            message=message,
            timestamp=datetime.now().isoformat(),
            extra=context,
            **fields,
        )
        line = entry.to_json() if self._json_format else entry.to_text()
        self._output.write(line + "\n")
        self._output.flush()
        for handler in self._handlers:
            handler(entry)
        return entry

    def debug(self, message: str, **context) -> Optional[LogEntry]:
        return self.log(Verbosity.DEBUG, message, **context)

    def info(self, message: str, **context) -> Optional[LogEntry]:
        return self.log(Verbosity.INFO, message, **context)

    def warning(self, message: str, **context) -> Optional[LogEntry]:
        return self.log(Verbosity.WARNING, message, **context)

    def error(self, message: str, **context) -> Optional[LogEntry]:
        return self.log(Verbosity.ERROR, message, **context)

    def selection(
        self,
        solution: str,
        duration_ms: Optional[float] = None,
        tflops: Optional[float] = None,
        bandwidth_gbps: Optional[float] = None,
        candidates_timed: Optional[int] = None,
        score: Optional[float] = None,
    ) -> Optional[LogEntry]:
        """Record a plan's winner. Timed winners pass duration_ms, scored ones pass score."""
        how = "timing" if duration_ms is not None else "heuristic"
        return self.info(
            f"Solution selected by {how}",
            component="contraction",
            solution=solution,
            duration_ms=duration_ms,
            tflops=tflops,
            bandwidth_gbps=bandwidth_gbps,
            candidates_timed=candidates_timed,
            score=score,
        )

    def failure(self, operation: str, status: str, message: str) -> Optional[LogEntry]:
        """Record a library error converted to a status at the boundary."""
        return self.warning(message, component="api", operation=operation, status=status)


def get_logger() -> PlanLogger:
    """Get the global tensorplan logger."""
    return PlanLogger.get()


def set_verbosity(level: int) -> None:
    """
    Set global verbosity level.

    Args:
        level: Verbosity level (0=SILENT, 1=ERROR, 2=WARNING, 3=INFO, 4=DEBUG)
    """
    PlanLogger.get().set_verbosity(level)

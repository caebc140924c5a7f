"""
scribeline.progress - Progress reporting for pipeline steps.

Reporters are fire-and-forget sinks. Several updates for the same step may
arrive in quick succession; each one replaces the previous value rather than
adding to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TaskProgressColumn, TextColumn


class ProgressReporter(Protocol):
    def set_step(self, name: str) -> None: ...

    def set_progress(self, name: str, fraction: float) -> None: ...

    def set_error(self, name: str, message: str) -> None: ...


class NullProgressReporter:
    """Reporter that discards everything."""

    def set_step(self, name: str) -> None:
        pass

    def set_progress(self, name: str, fraction: float) -> None:
        pass

    def set_error(self, name: str, message: str) -> None:
        pass


@dataclass
class ProgressEvent:
    kind: str
    step: str
    value: float | str | None = None


@dataclass
class ProgressRecorder:
    """In-memory reporter keeping the latest value per step and the full event log."""

    events: list[ProgressEvent] = field(default_factory=list)
    current_step: str | None = None
    progress: dict[str, float] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    def set_step(self, name: str) -> None:
        self.current_step = name
        self.progress[name] = 0.0
        self.errors.pop(name, None)
        self.events.append(ProgressEvent("step", name))

    def set_progress(self, name: str, fraction: float) -> None:
        fraction = _clamp(fraction)
        self.progress[name] = fraction
        self.events.append(ProgressEvent("progress", name, fraction))

    def set_error(self, name: str, message: str) -> None:
        self.errors[name] = message
        self.events.append(ProgressEvent("error", name, message))

    def fractions(self, name: str) -> list[float]:
        return [e.value for e in self.events if e.kind == "progress" and e.step == name]

    def warnings(self, name: str) -> list[str]:
        return [e.value for e in self.events if e.kind == "error" and e.step == name]


class ConsoleProgressReporter:
    """Rich progress bar, one task per step."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self._progress = Progress(
            TextColumn("[cyan]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=self.console,
            transient=False,
        )
        self._tasks: dict[str, TaskID] = {}

    def __enter__(self) -> ConsoleProgressReporter:
        self._progress.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self._progress.stop()

    def set_step(self, name: str) -> None:
        if name in self._tasks:
            self._progress.reset(self._tasks[name], total=1.0)
        else:
            self._tasks[name] = self._progress.add_task(name, total=1.0)

    def set_progress(self, name: str, fraction: float) -> None:
        if name not in self._tasks:
            self.set_step(name)
        self._progress.update(self._tasks[name], completed=_clamp(fraction))

    def set_error(self, name: str, message: str) -> None:
        self.console.print(f"[yellow]  {name}: {message}[/yellow]")


def _clamp(fraction: float) -> float:
    return min(max(fraction, 0.0), 1.0)

"""Run diagnostics: per-action timings, errors and the timeout counter."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class ActionMetric:
    """Metrics for a single executed action."""

    index: int
    name: str
    wall_time: float = 0.0
    error: str = ""

    @property
    def success(self) -> bool:
        return not self.error


@dataclass
class RunMetrics:
    """Collects diagnostics across one or more runs of a chain.

    Nothing here feeds back into control flow.
    """

    actions: list[ActionMetric] = field(default_factory=list)
    timeouts: int = 0
    timeout_messages: list[str] = field(default_factory=list)
    run_start: float = field(default_factory=time.time)
    _action_start: float = 0.0
    _current: ActionMetric | None = None

    def begin_run(self) -> None:
        self.run_start = time.time()

    def begin_action(self, name: str) -> None:
        self._action_start = time.time()
        self._current = ActionMetric(index=len(self.actions), name=name)

    def end_action(self, error: BaseException | str | None = None) -> None:
        if self._current is None:
            return
        self._current.wall_time = time.time() - self._action_start
        self._current.error = str(error) if error else ""
        self.actions.append(self._current)
        self._current = None

    def record_timeout(self, message: str = "") -> None:
        self.timeouts += 1
        self.timeout_messages.append(message)

    @property
    def total_wall_time(self) -> float:
        return time.time() - self.run_start

    @property
    def actions_succeeded(self) -> int:
        return sum(1 for a in self.actions if a.success)

    @property
    def actions_failed(self) -> int:
        return sum(1 for a in self.actions if not a.success)

    def print_action_summary(self, metric: ActionMetric) -> None:
        status = "OK" if metric.success else "FAIL"
        err_info = f" err={metric.error}" if metric.error else ""
        print(f"  {metric.index:3d}: [{status}] {metric.wall_time:6.2f}s {metric.name}{err_info}")

    def print_report(self) -> None:
        print("\n" + "=" * 60)
        print("  RUN RESULTS")
        print("=" * 60)
        for a in self.actions:
            self.print_action_summary(a)
        print("-" * 60)
        print(f"  Succeeded: {self.actions_succeeded}/{len(self.actions)}")
        print(f"  Timeouts: {self.timeouts}")
        for message in self.timeout_messages:
            print(f"    - {message}")
        print(f"  Total time: {self.total_wall_time:.1f}s")
        print("=" * 60 + "\n")

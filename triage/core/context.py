"""Run-scoped execution context (deadline + cancellation).

Every Kubernetes call takes `_request_timeout=ctx.request_timeout()` so a stuck API server cannot
hold the run past its deadline, and long loops call `raise_if_done()` between objects.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from triage.core.errors import RunCancelled, RunTimeout


@dataclass
class RunContext:
    timeout_seconds: Optional[float] = None
    _deadline: Optional[float] = field(default=None, init=False, repr=False)
    _cancelled: threading.Event = field(default_factory=threading.Event, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.timeout_seconds is not None:
            self._deadline = time.monotonic() + float(self.timeout_seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_done(self) -> None:
        if self._cancelled.is_set():
            raise RunCancelled("analysis run cancelled")
        rem = self.remaining()
        if rem is not None and rem <= 0:
            raise RunTimeout(f"analysis run exceeded {self.timeout_seconds}s")

    def request_timeout(self) -> Optional[float]:
        """Timeout for a single blocking call (None = client default)."""
        self.raise_if_done()
        return self.remaining()


@dataclass
class AnalyzerContext:
    """What every analyzer receives for one run."""

    client: Any
    run: RunContext = field(default_factory=RunContext)
    namespace: str = ""
    label_selector: str = ""
    metrics: Any = None

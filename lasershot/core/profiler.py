"""Stage timing for the detection loop."""

import time
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass


@dataclass(frozen=True)
class StageSample:
    """One timed pass through a loop stage such as ``"detection/extract"``."""

    stage: str
    elapsed_ms: float


@dataclass
class StageSummary:
    """Aggregated timings of one stage over the retained window."""

    stage: str
    count: int
    total_ms: float
    max_ms: float
    share: float

    @property
    def component(self) -> str:
        return self.stage.split("/", 1)[0]

    @property
    def mean_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0


class StageProfiler:
    """Rolling window of stage timings.

    A polling loop never finishes, so only the last ``window`` samples are
    kept and summaries describe recent behaviour rather than the whole run.
    The loop wraps each stage of a cycle::

        with profiler.time("capture", "read"):
            frame = source.read()

    and ``summary()`` folds the window into one row per stage, slowest first.
    """

    def __init__(
        self,
        window: int = 10_000,
        enabled: bool = True,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._samples: deque[StageSample] = deque(maxlen=window)
        self._clock = clock
        self.enabled = enabled

    def clear(self) -> None:
        self._samples.clear()

    @contextmanager
    def time(self, component: str, operation: str) -> Iterator[None]:
        """Time the enclosed block as stage ``component/operation``.

        The sample is recorded even if the block raises.
        """
        if not self.enabled:
            yield
            return

        started = self._clock()
        try:
            yield
        finally:
            elapsed_ms = (self._clock() - started) * 1000
            self._samples.append(StageSample(f"{component}/{operation}", elapsed_ms))

    def samples(self) -> list[StageSample]:
        return list(self._samples)

    @property
    def total_ms(self) -> float:
        return sum(s.elapsed_ms for s in self._samples)

    def summary(self) -> list[StageSummary]:
        """One row per stage, ordered by total time (ties by first appearance)."""
        rows: dict[str, StageSummary] = {}
        for sample in self._samples:
            row = rows.get(sample.stage)
            if row is None:
                row = rows[sample.stage] = StageSummary(sample.stage, 0, 0.0, 0.0, 0.0)
            row.count += 1
            row.total_ms += sample.elapsed_ms
            row.max_ms = max(row.max_ms, sample.elapsed_ms)

        grand_total = self.total_ms
        for row in rows.values():
            row.share = row.total_ms / grand_total if grand_total > 0 else 0.0
        return sorted(rows.values(), key=lambda r: r.total_ms, reverse=True)


def null_profiler() -> StageProfiler:
    """Profiler that records nothing."""
    return StageProfiler(window=1, enabled=False)

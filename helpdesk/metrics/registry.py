"""Process-local ticket metrics and their Prometheus text exposition."""
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from threading import Lock
from time import perf_counter
from typing import Callable, Iterable, Iterator, Mapping, TypeVar

LabelValues = tuple[str, ...]
Sample = tuple[str, LabelValues, float]


class Metric(ABC):
    kind = "untyped"

    def __init__(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> None:
        self.name = name
        self.description = description
        self.label_names: tuple[str, ...] = tuple(label_names or ())
        self._lock = Lock()

    def _key(self, labels: Mapping[str, str] | None) -> LabelValues:
        given = dict(labels or {})
        missing = [label for label in self.label_names if label not in given]
        if missing:
            raise ValueError(f"Metric '{self.name}' is missing labels {missing}")
        extra = sorted(set(given) - set(self.label_names))
        if extra:
            raise ValueError(f"Metric '{self.name}' does not accept labels {extra}")
        return tuple(str(given[label]) for label in self.label_names)

    @abstractmethod
    def samples(self) -> list[Sample]:
        """Current ``(suffix, label values, value)`` series of this metric."""

    def exposition(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]
        for suffix, label_values, value in self.samples():
            label_text = ""
            if label_values:
                pairs = ",".join(f'{label}="{text}"' for label, text in zip(self.label_names, label_values))
                label_text = "{" + pairs + "}"
            lines.append(f"{self.name}{suffix}{label_text} {value}")
        return lines


class CounterMetric(Metric):
    kind = "counter"

    def __init__(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> None:
        super().__init__(name, description=description, label_names=label_names)
        self._totals: dict[LabelValues, float] = {}

    def inc(self, amount: float = 1.0, *, labels: Mapping[str, str] | None = None) -> None:
        key = self._key(labels)
        with self._lock:
            self._totals[key] = self._totals.get(key, 0.0) + amount

    def value(self, *, labels: Mapping[str, str] | None = None) -> float:
        key = self._key(labels)
        with self._lock:
            return self._totals.get(key, 0.0)

    def samples(self) -> list[Sample]:
        with self._lock:
            return [("", key, total) for key, total in self._totals.items()]


class DistributionMetric(Metric):
    """Count and sum of observations, exposed as a Prometheus summary."""

    kind = "summary"

    def __init__(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> None:
        super().__init__(name, description=description, label_names=label_names)
        self._series: dict[LabelValues, tuple[int, float]] = {}

    def observe(self, value: float, *, labels: Mapping[str, str] | None = None) -> None:
        key = self._key(labels)
        with self._lock:
            count, total = self._series.get(key, (0, 0.0))
            self._series[key] = (count + 1, total + value)

    @contextmanager
    def time(self, *, labels: Mapping[str, str] | None = None) -> Iterator[None]:
        started = perf_counter()
        try:
            yield
        finally:
            self.observe(perf_counter() - started, labels=labels)

    def snapshot(self) -> dict[LabelValues, dict[str, float]]:
        with self._lock:
            return {key: {"count": float(count), "sum": total} for key, (count, total) in self._series.items()}

    def samples(self) -> list[Sample]:
        series: list[Sample] = []
        for key, stats in self.snapshot().items():
            series.append(("_count", key, stats["count"]))
            series.append(("_sum", key, stats["sum"]))
        return series


_M = TypeVar("_M", bound=Metric)


class MetricsRegistry:
    """Named metrics of one process; a name keeps the type it was first created with."""

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self._lock = Lock()

    def _get_or_create(self, name: str, kind: type[_M], factory: Callable[[], _M]) -> _M:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = factory()
        if not isinstance(metric, kind):
            raise TypeError(f"Metric '{name}' already exists as a {metric.kind}")
        return metric

    def counter(self, name: str, *, description: str = "", label_names: Iterable[str] | None = None) -> CounterMetric:
        return self._get_or_create(
            name, CounterMetric, lambda: CounterMetric(name, description=description, label_names=label_names)
        )

    def distribution(
        self, name: str, *, description: str = "", label_names: Iterable[str] | None = None
    ) -> DistributionMetric:
        return self._get_or_create(
            name,
            DistributionMetric,
            lambda: DistributionMetric(name, description=description, label_names=label_names),
        )

    def metrics(self) -> tuple[Metric, ...]:
        with self._lock:
            return tuple(self._metrics.values())

    @contextmanager
    def time_distribution(self, name: str, *, labels: Mapping[str, str] | None = None) -> Iterator[None]:
        with self.distribution(name).time(labels=labels):
            yield


def render_prometheus(registry: MetricsRegistry) -> str:
    """Render the registry in the Prometheus text exposition format."""

    lines = [line for metric in registry.metrics() for line in metric.exposition()]
    return "\n".join(lines) + ("\n" if lines else "")

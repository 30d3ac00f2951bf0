"""Application wide metrics utilities."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from .registry import MetricsRegistry, render_prometheus


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name="tickets_created_total",
        metric_type="counter",
        description="Number of tickets created.",
    ),
    MetricDefinition(
        name="ticket_transitions_total",
        metric_type="counter",
        description="Number of ticket actions applied.",
        label_names=("action",),
    ),
    MetricDefinition(
        name="ticket_transition_failures_total",
        metric_type="counter",
        description="Number of rejected ticket actions by error kind.",
        label_names=("error",),
    ),
    MetricDefinition(
        name="sla_escalations_total",
        metric_type="counter",
        description="Number of tickets escalated after breaching their SLA.",
    ),
    MetricDefinition(
        name="sla_sweep_duration_seconds",
        metric_type="distribution",
        description="Duration of SLA sweep passes in seconds.",
    ),
)

metrics_registry = MetricsRegistry()


def register_default_metrics(registry: MetricsRegistry | None = None) -> MetricsRegistry:
    """Ensure all default metric definitions exist in the registry."""
    target = registry or metrics_registry
    for definition in DEFAULT_METRIC_DEFINITIONS:
        if definition.metric_type == "counter":
            target.counter(
                definition.name,
                description=definition.description,
                label_names=definition.label_names,
            )
        elif definition.metric_type == "distribution":
            target.distribution(
                definition.name,
                description=definition.description,
                label_names=definition.label_names,
            )
        else:  # pragma: no cover - definitions are static
            raise ValueError(f"Unsupported metric type: {definition.metric_type}")
    return target


register_default_metrics()

__all__ = [
    "DEFAULT_METRIC_DEFINITIONS",
    "MetricDefinition",
    "MetricsRegistry",
    "metrics_registry",
    "register_default_metrics",
    "render_prometheus",
]

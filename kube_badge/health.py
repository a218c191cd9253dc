"""
Health aggregation for pods and nodes.

Counts healthy records in a list returned by the API server and maps the
healthy ratio onto a three-tier badge color.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable


class BadgeColor(str, Enum):
    """Badge colors, one per health tier."""

    FATAL = "red"
    WARN = "yellow"
    HEALTHY = "blue"


# Lower bounds (inclusive) of the warn and healthy bands.
WARN_THRESHOLD = 0.5
HEALTHY_THRESHOLD = 0.8

# The node predicate only looks at the last entry of status.conditions.
# The kubelet reports the aggregate "Ready" condition last; this is an
# ordering assumption, the condition type is not checked.
NODE_READY_CONDITION_INDEX = -1


@dataclass
class AggregationResult:
    """Healthy/total count for one resource kind."""

    healthy: int
    total: int
    color: BadgeColor


def classify(healthy: int, total: int) -> BadgeColor:
    """Map a healthy/total count onto a badge color.

    An empty list counts as fully healthy: there is nothing failing to
    report, and ``0/0`` renders blue instead of raising.
    """
    if total == 0:
        return BadgeColor.HEALTHY

    rate = healthy / total
    if rate < WARN_THRESHOLD:
        return BadgeColor.FATAL
    if rate < HEALTHY_THRESHOLD:
        return BadgeColor.WARN
    return BadgeColor.HEALTHY


def aggregate(
    records: Iterable[Any], is_healthy: Callable[[Any], bool]
) -> AggregationResult:
    """Count the records for which ``is_healthy`` holds, in a single pass."""
    healthy = 0
    total = 0
    for record in records:
        total += 1
        if is_healthy(record):
            healthy += 1
    return AggregationResult(healthy=healthy, total=total, color=classify(healthy, total))


def pod_predicate(accepted_phases: Iterable[str]) -> Callable[[Any], bool]:
    """Build a pod predicate that accepts the given phases."""
    phases = frozenset(accepted_phases)

    def is_healthy(pod) -> bool:
        status = pod.status
        return status is not None and status.phase in phases

    return is_healthy


def node_is_healthy(node) -> bool:
    """A node is healthy when its last reported condition is "True"."""
    conditions = (node.status.conditions if node.status else None) or []
    if not conditions:
        return False
    return conditions[NODE_READY_CONDITION_INDEX].status == "True"

"""
shields.io endpoint badge documents.

See https://shields.io/badges/endpoint-badge for the schema.
"""

from pydantic import BaseModel

from .health import AggregationResult


class BadgeDocument(BaseModel):
    """Endpoint badge payload."""

    schemaVersion: int = 1
    label: str
    message: str
    color: str


def badge_label(resource: str, environment: str) -> str:
    return f"{resource}({environment})"


def format_badge(label: str, result: AggregationResult) -> BadgeDocument:
    """Render an aggregation result as a badge."""
    return BadgeDocument(
        label=label,
        message=f"{result.healthy}/{result.total}",
        color=result.color.value,
    )

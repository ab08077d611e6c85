"""Pydantic models for logged events."""

from interlock.telemetry.models.decision import DecisionEvent

__all__ = [
    "DecisionEvent",
]

"""Test plans: JSON documents describing a load test."""

from stampede.plan.loader import load_plan, parse_plan, resolve_placeholders
from stampede.plan.models import (
    CheckSettings,
    LoadPlan,
    PlanSettings,
    ScenarioDefinition,
    ScenarioStep,
    ThinkTime,
)

__all__ = [
    "CheckSettings",
    "LoadPlan",
    "PlanSettings",
    "ScenarioDefinition",
    "ScenarioStep",
    "ThinkTime",
    "load_plan",
    "parse_plan",
    "resolve_placeholders",
]

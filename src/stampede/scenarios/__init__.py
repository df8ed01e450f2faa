"""Scenarios: named, weighted request sequences run by virtual users.

Provides:
- ScenarioRegistry with cumulative-weight selection
- The @scenario decorator and module loader for Python scenarios
- Scripted scenarios compiled from the test plan
- ExecutionContext passed to every scenario body
"""

from stampede.scenarios.context import ExecutionContext
from stampede.scenarios.loader import find_scenarios, load_scenario_module
from stampede.scenarios.registry import Scenario, ScenarioBody, ScenarioRegistry, scenario
from stampede.scenarios.scripted import build_scripted_body, registry_from_plan

__all__ = [
    "ExecutionContext",
    "Scenario",
    "ScenarioBody",
    "ScenarioRegistry",
    "build_scripted_body",
    "find_scenarios",
    "load_scenario_module",
    "registry_from_plan",
    "scenario",
]

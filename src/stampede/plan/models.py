"""Test plan models.

A test plan is the JSON document describing one load test: the target,
load profiles, headers and authentication, scenarios, think time,
thresholds and checks. Keys are accepted in snake_case or camelCase.

Example plan:
    {
        "baseUrl": "https://api.example.com",
        "loadProfiles": {
            "smoke": [{"duration": "10s", "target": 2}, {"duration": "20s", "target": 2}]
        },
        "scenarios": {
            "browse": {"weight": 3, "steps": [{"method": "GET", "path": "/products"}]}
        },
        "thresholds": {"http_req_failed": ["rate<0.05"]}
    }
"""

from __future__ import annotations

from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from stampede.errors import ConfigurationError
from stampede.http.auth import AuthConfig
from stampede.http.executor import CheckConfig
from stampede.metrics.thresholds import Threshold, parse_thresholds
from stampede.profile.presets import PROFILE_PRESETS, resolve_profile
from stampede.profile.stages import LoadProfile, LoadStage

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})


class PlanModel(BaseModel):
    """Base for plan models: camelCase aliases, unknown keys rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class ThinkTime(PlanModel):
    """Uniform think time between iterations, in seconds."""

    min: float = Field(default=1.0, ge=0)
    max: float = Field(default=3.0, ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> ThinkTime:
        if self.min > self.max:
            raise ValueError(f"think time min ({self.min}) exceeds max ({self.max})")
        return self


class CheckSettings(PlanModel):
    """Success checks applied to every response."""

    max_latency_ms: float = Field(default=1000.0, gt=0)
    require_body: bool = True
    content_type: str | None = None

    def to_config(self) -> CheckConfig:
        return CheckConfig(
            max_latency_ms=self.max_latency_ms,
            require_body=self.require_body,
            content_type=self.content_type,
        )


class ScenarioStep(PlanModel):
    """One request of a scripted scenario."""

    method: str = "GET"
    path: str | None = None
    endpoint: str | None = None
    payload: Any = None
    payload_from: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    name: str | None = None
    pause: tuple[float, float] | None = None

    @field_validator("method")
    @classmethod
    def _known_method(cls, value: str) -> str:
        method = value.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"unsupported HTTP method: {value}")
        return method

    @field_validator("pause")
    @classmethod
    def _ordered_pause(cls, value: tuple[float, float] | None) -> tuple[float, float] | None:
        if value is not None and not 0 <= value[0] <= value[1]:
            raise ValueError(f"pause must be [min, max] with 0 <= min <= max, got {list(value)}")
        return value

    @model_validator(mode="after")
    def _one_target(self) -> ScenarioStep:
        if (self.path is None) == (self.endpoint is None):
            raise ValueError("a step needs exactly one of 'path' or 'endpoint'")
        if self.payload is not None and self.payload_from is not None:
            raise ValueError("a step cannot set both 'payload' and 'payloadFrom'")
        return self


class ScenarioDefinition(PlanModel):
    """A weighted scripted scenario. A weight of 0 disables it."""

    weight: float = Field(default=1.0, ge=0)
    description: str | None = None
    steps: list[ScenarioStep] = Field(min_length=1)


class PlanSettings(PlanModel):
    """Run options carried by the plan."""

    detailed_logs: bool = Field(
        default=False,
        validation_alias=AliasChoices("detailed_logs", "detailedLogs", "enableDetailedLogs"),
    )
    custom_metrics: bool = Field(
        default=False,
        validation_alias=AliasChoices("custom_metrics", "customMetrics", "enableCustomMetrics"),
    )
    metric_prefix: str = ""


class LoadPlan(PlanModel):
    """A complete load test plan."""

    name: str | None = None
    base_url: str | None = None
    load_profiles: dict[str, list[LoadStage]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("load_profiles", "loadProfiles", "loadProfile"),
    )
    headers: dict[str, str] = Field(default_factory=dict)
    authentication: AuthConfig = Field(default_factory=AuthConfig)
    scenarios: dict[str, ScenarioDefinition] = Field(default_factory=dict)
    think_time: ThinkTime = Field(default_factory=ThinkTime)
    thresholds: dict[str, list[str]] = Field(default_factory=dict)
    checks: CheckSettings = Field(default_factory=CheckSettings)
    endpoints: dict[str, str] = Field(default_factory=dict)
    test_data: dict[str, list[Any]] = Field(default_factory=dict)
    settings: PlanSettings = Field(default_factory=PlanSettings)

    @field_validator("load_profiles", mode="before")
    @classmethod
    def _unwrap_stages(cls, value: Any) -> Any:
        # {"name": {"stages": [...]}} and {"name": [...]} are both accepted
        if isinstance(value, dict):
            return {
                name: stages["stages"] if isinstance(stages, dict) and "stages" in stages else stages
                for name, stages in value.items()
            }
        return value

    @field_validator("thresholds", mode="before")
    @classmethod
    def _listify_thresholds(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                metric: [expressions] if isinstance(expressions, str) else expressions
                for metric, expressions in value.items()
            }
        return value

    @model_validator(mode="after")
    def _check_references(self) -> LoadPlan:
        for scenario_name, definition in self.scenarios.items():
            for index, step in enumerate(definition.steps):
                if step.endpoint is not None and step.endpoint not in self.endpoints:
                    raise ValueError(
                        f"scenario '{scenario_name}' step {index + 1} references "
                        f"unknown endpoint '{step.endpoint}'"
                    )
                if step.payload_from is not None and not self.test_data.get(step.payload_from):
                    raise ValueError(
                        f"scenario '{scenario_name}' step {index + 1} references "
                        f"missing or empty test data '{step.payload_from}'"
                    )
        return self

    def profile_names(self) -> list[str]:
        """Plan-defined profiles first, then presets the plan does not override."""
        return list(self.load_profiles) + [
            name for name in PROFILE_PRESETS if name not in self.load_profiles
        ]

    def profile(self, name: str) -> LoadProfile:
        """Resolve a load profile by name (plan profiles, else built-in presets).

        Raises:
            ConfigurationError: If the profile is unknown or empty
        """
        profiles = {
            profile_name: LoadProfile.from_stages(profile_name, stages)
            for profile_name, stages in self.load_profiles.items()
        }
        return resolve_profile(name, profiles)

    def parsed_thresholds(self) -> list[Threshold]:
        """Parse threshold expressions.

        Raises:
            ConfigurationError: If any expression is malformed
        """
        return parse_thresholds(self.thresholds)

    @property
    def metric_prefix(self) -> str | None:
        """Prefix for the custom metric series, or None when disabled."""
        if not self.settings.custom_metrics:
            return None
        return self.settings.metric_prefix

    def require_base_url(self, override: str | None = None) -> str:
        base_url = override or self.base_url
        if not base_url or base_url.startswith("${"):
            raise ConfigurationError(
                "No base URL configured (set 'baseUrl' in the plan or BASE_URL)"
            )
        return base_url

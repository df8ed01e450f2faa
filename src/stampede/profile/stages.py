"""Staged load profiles.

A load profile is an ordered list of stages. Each stage ramps the number of
virtual users linearly from the previous stage's target (0 before the first
stage) to its own target over its duration:

    target(t) = P + (T - P) * (t / D)

A zero-duration stage is an instantaneous jump to its target.

Example:
    profile = LoadProfile.from_stages(
        "smoke",
        [{"duration": "10s", "target": 10}, {"duration": "20s", "target": 10}],
    )
    profile.total_duration  # 30.0
    target_at(profile, 5.0)  # 5.0
    desired_vus(profile, 5.0)  # 5
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stampede.errors import ConfigurationError

# k6-style duration components, e.g. "1h30m", "2m", "45s", "500ms"
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: str | float | int) -> float:
    """Convert a k6-style duration to seconds.

    Accepts numbers (already in seconds) or strings made of one or more
    ``<number><unit>`` parts with units ``h``, ``m``, ``s`` and ``ms``.
    A bare numeric string is read as seconds.

    Raises:
        ValueError: If the value cannot be parsed or is negative
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")

    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = value.strip().lower()
        if not text:
            raise ValueError("Duration must not be empty")

        try:
            seconds = float(text)
        except ValueError:
            position = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != position:
                    raise ValueError(f"Invalid duration: {value!r}") from None
                seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
                position = match.end()
            if position != len(text):
                raise ValueError(f"Invalid duration: {value!r}") from None

    if math.isnan(seconds) or seconds < 0:
        raise ValueError(f"Duration must be a non-negative number of seconds: {value!r}")
    return seconds


def format_duration(seconds: float) -> str:
    """Render seconds the way stage durations are usually written."""
    if 0 < seconds < 1:
        return f"{seconds * 1000:g}ms"

    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(int(minutes), 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs:g}s")
    return "".join(parts)


class LoadStage(BaseModel):
    """One segment of a load profile."""

    model_config = ConfigDict(frozen=True)

    duration: float = Field(ge=0, description="Stage length in seconds")
    target: int = Field(ge=0, description="VU count reached at the end of the stage")

    @field_validator("duration", mode="before")
    @classmethod
    def _parse_duration(cls, value: Any) -> float:
        return parse_duration(value)

    def __str__(self) -> str:
        return f"{format_duration(self.duration)} -> {self.target} VUs"


@dataclass(frozen=True)
class LoadProfile:
    """Named, ordered sequence of load stages. Read-only once built."""

    name: str
    stages: tuple[LoadStage, ...]

    @classmethod
    def from_stages(
        cls, name: str, stages: Iterable[LoadStage | dict[str, Any]]
    ) -> LoadProfile:
        """Build a profile from stage models or raw ``{duration, target}`` dicts.

        Raises:
            ConfigurationError: If the profile is empty or a stage is malformed
        """
        parsed: list[LoadStage] = []
        for index, stage in enumerate(stages):
            if isinstance(stage, LoadStage):
                parsed.append(stage)
                continue
            try:
                parsed.append(LoadStage.model_validate(stage))
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid stage {index} in load profile '{name}': {e}"
                ) from e

        if not parsed:
            raise ConfigurationError(f"Load profile '{name}' has no stages")

        return cls(name=name, stages=tuple(parsed))

    @property
    def total_duration(self) -> float:
        """Sum of all stage durations in seconds."""
        return sum(stage.duration for stage in self.stages)

    @property
    def max_target(self) -> int:
        """Highest VU count any stage reaches."""
        return max(stage.target for stage in self.stages)

    def boundaries(self) -> list[tuple[float, float, LoadStage]]:
        """Return ``(start, end, stage)`` for every stage."""
        result = []
        start = 0.0
        for stage in self.stages:
            end = start + stage.duration
            result.append((start, end, stage))
            start = end
        return result


def target_at(profile: LoadProfile | Sequence[LoadStage], elapsed: float) -> float:
    """Exact (unrounded) VU target after ``elapsed`` seconds.

    Pure function of the profile and the elapsed time. Before the run starts
    the target is 0; after the last stage it stays at the last target.
    """
    stages = profile.stages if isinstance(profile, LoadProfile) else profile
    previous = 0.0
    start = 0.0

    if elapsed < 0:
        return 0.0

    for stage in stages:
        end = start + stage.duration
        if stage.duration <= 0:
            # Instantaneous jump
            previous = float(stage.target)
            continue
        if elapsed < end:
            fraction = (elapsed - start) / stage.duration
            return previous + (stage.target - previous) * fraction
        previous = float(stage.target)
        start = end

    return previous


def desired_vus(profile: LoadProfile | Sequence[LoadStage], elapsed: float) -> int:
    """VU count the scheduler should converge to after ``elapsed`` seconds."""
    # round-half-up keeps the result within 0.5 of the exact target
    return int(math.floor(target_at(profile, elapsed) + 0.5))

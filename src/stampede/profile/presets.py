"""Built-in load profile presets.

Used when a test plan does not define its own ``load_profiles``. A plan that
defines a profile with the same name overrides the preset.
"""

from __future__ import annotations

from typing import Any, Mapping

from stampede.errors import ConfigurationError
from stampede.profile.stages import LoadProfile

PROFILE_PRESETS: dict[str, list[dict[str, Any]]] = {
    "light": [
        {"duration": "30s", "target": 5},
        {"duration": "1m", "target": 5},
        {"duration": "30s", "target": 0},
    ],
    "medium": [
        {"duration": "2m", "target": 10},
        {"duration": "5m", "target": 10},
        {"duration": "2m", "target": 20},
        {"duration": "5m", "target": 20},
        {"duration": "2m", "target": 0},
    ],
    "heavy": [
        {"duration": "2m", "target": 10},
        {"duration": "5m", "target": 10},
        {"duration": "2m", "target": 20},
        {"duration": "5m", "target": 20},
        {"duration": "2m", "target": 50},
        {"duration": "5m", "target": 50},
        {"duration": "2m", "target": 0},
    ],
    "spike": [
        {"duration": "10s", "target": 10},
        {"duration": "1m", "target": 10},
        {"duration": "10s", "target": 100},
        {"duration": "3m", "target": 100},
        {"duration": "10s", "target": 10},
        {"duration": "1m", "target": 10},
        {"duration": "10s", "target": 0},
    ],
}


def resolve_profile(
    name: str,
    profiles: Mapping[str, LoadProfile] | None = None,
) -> LoadProfile:
    """Look up a profile by name, falling back to the presets.

    Raises:
        ConfigurationError: If neither the plan nor the presets define ``name``
    """
    if profiles and name in profiles:
        return profiles[name]

    if name in PROFILE_PRESETS:
        return LoadProfile.from_stages(name, PROFILE_PRESETS[name])

    available = sorted(set(profiles or {}) | set(PROFILE_PRESETS))
    raise ConfigurationError(
        f"Unknown load profile '{name}'. Available profiles: {', '.join(available)}"
    )

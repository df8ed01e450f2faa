"""Load profiles: staged ramp plans and the pure target function.

Example:
    from stampede.profile import LoadProfile, desired_vus

    profile = LoadProfile.from_stages("ramp", [{"duration": "10s", "target": 10}])
    desired_vus(profile, 5.0)  # 5
"""

from stampede.profile.presets import PROFILE_PRESETS, resolve_profile
from stampede.profile.stages import (
    LoadProfile,
    LoadStage,
    desired_vus,
    format_duration,
    parse_duration,
    target_at,
)

__all__ = [
    "LoadProfile",
    "LoadStage",
    "PROFILE_PRESETS",
    "desired_vus",
    "format_duration",
    "parse_duration",
    "resolve_profile",
    "target_at",
]

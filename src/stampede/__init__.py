"""Stampede: staged HTTP load generation.

Drives a target API with concurrent virtual users that follow a staged ramp
profile, pick weighted scenarios, and record k6-style metrics judged against
thresholds at the end of the run.
"""

__version__ = "0.1.0"

"""Run execution: virtual users, the load profile scheduler and orchestration."""

from stampede.runner.engine import ExitCode, LoadTest, RunReport
from stampede.runner.scheduler import ControlSample, LoadProfileScheduler
from stampede.runner.vu import VirtualUser, VUState, VUStatus

__all__ = [
    "ControlSample",
    "ExitCode",
    "LoadProfileScheduler",
    "LoadTest",
    "RunReport",
    "VUState",
    "VUStatus",
    "VirtualUser",
]

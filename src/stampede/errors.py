"""Exception taxonomy for Stampede.

Only configuration problems and an exceeded run deadline ever abort a run.
Transport failures and failed checks are converted into request outcomes by
the executor, and threshold breaches are reported in the run summary.
"""

from __future__ import annotations


class StampedeError(Exception):
    """Base exception for Stampede errors."""

    pass


class ConfigurationError(StampedeError):
    """Invalid plan, profile, scenario set, or threshold, detected at setup."""

    pass


class TransportError(StampedeError):
    """The transport could not complete a request."""

    pass


class TransportTimeout(TransportError):
    """The request did not complete within its timeout."""

    pass


class ScenarioError(StampedeError):
    """A scenario body raised while a virtual user was running it."""

    def __init__(self, scenario: str, cause: BaseException) -> None:
        self.scenario = scenario
        self.cause = cause
        super().__init__(f"Scenario '{scenario}' failed: {type(cause).__name__}: {cause}")


class DeadlineExceeded(StampedeError):
    """The global run deadline was reached before the load profile finished."""

    def __init__(self, deadline: float, profile_duration: float) -> None:
        self.deadline = deadline
        self.profile_duration = profile_duration
        super().__init__(
            f"Run deadline of {deadline:.1f}s reached before the "
            f"{profile_duration:.1f}s load profile completed"
        )

"""Load test orchestration.

``LoadTest`` wires the components of one run together and drives it:

1. validate the scenario registry and thresholds
2. log the setup summary
3. optionally check connectivity to the target
4. follow the load profile with the scheduler
5. stop every virtual user (graceful or abort, bounded by the grace period)
6. snapshot the metrics, evaluate thresholds and return a ``RunReport``

Only configuration errors (raised before any virtual user starts) and an
exceeded run deadline end a run early. A deadline abort still produces a
report, marked ``aborted``.

Example:
    plan = load_plan("plan.json")
    test = LoadTest.from_plan(plan, profile_name="light")
    report = await test.run()
    sys.exit(report.exit_code)
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from stampede.config import Settings
from stampede.errors import ConfigurationError, DeadlineExceeded, TransportError
from stampede.http.executor import CheckConfig, RequestExecutor
from stampede.http.transport import HttpxTransport
from stampede.metrics.collector import MetricsCollector
from stampede.metrics.thresholds import validate_thresholds
from stampede.observability.logging import LogContext
from stampede.profile.stages import format_duration
from stampede.runner.scheduler import LoadProfileScheduler
from stampede.runner.vu import VirtualUser
from stampede.scenarios.scripted import registry_from_plan

if TYPE_CHECKING:
    from stampede.http.auth import AuthConfig
    from stampede.http.transport import Transport
    from stampede.metrics.collector import MetricsSnapshot
    from stampede.metrics.prometheus import PrometheusExporter
    from stampede.metrics.thresholds import Threshold, ThresholdReport
    from stampede.plan.models import LoadPlan
    from stampede.profile.stages import LoadProfile
    from stampede.scenarios.registry import ScenarioRegistry

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Process exit codes of a run."""

    PASSED = 0
    FAILED = 1
    CONFIG_ERROR = 2


@dataclass
class RunReport:
    """Final result of a load test run."""

    run_id: str
    name: str | None
    base_url: str
    profile: LoadProfile
    passed: bool
    aborted: bool
    thresholds: ThresholdReport
    snapshot: MetricsSnapshot
    started_at: datetime
    ended_at: datetime
    abort_reason: str | None = None
    connectivity_status: int | None = None
    max_vus: int = 0
    scenarios: list[str] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def exit_code(self) -> ExitCode:
        return ExitCode.PASSED if self.passed else ExitCode.FAILED

    @property
    def total_requests(self) -> int:
        series = self.snapshot.get("http_reqs")
        return int(series.count) if series is not None else 0

    @property
    def success_rate(self) -> float | None:
        """Fraction of requests that succeeded, or None without requests."""
        failed_rate = self.snapshot.value("http_req_failed", "rate")
        if failed_rate is None:
            return None
        return 1.0 - failed_rate

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "name": self.name,
            "base_url": self.base_url,
            "profile": {
                "name": self.profile.name,
                "stages": [
                    {"duration": stage.duration, "target": stage.target}
                    for stage in self.profile.stages
                ],
                "total_duration": self.profile.total_duration,
            },
            "passed": self.passed,
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration": self.duration,
            "total_requests": self.total_requests,
            "success_rate": self.success_rate,
            "max_vus": self.max_vus,
            "scenarios": self.scenarios,
            "thresholds": self.thresholds.to_dict(),
            "metrics": self.snapshot.to_dict()["metrics"],
        }


class LoadTest:
    """One configured load test run."""

    def __init__(
        self,
        profile: LoadProfile,
        registry: ScenarioRegistry,
        base_url: str,
        *,
        thresholds: Sequence[Threshold] = (),
        headers: Mapping[str, str] | None = None,
        auth: AuthConfig | None = None,
        checks: CheckConfig | None = None,
        think_time: tuple[float, float] = (1.0, 3.0),
        test_data: Mapping[str, list[Any]] | None = None,
        settings: Settings | None = None,
        transport: Transport | None = None,
        collector: MetricsCollector | None = None,
        exporter: PrometheusExporter | None = None,
        detailed_logs: bool = False,
        metric_prefix: str | None = None,
        name: str | None = None,
    ) -> None:
        self.profile = profile
        self.registry = registry
        self.base_url = base_url.rstrip("/")
        self.thresholds = list(thresholds)
        self.think_time = think_time
        self.test_data = test_data or {}
        self.settings = settings or Settings()
        self.auth = auth
        self.detailed_logs = detailed_logs
        self.name = name
        self.exporter = exporter
        self.collector = collector or MetricsCollector(custom_metric_prefix=metric_prefix)
        if exporter is not None:
            self.collector.add_listener(exporter.observe)

        self._owns_transport = transport is None
        self.transport: Transport = transport or HttpxTransport()
        self.executor = RequestExecutor(
            transport=self.transport,
            collector=self.collector,
            base_url=self.base_url,
            headers=headers,
            auth=auth,
            checks=checks,
            timeout=self.settings.request_timeout,
            detailed_logs=detailed_logs,
        )
        self.scheduler: LoadProfileScheduler | None = None

    @classmethod
    def from_plan(
        cls,
        plan: LoadPlan,
        profile_name: str | None = None,
        *,
        settings: Settings | None = None,
        registry: ScenarioRegistry | None = None,
        base_url: str | None = None,
        transport: Transport | None = None,
        exporter: PrometheusExporter | None = None,
    ) -> LoadTest:
        """Build a load test from a plan.

        Scripted plan scenarios are added to ``registry`` (which may already
        hold Python scenarios). CLI arguments take precedence over settings,
        which take precedence over the plan.

        Raises:
            ConfigurationError: If the profile, base URL, scenarios or
                thresholds are invalid
        """
        settings = settings or Settings()
        profile = plan.profile(profile_name or settings.load_profile)
        resolved_url = plan.require_base_url(base_url or settings.base_url)
        registry = registry_from_plan(plan, registry)

        return cls(
            profile=profile,
            registry=registry,
            base_url=resolved_url,
            thresholds=plan.parsed_thresholds(),
            headers=plan.headers,
            auth=plan.authentication,
            checks=plan.checks.to_config(),
            think_time=(plan.think_time.min, plan.think_time.max),
            test_data=plan.test_data,
            settings=settings,
            transport=transport,
            exporter=exporter,
            detailed_logs=plan.settings.detailed_logs,
            metric_prefix=plan.metric_prefix,
            name=plan.name,
        )

    def validate(self) -> None:
        """Validate scenarios and thresholds.

        Raises:
            ConfigurationError: On the first problem found
        """
        if not self.registry.frozen:
            self.registry.freeze()
        validate_thresholds(self.thresholds, self.collector.metric_types())

    async def aclose(self) -> None:
        """Close the transport if this load test created it."""
        if self._owns_transport and isinstance(self.transport, HttpxTransport):
            await self.transport.aclose()

    def describe(self) -> dict[str, Any]:
        """Setup summary shown before the run starts."""
        return {
            "name": self.name,
            "base_url": self.base_url,
            "profile": self.profile.name,
            "stages": [str(stage) for stage in self.profile.stages],
            "total_duration": format_duration(self.profile.total_duration),
            "max_vus": self.profile.max_target,
            "scenarios": {s.name: s.weight for s in self.registry},
            "thresholds": [str(t) for t in self.thresholds],
            "authentication": self.auth.describe() if self.auth else "Disabled",
            "detailed_logs": self.detailed_logs,
            "think_time": list(self.think_time),
            "deadline": self.settings.max_duration,
        }

    async def check_connectivity(self) -> int | None:
        """Issue one GET to the base URL.

        Never raises: an authentication rejection or a connection failure is
        logged and the run continues.

        Returns:
            The response status, or None if the target was unreachable
        """
        logger.info(f"Testing connectivity to {self.base_url}")
        try:
            response = await self.transport.issue(
                "GET",
                self.base_url,
                self.executor.base_headers,
                None,
                self.settings.connectivity_timeout,
            )
        except TransportError as e:
            logger.error(f"Failed to connect to {self.base_url}: {e}")
            return None
        except Exception as e:
            logger.exception(f"Failed to connect to {self.base_url}: {type(e).__name__}: {e}")
            return None

        if response.status in (401, 403):
            logger.warning(
                f"Authentication failed (status {response.status}), check the plan credentials"
            )
        elif 200 <= response.status < 400:
            logger.info(f"Connected successfully (status {response.status})")
        else:
            logger.warning(f"Target returned status {response.status}, test will continue")
        return response.status

    def _spawn(self, vu_id: int) -> VirtualUser:
        seed = self.settings.seed
        rng = random.Random(seed + vu_id) if seed is not None else random.Random()
        return VirtualUser(
            vu_id=vu_id,
            registry=self.registry,
            executor=self.executor,
            collector=self.collector,
            think_time=self.think_time,
            rng=rng,
            test_data=self.test_data,
        )

    async def run(self) -> RunReport:
        """Run the load test to completion.

        Raises:
            ConfigurationError: If validation fails (before any VU starts)
        """
        try:
            self.validate()
        except ConfigurationError:
            await self.aclose()
            raise
        run_id = uuid.uuid4().hex[:8]

        with LogContext(run_id=run_id):
            summary = self.describe()
            logger.info(
                f"Starting load test against {summary['base_url']} with profile "
                f"'{summary['profile']}' ({summary['total_duration']}, up to "
                f"{summary['max_vus']} VUs, scenarios: {', '.join(summary['scenarios'])})"
            )

            started_at = datetime.now(timezone.utc)
            connectivity_status = None
            aborted = False
            abort_reason = None

            try:
                if self.settings.connectivity_check:
                    connectivity_status = await self.check_connectivity()

                if (
                    self.exporter is not None
                    and self.settings.enable_metrics
                    and self.settings.metrics_port
                ):
                    self.exporter.start_server(self.settings.metrics_port)

                self.scheduler = LoadProfileScheduler(
                    self.profile,
                    spawn=self._spawn,
                    collector=self.collector,
                    control_interval=self.settings.control_interval,
                    deadline=self.settings.max_duration,
                    on_vus=self.exporter.set_vus if self.exporter is not None else None,
                )
                self.collector.mark_started()

                try:
                    await self.scheduler.run()
                except DeadlineExceeded as e:
                    aborted = True
                    abort_reason = str(e)
                    logger.error(abort_reason)
                finally:
                    await self.scheduler.stop_all(
                        grace_period=self.settings.graceful_stop,
                        abort=self.settings.abort_in_flight,
                    )
                    self.collector.mark_stopped()
            finally:
                await self.aclose()

            ended_at = datetime.now(timezone.utc)
            snapshot = self.collector.snapshot()
            threshold_report = self.collector.evaluate(self.thresholds, snapshot)
            passed = threshold_report.passed and not aborted

            for result in threshold_report.failed:
                logger.warning(
                    f"Threshold breached: {result.threshold} (observed {result.observed})"
                )

            vus_max = snapshot.value("vus_max", "max")
            report = RunReport(
                run_id=run_id,
                name=self.name,
                base_url=self.base_url,
                profile=self.profile,
                passed=passed,
                aborted=aborted,
                abort_reason=abort_reason,
                thresholds=threshold_report,
                snapshot=snapshot,
                started_at=started_at,
                ended_at=ended_at,
                connectivity_status=connectivity_status,
                max_vus=int(vus_max) if vus_max is not None else 0,
                scenarios=self.registry.names,
            )
            logger.info(
                f"Load test {'passed' if passed else 'failed'}: {report.total_requests} "
                f"requests in {report.duration:.1f}s"
            )
            return report

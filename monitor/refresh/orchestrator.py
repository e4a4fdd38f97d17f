"""
RefreshOrchestrator - Multi-stage refresh of all dashboard data.

Each cycle runs three fixed tiers:
- critical: immediately
- secondary: stage_delays[SECONDARY] after the cycle started
- tertiary: stage_delays[TERTIARY] after the cycle started

Delays are measured from the start of the cycle, so the tertiary wait is the
difference between the two configured delays. Fetcher failures are recorded
in the state's error list and never abort the cycle.
"""

import asyncio
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from monitor.refresh.stages import Fetcher, RefreshStage, settle_all
from monitor.settings import Settings

REFRESH_JOB_ID = "dashboard_refresh"
MAINTENANCE_JOB_ID = "cache_maintenance"

StateListener = Callable[["RefreshState"], None]


@dataclass
class RefreshState:
    """Snapshot of the orchestrator state exposed to the UI layer."""

    is_refreshing: bool = False
    current_stage: RefreshStage | None = None
    last_refresh: datetime | None = None
    errors: list[str] = field(default_factory=list)


class RefreshOrchestrator:
    """
    Schedules fetches across the critical, secondary and tertiary tiers.

    Usage:
        orchestrator = RefreshOrchestrator.from_settings(global_settings)
        orchestrator.register(RefreshStage.CRITICAL, "News", news_source.fetch)
        orchestrator.subscribe(lambda state: render(state))

        orchestrator.start_auto_refresh()
    """

    def __init__(
        self,
        stage_delays: dict[RefreshStage, float] | None = None,
        refresh_interval: float = 300,
        maintenance: Callable[[], Any] | None = None,
        maintenance_interval: float = 600,
        scheduler: AsyncIOScheduler | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._stage_delays = {
            RefreshStage.CRITICAL: 0.0,
            RefreshStage.SECONDARY: 2.0,
            RefreshStage.TERTIARY: 4.0,
        }
        if stage_delays:
            self._stage_delays.update(stage_delays)

        self._refresh_interval = refresh_interval
        self._maintenance = maintenance
        self._maintenance_interval = maintenance_interval
        self.scheduler = scheduler or AsyncIOScheduler()
        self._sleep = sleep
        self._clock = clock

        self._fetchers: dict[RefreshStage, dict[str, Fetcher]] = {
            stage: {} for stage in RefreshStage
        }
        self._state = RefreshState()
        self._listeners: list[StateListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        maintenance: Callable[[], Any] | None = None,
    ) -> "RefreshOrchestrator":
        return cls(
            stage_delays={
                RefreshStage.SECONDARY: settings.secondary_stage_delay,
                RefreshStage.TERTIARY: settings.tertiary_stage_delay,
            },
            refresh_interval=settings.refresh_interval,
            maintenance=maintenance,
            maintenance_interval=settings.cache_prune_interval,
        )

    # ── State ────────────────────────────────────────────────────────────────

    @property
    def state(self) -> RefreshState:
        """Copy of the current state."""
        return dataclasses.replace(self._state, errors=list(self._state.errors))

    @property
    def is_refreshing(self) -> bool:
        return self._state.is_refreshing

    @property
    def current_stage(self) -> RefreshStage | None:
        return self._state.current_stage

    @property
    def last_refresh(self) -> datetime | None:
        return self._state.last_refresh

    @property
    def errors(self) -> list[str]:
        return list(self._state.errors)

    @property
    def refresh_interval(self) -> float:
        return self._refresh_interval

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state-changed callback. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Refresh state listener failed: {e}")

    def clear_errors(self) -> None:
        self._state.errors = []
        self._notify()

    # ── Fetchers ─────────────────────────────────────────────────────────────

    def register(self, stage: RefreshStage, label: str, fetcher: Fetcher) -> None:
        """Register a fetcher under a label; the label prefixes its errors."""
        self._fetchers[stage][label] = fetcher
        logger.debug(f"Registered {stage.value} fetcher: {label}")

    def fetchers(self, stage: RefreshStage) -> list[str]:
        return list(self._fetchers[stage])

    # ── Refresh cycles ───────────────────────────────────────────────────────

    async def _run_stage(self, stage: RefreshStage) -> None:
        self._state.current_stage = stage
        self._notify()

        outcomes = await settle_all(self._fetchers[stage])
        stage_errors = []
        for outcome in outcomes:
            if not outcome.ok:
                message = str(outcome.error) or type(outcome.error).__name__
                logger.warning(f"[Refresh:{stage.value}] {outcome.label} failed: {message}")
                stage_errors.append(f"{outcome.label}: {message}")

        if stage_errors:
            self._state.errors = self._state.errors + stage_errors
            self._notify()

    def _begin(self) -> bool:
        if self._state.is_refreshing:
            logger.debug("Refresh already in progress, skipping")
            return False

        self._state.is_refreshing = True
        self._state.errors = []
        self._notify()
        return True

    def _finish(self) -> None:
        self._state.is_refreshing = False
        self._state.current_stage = None
        self._notify()

    def _fail(self, error: Exception) -> None:
        logger.error(f"[Refresh] Failed: {error}")
        self._state.errors = self._state.errors + [str(error) or "Unknown error"]

    async def refresh(self) -> None:
        """Run a full three-stage refresh. No-op while a cycle is running."""
        if not self._begin():
            return

        started = self._clock()
        try:
            await self._run_stage(RefreshStage.CRITICAL)

            secondary_delay = self._stage_delays[RefreshStage.SECONDARY]
            await self._sleep(secondary_delay)
            await self._run_stage(RefreshStage.SECONDARY)

            tertiary_delay = self._stage_delays[RefreshStage.TERTIARY]
            await self._sleep(max(0.0, tertiary_delay - secondary_delay))
            await self._run_stage(RefreshStage.TERTIARY)

            self._state.last_refresh = self._clock()
            elapsed = (self._state.last_refresh - started).total_seconds()
            logger.info(
                f"Refresh completed in {elapsed:.1f}s "
                f"with {len(self._state.errors)} errors"
            )
        except Exception as e:
            self._fail(e)
        finally:
            self._finish()

    async def quick_refresh(self) -> None:
        """Refresh the critical tier only."""
        if not self._begin():
            return

        try:
            await self._run_stage(RefreshStage.CRITICAL)
            self._state.last_refresh = self._clock()
        except Exception as e:
            self._fail(e)
        finally:
            self._finish()

    # ── Auto refresh ─────────────────────────────────────────────────────────

    def start_auto_refresh(self) -> None:
        """
        Start periodic refresh at the configured interval.

        The first refresh runs immediately. Must be called from within a
        running event loop.
        """
        self.stop_auto_refresh()

        self.scheduler.add_job(
            self.refresh,
            trigger="interval",
            seconds=self._refresh_interval,
            id=REFRESH_JOB_ID,
            name="Dashboard Refresh",
            replace_existing=True,
            next_run_time=datetime.now(),
            max_instances=1,
            coalesce=True,
        )

        if self._maintenance is not None:
            self.scheduler.add_job(
                self._run_maintenance,
                trigger="interval",
                seconds=self._maintenance_interval,
                id=MAINTENANCE_JOB_ID,
                name="Cache Maintenance",
                replace_existing=True,
            )

        if not self.scheduler.running:
            self.scheduler.start()

        logger.info(f"Auto refresh started: every {self._refresh_interval}s")

    def stop_auto_refresh(self) -> None:
        """Stop periodic refresh. A cycle already running is not interrupted."""
        stopped = False
        for job_id in (REFRESH_JOB_ID, MAINTENANCE_JOB_ID):
            if self.scheduler.get_job(job_id) is not None:
                self.scheduler.remove_job(job_id)
                stopped = True

        if stopped:
            logger.info("Auto refresh stopped")

    @property
    def is_auto_refreshing(self) -> bool:
        return self.scheduler.get_job(REFRESH_JOB_ID) is not None

    def set_refresh_interval(self, seconds: float) -> None:
        """Change the refresh interval, restarting auto refresh if active."""
        self._refresh_interval = seconds
        if self.is_auto_refreshing:
            self.start_auto_refresh()

    def shutdown(self) -> None:
        """Stop auto refresh and the underlying scheduler."""
        self.stop_auto_refresh()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def _run_maintenance(self) -> None:
        try:
            self._maintenance()
        except Exception as e:
            logger.error(f"Cache maintenance failed: {e}")

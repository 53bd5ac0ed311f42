"""
strategy/scheduler.py - Priority-ordered, rate-limited scan scheduler.

Loop (per worker, one worker by default):
1. Wait for the next pacing slot (request delay, grown by backoff)
2. step(): regenerate if needed, pop the best entry, evaluate, apply outcome
3. Repeat until stop() or the run duration elapses

Queue order: highest priority first, ties broken by oldest last_checked.
Outcome -> priority multiplier:
- profitable       x1.5, opportunity emitted, errors reset
- not profitable   x0.95 (no-route counts here)
- not tradable     asset blacklisted, entry dropped
- other error      x0.8, consecutive errors +1 (backoff above threshold)

Priority per cycle key survives queue regeneration.
"""

import asyncio
import bisect
import inspect
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable

from core.backoff import BackoffPolicy
from core.constants import (
    DEFAULT_PRIORITY,
    MAX_TRACKED_OPPORTUNITIES,
    PRIORITY_ERROR_MULTIPLIER,
    PRIORITY_PROFITABLE_MULTIPLIER,
    PRIORITY_UNPROFITABLE_MULTIPLIER,
    AssetStatus,
)
from core.exceptions import AssetNotTradableError, NoRouteError, QuoteError
from core.logging import get_logger
from core.models import Cycle, Opportunity, QueueEntry
from core.time import now_timestamp
from discovery.registry import AssetRegistry, RegistryRefresher
from discovery.routes import RouteGenerator
from strategy.config import ScannerSettings
from strategy.evaluator import OpportunityEvaluator
from strategy.state_machine import ScanState, ScanStateMachine

logger = get_logger(__name__)

REASON_PROVIDER_REFUSED = "provider_not_tradable"
REASON_UNIDENTIFIED_IN_CYCLE = "not_tradable_unidentified"

# Log the first N consecutive errors, then every Nth
ERROR_LOG_FIRST = 3
ERROR_LOG_EVERY = 10


class StepOutcome(str, Enum):
    PROFITABLE = "profitable"
    UNPROFITABLE = "unprofitable"
    NO_ROUTE = "no_route"
    NOT_TRADABLE = "not_tradable"
    ERROR = "error"
    EMPTY = "empty"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class ScanStats:
    """Periodic scheduler snapshot. Period counters reset after each emission."""
    timestamp: float
    state: str
    queue_size: int
    routes_generated: int
    routes_scanned: int
    opportunities_found: int
    errors: int
    total_scanned: int
    total_opportunities: int
    total_errors: int
    verified_assets: int
    blacklisted_assets: int
    consecutive_errors: int
    current_delay: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class _Counters:
    scanned: int = 0
    opportunities: int = 0
    errors: int = 0


class ScanScheduler:
    """
    Owns the work queue and drives evaluations.

    Args:
        registry: Asset classification (read for candidates, written on errors)
        generator: Builds cycles from registry candidates
        evaluator: Scores one cycle
        source_asset: Start/end asset for every cycle
        amount_in: Input size in source smallest units, or a callable returning it
        max_hops: Deepest cycle tier
        settings: Pacing, backoff and stats cadence
        refresher: Optional background registry refresh used when the registry is stale
        ranking: Callable returning the current asset ranking (best first)
    """

    def __init__(
        self,
        registry: AssetRegistry,
        generator: RouteGenerator,
        evaluator: OpportunityEvaluator,
        source_asset: str,
        amount_in: int | Callable[[], int],
        max_hops: int,
        settings: ScannerSettings | None = None,
        refresher: RegistryRefresher | None = None,
        ranking: Callable[[], list[str]] | None = None,
        clock: Callable[[], float] = now_timestamp,
    ):
        self.registry = registry
        self.generator = generator
        self.evaluator = evaluator
        self.source_asset = source_asset
        self.max_hops = max_hops
        self.settings = settings or ScannerSettings()
        self.refresher = refresher
        self._ranking = ranking or (lambda: [])
        self._amount_in = amount_in if callable(amount_in) else (lambda: amount_in)
        self._clock = clock

        self.backoff = BackoffPolicy(
            base_delay=self.settings.request_delay_seconds,
            multiplier=self.settings.backoff_multiplier,
            max_delay=self.settings.backoff_max_seconds,
            error_threshold=self.settings.backoff_error_threshold,
        )
        self.state_machine = ScanStateMachine()

        self._queue: list[QueueEntry] = []
        self._scores: dict[str, float] = {}
        self._last_checked: dict[str, float] = {}
        self._in_flight: set[str] = set()
        self._generated_version = -1
        self.routes_generated = 0

        self._lock = asyncio.Lock()
        self._pace_lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(self.settings.max_concurrent)
        self._stop_event = asyncio.Event()
        self._next_slot = 0.0
        self._refresh_task: asyncio.Task | None = None

        self._period = _Counters()
        self._totals = _Counters()
        self._best: list[Opportunity] = []

        self._opportunity_listeners: list[Callable[[Opportunity], Any]] = []
        self._stats_listeners: list[Callable[[ScanStats], Any]] = []

    # =========================================================================
    # LISTENERS AND ACCESSORS
    # =========================================================================

    def add_opportunity_listener(self, listener: Callable[[Opportunity], Any]) -> None:
        """Listener may be sync or async; called once per profitable verdict."""
        self._opportunity_listeners.append(listener)

    def add_stats_listener(self, listener: Callable[[ScanStats], Any]) -> None:
        self._stats_listeners.append(listener)

    @property
    def state(self) -> ScanState:
        return self.state_machine.state

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    def queue_snapshot(self) -> list[QueueEntry]:
        return list(self._queue)

    def priority_of(self, cycle: Cycle) -> float:
        return self._scores.get(cycle.key, DEFAULT_PRIORITY)

    def opportunities(self) -> list[Opportunity]:
        """Best opportunities seen, highest net profit % first."""
        return list(self._best)

    def best_opportunity(self) -> Opportunity | None:
        return self._best[0] if self._best else None

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    # =========================================================================
    # QUEUE
    # =========================================================================

    def regenerate(self) -> int:
        """
        Rebuild the queue from the registry.

        Cycles containing blacklisted assets disappear; surviving cycles keep
        their priority and last_checked.
        """
        candidates = self.registry.candidates(self._ranking())
        cycles = self.generator.generate(
            self.source_asset,
            candidates,
            self.max_hops,
            is_blacklisted=self.registry.is_blacklisted,
        )
        queue = [
            QueueEntry(
                cycle=cycle,
                priority=self._scores.get(cycle.key, DEFAULT_PRIORITY),
                last_checked=self._last_checked.get(cycle.key, 0.0),
            )
            for cycle in cycles
        ]
        queue.sort(key=QueueEntry.sort_key)
        self._queue = queue
        self._generated_version = self.registry.version
        self.routes_generated = len(queue)
        return len(queue)

    def _needs_regeneration(self) -> bool:
        return not self._queue or self.registry.version != self._generated_version

    def _pop_next(self) -> QueueEntry | None:
        for index, entry in enumerate(self._queue):
            if entry.cycle.key not in self._in_flight:
                return self._queue.pop(index)
        return None

    def _enqueue(self, entry: QueueEntry) -> None:
        for index, queued in enumerate(self._queue):
            if queued.cycle.key == entry.cycle.key:
                del self._queue[index]
                break
        bisect.insort(self._queue, entry, key=QueueEntry.sort_key)

    def _has_blacklisted(self, cycle: Cycle) -> bool:
        return any(self.registry.is_blacklisted(a) for a in cycle.intermediates)

    def resort(self) -> None:
        self._queue.sort(key=QueueEntry.sort_key)

    # =========================================================================
    # ONE ITERATION
    # =========================================================================

    async def step(self) -> StepOutcome:
        """Pop one cycle, evaluate it, apply the outcome."""
        async with self._lock:
            if self._stop_event.is_set():
                return StepOutcome.STOPPED

            if self._needs_regeneration():
                self.regenerate()

            entry = self._pop_next()
            if entry is None:
                if self._queue:
                    return StepOutcome.BUSY
                self.state_machine.transition_to(ScanState.PAUSED)
                logger.info("No candidate routes, pausing")
                return StepOutcome.EMPTY

            key = entry.cycle.key
            entry.last_checked = self._clock()
            self._last_checked[key] = entry.last_checked
            self._in_flight.add(key)
            self.state_machine.transition_to(ScanState.SCANNING)

        opportunity: Opportunity | None = None
        error: BaseException | None = None
        async with self._semaphore:
            try:
                opportunity = await self.evaluator.evaluate(entry.cycle, self._amount_in())
            except Exception as e:
                error = e

        async with self._lock:
            try:
                outcome = self._apply_outcome(entry, opportunity, error)
            finally:
                self._in_flight.discard(key)
            self.registry.flush()
            if self.state_machine.state != ScanState.STOPPED:
                self.state_machine.transition_to(
                    ScanState.BACKOFF if self.backoff.in_backoff else ScanState.IDLE
                )

        if opportunity is not None:
            await self._emit(self._opportunity_listeners, opportunity)
        return outcome

    def _apply_outcome(
        self,
        entry: QueueEntry,
        opportunity: Opportunity | None,
        error: BaseException | None,
    ) -> StepOutcome:
        cycle = entry.cycle
        self._period.scanned += 1
        self._totals.scanned += 1

        if error is None and opportunity is not None:
            outcome = StepOutcome.PROFITABLE
            multiplier = PRIORITY_PROFITABLE_MULTIPLIER
            self.backoff.record_success()
            self._period.opportunities += 1
            self._totals.opportunities += 1
            self._track(opportunity)
        elif error is None:
            outcome = StepOutcome.UNPROFITABLE
            multiplier = PRIORITY_UNPROFITABLE_MULTIPLIER
            self.backoff.record_success()
        elif isinstance(error, NoRouteError):
            outcome = StepOutcome.NO_ROUTE
            multiplier = PRIORITY_UNPROFITABLE_MULTIPLIER
            self.backoff.record_success()
            logger.debug(f"No route for {cycle.key}: {error}")
        elif isinstance(error, AssetNotTradableError):
            self._period.errors += 1
            self._totals.errors += 1
            self._blacklist_from_error(cycle, error)
            self._scores.pop(cycle.key, None)
            return StepOutcome.NOT_TRADABLE
        else:
            outcome = StepOutcome.ERROR
            multiplier = PRIORITY_ERROR_MULTIPLIER
            self._period.errors += 1
            self._totals.errors += 1
            delay = self.backoff.record_failure()
            self._log_error(cycle, error, delay)

        entry.priority *= multiplier
        self._scores[cycle.key] = entry.priority
        if not self._has_blacklisted(cycle):
            self._enqueue(entry)
        return outcome

    def _blacklist_from_error(self, cycle: Cycle, error: AssetNotTradableError) -> None:
        if error.asset and error.asset != self.source_asset:
            self.registry.mark_blacklisted(error.asset, REASON_PROVIDER_REFUSED)
            return
        logger.warning(
            f"Untradable asset not identified, blacklisting all of {cycle.key}",
            extra={"context": {"error": str(error)}},
        )
        # Offender unknown: every non-source asset of the cycle goes.
        for asset in cycle.intermediates:
            self.registry.mark_blacklisted(asset, REASON_UNIDENTIFIED_IN_CYCLE)

    def _log_error(self, cycle: Cycle, error: BaseException, delay: float) -> None:
        count = self.backoff.consecutive_errors
        context = {
            "route": cycle.key,
            "consecutive_errors": count,
            "delay": round(delay, 2),
        }
        if isinstance(error, QuoteError):
            context["code"] = error.code.value
        message = f"Evaluation failed for {cycle.key}: {error!r}"
        if count <= ERROR_LOG_FIRST or count % ERROR_LOG_EVERY == 0:
            logger.warning(message, extra={"context": context})
        else:
            logger.debug(message, extra={"context": context})
        if count == self.backoff.error_threshold + 1:
            logger.warning(
                f"Sustained provider errors, backing off (delay {delay:.2f}s)",
                extra={"context": self.backoff.to_dict()},
            )

    def _track(self, opportunity: Opportunity) -> None:
        self._best.append(opportunity)
        self._best.sort(key=lambda o: o.net_profit_pct, reverse=True)
        del self._best[MAX_TRACKED_OPPORTUNITIES:]

    async def _emit(self, listeners: list[Callable], payload: Any) -> None:
        for listener in listeners:
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Listener {getattr(listener, '__name__', listener)} failed: {e}", exc_info=True)

    # =========================================================================
    # STATS
    # =========================================================================

    def collect_stats(self, reset: bool = True) -> ScanStats:
        """Re-sort the queue, snapshot counters, optionally reset period counters."""
        self.resort()
        counts = self.registry.counts()
        stats = ScanStats(
            timestamp=self._clock(),
            state=self.state.name,
            queue_size=len(self._queue),
            routes_generated=self.routes_generated,
            routes_scanned=self._period.scanned,
            opportunities_found=self._period.opportunities,
            errors=self._period.errors,
            total_scanned=self._totals.scanned,
            total_opportunities=self._totals.opportunities,
            total_errors=self._totals.errors,
            verified_assets=counts[AssetStatus.VERIFIED.value],
            blacklisted_assets=counts[AssetStatus.BLACKLISTED.value],
            consecutive_errors=self.backoff.consecutive_errors,
            current_delay=round(self.backoff.current_delay, 3),
        )
        if reset:
            self._period = _Counters()
        return stats

    async def emit_stats(self) -> ScanStats:
        async with self._lock:
            stats = self.collect_stats()
            self.registry.flush()
        logger.info(
            f"Scanned {stats.routes_scanned}/{stats.routes_generated} routes, "
            f"{stats.opportunities_found} opportunities, {stats.errors} errors",
            extra={"context": stats.to_dict()},
        )
        self._maybe_refresh_registry()
        await self._emit(self._stats_listeners, stats)
        return stats

    # =========================================================================
    # RUN LOOP
    # =========================================================================

    def _maybe_refresh_registry(self) -> None:
        if self.refresher is None or not self.registry.is_stale():
            return
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        logger.info("Registry is stale, refreshing in background")
        self._refresh_task = asyncio.create_task(self.refresher.run())

    async def _sleep_or_stop(self, seconds: float) -> None:
        """Sleep, returning early if stop() is called."""
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _wait_turn(self) -> None:
        # Global pacing: iteration starts are at least current_delay apart across workers.
        async with self._pace_lock:
            wait = self._next_slot - time.monotonic()
            await self._sleep_or_stop(wait)
            self._next_slot = time.monotonic() + self.backoff.current_delay

    async def _worker(self, worker_id: int) -> None:
        while not self._stop_event.is_set():
            await self._wait_turn()
            if self._stop_event.is_set():
                break
            outcome = await self.step()
            if outcome == StepOutcome.EMPTY:
                await self._sleep_or_stop(self.settings.empty_queue_retry_seconds)
        logger.debug(f"Worker {worker_id} stopped")

    async def _stats_loop(self) -> None:
        while not self._stop_event.is_set():
            await self._sleep_or_stop(self.settings.stats_interval_seconds)
            if self._stop_event.is_set():
                break
            await self.emit_stats()

    def stop(self) -> None:
        """Request a cooperative stop; in-flight evaluations finish first."""
        if not self._stop_event.is_set():
            logger.info("Stop requested")
        self._stop_event.set()

    async def run(self, duration_seconds: float | None = None) -> ScanStats:
        """
        Scan until stop() or the duration elapses.

        A stopped scheduler can be run again; a stop() requested before
        run() starts is cleared.

        Returns:
            Final stats (period counters not reset)
        """
        self._stop_event.clear()
        self.state_machine.reset()
        self._maybe_refresh_registry()

        workers = [
            asyncio.create_task(self._worker(i))
            for i in range(self.settings.max_concurrent)
        ]
        stats_task = asyncio.create_task(self._stats_loop())
        timer: asyncio.TimerHandle | None = None
        if duration_seconds is not None:
            timer = asyncio.get_running_loop().call_later(duration_seconds, self.stop)

        logger.info(
            f"Scheduler started ({self.settings.max_concurrent} worker(s), "
            f"{self.settings.request_delay_seconds:.2f}s request delay)",
            extra={"context": {"source": self.source_asset, "max_hops": self.max_hops}},
        )
        try:
            await asyncio.gather(*workers)
        finally:
            self.stop()
            if timer is not None:
                timer.cancel()
            for task in workers:
                task.cancel()
            await asyncio.gather(stats_task, *workers, return_exceptions=True)
            if self._refresh_task is not None and not self._refresh_task.done():
                self._refresh_task.cancel()
                await asyncio.gather(self._refresh_task, return_exceptions=True)
            self.registry.flush()
            self.state_machine.transition_to(ScanState.STOPPED)

        stats = self.collect_stats(reset=False)
        logger.info(
            f"Scheduler stopped after {stats.total_scanned} routes, "
            f"{stats.total_opportunities} opportunities",
            extra={"context": stats.to_dict()},
        )
        return stats

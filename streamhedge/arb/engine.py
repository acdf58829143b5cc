"""
Stream Swap Engine.

Main orchestrator for the detection-and-trade pipeline.

Flow:
1. Poll: fetch recent swaps from Midgard every block
2. Classify: direction, USD size and duration of each streaming swap
3. Detect: dedup by tx id, apply size/duration thresholds
4. Plan: size against the Kraken book, check liquidity and slippage, enter
5. Exit: close the position shortly before the stream finishes, realize PnL
6. Record: persist and notify on every pipeline event
"""

from typing import Any, Optional

from streamhedge.arb.classifier import SwapClassifier
from streamhedge.arb.detector import OpportunityDetector
from streamhedge.arb.lifecycle import TradeLifecycleManager
from streamhedge.arb.planner import TradePlanner
from streamhedge.arb.poller import ActionPoller, PollResult
from streamhedge.core.config import Settings, TradeConfigService, get_settings
from streamhedge.core.events import EventBus, Topic
from streamhedge.core.logging import LoggerMixin
from streamhedge.domain.events import TradeExitScheduledEvent, ValidOpportunityDetectedEvent
from streamhedge.domain.models import Trade
from streamhedge.providers.kraken import KrakenDepthProvider, KrakenExecutionProvider
from streamhedge.providers.midgard import MidgardProvider
from streamhedge.providers.thornode import ThornodeProvider
from streamhedge.services.scheduler import SchedulerService

POLL_JOB = "poll_actions"


class StreamSwapEngine(LoggerMixin):
    """
    Wires providers, pipeline stages and services together.

    Every collaborator can be injected; anything left out is built from
    settings.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        trade_config: Optional[TradeConfigService] = None,
        bus: Optional[EventBus] = None,
        midgard: Optional[MidgardProvider] = None,
        thornode: Optional[ThornodeProvider] = None,
        depth: Optional[KrakenDepthProvider] = None,
        execution: Optional[KrakenExecutionProvider] = None,
        scheduler: Optional[Any] = None,
        persistence: Optional[Any] = None,
        notifier: Optional[Any] = None,
        commands: Optional[Any] = None,
        use_status_lookup: bool = True,
    ):
        self.settings = settings or get_settings()
        self.trade_config = trade_config or TradeConfigService.from_yaml()
        self.bus = bus or EventBus()

        self.midgard = midgard or MidgardProvider(settings=self.settings)
        self.thornode = thornode
        if self.thornode is None and use_status_lookup:
            self.thornode = ThornodeProvider(settings=self.settings)
        self.depth = depth or KrakenDepthProvider(settings=self.settings)
        self.execution = execution or KrakenExecutionProvider(settings=self.settings, depth=self.depth)
        self.scheduler = scheduler or SchedulerService(settings=self.settings)

        status_lookup = self.thornode.get_transaction_status if self.thornode else None
        self.classifier = SwapClassifier(self.settings, status_lookup=status_lookup)
        self.detector = OpportunityDetector(self.classifier, self.trade_config, self.bus)
        self.poller = ActionPoller(self.midgard, self.detector, self.bus)
        self.lifecycle = TradeLifecycleManager(
            self.execution,
            self.scheduler,
            self.trade_config,
            self.bus,
            pair=self.settings.kraken_pair,
        )
        self.planner = TradePlanner(
            self.depth,
            self.execution,
            self.lifecycle,
            self.trade_config,
            pair=self.settings.kraken_pair,
        )

        self.persistence = persistence
        self.notifier = notifier
        self.commands = commands
        self._running = False
        self._results: dict[str, int] = {"entered": 0, "rejected": 0}
        self._register_listeners()

    def _register_listeners(self) -> None:
        # Recorders first so an opportunity is stored before its trade
        if self.persistence is not None:
            self.persistence.register_listeners(self.bus)
            self.bus.subscribe(Topic.TRADE_EXIT_SCHEDULED, self._persist_scheduled_trade)
        if self.notifier is not None:
            self.notifier.register_listeners(self.bus)
        self.bus.subscribe(Topic.VALID_OPPORTUNITY_DETECTED, self._on_valid_opportunity)

    def _persist_scheduled_trade(self, event: TradeExitScheduledEvent) -> None:
        trade = self.lifecycle.get_trade(event.trade_id)
        if trade is not None:
            self.persistence.save_trade(trade)

    def _on_valid_opportunity(self, event: ValidOpportunityDetectedEvent) -> None:
        result = self.planner.plan(event.opportunity)
        if isinstance(result, Trade):
            self._results["entered"] += 1
        else:
            self._results["rejected"] += 1

    def poll_once(self) -> PollResult:
        """Run a single poll cycle synchronously."""
        return self.poller.poll()

    def start(self) -> None:
        """Schedule polling at block cadence and start the scheduler."""
        if self._running:
            return
        interval = self.settings.poll_interval_seconds
        mode = "DRY RUN" if self.trade_config.current.dry_run else "LIVE"
        self.logger.info(
            f"Starting engine [{mode}]: tracking {self.settings.tracked_asset}, "
            f"trading {self.settings.kraken_pair}, polling every {interval}s"
        )
        self.scheduler.add_interval_job(POLL_JOB, self.poll_once, seconds=interval)
        self.scheduler.start()
        if self.commands is not None:
            self.commands.start()
        self._running = True

    def stop(self) -> None:
        """Stop polling, cancel pending exits and shut the scheduler down."""
        if not self._running:
            return
        self._running = False
        if self.commands is not None:
            self.commands.stop()
        self.scheduler.remove_job(POLL_JOB)
        cancelled = self.lifecycle.shutdown()
        self.scheduler.stop()
        self.logger.info(f"Engine stopped ({cancelled} pending exit(s) cancelled)")

    @property
    def running(self) -> bool:
        return self._running

    def status(self) -> dict[str, Any]:
        config = self.trade_config.current
        return {
            "running": self._running,
            "dry_run": config.dry_run,
            "tracked_asset": self.settings.tracked_asset,
            "pair": self.settings.kraken_pair,
            "polls": self.poller.polls,
            "last_height": self.poller.last_height,
            "detector": dict(self.detector.stats),
            "trades": dict(self._results),
            "active_trades": [t.to_dict() for t in self.lifecycle.active_trades()],
            "thresholds": config.model_dump(),
        }

"""
Telegram notification service.

Sends opportunity and trade notifications to a configured chat.
"""

import asyncio
from typing import Optional

from telegram import Bot
from telegram.error import NetworkError, TimedOut
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from streamhedge.core.config import Settings, get_settings
from streamhedge.core.events import EventBus, Topic
from streamhedge.core.logging import get_logger
from streamhedge.core.timeutil import format_local
from streamhedge.domain.events import (
    TradeExitCompletedEvent,
    TradeExitScheduledEvent,
    TradeFailedEvent,
    ValidOpportunityDetectedEvent,
)

logger = get_logger("telegram")


class TelegramService:
    """
    Pushes pipeline events to one chat.

    Disabled silently when the token or chat id is missing, so a dry run
    needs no bot.
    """

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        enabled: bool = True,
        settings: Optional[Settings] = None,
        max_attempts: int = 3,
    ):
        settings = settings or get_settings()

        self.bot_token = bot_token or settings.telegram_bot_token
        self.chat_id = chat_id or settings.telegram_chat_id
        self.enabled = enabled and settings.telegram_enabled
        self.max_attempts = max_attempts

        if self.enabled and (not self.bot_token or not self.chat_id):
            logger.warning("Telegram enabled but credentials not configured")
            self.enabled = False

    async def send_message_async(self, text: str) -> bool:
        """
        Send message asynchronously.

        Transient network errors are retried; any other failure is logged.

        Returns:
            True if sent successfully
        """
        if not self.enabled:
            logger.debug("Telegram disabled, skipping message")
            return False

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=1, max=8),
                retry=retry_if_exception_type((NetworkError, TimedOut)),
                reraise=True,
            ):
                with attempt:
                    async with Bot(token=self.bot_token) as bot:
                        await bot.send_message(chat_id=self.chat_id, text=text)
            logger.info("Telegram message sent")
            return True

        except Exception as e:
            logger.error(f"Failed to send Telegram message: {e}")
            return False

    def send_message(self, text: str) -> bool:
        """Send message synchronously from a worker thread."""
        if not self.enabled:
            return False
        return asyncio.run(self.send_message_async(text))

    def notify_opportunity(self, event: ValidOpportunityDetectedEvent) -> bool:
        opp = event.opportunity
        text = (
            f"Stream swap {opp.direction.value.upper()}\n"
            f"{opp.input_asset} -> {opp.output_asset}\n"
            f"Input: {opp.input_amount_units:,.4f} {opp.input_asset}\n"
            f"Size: ${opp.size_usd:,.2f}\n"
            f"Duration: ~{opp.estimated_duration_seconds:.0f}s\n"
            f"Tx: {opp.tx_id}"
        )
        return self.send_message(text)

    def notify_exit_scheduled(self, event: TradeExitScheduledEvent) -> bool:
        return self.send_message(
            f"Trade {event.trade_id} entered, exit at {format_local(event.exit_at)}"
        )

    def notify_exit_completed(self, event: TradeExitCompletedEvent) -> bool:
        trade = event.trade
        return self.send_message(
            f"Trade {event.trade_id} closed\n"
            f"Entry: {trade.entry_order.price:.6f}\n"
            f"Exit: {trade.exit_order.price:.6f}\n"
            f"PnL: {event.pnl:+.6f}"
        )

    def notify_failure(self, event: TradeFailedEvent) -> bool:
        suffix = "\nPosition left open on venue" if event.position_open else ""
        return self.send_message(f"Trade {event.trade_id} failed: {event.reason}{suffix}")

    def register_listeners(self, bus: EventBus) -> None:
        if not self.enabled:
            return
        bus.subscribe(Topic.VALID_OPPORTUNITY_DETECTED, self.notify_opportunity)
        bus.subscribe(Topic.TRADE_EXIT_SCHEDULED, self.notify_exit_scheduled)
        bus.subscribe(Topic.TRADE_EXIT_COMPLETED, self.notify_exit_completed)
        bus.subscribe(Topic.TRADE_FAILED, self.notify_failure)


def create_telegram_service(settings: Optional[Settings] = None) -> TelegramService:
    """Create Telegram service from settings."""
    return TelegramService(settings=settings)

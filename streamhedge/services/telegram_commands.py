"""
Telegram commands for adjusting detection thresholds at runtime.

/set_min_size <usd>, /set_min_duration <seconds>, /get_config and /help.
Only the configured chat is answered; every change goes through
TradeConfigService so the detector sees it on its next evaluation.
"""

import asyncio
import math
import threading
from typing import Optional

from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes

from streamhedge.core.config import Settings, TradeConfigService, get_settings
from streamhedge.core.errors import ConfigurationError
from streamhedge.core.logging import get_logger

logger = get_logger("telegram.commands")

HELP_TEXT = (
    "Available commands:\n\n"
    "/set_min_size <amount> - Set minimum opportunity size in USD\n"
    "/set_min_duration <seconds> - Set minimum opportunity duration\n"
    "/get_config - Show current configuration\n"
    "/help - Show this help message"
)


def parse_positive(args: list[str]) -> Optional[float]:
    """First argument as a finite number > 0, else None."""
    if not args:
        return None
    try:
        value = float(args[0])
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


class TelegramCommandService:
    """Long-polls the bot for commands on a background thread."""

    COMMANDS = ("set_min_size", "set_min_duration", "get_config", "help")

    def __init__(
        self,
        trade_config: TradeConfigService,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.trade_config = trade_config
        self.bot_token = bot_token or settings.telegram_bot_token
        self.chat_id = str(chat_id or settings.telegram_chat_id or "")
        self.enabled = bool(settings.telegram_enabled and self.bot_token and self.chat_id)

        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Event] = None

    # ---- command logic (synchronous, returns the reply) ----

    def set_min_size(self, args: list[str]) -> str:
        if not args:
            return "Usage: /set_min_size <amount>\nExample: /set_min_size 5000"
        amount = parse_positive(args)
        if amount is None:
            return "Invalid amount. Please provide a positive number."
        self.trade_config.set_min_opportunity_size(amount)
        return f"Minimum opportunity size set to ${amount:,.2f}"

    def set_min_duration(self, args: list[str]) -> str:
        if not args:
            return "Usage: /set_min_duration <seconds>\nExample: /set_min_duration 60"
        duration = parse_positive(args)
        if duration is None:
            return "Invalid duration. Please provide a positive number."
        self.trade_config.set_min_opportunity_duration(duration)
        return f"Minimum opportunity duration set to {duration:g}s"

    def get_config(self, args: list[str]) -> str:
        config = self.trade_config.current
        return (
            "Current configuration:\n\n"
            f"Min size: ${config.min_opportunity_size_usd:,.2f}\n"
            f"Min duration: {config.min_opportunity_duration_s:g}s\n"
            f"Trade size: ${config.trade_size_usd:,.2f}\n"
            f"Mode: {'DRY RUN' if config.dry_run else 'LIVE'}"
        )

    def help(self, args: list[str]) -> str:
        return HELP_TEXT

    def handle(self, command: str, args: list[str]) -> str:
        """Dispatch one command by name (without the slash)."""
        if command not in self.COMMANDS:
            return f"Unknown command: /{command}\nUse /help to see available commands."
        try:
            return getattr(self, command)(args)
        except ConfigurationError as e:
            logger.error(f"Command /{command} rejected: {e}")
            return f"Error: {e.message}"

    # ---- python-telegram-bot wiring ----

    def is_authorized(self, update: Update) -> bool:
        chat = update.effective_chat
        return chat is not None and str(chat.id) == self.chat_id

    async def _on_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.message is None or not update.message.text:
            return
        if not self.is_authorized(update):
            logger.warning(f"Ignoring command from unauthorized chat {update.effective_chat.id}")
            return
        command = update.message.text.split()[0].lstrip("/").split("@")[0].lower()
        reply = self.handle(command, list(context.args or []))
        logger.info(f"Handled /{command}")
        await update.message.reply_text(reply)

    def build_application(self) -> Application:
        application = Application.builder().token(self.bot_token).build()
        for command in self.COMMANDS:
            application.add_handler(CommandHandler(command, self._on_command))
        return application

    async def _serve(self) -> None:
        self._stop = asyncio.Event()
        application = self.build_application()
        async with application:
            await application.start()
            await application.updater.start_polling(drop_pending_updates=True)
            logger.info("Telegram command listener started")
            await self._stop.wait()
            await application.updater.stop()
            await application.stop()
        logger.info("Telegram command listener stopped")

    def _run(self) -> None:
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._serve())
        except Exception as e:
            logger.error(f"Telegram command listener crashed: {e}", exc_info=True)
        finally:
            self._loop.close()

    def start(self) -> bool:
        """Start listening; False when Telegram is not configured."""
        if not self.enabled:
            logger.debug("Telegram commands disabled")
            return False
        if self._thread is not None and self._thread.is_alive():
            return True
        self._thread = threading.Thread(target=self._run, name="telegram-commands", daemon=True)
        self._thread.start()
        return True

    def stop(self, timeout: float = 10.0) -> None:
        if self._thread is None:
            return
        if self._loop is not None and self._stop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._stop.set)
        self._thread.join(timeout=timeout)
        self._thread = None


def create_telegram_command_service(
    trade_config: TradeConfigService,
    settings: Optional[Settings] = None,
) -> TelegramCommandService:
    return TelegramCommandService(trade_config, settings=settings)

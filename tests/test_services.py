"""Tests for scheduler, persistence and Telegram services."""

import asyncio
import threading
from unittest.mock import AsyncMock, Mock, patch

import pytest

from streamhedge.core.events import Topic
from streamhedge.domain.events import ValidOpportunityDetectedEvent
from streamhedge.domain.models import OrderDetails, OrderSide, Trade, TradeDirection, TradeState
from streamhedge.services.persistence import SQLitePersistence
from streamhedge.services.scheduler import SchedulerService
from streamhedge.services.telegram import TelegramService
from streamhedge.services.telegram_commands import TelegramCommandService


class TestSchedulerService:
    """Tests for SchedulerService."""

    def test_cancel_before_fire(self, settings):
        service = SchedulerService(settings)
        handle = service.schedule(60, lambda: None)

        assert handle.cancel() is True
        assert handle.cancel() is False

    def test_one_shot_fires(self, settings):
        service = SchedulerService(settings)
        fired = threading.Event()
        service.start()
        try:
            service.schedule(0.05, fired.set)
            assert fired.wait(timeout=5)
        finally:
            service.stop()

    def test_interval_job_registered(self, settings):
        service = SchedulerService(settings)
        service.add_interval_job("poll", lambda: None, seconds=6)

        assert [job["name"] for job in service.get_jobs()] == ["poll"]
        assert service.remove_job("poll") is True
        assert service.remove_job("poll") is False


class TestSQLitePersistence:
    """Tests for SQLitePersistence."""

    @pytest.fixture
    def store(self, tmp_path, settings):
        return SQLitePersistence(database_url=f"sqlite:///{tmp_path / 'db.sqlite'}", settings=settings)

    def test_trade_upsert(self, store):
        trade = Trade(id="T1", direction=TradeDirection.LONG, pair="RUJIUSD")
        store.save_trade(trade)

        trade.entry_order = OrderDetails(order_id="e", side=OrderSide.BUY, qty=2, price=1.0)
        trade.fail("exit failed")
        store.save_trade(trade)

        trades = store.list_trades()
        assert len(trades) == 1
        assert trades[0]["state"] == TradeState.FAILED.value
        assert trades[0]["entry_price"] == 1.0
        assert store.get_trade("T1")["error"] == "exit failed"

    def test_opportunity_marked_valid(self, store, make_opportunity):
        opportunity = make_opportunity(tx_id="X")
        store.save_opportunity(opportunity)
        store.save_opportunity(opportunity, valid=True)

        records = store.list_opportunities()
        assert len(records) == 1
        assert records[0]["valid"] is True


class TestTelegramService:
    """Tests for TelegramService."""

    def test_disabled_without_credentials(self, settings):
        service = TelegramService(enabled=True, settings=settings.model_copy(update={"telegram_enabled": True}))
        assert service.enabled is False
        assert service.send_message("hello") is False

    def test_listeners_only_when_enabled(self, settings, bus):
        TelegramService(settings=settings).register_listeners(bus)
        assert bus.listeners(Topic.TRADE_FAILED) == []

    def test_opportunity_message_shows_input_amount(self, settings, make_opportunity):
        service = TelegramService(settings=settings)
        with patch.object(service, "send_message", return_value=True) as send:
            service.notify_opportunity(ValidOpportunityDetectedEvent(opportunity=make_opportunity()))

        text = send.call_args.args[0]
        assert "Input: 1,000.0000 THOR.RUNE" in text
        assert "Size: $5,000.00" in text


class TestTelegramCommandService:
    """Tests for the threshold commands."""

    @pytest.fixture
    def commands(self, trade_config, settings):
        enabled = settings.model_copy(update={
            "telegram_enabled": True,
            "telegram_bot_token": "123:abc",
            "telegram_chat_id": "42",
        })
        return TelegramCommandService(trade_config, settings=enabled)

    def test_set_min_size(self, commands, trade_config):
        reply = commands.handle("set_min_size", ["5000"])

        assert trade_config.current.min_opportunity_size_usd == 5000
        assert "$5,000.00" in reply

    def test_set_min_duration(self, commands, trade_config):
        reply = commands.handle("set_min_duration", ["90"])

        assert trade_config.current.min_opportunity_duration_s == 90
        assert "90s" in reply

    @pytest.mark.parametrize("args", [["-5"], ["0"], ["abc"], ["nan"], ["inf"]])
    def test_rejects_non_positive_values(self, commands, trade_config, args):
        reply = commands.handle("set_min_size", args)

        assert reply.startswith("Invalid amount")
        assert trade_config.current.min_opportunity_size_usd == 100

    def test_usage_without_argument(self, commands):
        assert commands.handle("set_min_duration", []).startswith("Usage: /set_min_duration")

    def test_get_config(self, commands):
        reply = commands.handle("get_config", [])
        assert "Min size: $100.00" in reply
        assert "Min duration: 30s" in reply

    def test_unknown_command(self, commands):
        assert commands.handle("sell_everything", []).startswith("Unknown command: /sell_everything")

    def test_help_lists_commands(self, commands):
        reply = commands.handle("help", [])
        for name in TelegramCommandService.COMMANDS:
            assert f"/{name}" in reply

    def test_only_configured_chat_answered(self, commands, trade_config):
        update = Mock()
        update.effective_chat.id = 7
        update.message.text = "/set_min_size 9000"
        update.message.reply_text = AsyncMock()
        context = Mock(args=["9000"])

        asyncio.run(commands._on_command(update, context))

        assert trade_config.current.min_opportunity_size_usd == 100
        update.message.reply_text.assert_not_called()

    def test_command_update_replies(self, commands, trade_config):
        update = Mock()
        update.effective_chat.id = 42
        update.message.text = "/set_min_size@streamhedge_bot 9000"
        update.message.reply_text = AsyncMock()
        context = Mock(args=["9000"])

        asyncio.run(commands._on_command(update, context))

        assert trade_config.current.min_opportunity_size_usd == 9000
        update.message.reply_text.assert_awaited_once()

    def test_application_registers_handlers(self, commands):
        application = commands.build_application()
        registered = {
            command for handler in application.handlers[0] for command in handler.commands
        }
        assert registered == set(TelegramCommandService.COMMANDS)

    def test_disabled_without_credentials(self, trade_config, settings):
        commands = TelegramCommandService(trade_config, settings=settings)
        assert commands.start() is False

"""
Services module - Cross-cutting capabilities

Contains:
- Scheduling (poll loop and delayed exits)
- Data persistence
- Telegram notifications and threshold commands
"""

from streamhedge.services.persistence import SQLitePersistence, create_persistence_service
from streamhedge.services.scheduler import ScheduledHandle, SchedulerService
from streamhedge.services.telegram import TelegramService, create_telegram_service
from streamhedge.services.telegram_commands import (
    TelegramCommandService,
    create_telegram_command_service,
)

__all__ = [
    "SQLitePersistence",
    "create_persistence_service",
    "ScheduledHandle",
    "SchedulerService",
    "TelegramService",
    "create_telegram_service",
    "TelegramCommandService",
    "create_telegram_command_service",
]

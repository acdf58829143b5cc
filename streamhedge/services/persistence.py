"""
Data persistence service.

Stores opportunities and trades in SQLite (or any SQLAlchemy URL) so runs
can be inspected after the fact.
"""

import json
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import Column, DateTime, Float, Integer, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from streamhedge.core.config import Settings, get_settings
from streamhedge.core.events import EventBus, Topic
from streamhedge.core.logging import get_logger
from streamhedge.core.timeutil import now_utc
from streamhedge.domain.models import Opportunity, Trade

logger = get_logger("persistence")

Base = declarative_base()


class OpportunityRecord(Base):
    """One detected stream swap."""

    __tablename__ = "opportunities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tx_id = Column(String(128), unique=True, nullable=False, index=True)
    detected_at = Column(DateTime, nullable=False)
    direction = Column(String(8), nullable=False)
    input_asset = Column(String(64))
    output_asset = Column(String(64))
    size_usd = Column(Float, default=0.0)
    duration_seconds = Column(Float, default=0.0)
    height = Column(Integer)
    status = Column(String(16))
    valid = Column(Integer, default=0)
    payload_json = Column(Text, nullable=False)


class TradeRecord(Base):
    """Latest state of one trade."""

    __tablename__ = "trades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trade_id = Column(String(128), unique=True, nullable=False, index=True)
    direction = Column(String(8), nullable=False)
    pair = Column(String(32), nullable=False)
    state = Column(String(16), nullable=False)
    entry_price = Column(Float, nullable=True)
    exit_price = Column(Float, nullable=True)
    qty = Column(Float, nullable=True)
    pnl = Column(Float, nullable=True)
    error = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False)
    trade_json = Column(Text, nullable=False)


class SQLitePersistence:
    """SQLAlchemy-backed store for opportunities and trades."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.database_url = database_url or settings.database_url

        # Ensure data directory exists
        if self.database_url.startswith("sqlite:///") and self.database_url != "sqlite:///:memory:":
            db_path = Path(self.database_url.replace("sqlite:///", ""))
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(self.database_url)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine)

        logger.info(f"Initialized persistence: {self.database_url}")

    def save_opportunity(self, opportunity: Opportunity, valid: bool = False) -> None:
        session = self.Session()
        try:
            record = session.query(OpportunityRecord).filter_by(tx_id=opportunity.tx_id).first()
            if record is None:
                record = OpportunityRecord(
                    tx_id=opportunity.tx_id,
                    detected_at=opportunity.detected_at,
                    direction=opportunity.direction.value,
                    input_asset=opportunity.input_asset,
                    output_asset=opportunity.output_asset,
                    size_usd=opportunity.size_usd,
                    duration_seconds=opportunity.estimated_duration_seconds,
                    height=opportunity.height,
                    status=opportunity.status,
                    payload_json=json.dumps(opportunity.to_dict(), default=str),
                )
                session.add(record)
            if valid:
                record.valid = 1
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to save opportunity {opportunity.tx_id}: {e}")
            raise
        finally:
            session.close()

    def save_trade(self, trade: Trade) -> None:
        """Insert or update the trade row."""
        session = self.Session()
        try:
            record = session.query(TradeRecord).filter_by(trade_id=trade.id).first()
            if record is None:
                record = TradeRecord(trade_id=trade.id, direction=trade.direction.value, pair=trade.pair)
                session.add(record)

            record.state = trade.state.value
            record.entry_price = trade.entry_order.price if trade.entry_order else None
            record.exit_price = trade.exit_order.price if trade.exit_order else None
            record.qty = trade.entry_order.qty if trade.entry_order else None
            record.pnl = trade.pnl
            record.error = trade.error
            record.updated_at = now_utc()
            record.trade_json = json.dumps(trade.to_dict(), default=str)

            session.commit()
            logger.debug(f"Saved trade {trade.id} ({trade.state.value})")
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to save trade {trade.id}: {e}")
            raise
        finally:
            session.close()

    def get_trade(self, trade_id: str) -> Optional[dict[str, Any]]:
        session = self.Session()
        try:
            record = session.query(TradeRecord).filter_by(trade_id=trade_id).first()
            return json.loads(record.trade_json) if record else None
        finally:
            session.close()

    def list_trades(self, limit: int = 20) -> list[dict[str, Any]]:
        """Most recently updated trades (summary columns only)."""
        session = self.Session()
        try:
            records = (
                session.query(TradeRecord)
                .order_by(TradeRecord.updated_at.desc())
                .limit(limit)
                .all()
            )
            return [
                {
                    "trade_id": r.trade_id,
                    "direction": r.direction,
                    "pair": r.pair,
                    "state": r.state,
                    "entry_price": r.entry_price,
                    "exit_price": r.exit_price,
                    "qty": r.qty,
                    "pnl": r.pnl,
                    "error": r.error,
                    "updated_at": r.updated_at.isoformat(),
                }
                for r in records
            ]
        finally:
            session.close()

    def list_opportunities(self, limit: int = 20) -> list[dict[str, Any]]:
        session = self.Session()
        try:
            records = (
                session.query(OpportunityRecord)
                .order_by(OpportunityRecord.detected_at.desc())
                .limit(limit)
                .all()
            )
            return [
                {
                    "tx_id": r.tx_id,
                    "detected_at": r.detected_at.isoformat(),
                    "direction": r.direction,
                    "size_usd": r.size_usd,
                    "duration_seconds": r.duration_seconds,
                    "height": r.height,
                    "valid": bool(r.valid),
                }
                for r in records
            ]
        finally:
            session.close()

    def register_listeners(self, bus: EventBus) -> None:
        """Record pipeline events as they are published."""
        bus.subscribe(Topic.STREAMSWAP_DETECTED, lambda e: self.save_opportunity(e.opportunity))
        bus.subscribe(
            Topic.VALID_OPPORTUNITY_DETECTED,
            lambda e: self.save_opportunity(e.opportunity, valid=True),
        )
        bus.subscribe(Topic.TRADE_EXIT_COMPLETED, lambda e: self.save_trade(e.trade))
        bus.subscribe(Topic.TRADE_FAILED, lambda e: self.save_trade(e.trade))


def create_persistence_service(settings: Optional[Settings] = None) -> SQLitePersistence:
    return SQLitePersistence(settings=settings)

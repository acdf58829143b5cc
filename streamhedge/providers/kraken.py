"""
Kraken venue providers.

Uses CCXT for the exchange API.

- KrakenDepthProvider: public order book snapshots and fill simulation
- KrakenExecutionProvider: private endpoints (orders, balance), with a
  dry-run mode that simulates against the live book instead
"""

import time
import uuid
from typing import Any, Callable, Optional

import ccxt

from streamhedge.core.config import Settings
from streamhedge.core.errors import (
    AuthenticationError,
    DataNotAvailableError,
    ExecutionError,
    ProviderError,
    RateLimitError,
)
from streamhedge.domain.models import OrderResult, OrderSide
from streamhedge.domain.orderbook import DepthBook, FillSimulation, simulate_market_fill
from streamhedge.providers.base import BaseProvider, HealthCheckResult, ProviderStatus


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _describe(order: dict[str, Any]) -> str:
    """Kraken's human-readable order text, when the raw payload carries it."""
    descr = (order.get("info") or {}).get("descr")
    return descr.get("order", "") if isinstance(descr, dict) else ""


class KrakenProvider(BaseProvider):
    """Owns the lazily created ``ccxt.kraken`` client and maps its errors."""

    name = "kraken"

    def __init__(self, *args, exchange: Optional[ccxt.kraken] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._exchange = exchange
        if exchange is not None:
            self._initialized = True

    def _exchange_config(self) -> dict[str, Any]:
        return {"enableRateLimit": True, "timeout": self.settings.http_timeout * 1000}

    def _initialize(self) -> None:
        self._exchange = ccxt.kraken(self._exchange_config())
        self.logger.info(f"Kraken client initialized for {self.settings.kraken_pair}")

    @property
    def exchange(self) -> ccxt.kraken:
        self._ensure_initialized()
        return self._exchange

    def _call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run one exchange call, translating CCXT errors.

        Raises:
            DataNotAvailableError: Unknown order
            AuthenticationError: Keys rejected
            RateLimitError: Venue throttled us
            ProviderError: Transport failure (recoverable) or venue error (not)
        """
        try:
            return func(*args, **kwargs)
        except ccxt.OrderNotFound as e:
            raise DataNotAvailableError(f"Kraken {operation}: {e}", provider=self.name) from e
        except ccxt.AuthenticationError as e:
            self.last_error = e
            raise AuthenticationError(f"Kraken {operation}: {e}", provider=self.name) from e
        except ccxt.RateLimitExceeded as e:
            self.last_error = e
            raise RateLimitError(f"Kraken {operation}: {e}", provider=self.name) from e
        except ccxt.NetworkError as e:
            self.last_error = e
            raise ProviderError(f"Kraken {operation}: {e}", provider=self.name, recoverable=True) from e
        except ccxt.BaseError as e:
            self.last_error = e
            raise ProviderError(f"Kraken {operation}: {e}", provider=self.name, recoverable=False) from e

    def healthcheck(self) -> HealthCheckResult:
        started = time.monotonic()
        try:
            status = self._call("fetchStatus", self.exchange.fetch_status) or {}
        except ProviderError as e:
            return HealthCheckResult(status=ProviderStatus.UNAVAILABLE, message=f"Kraken API error: {e}")
        if status.get("status", "ok") != "ok":
            return HealthCheckResult(
                status=ProviderStatus.DEGRADED,
                message=f"Kraken reports status {status.get('status')}",
                details=status,
            )
        return HealthCheckResult(
            status=ProviderStatus.HEALTHY,
            message="Kraken API is responding",
            latency_ms=(time.monotonic() - started) * 1000,
        )


class KrakenDepthProvider(KrakenProvider):
    """Public depth endpoint. No credentials needed."""

    name = "kraken_depth"

    def get_order_book(self, pair: Optional[str] = None, count: Optional[int] = None) -> DepthBook:
        """
        Fetch best-N bids and asks.

        Raises:
            ProviderError: On transport or venue error
            DataNotAvailableError: If a side is empty or malformed
        """
        pair = pair or self.settings.kraken_pair
        count = count or self.settings.kraken_depth_levels

        raw = self._call("fetchOrderBook", self.exchange.fetch_order_book, pair, count)
        try:
            book = DepthBook.from_levels(pair, raw.get("bids") or [], raw.get("asks") or [])
        except (AttributeError, ValueError, TypeError, IndexError) as e:
            raise DataNotAvailableError(f"Malformed depth for {pair}: {e}", provider=self.name) from e

        if not book.bids or not book.asks:
            raise DataNotAvailableError(f"Empty book side for {pair}", provider=self.name)
        return book

    def simulate_market_trade(self, book: DepthBook, side: OrderSide, qty: float) -> FillSimulation:
        return simulate_market_fill(book, side, qty)

    def test_market_trade(self, side: OrderSide, qty: float, pair: Optional[str] = None) -> FillSimulation:
        """Fetch the book and simulate in one go."""
        return self.simulate_market_trade(self.get_order_book(pair), side, qty)


class KrakenExecutionProvider(KrakenProvider):
    """
    Private trading endpoints.

    Live calls are refused locally when no credentials are configured, so
    nothing reaches Kraken unsigned. Dry-run orders walk the public book.
    """

    name = "kraken"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        depth: Optional[KrakenDepthProvider] = None,
        **kwargs,
    ):
        super().__init__(settings=settings, **kwargs)
        self.depth = depth or KrakenDepthProvider(settings=self.settings, http_client=self.http)

    def _exchange_config(self) -> dict[str, Any]:
        return {
            **super()._exchange_config(),
            "apiKey": self.settings.kraken_api_key,
            "secret": self.settings.kraken_private_key,
        }

    def _require_credentials(self, operation: str) -> None:
        if not self.settings.has_kraken_credentials:
            raise AuthenticationError(
                f"Kraken API keys not configured, refusing {operation}", provider=self.name
            )

    def healthcheck(self) -> HealthCheckResult:
        if not self.settings.has_kraken_credentials:
            return HealthCheckResult(
                status=ProviderStatus.DEGRADED,
                message="Kraken credentials not configured, dry-run only",
            )
        started = time.monotonic()
        try:
            self.get_balance()
        except ProviderError as e:
            return HealthCheckResult(
                status=ProviderStatus.UNAVAILABLE,
                message=f"Kraken private API error: {e}",
            )
        return HealthCheckResult(
            status=ProviderStatus.HEALTHY,
            message="Kraken private API accepted credentials",
            latency_ms=(time.monotonic() - started) * 1000,
        )

    def place_market_order(
        self,
        side: OrderSide,
        qty: float,
        dry_run: bool = True,
        pair: Optional[str] = None,
    ) -> OrderResult:
        """
        Place (or simulate) a market order.

        Raises:
            AuthenticationError: Live mode without credentials
            ExecutionError: Venue rejected the order or the book cannot fill all of it
            ProviderError: Transport failure
        """
        pair = pair or self.settings.kraken_pair
        if qty <= 0:
            raise ExecutionError(f"Refusing {side.value} order with qty {qty}", provider=self.name)

        if dry_run:
            self.logger.info(f"[DRY RUN] Placing {side.value} order for {qty:.6f} {pair}")
            simulation = self.depth.test_market_trade(side, qty, pair)
            if not simulation.fully_filled:
                raise ExecutionError(
                    f"[DRY RUN] Book fills only {simulation.filled_qty:.6f} of {side.value} {qty:.6f}",
                    provider=self.name,
                )
            return OrderResult(
                order_id=f"sim_{uuid.uuid4().hex[:12]}",
                side=side,
                qty=simulation.filled_qty,
                status="closed",
                avg_price=simulation.avg_price,
                filled=simulation.filled_qty,
                cost=simulation.total_cost,
                simulated=True,
            )

        self._require_credentials("market order")
        try:
            order = self._call(
                "createOrder", self.exchange.create_market_order, pair, side.value, qty
            )
        except (AuthenticationError, RateLimitError):
            raise
        except ProviderError as e:
            self.logger.error(f"Failed to place market order: {e}")
            raise ExecutionError(str(e), provider=self.name) from e

        if not order or not order.get("id"):
            raise ExecutionError("Kraken createOrder returned no order id", provider=self.name)

        result = self._order_result(order, side, qty)
        self.logger.info(f"Order placed successfully: {result.order_id} - {side.value} {qty:.6f} {pair}")
        return result

    @staticmethod
    def _order_result(order: dict[str, Any], side: OrderSide, qty: float) -> OrderResult:
        filled = _to_float(order.get("filled"))
        cost = _to_float(order.get("cost"))
        avg_price = _to_float(order.get("average"))
        if not avg_price and filled and cost:
            avg_price = cost / filled
        fee = order.get("fee") or {}
        return OrderResult(
            order_id=str(order["id"]),
            side=OrderSide(order.get("side") or side.value),
            qty=_to_float(order.get("amount")) or qty,
            status=order.get("status") or "pending",
            avg_price=avg_price or None,
            description=_describe(order),
            filled=filled,
            cost=cost,
            fee=_to_float(fee.get("cost")),
        )

    def get_order_status(self, order_id: str, pair: Optional[str] = None) -> Optional[OrderResult]:
        """Query one order; None if Kraken does not know it."""
        self._require_credentials("order query")
        try:
            order = self._call(
                "fetchOrder", self.exchange.fetch_order, order_id, pair or self.settings.kraken_pair
            )
        except DataNotAvailableError:
            return None
        if not order:
            return None
        return self._order_result(order, OrderSide(order.get("side") or "buy"), 0.0)

    def cancel_order(self, order_id: str, pair: Optional[str] = None) -> bool:
        """Cancel an open order; False when it is already gone."""
        self._require_credentials("order cancel")
        try:
            self._call(
                "cancelOrder", self.exchange.cancel_order, order_id, pair or self.settings.kraken_pair
            )
        except DataNotAvailableError:
            self.logger.info(f"Order cancel {order_id}: not found")
            return False
        self.logger.info(f"Order cancel {order_id}: cancelled")
        return True

    def get_balance(self) -> dict[str, float]:
        """Total balance per asset, zero balances omitted."""
        self._require_credentials("balance query")
        balance = self._call("fetchBalance", self.exchange.fetch_balance)
        totals = balance.get("total") or {}
        return {asset: float(amount) for asset, amount in totals.items() if amount}

"""
THORNode provider: authoritative transaction status lookup.

Gives a more precise inbound coin amount than the Midgard batch feed.
Optional collaborator: every failure returns None so the classifier falls
back to feed-derived sizing.
"""

from typing import Optional

from streamhedge.core.errors import ProviderError
from streamhedge.domain.models import Coin, TxStatus
from streamhedge.providers.base import BaseProvider, HealthCheckResult, ProviderStatus


class ThornodeProvider(BaseProvider):
    """Point lookups of transaction status by id."""

    name = "thornode"

    @property
    def base_url(self) -> str:
        return self.settings.thornode_api_url.rstrip("/")

    def healthcheck(self) -> HealthCheckResult:
        # a dead node only costs sizing precision
        return self._check_endpoint(
            f"{self.base_url}/thorchain/ping",
            "THORNode API is responding",
            failure_status=ProviderStatus.DEGRADED,
        )

    def get_transaction_status(self, tx_id: str) -> Optional[TxStatus]:
        """
        Fetch /thorchain/tx/status/{tx_id}.

        Returns:
            TxStatus or None when the lookup is unavailable
        """
        return self.cache.get_or_load(f"status:{tx_id}", lambda: self._fetch_status(tx_id))

    def _fetch_status(self, tx_id: str) -> Optional[TxStatus]:
        try:
            response = self._make_request("get", f"{self.base_url}/thorchain/tx/status/{tx_id}")
        except ProviderError as e:
            self.logger.warning(f"THORNode status lookup failed for tx {tx_id}: {e}")
            return None
        if not isinstance(response, dict):
            return None

        tx = response.get("tx") or {}
        coins = tuple(
            coin
            for coin in (Coin.from_dict(c) for c in tx.get("coins") or [])
            if coin
        )
        stages = response.get("stages") or {}
        swap_finalised = (stages.get("swap_finalised") or {}).get("completed")
        return TxStatus(tx_id=tx_id, coins=coins, stage_done=swap_finalised)

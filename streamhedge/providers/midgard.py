"""
Midgard provider: the ledger action source.

Midgard indexes THORChain; /v2/actions returns recent swap actions,
including streaming swaps that are still settling (status "pending").
The same action is returned on consecutive polls until it finalizes.
"""

from typing import Any, Optional

from streamhedge.core.errors import ProviderError
from streamhedge.domain.models import RawAction
from streamhedge.providers.base import BaseProvider, HealthCheckResult


class MidgardProvider(BaseProvider):
    """
    Ledger action feed.

    Never raises on transport failure from the polling path: the periodic
    poll is the retry mechanism.
    """

    name = "midgard"

    @property
    def base_url(self) -> str:
        return self.settings.midgard_api_url.rstrip("/")

    def healthcheck(self) -> HealthCheckResult:
        return self._check_endpoint(f"{self.base_url}/v2/health", "Midgard API is responding")

    def get_recent_actions(
        self,
        limit: Optional[int] = None,
        asset: Optional[str] = None,
    ) -> list[RawAction]:
        """
        Fetch the most recent swap actions.

        Args:
            limit: Page size (defaults to settings.poll_limit)
            asset: Restrict to actions touching this asset. Defaults to the
                tracked asset when settings.filter_by_asset is on.

        Returns:
            Actions ordered ascending by height; same-height actions keep
            their response order. Empty on transport failure.
        """
        params: dict[str, Any] = {
            "limit": str(limit or self.settings.poll_limit),
            "type": "swap",
        }
        if asset is None and self.settings.filter_by_asset:
            asset = self.settings.tracked_asset
        if asset:
            params["asset"] = asset

        try:
            response = self._make_request("get", f"{self.base_url}/v2/actions", params=params)
        except ProviderError as e:
            self.logger.error(f"Failed to fetch recent actions: {e}")
            return []

        actions = self._parse_actions(response)
        # sorted() is stable: same-height siblings stay in response order
        return sorted(actions, key=lambda a: a.height)

    def get_actions_by_tx_id(self, tx_id: str) -> list[RawAction]:
        """Fetch the actions belonging to one transaction id."""
        try:
            response = self._make_request(
                "get",
                f"{self.base_url}/v2/actions",
                params={"txid": tx_id},
            )
        except ProviderError as e:
            self.logger.error(f"Failed to fetch actions for tx {tx_id}: {e}")
            return []
        return self._parse_actions(response)

    def get_pool(self, asset: str) -> Optional[dict[str, Any]]:
        """Fetch pool depth and USD price for an asset."""
        cached = self._get_cached(f"pool:{asset}")
        if cached:
            return cached
        try:
            pool = self._make_request("get", f"{self.base_url}/v2/pool/{asset}")
        except ProviderError as e:
            self.logger.error(f"Failed to fetch pool info for {asset}: {e}")
            return None
        if isinstance(pool, dict):
            self._set_cached(f"pool:{asset}", pool)
            return pool
        return None

    def _parse_actions(self, response: Any) -> list[RawAction]:
        if not isinstance(response, dict):
            self.logger.warning("Unexpected Midgard response shape")
            return []

        actions = []
        for raw in response.get("actions") or []:
            try:
                actions.append(RawAction.from_dict(raw))
            except (ValueError, TypeError, AttributeError) as e:
                self.logger.warning(
                    f"Dropping malformed action at height {raw.get('height') if isinstance(raw, dict) else '?'}: {e}"
                )
        return actions

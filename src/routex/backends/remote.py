"""Remote HTTP price estimator.

Lets a pool or router be quoted by an off-process service while execution
still goes through the deployed backend. Expected endpoints:

    GET {base_url}/quote?pool=&asset_in=&asset_out=&amount=&fee=  -> {"amount_out": "..."}
    GET {base_url}/quote/path?path=<hex>&amount=                   -> {"amount_out": "..."}
"""

import logging
from typing import Optional

import httpx

from routex.backends.base import Estimator
from routex.errors import BackendError

logger = logging.getLogger(__name__)


class RemoteEstimator(Estimator):
    """Estimator backed by an HTTP quote service."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _get(self, endpoint: str, params: dict) -> int:
        url = f"{self.base_url}{endpoint}"
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, headers=self._get_headers())
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params, headers=self._get_headers())
        except httpx.HTTPError as e:
            raise BackendError(f"quote request failed: {type(e).__name__}: {e}")

        if response.status_code != 200:
            raise BackendError(f"quote service returned {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
            return int(data["amount_out"])
        except (ValueError, KeyError, TypeError) as e:
            raise BackendError(f"malformed quote response: {e}")

    async def estimate_single(self, asset_in, asset_out, amount_in, route) -> int:
        logger.debug(f"Remote quote {amount_in} {asset_in} -> {asset_out} via {route.pool}")
        return await self._get(
            "/quote",
            {
                "pool": route.pool,
                "asset_in": asset_in,
                "asset_out": asset_out,
                "amount": str(amount_in),
                "fee": route.fee,
            },
        )

    async def estimate_path(self, path: bytes, amount_in: int) -> int:
        return await self._get("/quote/path", {"path": path.hex(), "amount": str(amount_in)})

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx

from config import get_settings


@dataclass
class GasFeedHttpClient:
    base_url: str
    timeout: float = 5.0
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)

    @classmethod
    def from_settings(cls) -> "GasFeedHttpClient":
        st = get_settings()
        return cls(base_url=(st.GAS_FEED_URL or "").rstrip("/"), timeout=st.ORACLE_TIMEOUT_SEC)

    async def get_gas_multiplier(self, chain: str) -> float:
        """
        Calls the gas price feed:
          GET /gas/{chain}

        Expected response: {"chain": "...", "multiplier": 1.23}
        """
        url = f"{self.base_url}/gas/{(chain or '').strip().lower()}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as cli:
            res = await cli.get(url)
            data = res.json() if res.content else {}
            if res.status_code >= 400:
                raise RuntimeError(data.get("detail") or data.get("message") or f"gas_feed_error_{res.status_code}")

        multiplier = float(data.get("multiplier"))
        if multiplier <= 0:
            raise RuntimeError(f"gas_feed_invalid_multiplier_{multiplier}")
        return multiplier

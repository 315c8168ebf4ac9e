from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx

from config import get_settings


@dataclass
class FXFeedHttpClient:
    base_url: str
    timeout: float = 5.0
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)

    @classmethod
    def from_settings(cls) -> "FXFeedHttpClient":
        st = get_settings()
        return cls(base_url=(st.FX_FEED_URL or "").rstrip("/"), timeout=st.ORACLE_TIMEOUT_SEC)

    async def get_fx_rate(self, pair: str) -> float:
        """
        Calls the FX rate feed:
          GET /rates/{pair}

        Expected response: {"pair": "EURUSD", "rate": 1.0851}
        """
        url = f"{self.base_url}/rates/{(pair or '').strip().upper()}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as cli:
            res = await cli.get(url)
            data = res.json() if res.content else {}
            if res.status_code >= 400:
                raise RuntimeError(data.get("detail") or data.get("message") or f"fx_feed_error_{res.status_code}")

        rate = float(data.get("rate"))
        if rate <= 0:
            raise RuntimeError(f"fx_feed_invalid_rate_{rate}")
        return rate

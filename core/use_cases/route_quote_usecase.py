from __future__ import annotations

from dataclasses import dataclass

from core.domain.schemas.routing_types import TransferRule
from core.services.quote_router import QuoteRouter


@dataclass
class RouteQuoteUseCase:
    router: QuoteRouter

    @classmethod
    def from_settings(cls) -> "RouteQuoteUseCase":
        from adapters.external.runtime import get_quote_router

        return cls(router=get_quote_router())

    async def get_all_quotes(self, rule: TransferRule) -> dict:
        quotes = await self.router.get_all_quotes(rule)
        data = {
            "quotes": [q.model_dump(mode="json") for q in quotes],
            "mode": rule.routing.mode,
        }
        return {"ok": True, "message": "OK", "data": data}

    async def quote_cheapest(self, rule: TransferRule) -> dict:
        quote = await self.router.quote_cheapest(rule)
        return {"ok": True, "message": "OK", "data": quote.model_dump(mode="json")}

    async def select_route(self, rule: TransferRule) -> dict:
        quote = await self.router.select_route(rule)
        return {"ok": True, "message": "OK", "data": quote.model_dump(mode="json")}

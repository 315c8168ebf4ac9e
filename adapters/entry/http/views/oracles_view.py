from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from adapters.entry.http.views.errors import http_error
from core.domain.enums.chain_enums import Asset, Chain
from core.use_cases.oracles_usecase import OraclesUseCase


router = APIRouter(prefix="/oracles", tags=["oracles"])


def get_use_case() -> OraclesUseCase:
    return OraclesUseCase.from_settings()


@router.get("/gas")
async def estimate_gas(
    chain: Optional[Chain] = Query(None, description="Omit to estimate every supported chain"),
    asset: Asset = Query(Asset.USDC),
    use_case: OraclesUseCase = Depends(get_use_case),
):
    try:
        if chain is None:
            return await use_case.estimate_gas_all(asset=asset)
        return await use_case.estimate_gas(chain=chain, asset=asset)
    except Exception as exc:
        raise http_error(exc, "estimate gas") from exc


@router.get("/gas/cache")
async def gas_cache_status(use_case: OraclesUseCase = Depends(get_use_case)):
    return use_case.gas_cache_status()


@router.post("/gas/cache/clear")
async def clear_gas_cache(use_case: OraclesUseCase = Depends(get_use_case)):
    return use_case.clear_gas_cache()


@router.get("/fx")
async def get_fx_rate(
    pair: Optional[str] = Query(None, description='e.g. "EURUSD"; omit for every supported pair'),
    use_case: OraclesUseCase = Depends(get_use_case),
):
    try:
        if pair is None:
            return await use_case.get_fx_rates()
        return await use_case.get_fx_rate(pair=pair)
    except Exception as exc:
        raise http_error(exc, "get fx rate") from exc


@router.get("/fx/batch")
async def get_fx_rates(
    pairs: List[str] = Query(...),
    use_case: OraclesUseCase = Depends(get_use_case),
):
    try:
        return await use_case.get_fx_rates(pairs=pairs)
    except Exception as exc:
        raise http_error(exc, "get fx rates") from exc


@router.get("/fx/pairs")
async def fx_pairs(use_case: OraclesUseCase = Depends(get_use_case)):
    return use_case.supported_pairs()


@router.get("/fx/convert")
async def fx_convert(
    amount: str = Query(...),
    from_currency: str = Query(..., alias="from"),
    to_currency: str = Query(..., alias="to"),
    use_case: OraclesUseCase = Depends(get_use_case),
):
    try:
        return await use_case.convert(amount=amount, from_currency=from_currency, to_currency=to_currency)
    except Exception as exc:
        raise http_error(exc, "convert currency") from exc


@router.get("/fx/movement")
async def fx_movement(
    pair: str = Query(...),
    threshold: str = Query(..., description="Percent, e.g. 0.5"),
    window_hours: int = Query(24, ge=1, le=24 * 7),
    use_case: OraclesUseCase = Depends(get_use_case),
):
    try:
        return await use_case.check_movement(pair=pair, threshold_percent=threshold, window_hours=window_hours)
    except Exception as exc:
        raise http_error(exc, "check rate movement") from exc


@router.get("/fx/volatility")
async def fx_volatility(
    pair: str = Query(...),
    use_case: OraclesUseCase = Depends(get_use_case),
):
    try:
        return await use_case.get_volatility(pair=pair)
    except Exception as exc:
        raise http_error(exc, "get volatility") from exc


@router.get("/fx/cache")
async def fx_cache_status(use_case: OraclesUseCase = Depends(get_use_case)):
    return use_case.fx_cache_status()

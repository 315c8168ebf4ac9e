from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import Response

from adapters.entry.http.dtos.provider_dtos import CreateTransferRequest, CreateUserRequest, CreateWalletRequest
from adapters.entry.http.idempotency import run_idempotent
from adapters.entry.http.views.errors import http_error
from adapters.external.runtime import get_idempotency_service
from core.domain.enums.chain_enums import Chain
from core.services.idempotency_service import IdempotencyService
from core.use_cases.provider_usecase import ProviderUseCase


router = APIRouter(prefix="/provider", tags=["provider"])


def get_use_case() -> ProviderUseCase:
    return ProviderUseCase.from_settings()


@router.post("/users", status_code=201)
async def create_user(
    body: CreateUserRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    use_case: ProviderUseCase = Depends(get_use_case),
    idempotency: IdempotencyService = Depends(get_idempotency_service),
) -> Response:
    try:
        return await run_idempotent(
            idempotency, idempotency_key, lambda: use_case.create_user(email=body.email), status_code=201
        )
    except Exception as exc:
        raise http_error(exc, "create user") from exc


@router.get("/users/{user_id}")
async def get_user(user_id: str, use_case: ProviderUseCase = Depends(get_use_case)):
    try:
        return await use_case.get_user(user_id=user_id)
    except Exception as exc:
        raise http_error(exc, "get user") from exc


@router.post("/wallets", status_code=201)
async def create_wallet(
    body: CreateWalletRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    use_case: ProviderUseCase = Depends(get_use_case),
    idempotency: IdempotencyService = Depends(get_idempotency_service),
) -> Response:
    try:
        return await run_idempotent(
            idempotency,
            idempotency_key,
            lambda: use_case.create_wallet(user_id=body.user_id, chain=body.chain),
            status_code=201,
        )
    except Exception as exc:
        raise http_error(exc, "create wallet") from exc


@router.get("/wallets")
async def list_wallets(
    user_id: str = Query(...),
    use_case: ProviderUseCase = Depends(get_use_case),
):
    try:
        return await use_case.list_wallets(user_id=user_id)
    except Exception as exc:
        raise http_error(exc, "list wallets") from exc


@router.get("/wallets/{wallet_id}")
async def get_wallet(wallet_id: str, use_case: ProviderUseCase = Depends(get_use_case)):
    try:
        return await use_case.get_wallet(wallet_id=wallet_id)
    except Exception as exc:
        raise http_error(exc, "get wallet") from exc


@router.post("/transfers", status_code=201)
async def create_transfer(
    body: CreateTransferRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    use_case: ProviderUseCase = Depends(get_use_case),
    idempotency: IdempotencyService = Depends(get_idempotency_service),
) -> Response:
    try:
        return await run_idempotent(
            idempotency,
            idempotency_key,
            lambda: use_case.initiate_transfer(
                wallet_id=body.wallet_id,
                destination_address=body.destination_address,
                amount=body.amount,
                chain=body.chain,
                idempotency_key=idempotency_key or "",
            ),
            status_code=201,
        )
    except Exception as exc:
        raise http_error(exc, "create transfer") from exc


@router.get("/transfers/estimate")
async def estimate_transfer_time(
    chain: Chain = Query(...),
    destination_chain: Optional[Chain] = Query(None),
    use_case: ProviderUseCase = Depends(get_use_case),
):
    return use_case.estimate_transfer_time(chain=chain, destination_chain=destination_chain)


@router.get("/transfers/{transfer_id}")
async def get_transfer(transfer_id: str, use_case: ProviderUseCase = Depends(get_use_case)):
    try:
        return await use_case.get_transfer(transfer_id=transfer_id)
    except Exception as exc:
        raise http_error(exc, "get transfer") from exc


@router.post("/transfers/{transfer_id}/cancel")
async def cancel_transfer(transfer_id: str, use_case: ProviderUseCase = Depends(get_use_case)):
    try:
        return await use_case.cancel_transfer(transfer_id=transfer_id)
    except Exception as exc:
        raise http_error(exc, "cancel transfer") from exc

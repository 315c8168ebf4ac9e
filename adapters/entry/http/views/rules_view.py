from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import Response

from adapters.entry.http.dtos.rules_dtos import ExecuteRuleRequest
from adapters.entry.http.idempotency import run_idempotent
from adapters.entry.http.views.errors import http_error
from adapters.external.runtime import get_idempotency_service
from core.domain.schemas.routing_types import TransferRule
from core.services.idempotency_service import IdempotencyService
from core.use_cases.execute_rule_usecase import ExecuteRuleUseCase
from core.use_cases.route_quote_usecase import RouteQuoteUseCase


router = APIRouter(prefix="/rules", tags=["rules"])


def get_quote_use_case() -> RouteQuoteUseCase:
    return RouteQuoteUseCase.from_settings()


def get_execute_use_case() -> ExecuteRuleUseCase:
    return ExecuteRuleUseCase.from_settings()


@router.post("/route-quote")
async def route_quote(
    rule: TransferRule,
    use_case: RouteQuoteUseCase = Depends(get_quote_use_case),
):
    try:
        return await use_case.get_all_quotes(rule)
    except Exception as exc:
        raise http_error(exc, "get route quotes") from exc


@router.post("/route-quote/cheapest")
async def route_quote_cheapest(
    rule: TransferRule,
    use_case: RouteQuoteUseCase = Depends(get_quote_use_case),
):
    try:
        return await use_case.quote_cheapest(rule)
    except Exception as exc:
        raise http_error(exc, "get cheapest route") from exc


@router.post("/route-quote/select")
async def route_quote_select(
    rule: TransferRule,
    use_case: RouteQuoteUseCase = Depends(get_quote_use_case),
):
    try:
        return await use_case.select_route(rule)
    except Exception as exc:
        raise http_error(exc, "select route") from exc


@router.post("/execute")
async def execute_rule(
    body: ExecuteRuleRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    use_case: ExecuteRuleUseCase = Depends(get_execute_use_case),
    idempotency: IdempotencyService = Depends(get_idempotency_service),
) -> Response:
    try:
        return await run_idempotent(
            idempotency,
            idempotency_key,
            lambda: use_case.execute(
                rule=body.rule,
                user_id=body.user_id,
                rule_id=body.rule_id,
                idempotency_key=idempotency_key or "",
                confirmed=body.confirmed,
                triggered_by=body.triggered_by,
            ),
        )
    except Exception as exc:
        raise http_error(exc, "execute rule") from exc


@router.get("/executions")
async def list_executions(
    user_id: str = Query(...),
    limit: int = Query(50, ge=1, le=500),
    use_case: ExecuteRuleUseCase = Depends(get_execute_use_case),
):
    try:
        return use_case.list_executions(user_id=user_id, limit=limit)
    except Exception as exc:
        raise http_error(exc, "list executions") from exc


@router.get("/executions/{execution_id}")
async def get_execution(
    execution_id: str,
    use_case: ExecuteRuleUseCase = Depends(get_execute_use_case),
):
    try:
        return use_case.get_execution(execution_id=execution_id)
    except Exception as exc:
        raise http_error(exc, "get execution") from exc

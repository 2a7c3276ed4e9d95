from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from docshare.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docshare.apps.api.response import SuccessEnvelope, success_response
from docshare.services.telemetry import external_call_summary, get_counters

router = APIRouter(tags=["health"], responses=DEFAULT_ERROR_RESPONSES)


class HealthResponse(BaseModel):
    status: str


class MetricsResponse(BaseModel):
    counters: dict[str, int]
    external_calls: dict[str, dict[str, float]]


@router.get("/health", response_model=SuccessEnvelope[HealthResponse])
async def health(request: Request) -> dict:
    return success_response(request=request, data=HealthResponse(status="ok"))


@router.get("/metrics", response_model=SuccessEnvelope[MetricsResponse])
async def metrics(request: Request) -> dict:
    # In-process counters only; reset on restart.
    payload = MetricsResponse(counters=get_counters(), external_calls=external_call_summary(300))
    return success_response(request=request, data=payload)

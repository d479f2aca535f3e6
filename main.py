from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Header
from pydantic import BaseModel, Field

from auditlens import config
from auditlens.engine.errors import AuditDataError
from auditlens.engine.report import (
    build_audit_overview,
    build_comparison_response,
    build_evolution_response,
    recalculate_patterns,
)
from auditlens.logging_config import configure_logging

configure_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)


class AuditRecord(BaseModel):
    id: str
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    total_pages: int = 0
    processed_pages: int = 0
    broken_pages_count: int = 0
    summary: Optional[dict[str, Any]] = None
    health_score: Optional[float] = None


class ViolationRecord(BaseModel):
    rule_id: str
    fingerprint: Optional[str] = None
    impact: Optional[str] = None
    unique_elements: list[dict[str, Any]] = Field(default_factory=list)
    occurrences: Optional[int] = None
    page_count: Optional[int] = None
    affected_pages: list[str] = Field(default_factory=list)
    wcag_criteria: list[str] = Field(default_factory=list)
    emag_recommendations: list[str] = Field(default_factory=list)
    help: Optional[str] = None
    description: Optional[str] = None
    ai_suggestion: Optional[str] = None


class AuditBundle(BaseModel):
    audit: AuditRecord
    violations: list[ViolationRecord] = Field(default_factory=list)


class ComparisonRequest(BaseModel):
    current: AuditBundle
    previous: Optional[AuditBundle] = None
    available_audits: list[AuditRecord] = Field(default_factory=list)


class EvolutionRequest(BaseModel):
    audits: list[AuditRecord] = Field(default_factory=list)
    period: Optional[str] = None
    limit: int = Field(default=20, ge=1)


class OverviewRequest(AuditBundle):
    wcag_levels: list[str] = Field(default_factory=lambda: ["A", "AA"])


class RecalculateRequest(AuditBundle):
    use_xpath: bool = False


API_TOKEN = config.API_TOKEN


def _validate_api_token(x_api_token: str | None) -> None:
    if not API_TOKEN:
        raise HTTPException(
            status_code=500,
            detail="server misconfigured: API_TOKEN is missing",
        )
    if x_api_token != API_TOKEN:
        raise HTTPException(status_code=401, detail="invalid api token")


def _violations(bundle: AuditBundle) -> list[dict]:
    return [violation.model_dump() for violation in bundle.violations]


def _unable_to_compute(exc: AuditDataError, endpoint: str) -> HTTPException:
    logger.warning("[%s] rejected audit data: %s", endpoint, exc)
    return HTTPException(status_code=422, detail="unable to compute report")


app = FastAPI(
    title="Audit Analytics API",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)


@app.get("/health")
def health() -> dict:
    return {"ok": True}


@app.post("/audits/comparison")
def comparison(
    request: ComparisonRequest,
    x_api_token: str | None = Header(default=None, alias="X-API-Token"),
) -> dict:
    _validate_api_token(x_api_token)
    previous = request.previous
    try:
        return build_comparison_response(
            request.current.audit.model_dump(),
            _violations(request.current),
            previous.audit.model_dump() if previous else None,
            _violations(previous) if previous else None,
            [audit.model_dump() for audit in request.available_audits],
        )
    except AuditDataError as exc:
        raise _unable_to_compute(exc, "comparison") from exc


@app.post("/projects/evolution")
def evolution(
    request: EvolutionRequest,
    x_api_token: str | None = Header(default=None, alias="X-API-Token"),
) -> dict:
    _validate_api_token(x_api_token)
    try:
        return build_evolution_response(
            [audit.model_dump() for audit in request.audits],
            period=request.period or config.EVOLUTION_DEFAULT_PERIOD,
            limit=min(request.limit, config.EVOLUTION_MAX_LIMIT),
        )
    except AuditDataError as exc:
        raise _unable_to_compute(exc, "evolution") from exc


@app.post("/audits/overview")
def overview(
    request: OverviewRequest,
    x_api_token: str | None = Header(default=None, alias="X-API-Token"),
) -> dict:
    _validate_api_token(x_api_token)
    try:
        return build_audit_overview(request.audit.model_dump(), _violations(request), request.wcag_levels)
    except AuditDataError as exc:
        raise _unable_to_compute(exc, "overview") from exc


@app.post("/audits/recalculate-patterns")
def recalculate(
    request: RecalculateRequest,
    x_api_token: str | None = Header(default=None, alias="X-API-Token"),
) -> dict:
    _validate_api_token(x_api_token)
    try:
        result = recalculate_patterns(request.audit.model_dump(), _violations(request), request.use_xpath)
    except AuditDataError as exc:
        raise _unable_to_compute(exc, "recalculate-patterns") from exc
    return {"success": True, **result}

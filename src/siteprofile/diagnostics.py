"""Configuration diagnostics for the analysis pipeline.

``run_diagnostics`` inspects settings only. ``diagnose`` adds the live checks
that need a running AppState: a test completion against the LLM endpoint and
the caller's remaining analysis quota.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from siteprofile.cache_manager import check_cache_health

if TYPE_CHECKING:
    from siteprofile.cache_manager import AnalysisCacheManager
    from siteprofile.config import Settings
    from siteprofile.state import AppState

log = structlog.get_logger()

FULLY_CONFIGURED = "Website analysis is fully configured"


class DiagnosticsStatus(BaseModel):
    llm_configured: bool
    analysis_enabled: bool
    allow_list_configured: bool
    cache_healthy: bool | None = None
    llm_reachable: bool | None = None  # None when not checked


class DiagnosticsReport(BaseModel):
    model: str
    has_organization: bool
    allowed_domains: list[str]
    status: DiagnosticsStatus
    recommendations: list[str]
    remaining_analyses: int | None = None

    @property
    def ok(self) -> bool:
        s = self.status
        return (
            s.llm_configured
            and s.analysis_enabled
            and s.allow_list_configured
            and s.llm_reachable is not False
        )


def run_diagnostics(
    settings: Settings,
    caches: AnalysisCacheManager | None = None,
    *,
    llm_reachable: bool | None = None,
    remaining_analyses: int | None = None,
) -> DiagnosticsReport:
    recommendations: list[str] = []

    api_key = settings.llm.api_key.get_secret_value().strip() if settings.llm.api_key else ""
    llm_configured = bool(api_key)
    if not llm_configured:
        recommendations.append("Set SITEPROFILE__LLM__API_KEY to a valid API key")
    elif llm_reachable is False:
        recommendations.append(
            "The LLM endpoint did not answer a test completion; check llm.api_key and llm.base_url"
        )

    analysis_enabled = settings.rate_limit.enabled
    if not analysis_enabled:
        recommendations.append(
            "Rate limiting is disabled; set SITEPROFILE__RATE_LIMIT__ENABLED=true for shared deployments"
        )

    allow_list_configured = bool(settings.security.allowed_domains)
    if not allow_list_configured:
        recommendations.append(
            "security.allowed_domains is empty, so every URL will be rejected; add domain patterns"
        )

    cache_healthy = None
    if caches is not None:
        health = check_cache_health(caches.metrics())
        cache_healthy = health.is_healthy
        recommendations.extend(health.recommendations)

    status = DiagnosticsStatus(
        llm_configured=llm_configured,
        analysis_enabled=analysis_enabled,
        allow_list_configured=allow_list_configured,
        cache_healthy=cache_healthy,
        llm_reachable=llm_reachable,
    )
    report = DiagnosticsReport(
        model=settings.llm.model,
        has_organization=bool(settings.llm.organization_id),
        allowed_domains=list(settings.security.allowed_domains),
        status=status,
        recommendations=recommendations,
        remaining_analyses=remaining_analyses,
    )
    if report.ok and not recommendations:
        return report.model_copy(update={"recommendations": [FULLY_CONFIGURED]})
    return report


async def diagnose(state: AppState, caller_id: str | None = None) -> DiagnosticsReport:
    """Run the configuration checks plus the live LLM and quota checks."""
    llm_reachable = await state.analyzer.test_connection()

    remaining = None
    if (
        caller_id is not None
        and state.rate_limiter is not None
        and state.settings.rate_limit.enabled
    ):
        remaining = state.rate_limiter.check(caller_id).remaining

    report = run_diagnostics(
        state.settings,
        state.caches,
        llm_reachable=llm_reachable,
        remaining_analyses=remaining,
    )
    log.info(
        "diagnostics_complete",
        ok=report.ok,
        llm_reachable=llm_reachable,
        recommendations=len(report.recommendations),
    )
    return report

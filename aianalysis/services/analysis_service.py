"""
Analysis Service
================

Request boundary over the service manager, shared by the CLI and any web
front end. Validates plain payloads, calls the manager and returns
JSON-ready dictionaries.

Operations:
- analyze: single analysis with optional preferred service
- health / metrics: per-service or all-service status
- services: enabled service listing
- update_config: hot reload of routing configuration
- compare: the same content analyzed by several services concurrently
"""

import asyncio
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Tuple

from ..ai.service_manager import AIServiceManager
from ..utils.exceptions import (
    AIAnalysisError,
    UnsupportedServiceTypeError,
    get_user_friendly_message,
    handle_exception,
    is_retryable_error,
)
from ..utils.logging import PerformanceLogger, get_logger_for_component
from ..utils.validators import AnalysisRequestValidator


logger = get_logger_for_component("analysis_service")


@dataclass
class ComparisonSummary:
    """Outcome counts of a comparison run."""
    total_services: int
    successful_services: int
    failed_services: int


@dataclass
class ComparisonResult:
    """Per-service results of a comparison run."""
    total_services: int = 0
    results: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def summary(self) -> ComparisonSummary:
        return ComparisonSummary(
            total_services=self.total_services,
            successful_services=len(self.results),
            failed_services=len(self.errors),
        )


class AnalysisService:
    """
    Framework-neutral request handlers for the analysis API.

    Every handler raises ``ValidationError`` for malformed input; use
    ``error_response`` to turn any raised exception into a status and body.
    """

    def __init__(self, manager: AIServiceManager):
        self.manager = manager
        self.logger = get_logger_for_component("analysis_service")

    async def _ensure_initialized(self) -> None:
        if self.manager.is_initialized:
            return
        try:
            await self.manager.initialize()
        except UnsupportedServiceTypeError as e:
            self.logger.warning(f"Some AI services are unavailable: {e}")

    async def analyze(
        self,
        content: Any,
        content_type: Any,
        preferred_service: Any = None,
    ) -> Dict[str, Any]:
        """Analyze content through the fallback chain."""
        content = AnalysisRequestValidator.validate_content(content)
        content_type = AnalysisRequestValidator.validate_content_type(content_type)
        preferred = AnalysisRequestValidator.validate_optional_service(preferred_service)

        await self._ensure_initialized()
        response = await self.manager.analyze_content(content, content_type, preferred)
        return response.to_dict()

    async def health(self, service: Any = None) -> Dict[str, Any]:
        await self._ensure_initialized()

        if service is not None:
            service_id = AnalysisRequestValidator.validate_service_type(service)
            healthy = await self.manager.get_service_health(service_id)
            return {"success": True, "health": healthy}

        all_health = await self.manager.get_service_health()
        return {"success": True, "health": {sid.value: ok for sid, ok in all_health.items()}}

    async def metrics(self, service: Any = None) -> Dict[str, Any]:
        await self._ensure_initialized()

        if service is not None:
            service_id = AnalysisRequestValidator.validate_service_type(service)
            metrics = await self.manager.get_service_metrics(service_id)
            return {"success": True, "metrics": metrics.to_dict()}

        all_metrics = await self.manager.get_service_metrics()
        return {
            "success": True,
            "metrics": {sid.value: m.to_dict() for sid, m in all_metrics.items()},
        }

    async def services(self) -> Dict[str, Any]:
        await self._ensure_initialized()
        enabled = [s.value for s in await self.manager.get_enabled_services()]
        return {"success": True, "enabled_services": enabled, "count": len(enabled)}

    async def update_config(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Apply routing configuration changes.

        Args:
            payload: Any of ``enabled_services``, ``fallback_order``,
                ``default_service`` and ``circuit_breaker_options``
        """
        updates: Dict[str, Any] = {}

        for key in ("enabled_services", "fallback_order"):
            if key in payload:
                updates[key] = AnalysisRequestValidator.validate_service_list(
                    payload[key], key, allow_empty=True
                )
        if "default_service" in payload:
            updates["default_service"] = AnalysisRequestValidator.validate_service_type(
                payload["default_service"], "default_service"
            )
        if "circuit_breaker_options" in payload:
            updates["circuit_breaker_options"] = payload["circuit_breaker_options"]

        await self._ensure_initialized()
        await self.manager.update_configuration(updates)

        enabled = [s.value for s in await self.manager.get_enabled_services()]
        return {
            "success": True,
            "message": "Configuration updated successfully",
            "enabled_services": enabled,
        }

    async def compare(self, content: Any, content_type: Any, services: Any) -> Dict[str, Any]:
        """Analyze the same content with each requested service as the preferred one."""
        content = AnalysisRequestValidator.validate_content(content)
        content_type = AnalysisRequestValidator.validate_content_type(content_type)
        service_ids = AnalysisRequestValidator.validate_service_list(services)

        await self._ensure_initialized()

        with PerformanceLogger(self.logger, "comparison", services=[s.value for s in service_ids]):
            outcomes = await asyncio.gather(
                *(self.manager.analyze_content(content, content_type, sid) for sid in service_ids),
                return_exceptions=True,
            )

        comparison = ComparisonResult(total_services=len(service_ids))
        for service_id, outcome in zip(service_ids, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                comparison.errors[service_id.value] = str(outcome)
            else:
                comparison.results[service_id.value] = outcome.to_dict()

        body: Dict[str, Any] = {
            "success": True,
            "results": comparison.results,
            "comparison": asdict(comparison.summary()),
        }
        if comparison.errors:
            body["errors"] = comparison.errors
        return body

    async def shutdown(self) -> None:
        await self.manager.cleanup()


def error_response(exc: Exception) -> Tuple[int, Dict[str, Any]]:
    """Map an exception onto an HTTP-style status and error body.

    Exceptions outside the ``AIAnalysisError`` hierarchy are logged and
    reported as a 500 without their details.
    """
    if isinstance(exc, AIAnalysisError):
        return exc.status_code, _error_body(exc, exc.message)

    error = handle_exception(exc, logger, "request")
    return 500, _error_body(error, "Internal server error")


def _error_body(error: AIAnalysisError, message: str) -> Dict[str, Any]:
    return {
        "success": False,
        "error": message,
        "error_code": error.error_code.value if error.error_code else None,
        "message": get_user_friendly_message(error),
        "retryable": is_retryable_error(error),
    }

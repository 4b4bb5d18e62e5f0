"""
Base AI Provider Interface
=========================

Abstract base class and data models shared by every provider adapter.
Concrete providers only implement ``_complete``; prompt construction, reply
parsing, validation, timing and local metrics live here.
"""

import re
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from ...config.settings import AIServiceType, ProviderConfig
from ...utils.exceptions import ProviderError, ErrorCode
from ...utils.logging import get_logger_for_component


@dataclass
class AnalysisMetadata:
    """Provenance and extracted details of an analysis."""
    service_id: str
    model: str
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    reasoning: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    sentiment_score: Optional[float] = None
    complexity: Optional[str] = None


@dataclass
class AnalysisResponse:
    """Result of one provider analysis."""
    success: bool
    content: str
    confidence: float      # 0.0 to 1.0
    processing_time: int   # milliseconds
    metadata: AnalysisMetadata
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ServiceMetrics:
    """Request counters for one service."""
    service_id: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time: float = 0.0  # milliseconds
    last_request_time: Optional[datetime] = None
    is_healthy: bool = True
    circuit_breaker_state: Optional[str] = None

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 1.0
        return self.successful_requests / self.total_requests

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_request_time"] = (
            self.last_request_time.isoformat() if self.last_request_time else None
        )
        data["success_rate"] = round(self.success_rate, 3)
        return data


@dataclass
class ParsedAnalysis:
    """Fields extracted from a structured model reply."""
    content: str
    confidence: float = 0.85
    reasoning: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    sentiment_score: Optional[float] = None
    complexity: Optional[str] = None


@dataclass
class Completion:
    """Raw text returned by a provider SDK."""
    text: str
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None


_SECTION_PATTERN = r"{name}:\s*(.*?)(?=\n[A-Z]+:|\Z)"


class AIProvider(ABC):
    """Abstract base class for AI provider implementations."""

    DEFAULT_MODEL: str = ""
    DISPLAY_NAME: str = ""
    SYSTEM_PROMPT = (
        "You are an expert educational content analyst. Provide detailed, constructive "
        "analysis focused on learning outcomes, clarity, and educational value."
    )
    HEALTH_CHECK_CONTENT = "This is a test message for health check."

    def __init__(self, config: ProviderConfig, service_type: AIServiceType):
        """Initialize AI provider.

        Args:
            config: Provider connection settings
            service_type: Kind of provider
        """
        self.config = config
        self.service_id = service_type
        self.model_name = config.model or self.DEFAULT_MODEL
        self.logger = get_logger_for_component("provider", service_id=service_type.value)

        self._metrics = ServiceMetrics(service_id=service_type.value)
        self._metrics_lock = threading.Lock()

    @abstractmethod
    async def _complete(self, system_prompt: str, prompt: str) -> Completion:
        """Send one prompt to the provider.

        Raises:
            ProviderError: If the provider call fails
        """

    async def analyze(self, content: str, content_type: str) -> AnalysisResponse:
        """Analyze content.

        Args:
            content: Content to analyze
            content_type: MIME-like content type, e.g. ``text/plain``

        Returns:
            Successful AnalysisResponse

        Raises:
            ProviderError: On any non-success condition
        """
        start_time = time.monotonic()

        try:
            self._validate_content(content, content_type)
            prompt = self._build_analysis_prompt(
                self._extract_text(content, content_type), content_type
            )
            completion = await self._complete(self.SYSTEM_PROMPT, prompt)

            if not completion.text or not completion.text.strip():
                raise ProviderError(
                    f"{self.service_id.value} returned an empty response",
                    service_id=self.service_id.value,
                    error_code=ErrorCode.AI_INVALID_RESPONSE,
                )

            parsed = self._parse_analysis_response(completion.text)

        except ProviderError:
            self._update_metrics(False, self._elapsed_ms(start_time))
            raise
        except Exception as e:
            self._update_metrics(False, self._elapsed_ms(start_time))
            raise ProviderError(
                f"{self.service_id.value} request failed: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_API_ERROR,
            ) from e

        processing_time = self._elapsed_ms(start_time)
        self._update_metrics(True, processing_time)

        return AnalysisResponse(
            success=True,
            content=parsed.content,
            confidence=parsed.confidence,
            processing_time=processing_time,
            metadata=AnalysisMetadata(
                service_id=self.service_id.value,
                model=self.model_name,
                input_tokens=completion.input_tokens,
                output_tokens=completion.output_tokens,
                reasoning=parsed.reasoning,
                suggestions=parsed.suggestions,
                categories=parsed.categories,
                sentiment_score=parsed.sentiment_score,
                complexity=parsed.complexity,
            ),
        )

    async def health_check(self) -> bool:
        """Cheap liveness check. Never raises."""
        try:
            response = await self.analyze(self.HEALTH_CHECK_CONTENT, "text/plain")
            return response.success
        except Exception as e:
            self.logger.warning(f"Health check failed: {e}")
            return False

    def get_metrics(self) -> ServiceMetrics:
        """Provider's own view of its counters."""
        with self._metrics_lock:
            return ServiceMetrics(**asdict(self._metrics))

    async def close(self) -> None:
        """Release SDK connections. Providers without resources keep the default."""

    def _update_metrics(self, success: bool, response_time_ms: int) -> None:
        with self._metrics_lock:
            m = self._metrics
            m.total_requests += 1
            m.last_request_time = datetime.now(timezone.utc)

            if success:
                m.successful_requests += 1
                m.average_response_time += (
                    response_time_ms - m.average_response_time
                ) / m.successful_requests
            else:
                m.failed_requests += 1

            m.is_healthy = m.success_rate >= 0.8

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)

    def _validate_content(self, content: str, content_type: str) -> None:
        if not content or not isinstance(content, str):
            raise ProviderError(
                "Content must be a non-empty string",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_CONTENT_REJECTED,
            )

        if not content_type or not isinstance(content_type, str):
            raise ProviderError(
                "Content type must be specified",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_CONTENT_REJECTED,
            )

        max_length = self.config.max_content_length
        if len(content) > max_length:
            raise ProviderError(
                f"Content exceeds maximum length of {max_length} characters",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_CONTENT_REJECTED,
            )

    def _extract_text(self, content: str, content_type: str) -> str:
        # All supported types are already text; kept as the hook for binary formats.
        return content

    def _build_analysis_prompt(self, content: str, content_type: str) -> str:
        return f"""Please analyze the following educational content and provide a comprehensive assessment:

Content Type: {content_type}
Content: {content}

Please provide your analysis in the following structured format:

ANALYSIS:
[Your detailed analysis of the educational value, clarity, and effectiveness]

CONFIDENCE: [0-100]

REASONING:
[Explanation of your analysis approach and key factors considered]

SUGGESTIONS:
- [Specific suggestion 1]
- [Specific suggestion 2]

CATEGORIES:
[Comma-separated list of relevant educational categories or topics]

SENTIMENT: [score from -1 to 1]

COMPLEXITY: [Low/Medium/High]"""

    def _parse_analysis_response(self, response_text: str) -> ParsedAnalysis:
        """Parse the structured reply; unparseable sections keep their defaults."""
        text = response_text.strip()
        result = ParsedAnalysis(content=text)

        def section(name: str) -> Optional[str]:
            match = re.search(_SECTION_PATTERN.format(name=name), text, re.DOTALL | re.IGNORECASE)
            if match and match.group(1).strip():
                return match.group(1).strip()
            return None

        analysis = section("ANALYSIS")
        if analysis:
            result.content = analysis

        confidence_match = re.search(r"CONFIDENCE:\s*(\d+(?:\.\d+)?)", text, re.IGNORECASE)
        if confidence_match:
            result.confidence = max(0.0, min(1.0, float(confidence_match.group(1)) / 100))

        result.reasoning = section("REASONING")

        suggestions = section("SUGGESTIONS")
        if suggestions:
            result.suggestions = [
                s.lstrip("-* ").strip() for s in suggestions.splitlines() if s.lstrip("-* ").strip()
            ]

        categories = section("CATEGORIES")
        if categories:
            result.categories = [c.strip() for c in categories.split(",") if c.strip()]

        sentiment_match = re.search(r"SENTIMENT:\s*(-?\d+(?:\.\d+)?)", text, re.IGNORECASE)
        if sentiment_match:
            result.sentiment_score = max(-1.0, min(1.0, float(sentiment_match.group(1))))

        complexity_match = re.search(r"COMPLEXITY:\s*(low|medium|high)", text, re.IGNORECASE)
        if complexity_match:
            result.complexity = complexity_match.group(1).lower()

        return result

    def __str__(self) -> str:
        return f"{type(self).__name__}(model={self.model_name})"

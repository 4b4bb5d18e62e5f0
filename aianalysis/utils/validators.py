"""
AI Analysis Input Validators
===========================

Validation of analysis request payloads before they reach the service manager.
"""

from typing import Any, List, Optional

from .exceptions import ValidationError, ErrorCode
from ..config.settings import AIServiceType


class AnalysisRequestValidator:
    """Request field validation for the analysis boundary."""

    VALID_SERVICES = tuple(s.value for s in AIServiceType)

    @classmethod
    def validate_content(cls, content: Any) -> str:
        """Validate analysis content.

        Args:
            content: Content to analyze

        Returns:
            Content unchanged

        Raises:
            ValidationError: If content is missing or not a string
        """
        if not content or not isinstance(content, str) or not content.strip():
            raise ValidationError(
                "Content is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="content"
            )
        return content

    @classmethod
    def validate_content_type(cls, content_type: Any) -> str:
        if not content_type or not isinstance(content_type, str) or not content_type.strip():
            raise ValidationError(
                "Content type is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="content_type"
            )
        return content_type.strip()

    @classmethod
    def validate_service_type(cls, service: Any, field_name: str = "service") -> AIServiceType:
        """Coerce a service name into ``AIServiceType``.

        Raises:
            ValidationError: If the name is not a known service
        """
        try:
            return AIServiceType(service)
        except ValueError:
            raise ValidationError(
                f"Invalid service: {service}. Must be one of: {', '.join(cls.VALID_SERVICES)}",
                error_code=ErrorCode.VALIDATION_UNKNOWN_SERVICE,
                field_name=field_name
            )

    @classmethod
    def validate_optional_service(cls, service: Any, field_name: str = "preferred_service") -> Optional[AIServiceType]:
        if service is None or service == "":
            return None
        return cls.validate_service_type(service, field_name)

    @classmethod
    def validate_service_list(
        cls, services: Any, field_name: str = "services", allow_empty: bool = False
    ) -> List[AIServiceType]:
        """Validate a list of service names, non-empty unless ``allow_empty``.

        Raises:
            ValidationError: If the list is missing, wrongly empty or has an unknown name
        """
        if allow_empty and isinstance(services, (list, tuple)) and not services:
            return []

        if not services or not isinstance(services, (list, tuple)):
            raise ValidationError(
                "Services array is required and must not be empty",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name=field_name
            )

        return [cls.validate_service_type(s, field_name) for s in services]

"""
AI Analysis Configuration System
===============================

Pydantic models describing the provider set, the fallback policy and the
circuit breaker options, plus environment-driven settings that build them.
Environment variables override Field defaults with clear precedence.
"""

from typing import List, Dict, Optional, Any
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.exceptions import ConfigurationError, ErrorCode


class AIServiceType(str, Enum):
    """Known AI provider kinds."""
    GPT4 = "gpt4"
    CLAUDE = "claude"
    GEMINI = "gemini"
    OPENROUTER = "openrouter"


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ProviderConfig(BaseModel):
    """Static connection settings for one provider."""

    model_config = ConfigDict(frozen=True)

    service_id: AIServiceType
    api_key: str = Field(..., min_length=1, description="Provider API key")
    endpoint: Optional[str] = Field(default=None, description="Override for the provider base URL")
    max_retries: int = Field(default=3, ge=0, le=10, description="SDK-level retries per call")
    timeout: float = Field(default=30.0, gt=0, description="SDK request timeout in seconds")
    model: Optional[str] = Field(default=None, description="Model name (provider default when unset)")
    max_content_length: int = Field(default=50000, ge=1, description="Largest accepted content in characters")


class CircuitBreakerOptions(BaseModel):
    """Options shared by every per-provider circuit breaker."""
    timeout: float = Field(default=30.0, gt=0, description="Hard per-call timeout in seconds")
    error_threshold_percentage: float = Field(
        default=50.0, ge=0.0, le=100.0,
        description="Open the circuit when the rolling error rate exceeds this percentage"
    )
    reset_timeout: float = Field(default=60.0, gt=0, description="Seconds spent OPEN before a trial call")
    rolling_window: float = Field(default=10.0, gt=0, description="Length of the failure statistics window in seconds")
    volume_threshold: int = Field(default=0, ge=0, description="Minimum calls in the window before the circuit may open")


class ServiceManagerConfig(BaseModel):
    """Complete configuration of the service manager."""
    services: List[ProviderConfig] = Field(default_factory=list)
    enabled_services: List[AIServiceType] = Field(default_factory=list)
    fallback_order: List[AIServiceType] = Field(default_factory=list)
    default_service: AIServiceType = AIServiceType.GPT4
    circuit_breaker_options: CircuitBreakerOptions = Field(default_factory=CircuitBreakerOptions)

    @model_validator(mode="after")
    def validate_enabled_services(self) -> "ServiceManagerConfig":
        """Enabled services must be unique and configured; routing must stay within them.

        The routing rules apply only while something is enabled, so the
        empty state left by ``cleanup()`` is valid.
        """
        if len(self.enabled_services) != len(set(self.enabled_services)):
            raise ValueError("Duplicate services found in enabled_services")

        configured = {p.service_id for p in self.services}
        missing = [s.value for s in self.enabled_services if s not in configured]
        if missing:
            raise ValueError(f"Configuration missing for enabled services: {missing}")

        if self.enabled_services:
            if self.default_service not in self.enabled_services:
                raise ValueError(
                    f"Default service {self.default_service.value} is not in enabled services list"
                )

            disabled = [s.value for s in self.fallback_order if s not in self.enabled_services]
            if disabled:
                raise ValueError(f"Fallback services not enabled: {disabled}")

        return self

    def get_provider_config(self, service_id: AIServiceType) -> Optional[ProviderConfig]:
        """Find the provider configuration for a service id."""
        for provider_config in self.services:
            if provider_config.service_id == service_id:
                return provider_config
        return None

    def validate_configuration(self) -> List[str]:
        """Report routing oddities that are allowed but probably unintended.

        Returns:
            List of warnings (empty if the policy is fully consistent)
        """
        warnings = []

        if not self.enabled_services:
            warnings.append("No services are enabled; every analysis will fail")

        if len(self.fallback_order) != len(set(self.fallback_order)):
            warnings.append("Duplicate services found in fallback_order")

        return warnings

    def merged(self, updates: Dict[str, Any]) -> "ServiceManagerConfig":
        """Return a validated copy with ``updates`` applied.

        A carried-over ``fallback_order`` is narrowed to the new
        ``enabled_services``; an explicitly updated one is taken as given.

        Raises:
            ConfigurationError: If the merged configuration is invalid
        """
        unknown = set(updates) - set(type(self).model_fields)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration fields: {sorted(unknown)}",
                error_code=ErrorCode.CONFIG_INVALID,
            )

        data = self.model_dump()
        for key, value in updates.items():
            if isinstance(value, BaseModel):
                value = value.model_dump()
            data[key] = value

        if "fallback_order" not in updates and isinstance(data["enabled_services"], list):
            enabled = {str(getattr(s, "value", s)) for s in data["enabled_services"]}
            data["fallback_order"] = [
                s for s in data["fallback_order"] if str(getattr(s, "value", s)) in enabled
            ]

        try:
            return type(self).model_validate(data)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid service manager configuration: {e}") from e


# Environment-driven settings


class ProviderSettings(BaseModel):
    """Per-provider environment settings."""
    api_key: Optional[str] = Field(default=None, description="API key; provider is skipped when unset")
    endpoint: Optional[str] = Field(default=None, description="Base URL override")
    model: Optional[str] = Field(default=None, description="Model override")
    max_retries: int = Field(default=3, ge=0, le=10)
    timeout: float = Field(default=30.0, gt=0)
    max_content_length: int = Field(default=50000, ge=1)


class AIServiceSettings(BaseModel):
    """AI providers and routing policy configuration."""
    gpt4: ProviderSettings = Field(default_factory=ProviderSettings)
    claude: ProviderSettings = Field(default_factory=lambda: ProviderSettings(max_content_length=100000))
    gemini: ProviderSettings = Field(default_factory=lambda: ProviderSettings(max_content_length=30000))
    openrouter: ProviderSettings = Field(default_factory=ProviderSettings)

    enabled_services: List[AIServiceType] = Field(
        default=[AIServiceType.GPT4, AIServiceType.CLAUDE, AIServiceType.GEMINI],
        description="Services to bring up, subject to an API key being present"
    )
    fallback_order: List[AIServiceType] = Field(
        default=[AIServiceType.GPT4, AIServiceType.CLAUDE, AIServiceType.GEMINI],
        description="Order in which services are tried after the preferred/default one"
    )
    default_service: AIServiceType = Field(default=AIServiceType.GPT4)
    circuit_breaker: CircuitBreakerOptions = Field(default_factory=CircuitBreakerOptions)

    @field_validator("enabled_services", "fallback_order", mode="before")
    @classmethod
    def split_service_list(cls, v):
        """Accept comma separated strings from the environment."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    def get_provider_settings(self, service_id: AIServiceType) -> ProviderSettings:
        return getattr(self, service_id.value)

    def get_configured_services(self) -> List[AIServiceType]:
        """Services that have an API key."""
        return [s for s in AIServiceType if self.get_provider_settings(s).api_key]

    def build_provider_configs(self) -> List[ProviderConfig]:
        configs = []
        for service_id in self.get_configured_services():
            provider = self.get_provider_settings(service_id)
            configs.append(ProviderConfig(
                service_id=service_id,
                api_key=provider.api_key,
                endpoint=provider.endpoint,
                model=provider.model,
                max_retries=provider.max_retries,
                timeout=provider.timeout,
                max_content_length=provider.max_content_length,
            ))
        return configs

    def get_enabled_services(self) -> List[AIServiceType]:
        """Requested services that have an API key, without duplicates."""
        configured = set(self.get_configured_services())
        return [s for s in dict.fromkeys(self.enabled_services) if s in configured]

    def build_manager_config(self) -> ServiceManagerConfig:
        """Build the manager configuration from configured providers only.

        Raises:
            pydantic.ValidationError: If the default service is not enabled
        """
        enabled = self.get_enabled_services()

        return ServiceManagerConfig(
            services=self.build_provider_configs(),
            enabled_services=enabled,
            fallback_order=[s for s in dict.fromkeys(self.fallback_order) if s in enabled],
            default_service=self.default_service,
            circuit_breaker_options=self.circuit_breaker,
        )


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class AIAnalysisSettings(BaseSettings):
    """Main application settings."""

    ai: AIServiceSettings = Field(default_factory=AIServiceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="AI Analysis", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        env_prefix="AIANALYSIS_",
        extra="ignore",
    )

    def validate_configuration(self) -> None:
        """Validate complete configuration.

        Raises:
            ConfigurationError: If no usable provider is configured or the
                default service is not among the enabled ones
        """
        errors = []

        configured = self.ai.get_configured_services()
        if not configured:
            errors.append("At least one AI service must be configured with an API key")

        enabled = self.ai.get_enabled_services()
        if configured and not enabled:
            errors.append("At least one AI service must be enabled")
        elif enabled and self.ai.default_service not in enabled:
            errors.append(
                f"Default service {self.ai.default_service.value} is not in enabled services list"
            )

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> AIAnalysisSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = AIAnalysisSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_PARSE_ERROR
        ) from e


_settings: Optional[AIAnalysisSettings] = None


def get_settings(reload: bool = False) -> AIAnalysisSettings:
    """Get global settings instance.

    Args:
        reload: Force reload of settings
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings

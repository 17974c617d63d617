from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, PrivateAttr
from typing import Literal, Optional
from dotenv import load_dotenv, find_dotenv


class LLMConfig(BaseSettings):
    """Generative scoring (LLM) provider configuration."""

    provider: str = Field(default="openai")
    endpoint: Optional[str] = Field(default=None)
    deployment_name: Optional[str] = Field(default=None)
    api_version: str = Field(default="2024-08-01-preview")
    model_name: str = Field(default="gpt-4o")
    use_managed_identity: bool = Field(default=False)
    api_key: Optional[str] = Field(default=None)
    timeout: int = Field(default=200)
    # SDK-level retries stay off; the pipeline's RetryExecutor owns retry policy.
    max_retries: int = Field(default=0)
    temperature: float = Field(default=0.2)
    max_tokens: int = Field(default=4000)

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
        case_sensitive=False
    )


class VideoIntelligenceConfig(BaseSettings):
    """Video intelligence service configuration."""

    provider: str = Field(default="http")
    base_url: str = Field(default="https://api.twelvelabs.io/v1.3")
    api_key: Optional[str] = Field(default=None)
    index_name: str = Field(default="vidscore")
    search_model: str = Field(default="marengo2.7")
    analysis_model: str = Field(default="pegasus1.2")
    timeout: int = Field(default=120)

    model_config = SettingsConfigDict(
        env_prefix="VIDEO_SERVICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
        case_sensitive=False
    )


class PipelineConfig(BaseSettings):
    """Orchestration knobs for one analysis run."""

    retry_attempts: int = Field(default=3, ge=1)
    retry_initial_delay: float = Field(default=1.0, ge=0)
    poll_interval: float = Field(default=2.0, ge=0)
    poll_max_attempts: int = Field(default=60, ge=1)
    defect_confidence_threshold: float = Field(default=75.0, ge=0, le=100)
    dead_air_threshold: float = Field(default=2.5, ge=0)
    analysis_mode: Literal["split", "consolidated"] = Field(default="split")
    delete_remote_video: bool = Field(default=True)
    min_hashtags: int = Field(default=3, ge=0)
    max_hashtags: int = Field(default=10, ge=1)
    default_audience: str = Field(default="General Audience")
    default_platform: str = Field(default="TikTok")
    default_goal: str = Field(default="Analyze for viral potential.")
    extraction_timeout: Optional[float] = Field(default=None)
    stream_scoring: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
        case_sensitive=False
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    enable_file_logging: bool = Field(default=False, validation_alias="LOG_ENABLE_FILE")
    max_file_size: str = Field(default="10 MB")
    retention_days: int = Field(default=7)

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True
    )


class VidScoreConfig(BaseSettings):
    """Main configuration class."""

    app_name: str = Field(default="VidScore")
    app_version: str = Field(default="1.0.0")
    environment: str = Field(default="development")

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
        case_sensitive=False
    )

    # Cached sub-configurations
    _llm: Optional[LLMConfig] = PrivateAttr(default=None)
    _video: Optional[VideoIntelligenceConfig] = PrivateAttr(default=None)
    _pipeline: Optional[PipelineConfig] = PrivateAttr(default=None)
    _logging: Optional[LoggingConfig] = PrivateAttr(default=None)

    def __init__(self, **kwargs):
        # Force load environment variables before initializing
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)

    @property
    def llm(self) -> LLMConfig:
        if self._llm is None:
            self._llm = LLMConfig()
        return self._llm

    @property
    def video(self) -> VideoIntelligenceConfig:
        if self._video is None:
            self._video = VideoIntelligenceConfig()
        return self._video

    @property
    def pipeline(self) -> PipelineConfig:
        if self._pipeline is None:
            self._pipeline = PipelineConfig()
        return self._pipeline

    @property
    def logging(self) -> LoggingConfig:
        if self._logging is None:
            self._logging = LoggingConfig()
        return self._logging

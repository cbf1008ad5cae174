"""Configuration management using pydantic-settings."""

from datetime import timedelta
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Voice(str, Enum):
    """Voices accepted by the hosted synthesis service."""

    ALLOY = "alloy"
    ECHO = "echo"
    FABLE = "fable"
    ONYX = "onyx"
    NOVA = "nova"
    SHIMMER = "shimmer"


class ChatOptions(BaseModel):
    """Per-view orchestration options."""

    model_config = ConfigDict(frozen=True)

    use_documents: bool = Field(default=True, description="Ground answers in the user's documents")
    auto_play_synthesis: bool = Field(default=False, description="Speak assistant replies automatically")
    voice: Voice = Field(default=Voice.ALLOY, description="Synthesis voice")
    max_clip_duration: timedelta = Field(default=timedelta(seconds=120), description="Longest accepted recording")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=7790, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    # Storage Configuration
    database_path: str = Field(default="./data/tutorcore.db", description="DuckDB database file")

    # External Services
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key for speech services")
    openai_api_base: str = Field(default="https://api.openai.com/v1", description="OpenAI API base URL")
    transcription_model: str = Field(default="whisper-1", description="Speech-to-text model")
    synthesis_model: str = Field(default="tts-1", description="Text-to-speech model")
    ask_url: Optional[str] = Field(default=None, description="Response generation endpoint")
    ask_api_key: Optional[str] = Field(default=None, description="Bearer token for the response endpoint")

    # Timeouts (seconds)
    transcription_timeout: float = Field(default=30.0, description="Transcription call bound")
    synthesis_timeout: float = Field(default=30.0, description="Synthesis call bound")
    response_timeout: float = Field(default=60.0, description="Response generation call bound")
    persistence_timeout: float = Field(default=10.0, description="Store read/write bound")

    # Orchestration
    use_documents: bool = Field(default=True, description="Ground answers in uploaded documents")
    auto_play_synthesis: bool = Field(default=False, description="Speak assistant replies automatically")
    voice: Voice = Field(default=Voice.ALLOY, description="Synthesis voice")
    max_clip_seconds: int = Field(default=120, description="Maximum recording duration in seconds")
    max_clip_bytes: int = Field(default=25 * 1024 * 1024, description="Maximum clip size sent for transcription")
    synthesis_max_chars: int = Field(default=4096, description="Longest text sent to hosted synthesis")
    synthesis_cache_size: int = Field(default=32, description="Synthesized replies kept for replay")
    enable_local_synthesis: bool = Field(default=True, description="Allow offline synthesis fallback")
    single_open_session: bool = Field(default=False, description="Adopt an owner's open session instead of creating another")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_file: str = Field(default="./logs/tutorcore.log", description="Log file path")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, description="Rotate the log file at this size")
    log_backup_count: int = Field(default=5, description="Rotated log files to keep")
    http_log_level: str = Field(default="WARNING", description="Log level of the httpx request loggers")

    def chat_options(self) -> ChatOptions:
        """Build the orchestration options from settings."""
        return ChatOptions(
            use_documents=self.use_documents,
            auto_play_synthesis=self.auto_play_synthesis,
            voice=self.voice,
            max_clip_duration=timedelta(seconds=self.max_clip_seconds),
        )


# Global settings instance
settings = Settings()

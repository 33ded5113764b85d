"""Configuration management using Pydantic and environment variables."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dapp_agent.agent.types import AgentConfig


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM Configuration (OpenAI-compatible API)
    llm_api_key: str = Field(..., description="API key for LLM provider")
    llm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for OpenAI-compatible API (None = provider default)",
    )
    llm_model: str = Field(default="gpt-4o-mini", description="Model name")
    llm_temperature: float = Field(
        default=0.0, ge=0.0, le=2.0, description="Temperature"
    )

    # Agent budgets
    agent_max_api_calls: int = Field(default=60, ge=1, description="Run-wide LLM call budget")
    agent_max_calls_per_step: int = Field(default=20, ge=1, description="LLM call budget per step")
    agent_step_timeout_ms: int = Field(default=90_000, ge=1000, description="Timeout per step")
    agent_capture_step_screenshots: bool = Field(
        default=True, description="Capture before/after and per-step screenshots"
    )

    # Browser / wallet
    artifacts_dir: Path = Field(default=Path("artifacts"), description="Screenshots and logs")
    headless: bool = Field(default=False, description="Run Chromium headless")
    wallet_extension_path: Optional[Path] = Field(
        default=None, description="Unpacked wallet extension to load into Chromium"
    )
    browser_user_data_dir: Path = Field(
        default=Path(".browser-profile"),
        description="Persistent profile holding an onboarded wallet",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    def agent_config(self) -> AgentConfig:
        """Build the immutable per-run agent configuration."""
        return AgentConfig(
            model=self.llm_model,
            max_api_calls=self.agent_max_api_calls,
            max_calls_per_step=self.agent_max_calls_per_step,
            step_timeout_ms=self.agent_step_timeout_ms,
            capture_step_screenshots=self.agent_capture_step_screenshots,
            api_key=self.llm_api_key,
            base_url=self.llm_base_url,
            temperature=self.llm_temperature,
        )


def load_config(env_file: Optional[Path] = None) -> Config:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If None, looks for .env in current directory.

    Returns:
        Config instance with loaded settings.
    """
    if env_file:
        return Config(_env_file=env_file)

    return Config()

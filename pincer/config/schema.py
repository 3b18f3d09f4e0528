"""Configuration schema using Pydantic."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

DEFAULT_DENY_LIST = [
    "rm -rf /",
    "rm -rf ~",
    "mkfs",
    ":(){",
    "dd if=",
    "> /dev/sd",
    "chmod -R 777 /",
    "format c:",
    "del /f /s /q",
]


class ProfileConfig(BaseModel):
    """A named binding of model backend, credentials and limits."""
    provider: Literal["openai", "anthropic", "google", "mistral", "ollama"] = "openai"
    model: str = "gpt-4o-mini"
    api_key: str = ""
    api_base: str | None = None  # Ollama / self-hosted endpoints
    max_tokens_per_message: int = Field(default=4096, gt=0)
    max_tokens_per_day: int = Field(default=100_000, gt=0)
    temperature: float | None = Field(default=None, ge=0, le=2)
    top_p: float | None = Field(default=None, ge=0, le=1)
    system_prompt_override: str | None = None
    max_history_messages: int = Field(default=20, gt=0)


class AgentDefaults(BaseModel):
    """Orchestrator defaults."""
    max_steps: int = Field(default=5, gt=0)  # Tool rounds before a final answer is forced
    fact_limit: int = Field(default=5, ge=0)
    utility_profile: str | None = None  # Title synthesis + fact extraction; first profile if unset
    persona_path: str | None = None  # Defaults to <data_dir>/SOUL.md


class ExecToolConfig(BaseModel):
    """Shell command tool configuration."""
    timeout: int = Field(default=30, gt=0)  # Seconds
    max_output_bytes: int = Field(default=10_000, gt=0)
    deny_list: list[str] = Field(default_factory=lambda: list(DEFAULT_DENY_LIST))
    working_dir: str | None = None  # Defaults to the user's home directory


class ConfirmationConfig(BaseModel):
    """Human approval gate configuration."""
    margin_seconds: int = Field(default=10, gt=0)  # Added on top of exec timeout
    default_on_timeout: Literal["deny", "approve"] = "deny"


class SkillsConfig(BaseModel):
    """Durable script storage."""
    directory: str = "~/.pincer/skills"


class SearchConfig(BaseModel):
    brave_api_key: str = ""
    max_results: int = Field(default=5, ge=1, le=10)


class PhantomBusterConfig(BaseModel):
    """PhantomBuster agents used by the X/Twitter tools."""
    api_key: str = ""
    tweet_extractor_agent_id: str = ""
    search_export_agent_id: str = ""
    poll_timeout_seconds: int = 120


class ToolsConfig(BaseModel):
    exec: ExecToolConfig = Field(default_factory=ExecToolConfig)
    confirmation: ConfirmationConfig = Field(default_factory=ConfirmationConfig)
    skills: SkillsConfig = Field(default_factory=SkillsConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    phantom_buster: PhantomBusterConfig = Field(default_factory=PhantomBusterConfig)
    reddit_enabled: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file_enabled: bool = True
    file_path: str = "~/.pincer/logs/pincer.log"
    rotation: str = "10 MB"
    retention: str = "7 days"


class Config(BaseSettings):
    """Root configuration for pincer."""
    data_dir: str = "~/.pincer"
    profiles: dict[str, ProfileConfig] = Field(
        default_factory=lambda: {"free": ProfileConfig()}
    )
    agents: AgentDefaults = Field(default_factory=AgentDefaults)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def data_path(self) -> Path:
        """Expanded data directory path."""
        return Path(self.data_dir).expanduser()

    @property
    def database_path(self) -> Path:
        return self.data_path / "data" / "memory.db"

    @property
    def persona_path(self) -> Path:
        if self.agents.persona_path:
            return Path(self.agents.persona_path).expanduser()
        return self.data_path / "SOUL.md"

    @property
    def confirmation_timeout(self) -> float:
        """Approval timeout, always longer than the command execution budget."""
        return float(self.tools.exec.timeout + self.tools.confirmation.margin_seconds)

    def get_profile(self, name: str) -> ProfileConfig | None:
        return self.profiles.get(name)

    def default_profile_name(self) -> str:
        """First configured profile, used when no profile is specified."""
        return next(iter(self.profiles), "free")

    def utility_profile_name(self) -> str:
        """Profile used for lightweight background calls."""
        name = self.agents.utility_profile
        if name and name in self.profiles:
            return name
        return self.default_profile_name()

    class Config:
        env_prefix = "PINCER_"
        env_nested_delimiter = "__"

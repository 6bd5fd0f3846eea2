"""Configuration settings and data models."""

import json
import os
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

AI_PERSONALITIES = ("BALANCED", "SMART", "AGGRESSIVE", "CALM", "WITTY", "ANALYTICAL")


class ModelConfig(BaseModel):
    """Configuration for a generation or judging model."""

    name: str = Field(..., description="Model name as known by the provider (e.g., 'deepseek-chat')")
    provider: str = Field(default="openai_compatible", description="Model provider")
    personality: str = Field(default="neutral", description="Style hint for the model")
    max_tokens: int = Field(default=1000, description="Maximum tokens per response")
    temperature: float = Field(default=0.8, description="Model temperature")

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v):
        valid_providers = {"openai_compatible"}
        if v not in valid_providers:
            raise ValueError(f"Provider must be one of: {valid_providers}")
        return v


class DebateRulesConfig(BaseModel):
    """Round timing and forfeit rules for 1v1 debates."""

    default_total_rounds: int = Field(default=5, ge=1, description="Rounds for newly created debates")
    round_duration_seconds: int = Field(default=86400, gt=0, description="Time allowed per round")
    waiting_expiry_days: int = Field(
        default=7, gt=0, description="Open challenges older than this are cancelled"
    )
    expired_submission_text: str = Field(
        default="[No submission - Time expired]",
        description="Placeholder statement written for a side that missed its deadline",
    )


class JudgingConfig(BaseModel):
    """Verdict panel configuration."""

    panel_size: int = Field(default=3, ge=1, description="Judges drawn per debate")
    judge_timeout_seconds: float = Field(default=60.0, gt=0, description="Per-call judge timeout")
    judge_max_retries: int = Field(default=1, ge=0, description="Retries before a TIE fallback")
    neutral_score: int = Field(default=50, ge=0, le=100, description="Score used for fallback votes")
    appeal_window_hours: int = Field(default=48, gt=0, description="Hours after the verdict an appeal is accepted")
    verdict_claim_ttl_seconds: int = Field(
        default=600, gt=0, description="Age after which an unfinished verdict claim may be retaken"
    )
    judge_model: ModelConfig = Field(
        default_factory=lambda: ModelConfig(name="deepseek-chat", max_tokens=3000, temperature=0.3),
        description="Model used by AI judges",
    )


class MatchmakingConfig(BaseModel):
    """Automated participant settings."""

    auto_accept_enabled: bool = Field(default=True, description="Feature toggle for the auto-accept sweep")
    per_sweep_cap: int = Field(default=5, ge=1, description="Challenges one AI user may accept per sweep")
    default_response_delay_seconds: int = Field(
        default=3600, ge=0, description="Minimum challenge age when the AI user has no delay set"
    )
    personality_preference: List[str] = Field(
        default=["BALANCED", "SMART", "ANALYTICAL", "CALM", "WITTY", "AGGRESSIVE"],
        description="Tie-break order between equally loaded AI users",
    )
    generation_timeout_seconds: float = Field(default=90.0, gt=0, description="Per-call generation timeout")
    generation_max_retries: int = Field(default=1, ge=0, description="Retries for a failed generation")
    debater_model: ModelConfig = Field(
        default_factory=lambda: ModelConfig(name="deepseek-chat", max_tokens=1000, temperature=0.8),
        description="Model used by AI users to write arguments",
    )

    @field_validator("personality_preference")
    @classmethod
    def validate_personalities(cls, v):
        unknown = [p for p in v if p not in AI_PERSONALITIES]
        if unknown:
            raise ValueError(f"Unknown personalities: {unknown}")
        return v


class TournamentConfig(BaseModel):
    """Tournament progression settings."""

    debate_rounds: int = Field(default=3, ge=1, description="Rounds per bracket match debate")
    round_duration_seconds: int = Field(default=86400, gt=0, description="Time per round in match debates")
    elimination_ratio: float = Field(
        default=0.25, gt=0, lt=1, description="Share of King of the Hill players eliminated per round"
    )
    default_reseed_method: Literal["NONE", "ELO_BASED", "TOURNAMENT_WINS"] = Field(default="NONE")


class RatingConfig(BaseModel):
    """ELO rating settings."""

    k_factor: int = Field(default=32, gt=0)
    initial_rating: int = Field(default=1200, gt=0)


class SchedulerConfig(BaseModel):
    """Shared secret used by the external scheduler."""

    cron_secret: Optional[str] = Field(
        default=None, description="Bearer token for sweep endpoints (can also be set via ARENA_CRON_SECRET)"
    )


class ProviderConfig(BaseModel):
    """OpenAI-compatible endpoint configuration."""

    api_key: Optional[str] = Field(
        default=None, description="API key (can also be set via ARENA_LLM_API_KEY env var)"
    )
    base_url: str = Field(default="https://api.deepseek.com", description="API base URL")
    max_retries: int = Field(
        default=0, ge=0, description="Client-level retries; judge and generation retries are counted by the engine"
    )
    timeout: int = Field(default=60, description="API request timeout in seconds")


class SystemConfig(BaseModel):
    """System-wide configuration."""

    database_path: str = Field(default="arena.db", description="SQLite database file")
    busy_timeout_seconds: float = Field(default=30.0, gt=0, description="SQLite lock wait")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    provider: ProviderConfig = Field(default_factory=ProviderConfig, description="Model provider settings")


class AppConfig(BaseModel):
    """Complete application configuration."""

    rules: DebateRulesConfig = Field(default_factory=DebateRulesConfig)
    judging: JudgingConfig = Field(default_factory=JudgingConfig)
    matchmaking: MatchmakingConfig = Field(default_factory=MatchmakingConfig)
    tournaments: TournamentConfig = Field(default_factory=TournamentConfig)
    ratings: RatingConfig = Field(default_factory=RatingConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from a JSON or YAML file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            if config_path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping of sections")

        unknown_sections = sorted(set(data) - set(cls.model_fields))
        if unknown_sections:
            raise ValueError(f"Unknown config sections: {unknown_sections}")

        return cls(**data)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_unset=True),
                f,
                default_flow_style=False,
                indent=2,
            )

    def with_environment(self) -> "AppConfig":
        """Return a copy with environment overrides applied."""
        config = self.model_copy(deep=True)

        cron_secret = os.getenv("ARENA_CRON_SECRET")
        if cron_secret:
            config.scheduler.cron_secret = cron_secret

        database_path = os.getenv("ARENA_DATABASE_PATH")
        if database_path:
            config.system.database_path = database_path

        api_key = os.getenv("ARENA_LLM_API_KEY")
        if api_key:
            config.system.provider.api_key = api_key

        return config


def get_default_config(config_path: Path | None = None) -> AppConfig:
    """Load arena_config.json when present, otherwise the template defaults.

    The result is meant to be fetched once per sweep or request and handed to
    the components, never cached as module state.
    """
    if config_path is None:
        config_path = Path("arena_config.json")
    if config_path.exists():
        config = AppConfig.load_from_file(config_path)
    else:
        config = get_template_config()
    return config.with_environment()


def get_template_config() -> AppConfig:
    """Get template configuration for config file generation."""
    return AppConfig(
        rules=DebateRulesConfig(
            default_total_rounds=5,
            round_duration_seconds=86400,
            waiting_expiry_days=7,
        ),
        judging=JudgingConfig(
            panel_size=3,
            judge_timeout_seconds=60.0,
            judge_max_retries=1,
            appeal_window_hours=48,
        ),
        matchmaking=MatchmakingConfig(
            auto_accept_enabled=True,
            per_sweep_cap=5,
            default_response_delay_seconds=3600,
        ),
        tournaments=TournamentConfig(debate_rounds=3, elimination_ratio=0.25),
        ratings=RatingConfig(k_factor=32, initial_rating=1200),
        scheduler=SchedulerConfig(cron_secret=None),
        system=SystemConfig(
            database_path="arena.db",
            log_level="INFO",
            provider=ProviderConfig(
                api_key=None,  # Set here or use ARENA_LLM_API_KEY
                base_url="https://api.deepseek.com",
                max_retries=0,
                timeout=60,
            ),
        ),
    )

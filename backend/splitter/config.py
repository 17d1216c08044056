"""Application configuration from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings

from splitter.engine.config import DecompositionParams
from splitter.engine.refine.models import RefinementConfig, RefinementStrategy
from splitter.llm.client import CollaboratorConfig, ResponseFormat
from splitter.llm.retry import RetryPolicy


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    anthropic_base_url: str | None = None
    splitter_env: str = "development"
    splitter_log_level: str = "info"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Collaborator
    model_vision: str = "claude-sonnet-4-5-20250929"
    response_format: ResponseFormat = ResponseFormat.JSON
    max_tokens: int = Field(default=4096, ge=1)

    # Refinement
    refine_strategy: RefinementStrategy = RefinementStrategy.ANNOTATED_PREVIEW
    refine_batch_size: int = Field(default=4, ge=2)
    refine_concurrency: int = Field(default=3, ge=1)
    # Pause before each pairwise relevance call (seconds)
    refine_pair_delay: float = Field(default=0.1, ge=0)
    retry_max_attempts: int = Field(default=5, ge=1)
    transport_max_width: int = 1024
    preview_downscale: bool = False
    strict_mapping: bool = False

    # Decomposition defaults
    default_invalid_threshold: float = Field(default=0.97, gt=0, le=1)
    default_min_height_ratio: float = Field(default=0.002, gt=0, le=1)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def collaborator_config(self) -> CollaboratorConfig:
        return CollaboratorConfig(
            api_key=self.anthropic_api_key,
            model=self.model_vision,
            base_url=self.anthropic_base_url or None,
            response_format=self.response_format,
            max_tokens=self.max_tokens,
        )

    def refinement_config(self, strategy: RefinementStrategy | None = None) -> RefinementConfig:
        return RefinementConfig(
            strategy=strategy or self.refine_strategy,
            batch_size=self.refine_batch_size,
            concurrency=self.refine_concurrency,
            pair_delay=self.refine_pair_delay,
            retry=RetryPolicy(max_attempts=self.retry_max_attempts),
            transport_max_width=self.transport_max_width,
            preview_downscale=self.preview_downscale,
            strict_mapping=self.strict_mapping,
        )

    def decomposition_params(
        self,
        invalid_threshold: float | None = None,
        min_height_ratio: float | None = None,
    ) -> DecompositionParams:
        return DecompositionParams(
            invalid_threshold=self.default_invalid_threshold if invalid_threshold is None else invalid_threshold,
            min_height_ratio=self.default_min_height_ratio if min_height_ratio is None else min_height_ratio,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()

"""FastAPI dependency injection."""

from __future__ import annotations

from fastapi import Depends

from splitter.config import Settings, get_settings
from splitter.engine.pipeline import DecompositionPipeline, create_pipeline
from splitter.llm.client import AnthropicCollaborator, Collaborator


def get_pipeline() -> DecompositionPipeline:
    return create_pipeline()


def get_collaborator(settings: Settings = Depends(get_settings)) -> Collaborator:
    return AnthropicCollaborator(settings.collaborator_config())

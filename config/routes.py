"""LLM route configuration loaded from JSON."""
from __future__ import annotations

from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field

from .registry import GENERATOR_KEY


class LlmRoute(BaseModel):
    """Chat-completions endpoint used by the question generator."""

    name: str
    base_url: str
    endpoint: str = "/v1/chat/completions"
    model: str
    timeout_s: float = Field(default=8.0, ge=0.1)
    max_retries: int = Field(default=0, ge=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=300, ge=16)
    api_key_env: str | None = None
    response_format: str | None = None
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    sequential: bool = False


class AppConfig(BaseModel):
    """Application configuration root."""

    llm_routes: Dict[str, LlmRoute]
    registry: Dict[str, str] = Field(default_factory=dict)


def load_config(path: Path) -> AppConfig:
    """Load configuration from disk."""

    data = path.read_text(encoding="utf-8")
    return AppConfig.model_validate_json(data)


def resolve_route(cfg: AppConfig, target: str = GENERATOR_KEY) -> LlmRoute:
    """Return the route bound to ``target`` in the config registry."""

    if target not in cfg.registry:
        raise KeyError(f"Registry entry missing for '{target}'")
    route_id = cfg.registry[target]
    if route_id not in cfg.llm_routes:
        raise KeyError(f"Route '{route_id}' missing for '{target}'")
    return cfg.llm_routes[route_id]

"""Configuration package for the interview engine."""
from .registry import GENERATOR_KEY, bind_model, get_model, unbind_model
from .routes import AppConfig, LlmRoute, load_config, resolve_route
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "load_config",
    "resolve_route",
    "GENERATOR_KEY",
    "bind_model",
    "get_model",
    "unbind_model",
    "Settings",
    "settings",
]

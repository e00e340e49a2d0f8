from __future__ import annotations  # Re-export llm_gateway public API

from .llm_gateway import (
    GenerationError,
    GenerationUnavailable,
    Generator,
    HttpClient,
    HttpResponse,
    MalformedGenerationOutput,
    bind_route,
    complete,
    message_dict,
    text_generator,
)

__all__ = [
    "GenerationError",
    "GenerationUnavailable",
    "Generator",
    "HttpClient",
    "HttpResponse",
    "MalformedGenerationOutput",
    "bind_route",
    "complete",
    "message_dict",
    "text_generator",
]

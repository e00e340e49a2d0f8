"""Application settings and tunable interview thresholds."""
from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    EXPLORATION_TURN_THRESHOLD: int = Field(default=9, ge=1)
    DEPTH_CUE_MIN_TURNS: int = Field(default=5, ge=1)
    MAX_EXAMINEE_TURNS: int = Field(default=24, ge=4)
    MOTIVATION_MIN_TOTAL_TURNS: int = Field(default=10, ge=0)

    CACHE_TTL_SECONDS: float = Field(default=3600.0, gt=0)
    CACHE_MAX_SIZE: int = Field(default=100, ge=1)
    CACHE_SIMILARITY_RATIO: float = Field(default=0.5, ge=0.0, le=1.0)

    GENERATION_TIMEOUT_S: float = Field(default=8.0, gt=0)
    MAX_QUESTION_SENTENCES: int = Field(default=2, ge=1)
    MIN_QUESTION_CHARS: int = 10
    OPTIMIZE_MAX_CHARS: int = 100
    ANSWER_EXCERPT_CHARS: int = 120

    SCHOOL_NAME: str = "明和中学校"
    INTERVIEWER_PERSONA: Literal["Gentle Examiner", "Formal Examiner"] = "Gentle Examiner"

    ALIGNMENT_MIN_ANSWER_CHARS: int = 15
    SHORT_ANSWER_CHARS: int = 10

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")


settings = Settings()

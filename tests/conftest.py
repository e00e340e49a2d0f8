import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.registry import GENERATOR_KEY, unbind_model
from services.question_cache import QuestionCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def unbound_generator():
    unbind_model(GENERATOR_KEY)
    yield
    unbind_model(GENERATOR_KEY)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return QuestionCache(ttl_seconds=3600, max_size=100, similarity_ratio=0.5, clock=clock)


@pytest.fixture
def failing_generator():
    from llm_gateway import GenerationUnavailable

    def _generate(_spec):
        raise GenerationUnavailable("forced failure")

    return _generate


@pytest.fixture
def json_generator():
    """Generator stub replying with a fixed question envelope."""

    def _factory(question: str):
        calls = []

        def _generate(spec):
            calls.append(spec)
            return json.dumps({"question": question}, ensure_ascii=False)

        _generate.calls = calls  # type: ignore[attr-defined]
        return _generate

    return _factory

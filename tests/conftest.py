"""Shared fixtures: fake clock, fake inference client, sample payloads"""

import asyncio
import json

import pytest

from codelens.core.ports.i_inference_client import IInferenceClient
from codelens.infrastructure.adapters.ai.models import AnalysisRequest, CompletionResult


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeInferenceClient(IInferenceClient):
    """
    In-memory inference client.

    handler(user_prompt) may return content (str/None) or an exception
    instance, which is raised.
    """

    def __init__(self, content=None, model: str = "gpt-test", delay: float = 0.0, handler=None):
        self.content = content
        self.model = model
        self.delay = delay
        self.handler = handler
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def complete(self, system_prompt, user_prompt, *, model, temperature,
                       max_tokens, json_response=True):
        self.calls.append({
            'system_prompt': system_prompt,
            'user_prompt': user_prompt,
            'model': model,
            'temperature': temperature,
            'max_tokens': max_tokens,
            'json_response': json_response
        })
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = self.handler(user_prompt) if self.handler else self.content
        finally:
            self.in_flight -= 1

        if isinstance(outcome, BaseException):
            raise outcome
        return CompletionResult(content=outcome, model=self.model)

    async def close(self) -> None:
        self.closed = True


def make_payload(issues=1, suggestions=1, metrics=True) -> dict:
    """Well-formed model payload"""
    return {
        'summary': 'Code looks good with minor improvements needed',
        'issues': [
            {
                'severity': 'low',
                'type': 'quality',
                'line': index + 1,
                'column': 1,
                'message': 'Function could use type annotations',
                'suggestion': 'Add return type annotation',
                'codeSnippet': 'def test() -> str:'
            }
            for index in range(issues)
        ],
        'suggestions': [
            {
                'type': 'improvement',
                'description': 'Add type annotations',
                'impact': 'Improves code maintainability'
            }
            for _ in range(suggestions)
        ],
        'metrics': {
            'complexity': 1,
            'maintainability': 8,
            'testability': 9,
            'security': 10
        } if metrics else {}
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def valid_content():
    return json.dumps(make_payload())


@pytest.fixture
def fake_client(valid_content):
    return FakeInferenceClient(content=valid_content)


@pytest.fixture
def make_request():
    def _make(file_name: str = "test.py", analysis_type: str = "quality", **kwargs):
        return AnalysisRequest(
            file_name=file_name,
            language=kwargs.pop('language', 'python'),
            code=kwargs.pop('code', 'def test():\n    return "hello"\n'),
            analysis_type=analysis_type,
            **kwargs
        )
    return _make

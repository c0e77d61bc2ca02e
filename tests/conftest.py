import asyncio
from types import SimpleNamespace

import pytest

from seekchat.client.local import LocalBackend


def make_chunk(text: str | None):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class FakeLLM:
    """Stand-in for litellm.acompletion driven by a script of steps.

    str or None -> yielded as a chunk, BaseException -> raised mid-stream,
    asyncio.Event -> awaited, callable -> called.
    """

    def __init__(self):
        self.calls: list[dict] = []
        self.script: list = []
        self.open_error: Exception | None = None

    async def acompletion(self, **kwargs):
        self.calls.append(kwargs)
        if self.open_error is not None:
            raise self.open_error
        script = list(self.script)

        async def gen():
            for step in script:
                if isinstance(step, BaseException):
                    raise step
                if isinstance(step, asyncio.Event):
                    await step.wait()
                    continue
                if callable(step):
                    step()
                    continue
                yield make_chunk(step)

        return gen()


@pytest.fixture
def fake_llm(monkeypatch):
    from common import llm as common_llm

    fake = FakeLLM()
    monkeypatch.setattr(common_llm, "acompletion", fake.acompletion)
    return fake


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def backend(data_dir):
    return LocalBackend(data_dir)

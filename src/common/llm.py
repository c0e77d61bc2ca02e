import warnings
from typing import Any, AsyncIterator

import litellm
from litellm import acompletion as litellm_acompletion

warnings.filterwarnings("ignore", message="Pydantic serializer warnings")
litellm.drop_params = True


class StreamError(Exception):
    pass


async def acompletion(
    model: str,
    messages: list[dict],
    stream: bool = False,
    temperature: float = 0.0,
    max_tokens: int = 4096,
    **kwargs,
) -> Any:
    params = {
        "model": model,
        "messages": messages,
        "stream": stream,
        "temperature": temperature,
        "max_tokens": max_tokens,
        **kwargs,
    }
    return await litellm_acompletion(**params)


def _delta_text(chunk: Any) -> str:
    choices = getattr(chunk, "choices", None) or []
    if not choices:
        return ""
    delta = getattr(choices[0], "delta", None)
    content = getattr(delta, "content", None) if delta is not None else None
    return content or ""


async def stream_text(
    model: str,
    messages: list[dict],
    temperature: float = 0.0,
    max_tokens: int = 4096,
    **kwargs,
) -> AsyncIterator[str]:
    """Yield the text fragments of a streamed chat completion, in order.

    Provider failures are raised as `StreamError`. `asyncio.CancelledError`
    passes through untouched.
    """
    try:
        stream = await acompletion(
            model=model,
            messages=messages,
            stream=True,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )
    except Exception as e:
        raise StreamError(str(e)) from e

    try:
        async for chunk in stream:
            text = _delta_text(chunk)
            if text:
                yield text
    except Exception as e:
        raise StreamError(str(e)) from e

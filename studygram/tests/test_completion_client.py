# studygram/tests/test_completion_client.py
import httpx
import openai
import pytest

from studygram.services.completion_client import (
    CompletionClient,
    CompletionNotConfigured,
    is_credential_error,
    parse_completion,
)
from studygram.tests.conftest import make_settings


def test_parse_completion_from_dict_payload():
    result = parse_completion(
        {
            "model": "gpt-3.5-turbo",
            "choices": [{"message": {"role": "assistant", "content": "Hello"}}],
            "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
        }
    )
    assert result.content == "Hello"
    assert result.usage == {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4}


def test_parse_completion_without_choices():
    result = parse_completion({"choices": []})
    assert result.content is None
    assert result.usage == {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}


def test_credential_error_classification():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    auth = openai.AuthenticationError("bad key", response=httpx.Response(401, request=request), body=None)
    assert is_credential_error(auth)
    assert is_credential_error(CompletionNotConfigured())
    assert is_credential_error(Exception("You didn't provide an API key."))
    assert not is_credential_error(Exception("Rate limit reached"))
    # the substring match is case-sensitive
    assert not is_credential_error(Exception("api key missing"))


def test_client_not_configured_without_key():
    client = CompletionClient(make_settings(openai_api_key=None))
    assert client.configured is False


@pytest.mark.asyncio
async def test_complete_raises_when_not_configured():
    client = CompletionClient(make_settings(openai_api_key=None))
    with pytest.raises(CompletionNotConfigured):
        await client.complete([{"role": "user", "content": "hi"}])


@pytest.mark.asyncio
async def test_complete_passes_model_and_params(completion, fake_openai):
    result = await completion.complete([{"role": "user", "content": "hi"}], temperature=0.2)
    assert fake_openai.calls == [
        {"model": "gpt-3.5-turbo", "messages": [{"role": "user", "content": "hi"}], "temperature": 0.2}
    ]
    assert result.content == "Photosynthesis turns light into chemical energy."

# studygram/tests/test_chat_service.py
from types import SimpleNamespace

import httpx
import openai
import pytest

from studygram.errors import BadRequest, ServiceMisconfigured, UpstreamFailure
from studygram.services.chat_service import (
    CHAT_PARAMS,
    FALLBACK_RESPONSE,
    SYSTEM_PROMPT,
    ChatService,
)
from studygram.services.completion_client import CompletionClient
from studygram.tests.conftest import FakeOpenAI, make_settings


def _auth_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.AuthenticationError(
        "Incorrect key provided", response=httpx.Response(401, request=request), body=None
    )


@pytest.fixture
def chat(study_data, completion):
    return ChatService(study_data, completion)


@pytest.mark.asyncio
@pytest.mark.parametrize("message,user_id", [(None, "u1"), ("hi", None), ("", "u1"), ("hi", "")])
async def test_missing_fields_rejected_without_outbound_calls(chat, fake_openai, fake_db, message, user_id):
    with pytest.raises(BadRequest) as err:
        await chat.chat(message, user_id)
    assert err.value.status_code == 400
    assert fake_openai.calls == []
    assert fake_db.calls == []


@pytest.mark.asyncio
async def test_example_request_sends_system_and_user_messages(chat, fake_openai):
    out = await chat.chat("Explain photosynthesis", "u1", conversation_history=[])
    sent = fake_openai.calls[0]
    assert [m["role"] for m in sent["messages"]] == ["system", "user"]
    assert sent["messages"][0]["content"] == SYSTEM_PROMPT
    assert sent["messages"][1]["content"] == "Explain photosynthesis"
    assert out == {
        "response": "Photosynthesis turns light into chemical energy.",
        "usage": {"prompt_tokens": 120, "completion_tokens": 40, "total_tokens": 160},
    }


@pytest.mark.asyncio
async def test_history_copied_verbatim_between_system_and_new_message(chat, fake_openai):
    history = [
        {"role": "user", "content": "What is a cell?"},
        {"role": "assistant", "content": "The basic unit of life."},
        {"role": "narrator", "content": "roles are not validated"},
    ]
    await chat.chat("And a tissue?", "u1", conversation_history=history)
    messages = fake_openai.calls[0]["messages"]
    assert len(messages) == len(history) + 2
    assert messages[1:-1] == history
    assert messages[-1] == {"role": "user", "content": "And a tissue?"}


@pytest.mark.asyncio
async def test_sampling_parameters_and_model(chat, fake_openai):
    await chat.chat("hi", "u1")
    sent = fake_openai.calls[0]
    assert sent["model"] == "gpt-3.5-turbo"
    for key, value in CHAT_PARAMS.items():
        assert sent[key] == value
    assert sent["max_tokens"] == 1000


@pytest.mark.asyncio
async def test_course_name_and_subject_only_when_course_resolves(chat, fake_openai, fake_db):
    fake_db.seed("courses", {"id": "c1", "user_id": "u1", "name": "Organic Chemistry", "subject": "Chemistry"})

    await chat.chat("hi", "u1", course_id="c1")
    system = fake_openai.calls[-1]["messages"][0]["content"]
    assert "Organic Chemistry" in system and "(Chemistry)" in system

    await chat.chat("hi", "u2", course_id="c1")
    system = fake_openai.calls[-1]["messages"][0]["content"]
    assert "Organic Chemistry" not in system and "Chemistry" not in system


@pytest.mark.asyncio
async def test_study_activity_segment_lists_each_session(chat, fake_openai, fake_db):
    await chat.chat("hi", "u1")
    assert "Recent Study Activities" not in fake_openai.calls[-1]["messages"][0]["content"]

    fake_db.seed(
        "study_sessions",
        {"user_id": "u1", "activity_type": "reading", "start_time": "2024-01-01T09:00:00", "courses": {"name": "Math"}},
        {"user_id": "u1", "activity_type": "review", "start_time": "2024-01-02T09:00:00", "courses": None},
    )
    await chat.chat("hi", "u1")
    system = fake_openai.calls[-1]["messages"][0]["content"]
    segment = system.split("Recent Study Activities: ", 1)[1]
    assert segment.split(", ") == ["review in Unknown Course", "reading in Math"]


@pytest.mark.asyncio
async def test_usage_upsert_writes_literal_one(chat, fake_db):
    await chat.chat("hi", "u1")
    await chat.chat("again", "u1")
    assert fake_db.rows("usage_stats") == [{"user_id": "u1", "ai_queries_used": 1}]
    upserts = fake_db.calls_for("usage_stats", "upsert")
    assert len(upserts) == 2


@pytest.mark.asyncio
async def test_usage_write_failure_does_not_change_response(chat, fake_db):
    fake_db.fail_tables.add("usage_stats")
    out = await chat.chat("hi", "u1")
    assert out["response"] == "Photosynthesis turns light into chemical energy."


@pytest.mark.asyncio
async def test_empty_choice_falls_back_and_usage_defaults_to_zero(study_data, settings):
    fake = FakeOpenAI(content=None)
    fake.usage = None
    chat = ChatService(study_data, CompletionClient(settings, client=fake))
    out = await chat.chat("hi", "u1")
    assert out["response"] == FALLBACK_RESPONSE
    assert out["usage"] == {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}


@pytest.mark.asyncio
async def test_partial_usage_defaults_missing_counters(study_data, settings):
    fake = FakeOpenAI()
    fake.usage = SimpleNamespace(prompt_tokens=7, completion_tokens=None, total_tokens=None)
    chat = ChatService(study_data, CompletionClient(settings, client=fake))
    out = await chat.chat("hi", "u1")
    assert out["usage"] == {"prompt_tokens": 7, "completion_tokens": 0, "total_tokens": 0}


@pytest.mark.asyncio
async def test_authentication_error_is_service_misconfigured(study_data, settings):
    chat = ChatService(study_data, CompletionClient(settings, client=FakeOpenAI(error=_auth_error())))
    with pytest.raises(ServiceMisconfigured) as err:
        await chat.chat("hi", "u1")
    assert err.value.message == "OpenAI API key not configured"


@pytest.mark.asyncio
async def test_missing_key_is_service_misconfigured(study_data):
    chat = ChatService(study_data, CompletionClient(make_settings(openai_api_key=None)))
    with pytest.raises(ServiceMisconfigured):
        await chat.chat("hi", "u1")


@pytest.mark.asyncio
async def test_api_key_substring_fallback_is_service_misconfigured(study_data, settings):
    # untyped errors are classified by message text only; brittle by nature
    error = RuntimeError("Invalid API key supplied")
    chat = ChatService(study_data, CompletionClient(settings, client=FakeOpenAI(error=error)))
    with pytest.raises(ServiceMisconfigured):
        await chat.chat("hi", "u1")


@pytest.mark.asyncio
async def test_other_errors_are_upstream_failures(study_data, settings, fake_db):
    chat = ChatService(study_data, CompletionClient(settings, client=FakeOpenAI(error=TimeoutError("read timed out"))))
    with pytest.raises(UpstreamFailure) as err:
        await chat.chat("hi", "u1")
    assert err.value.message == "Failed to get AI response"
    assert fake_db.calls_for("usage_stats") == []

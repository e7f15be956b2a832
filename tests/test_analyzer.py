"""Tests for the Claude-backed classification and diagnosis calls."""

import json
from types import SimpleNamespace

import anthropic
import httpx
import pytest

import analyzer
import config
from analyzer import (
    QuestionAnalyzer,
    image_data_url,
    split_data_url,
    strip_code_fence,
    validate_classification,
)
from models import Subject


class FakeMessages:
    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    def create(self, **request):
        self.requests.append(request)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, SimpleNamespace):
            return reply
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=reply)])


def fake_client(*replies):
    return SimpleNamespace(messages=FakeMessages(replies))


@pytest.fixture(autouse=True)
def no_waiting(monkeypatch):
    monkeypatch.setattr(config, "RATE_LIMIT_SECONDS", 0)
    monkeypatch.setattr(analyzer.time, "sleep", lambda seconds: None)


def _request():
    return httpx.Request("POST", "https://api.anthropic.com/v1/messages")


CLASSIFICATION = {
    "subject": "职测",
    "category": "资料分析",
    "subCategory": "增长率计算",
    "questionText": "2023年某市GDP...",
    "analysis": "混淆增长量与增长率",
    "solution": "先求基期再求增长率",
}


def test_strip_code_fence():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('  {"a": 1} ') == '{"a": 1}'


def test_data_url_round_trip():
    url = image_data_url(b"\x89PNG", "image/png")
    assert url.startswith("data:image/png;base64,")
    assert split_data_url(url) == {"media_type": "image/png", "data": "iVBORw=="}
    assert split_data_url("https://example.com/a.png") is None


def test_validate_classification_defaults():
    result = validate_classification({"subject": "英语", "category": "综合应用-案例分析"})
    assert result.subject == Subject.ZHICE
    assert result.category == "言语理解与表达"
    assert result.sub_category == ""

    result = validate_classification({"subject": "综应", "category": "综合应用-文书写作"})
    assert result.subject == Subject.ZONGYING
    assert result.category == "综合应用-文书写作"


def test_classify_image_success():
    client = fake_client("```json\n" + json.dumps(CLASSIFICATION, ensure_ascii=False) + "\n```")
    result = QuestionAnalyzer(client=client).classify_image(b"img", "image/png")

    assert result.ok
    assert result.value.category == "资料分析"
    assert result.value.solution == "先求基期再求增长率"

    [request] = client.messages.requests
    image_block, text_block = request["messages"][0]["content"]
    assert image_block["source"] == {"type": "base64", "media_type": "image/png", "data": "aW1n"}
    assert "错题截图" in text_block["text"]
    assert request["model"] == config.MODEL


def test_classify_image_unparseable_keeps_raw_text():
    result = QuestionAnalyzer(client=fake_client("这是一道资料分析题")).classify_image(b"img")
    assert not result.ok
    assert result.value is None
    assert result.raw_text == "这是一道资料分析题"
    assert result.error


def test_missing_api_key_is_a_failure():
    qa = QuestionAnalyzer(api_key="")
    assert not qa.available
    assert not qa.classify_image(b"img").ok
    assert not qa.diagnose("职测", "数量关系", "", "我以为", "").ok


def test_transient_errors_are_retried():
    client = fake_client(
        anthropic.APIConnectionError(request=_request()),
        json.dumps(CLASSIFICATION, ensure_ascii=False),
    )
    result = QuestionAnalyzer(client=client).classify_image(b"img")
    assert result.ok
    assert len(client.messages.requests) == 2


def test_gives_up_after_max_retries():
    errors = [anthropic.APIConnectionError(request=_request()) for _ in range(config.MAX_RETRIES)]
    client = fake_client(*errors)
    result = QuestionAnalyzer(client=client).classify_image(b"img")
    assert not result.ok
    assert len(client.messages.requests) == config.MAX_RETRIES


def test_authentication_error_is_not_retried():
    response = httpx.Response(401, request=_request())
    client = fake_client(anthropic.AuthenticationError("bad key", response=response, body=None))
    result = QuestionAnalyzer(client=client).diagnose("职测", "数量关系", "", "我以为", "")
    assert not result.ok
    assert len(client.messages.requests) == 1


def test_diagnose_success_with_image():
    reply = {"analysis": "学员错在...", "refinedSubCategory": "工程问题-效率", "suggestion": "整理公式"}
    client = fake_client(json.dumps(reply, ensure_ascii=False))
    url = image_data_url(b"img")

    result = QuestionAnalyzer(client=client).diagnose(
        Subject.ZHICE, "数量关系", "工程问题", "", "正确做法", image_url=url
    )

    assert result.ok
    assert result.value.refined_sub_category == "工程问题-效率"
    [request] = client.messages.requests
    blocks = request["messages"][0]["content"]
    assert blocks[0]["type"] == "image"
    assert analyzer.MISSING_THINKING in blocks[1]["text"]
    assert "正确做法" in blocks[1]["text"]
    assert request["system"] == analyzer.DIAGNOSIS_SYSTEM_PROMPT


def test_diagnose_without_image_sends_text_only():
    client = fake_client('{"analysis": "x"}')
    QuestionAnalyzer(client=client).diagnose("综应", "综合应用-案例分析", "", "思路", "")
    [request] = client.messages.requests
    blocks = request["messages"][0]["content"]
    assert [b["type"] for b in blocks] == ["text"]
    assert analyzer.MISSING_RESOLUTION in blocks[0]["text"]


def test_diagnose_invalid_json_is_failure():
    result = QuestionAnalyzer(client=fake_client("[1, 2]")).diagnose("职测", "数量关系", "", "a", "b")
    assert not result.ok


@pytest.mark.parametrize("error_class,status", [
    (anthropic.NotFoundError, 404),
    (anthropic.PermissionDeniedError, 403),
    (anthropic.UnprocessableEntityError, 422),
])
def test_other_status_errors_become_failures(error_class, status):
    response = httpx.Response(status, request=_request())
    client = fake_client(error_class("model not found", response=response, body=None))

    result = QuestionAnalyzer(client=client).diagnose("职测", "数量关系", "", "我的思路", "正解")

    assert not result.ok
    assert result.error == "深度分析失败，请稍后重试。"
    assert len(client.messages.requests) == 1


def test_unknown_status_error_on_classify_is_failure():
    response = httpx.Response(418, request=_request())
    client = fake_client(anthropic.APIStatusError("teapot", response=response, body=None))
    result = QuestionAnalyzer(client=client).classify_image(b"img")
    assert not result.ok
    assert result.error == "AI分析失败，请手动输入。"


@pytest.mark.parametrize("response", [
    SimpleNamespace(content=[]),
    SimpleNamespace(content=None),
    SimpleNamespace(content=[SimpleNamespace(type="tool_use", id="t1", name="x", input={})]),
])
def test_response_without_text_block_is_failure(response):
    client = fake_client(response)
    result = QuestionAnalyzer(client=client).classify_image(b"img")
    assert not result.ok
    assert result.error == "AI分析失败，请手动输入。"

    client = fake_client(response)
    assert not QuestionAnalyzer(client=client).diagnose("职测", "数量关系", "", "a", "b").ok


def test_text_block_after_other_blocks_is_used():
    response = SimpleNamespace(content=[
        SimpleNamespace(type="thinking", thinking="..."),
        SimpleNamespace(type="text", text=json.dumps(CLASSIFICATION, ensure_ascii=False)),
    ])
    result = QuestionAnalyzer(client=fake_client(response)).classify_image(b"img")
    assert result.ok
    assert result.value.category == "资料分析"

"""Tests for LLM extraction and its rule-based fallback."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

import httpx
import pytest
import pytz

from scheduler.services.extractor import FieldExtractor, ParsedAppointment
from scheduler.services.llm_client import DeepSeekProvider, GeminiProvider
from scheduler.config import Settings
from scheduler.services.smart_extractor import (
    LLMAppointmentSource,
    SmartExtractor,
    build_source_from_settings,
)

DENVER = pytz.timezone("America/Denver")
NOW = DENVER.localize(datetime(2026, 10, 19, 10, 30))
TEXT = "John Doe 7205551212 wants estimate Tuesday at 3pm"


class FakeClient:
    """Mock HTTP client returning real httpx responses."""

    def __init__(
        self,
        payload: Any = None,
        status_code: int = 200,
        error: Exception | None = None,
        content: bytes | None = None,
    ) -> None:
        self.payload = payload
        self.status_code = status_code
        self.error = error
        self.content = content
        self.requests: list[dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        self.requests.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        request = httpx.Request("POST", url)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content, request=request)
        return httpx.Response(self.status_code, json=self.payload, request=request)

    def close(self) -> None:
        pass


def chat_reply(content: Any) -> dict:
    if not isinstance(content, str):
        content = json.dumps(content)
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_extractor(client: FakeClient) -> SmartExtractor:
    provider = DeepSeekProvider(api_key="test-key", client=client)
    return SmartExtractor(
        source=LLMAppointmentSource(provider),
        fallback=FieldExtractor(timezone="America/Denver"),
    )


def rule_based(text: str) -> ParsedAppointment | None:
    return FieldExtractor(timezone="America/Denver").extract(text, NOW)


class TestRemoteSuccess:
    def test_adopts_remote_record(self):
        client = FakeClient(
            chat_reply(
                {
                    "name": "John Doe",
                    "phone": "(720) 555 1212",
                    "datetime": "2026-10-20T15:00:00",
                    "details": "Wants an estimate",
                }
            )
        )
        result = make_extractor(client).extract(TEXT, NOW)

        assert result == ParsedAppointment(
            name="John Doe",
            phone="720-555-1212",
            datetime="2026-10-20T15:00:00-06:00",
            details="Wants an estimate",
        )

    def test_empty_fields_become_sentinels(self):
        client = FakeClient(
            chat_reply({"name": "", "phone": "", "datetime": "2026-10-20T09:00:00-06:00", "details": ""})
        )
        result = make_extractor(client).extract("something tomorrow", NOW)

        assert result.name == "Unknown"
        assert result.phone == "No phone"
        assert result.details == "No details provided"
        assert result.datetime == "2026-10-20T09:00:00-06:00"

    def test_request_shape(self):
        client = FakeClient(
            chat_reply({"name": "A", "phone": "", "datetime": "2026-10-20T09:00:00", "details": "x"})
        )
        make_extractor(client).extract(TEXT, NOW)

        request = client.requests[0]
        assert request["url"] == "https://api.deepseek.com/v1/chat/completions"
        assert request["headers"]["Authorization"] == "Bearer test-key"
        body = request["json"]
        assert body["model"] == "deepseek-chat"
        assert body["temperature"] == 0.3
        assert body["response_format"] == {"type": "json_object"}
        assert body["messages"][0]["role"] == "system"
        assert "Today is 2026-10-19 (Monday)" in body["messages"][0]["content"]
        assert "use 9:00 AM" in body["messages"][0]["content"]
        assert body["messages"][1] == {"role": "user", "content": TEXT}

    def test_gemini_source(self):
        payload = {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {
                                "text": json.dumps(
                                    {
                                        "name": "Jane",
                                        "phone": "3035550199",
                                        "datetime": "2026-10-21T11:00:00-06:00",
                                        "details": "fence repair",
                                    }
                                )
                            }
                        ]
                    }
                }
            ]
        }
        client = FakeClient(payload)
        provider = GeminiProvider(api_key="g-key", client=client)
        extractor = SmartExtractor(
            source=LLMAppointmentSource(provider), fallback=FieldExtractor("America/Denver")
        )

        result = extractor.extract("Jane fence repair", NOW)

        assert result.phone == "303-555-0199"
        assert result.datetime == "2026-10-21T11:00:00-06:00"
        assert client.requests[0]["params"] == {"key": "g-key"}


class TestFallback:
    @pytest.mark.parametrize(
        "client",
        [
            FakeClient(error=httpx.ReadTimeout("timed out")),
            FakeClient(error=httpx.ConnectError("connection refused")),
            FakeClient({"error": "boom"}, status_code=500),
            FakeClient(content=b"<html>not json</html>"),
            FakeClient({"choices": []}),
            FakeClient(chat_reply("not json at all")),
            FakeClient(chat_reply([1, 2, 3])),
            FakeClient(chat_reply({"name": "John", "phone": "7205551212", "details": "x"})),
            FakeClient(
                chat_reply({"name": "John", "phone": "555-1212", "datetime": "2026-10-20", "details": "x"})
            ),
            FakeClient(
                chat_reply({"name": 7, "phone": "", "datetime": "2026-10-20T09:00:00", "details": "x"})
            ),
            FakeClient(
                chat_reply({"name": "John", "phone": "", "datetime": "next week", "details": "x"})
            ),
            FakeClient(chat_reply({"name": "John", "phone": "", "datetime": "", "details": "x"})),
        ],
        ids=[
            "timeout",
            "connect-error",
            "status-500",
            "body-not-json",
            "no-choices",
            "content-not-json",
            "content-not-object",
            "missing-field",
            "short-phone",
            "non-string-field",
            "bad-datetime",
            "empty-datetime",
        ],
    )
    def test_failure_matches_rule_based_output(self, client):
        result = make_extractor(client).extract(TEXT, NOW)

        assert result == rule_based(TEXT)
        assert len(client.requests) == 1

    def test_no_source_uses_rules(self):
        extractor = SmartExtractor(source=None, fallback=FieldExtractor("America/Denver"))
        assert extractor.extract(TEXT, NOW) == rule_based(TEXT)

    def test_blank_input_skips_remote(self):
        client = FakeClient(chat_reply({}))
        assert make_extractor(client).extract("   ", NOW) is None
        assert client.requests == []

    def test_fallback_gets_original_text(self):
        class RecordingExtractor(FieldExtractor):
            def __init__(self) -> None:
                super().__init__(timezone="America/Denver")
                self.calls: list[str] = []

            def extract(self, text, now=None):
                self.calls.append(text)
                return super().extract(text, now)

        fallback = RecordingExtractor()
        provider = DeepSeekProvider(api_key="k", client=FakeClient(status_code=503))
        extractor = SmartExtractor(source=LLMAppointmentSource(provider), fallback=fallback)

        extractor.extract("  Ann tomorrow  ", NOW)

        assert fallback.calls == ["  Ann tomorrow  "]

    def test_failure_is_logged(self, caplog):
        client = FakeClient(error=httpx.ReadTimeout("timed out"))
        with caplog.at_level("WARNING", logger="scheduler.services.smart_extractor"):
            make_extractor(client).extract(TEXT, NOW)
        assert "falling back" in caplog.text


class TestBuildSource:
    def test_mixed_case_provider(self, monkeypatch):
        import scheduler.config as config

        monkeypatch.setattr(
            config, "settings", Settings(_env_file=None, llm_provider="DeepSeek", deepseek_api_key="k")
        )

        source = build_source_from_settings()

        assert isinstance(source, LLMAppointmentSource)
        assert isinstance(source.provider, DeepSeekProvider)

    def test_no_key_means_rules_only(self, monkeypatch):
        import scheduler.config as config

        monkeypatch.setattr(config, "settings", Settings(_env_file=None, llm_provider="Gemini"))

        assert build_source_from_settings() is None

"""LLM-backed appointment extraction with rule-based fallback."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, StrictStr, field_validator

from scheduler.services.extractor import (
    NO_DETAILS,
    NO_PHONE,
    UNKNOWN_NAME,
    FieldExtractor,
    ParsedAppointment,
    format_phone,
    format_timestamp,
    localize,
)

if TYPE_CHECKING:
    from scheduler.services.llm_client import BaseLLMProvider

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an appointment parser. Extract information and return ONLY valid JSON "
    "with these exact fields: name (string), phone (string with 10 digits), "
    "datetime (ISO 8601 string), details (string). "
    "Use an empty string for any field you cannot find. "
    "If time is not specified, use 9:00 AM. Today is {today} ({weekday})."
)


class AppointmentSource(Protocol):
    """Anything that can turn text into a ParsedAppointment or raise trying."""

    def extract(self, text: str, now: datetime) -> ParsedAppointment: ...


class RemoteAppointment(BaseModel):
    """Shape the remote model must reply with. All four keys are required."""

    name: StrictStr
    phone: StrictStr
    datetime: StrictStr
    details: StrictStr

    @field_validator("name", "details", "datetime")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("phone")
    @classmethod
    def _normalize_phone(cls, value: str) -> str:
        if not value.strip():
            return ""
        digits = re.sub(r"\D", "", value)
        if len(digits) != 10:
            raise ValueError(f"phone must contain 10 digits, got {len(digits)}")
        return format_phone(digits)


class LLMAppointmentSource:
    """Ask a remote LLM to extract the appointment fields.

    Raises on any transport, status, JSON or validation problem; the caller
    decides what to do about it.
    """

    def __init__(self, provider: BaseLLMProvider, temperature: float = 0.3) -> None:
        self.provider = provider
        self.temperature = temperature

    def extract(self, text: str, now: datetime) -> ParsedAppointment:
        system_prompt = SYSTEM_PROMPT.format(
            today=now.date().isoformat(), weekday=now.strftime("%A")
        )
        response = self.provider.complete(
            text,
            system_prompt=system_prompt,
            temperature=self.temperature,
            json_mode=True,
        )
        if not response.text:
            raise ValueError("No content in LLM response")

        remote = RemoteAppointment.model_validate_json(response.text)
        when = self._parse_datetime(remote.datetime, now)

        return ParsedAppointment(
            name=remote.name or UNKNOWN_NAME,
            phone=remote.phone or NO_PHONE,
            datetime=format_timestamp(when),
            details=remote.details or NO_DETAILS,
        )

    def _parse_datetime(self, value: str, now: datetime) -> datetime:
        if not value:
            raise ValueError("LLM response has an empty datetime")
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None and now.tzinfo is not None:
            return localize(parsed, now.tzinfo)
        return parsed


class SmartExtractor:
    """Try the remote source once, falling back to the rule-based extractor.

    The fallback runs on the original input with the same ``now`` so its
    output is identical to calling the rule-based extractor directly.
    """

    def __init__(
        self,
        source: AppointmentSource | None = None,
        fallback: FieldExtractor | None = None,
    ) -> None:
        self.source = source
        self.fallback = fallback or FieldExtractor()

    def extract(self, text: str, now: datetime | None = None) -> ParsedAppointment | None:
        if not text.strip():
            return None

        current = (
            localize(now, self.fallback.timezone) if now is not None else self.fallback.now()
        )

        if self.source is None:
            return self.fallback.extract(text, current)

        try:
            return self.source.extract(text, current)
        except Exception as exc:
            logger.warning("Remote extraction failed; falling back to rule-based extractor: %s", exc)
            return self.fallback.extract(text, current)


_smart_extractor: SmartExtractor | None = None


def build_source_from_settings() -> AppointmentSource | None:
    from scheduler.config import settings
    from scheduler.services.llm_client import LLMProvider, create_provider

    if not settings.has_llm:
        logger.info("No API key for %s; using rule-based extractor only", settings.llm_provider)
        return None

    provider = LLMProvider(settings.llm_provider)
    api_key = settings.gemini_api_key if provider is LLMProvider.GEMINI else settings.deepseek_api_key
    return LLMAppointmentSource(
        create_provider(
            provider,
            api_key,
            model=settings.llm_model or None,
            timeout=settings.llm_timeout_seconds,
        )
    )


def get_smart_extractor() -> SmartExtractor:
    global _smart_extractor
    if _smart_extractor is None:
        _smart_extractor = SmartExtractor(source=build_source_from_settings())
    return _smart_extractor

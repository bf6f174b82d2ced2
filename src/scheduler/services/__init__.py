"""Scheduler services.

Imports are lazy so that the rule-based extractor can be used without
pulling in the HTTP and storage layers.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS: dict[str, tuple[str, str]] = {
    # Rule-based extraction
    "FieldExtractor": ("scheduler.services.extractor", "FieldExtractor"),
    "ParsedAppointment": ("scheduler.services.extractor", "ParsedAppointment"),
    "extract": ("scheduler.services.extractor", "extract"),
    "get_extractor": ("scheduler.services.extractor", "get_extractor"),
    # Remote extraction
    "LLMAppointmentSource": ("scheduler.services.smart_extractor", "LLMAppointmentSource"),
    "SmartExtractor": ("scheduler.services.smart_extractor", "SmartExtractor"),
    "get_smart_extractor": ("scheduler.services.smart_extractor", "get_smart_extractor"),
    # Persistence
    "JsonStore": ("scheduler.services.storage", "JsonStore"),
    "get_store": ("scheduler.services.storage", "get_store"),
    "AppointmentBook": ("scheduler.services.appointments", "AppointmentBook"),
    "ClientRegistry": ("scheduler.services.clients", "ClientRegistry"),
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr = _EXPORTS[name]
    value = getattr(import_module(module_name), attr)
    globals()[name] = value
    return value

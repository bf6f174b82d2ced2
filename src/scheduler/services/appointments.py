"""Appointment book backed by the JSON store.

Appointments are created from free text through an extractor, given an
id, and persisted as one array under ``APPOINTMENTS_KEY``.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Protocol

from scheduler.services.schemas import Appointment
from scheduler.services.storage import APPOINTMENTS_KEY, JsonStore

if TYPE_CHECKING:
    from scheduler.services.extractor import ParsedAppointment

logger = logging.getLogger(__name__)


class AppointmentNotFoundError(Exception):
    """Raised when an appointment id is not in the book."""


class Extractor(Protocol):
    def extract(self, text: str, now: datetime | None = None) -> ParsedAppointment | None: ...


def _timestamp(appointment: Appointment) -> datetime:
    value = datetime.fromisoformat(appointment.datetime)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class AppointmentBook:
    def __init__(self, store: JsonStore, extractor: Extractor | None = None) -> None:
        self.store = store
        if extractor is None:
            from scheduler.services.smart_extractor import get_smart_extractor

            extractor = get_smart_extractor()
        self.extractor = extractor

    def _load(self) -> list[Appointment]:
        return [Appointment.model_validate(item) for item in self.store.load(APPOINTMENTS_KEY)]

    def _save(self, appointments: list[Appointment]) -> None:
        self.store.save(APPOINTMENTS_KEY, [a.model_dump(mode="json") for a in appointments])

    def add_from_text(self, text: str, now: datetime | None = None) -> Appointment | None:
        """Parse ``text`` and store the result. Blank text stores nothing."""
        parsed = self.extractor.extract(text, now)
        if parsed is None:
            return None

        appointment = Appointment(**parsed.to_dict())
        appointments = self._load()
        appointments.append(appointment)
        self._save(appointments)

        logger.info(f"Added appointment {appointment.id} for {appointment.datetime}")
        return appointment

    def list_appointments(self, on: date | None = None) -> list[Appointment]:
        """All appointments in chronological order, optionally only those on one day."""
        appointments = self._load()
        if on is not None:
            appointments = [a for a in appointments if datetime.fromisoformat(a.datetime).date() == on]
        return sorted(appointments, key=_timestamp)

    def get(self, appointment_id: str) -> Appointment:
        for appointment in self._load():
            if appointment.id == appointment_id:
                return appointment
        raise AppointmentNotFoundError(appointment_id)

    def delete(self, appointment_id: str) -> bool:
        appointments = self._load()
        remaining = [a for a in appointments if a.id != appointment_id]
        if len(remaining) == len(appointments):
            return False

        self._save(remaining)
        logger.info(f"Deleted appointment {appointment_id}")
        return True

    def link_client(self, appointment_id: str, client_id: str | None) -> Appointment:
        """Attach an appointment to a client, or detach it with ``None``."""
        appointments = self._load()
        for appointment in appointments:
            if appointment.id == appointment_id:
                appointment.client_id = client_id
                self._save(appointments)
                return appointment
        raise AppointmentNotFoundError(appointment_id)

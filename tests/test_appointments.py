from datetime import date, datetime

import pytest

from scheduler.services.appointments import AppointmentBook, AppointmentNotFoundError
from scheduler.services.extractor import FieldExtractor
from scheduler.services.storage import APPOINTMENTS_KEY, JsonStore


@pytest.fixture
def store(tmp_path):
    return JsonStore(tmp_path)


@pytest.fixture
def book(store):
    extractor = FieldExtractor(
        timezone="America/Denver", clock=lambda: datetime(2026, 10, 19, 10, 30)
    )
    return AppointmentBook(store, extractor=extractor)


class TestAddFromText:
    def test_adds_parsed_appointment(self, book, store):
        appointment = book.add_from_text("John Doe 7205551212 wants estimate Tuesday at 3pm")

        assert appointment.name == "John Doe"
        assert appointment.phone == "720-555-1212"
        assert appointment.datetime == "2026-10-20T15:00:00-06:00"
        assert appointment.details == "wants estimate"
        assert appointment.client_id is None
        assert appointment.id

        stored = store.load(APPOINTMENTS_KEY)
        assert stored == [appointment.model_dump(mode="json")]

    def test_blank_text_adds_nothing(self, book, store):
        assert book.add_from_text("   ") is None
        assert store.load(APPOINTMENTS_KEY) == []

    def test_ids_are_unique(self, book):
        first = book.add_from_text("Ann tomorrow")
        second = book.add_from_text("Ann tomorrow")
        assert first.id != second.id

    def test_explicit_now_is_passed_through(self, book):
        appointment = book.add_from_text("Bo tomorrow", now=datetime(2026, 12, 1, 8, 0))
        assert appointment.datetime == "2026-12-02T09:00:00-07:00"


class TestQueries:
    def test_listed_in_chronological_order(self, book):
        book.add_from_text("Late call friday at 5pm")
        book.add_from_text("Early call tomorrow at 8am")
        book.add_from_text("Middle call wednesday")

        names = [a.name for a in book.list_appointments()]

        assert names == ["Early", "Middle", "Late"]

    def test_filter_by_day(self, book):
        book.add_from_text("Ann tomorrow at 8am")
        book.add_from_text("Bob tomorrow at 4pm")
        book.add_from_text("Cy on friday")

        on_tuesday = book.list_appointments(on=date(2026, 10, 20))

        assert [a.name for a in on_tuesday] == ["Ann", "Bob"]
        assert book.list_appointments(on=date(2026, 10, 21)) == []

    def test_get(self, book):
        added = book.add_from_text("Ann tomorrow")
        assert book.get(added.id) == added

    def test_get_unknown(self, book):
        with pytest.raises(AppointmentNotFoundError):
            book.get("nope")


class TestMutations:
    def test_delete(self, book):
        keep = book.add_from_text("Ann tomorrow")
        drop = book.add_from_text("Bob tomorrow")

        assert book.delete(drop.id) is True
        assert [a.id for a in book.list_appointments()] == [keep.id]

    def test_delete_unknown(self, book):
        book.add_from_text("Ann tomorrow")
        assert book.delete("nope") is False
        assert len(book.list_appointments()) == 1

    def test_link_and_unlink_client(self, book):
        added = book.add_from_text("Ann tomorrow")

        linked = book.link_client(added.id, "client-1")
        assert linked.client_id == "client-1"
        assert book.get(added.id).client_id == "client-1"

        book.link_client(added.id, None)
        assert book.get(added.id).client_id is None

    def test_link_unknown_appointment(self, book):
        with pytest.raises(AppointmentNotFoundError):
            book.link_client("nope", "client-1")

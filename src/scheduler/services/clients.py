"""Client registry (lightweight CRM) stored as one JSON array."""

from __future__ import annotations

import logging
import re
from typing import Any

from scheduler.services.schemas import Client, ClientStatus
from scheduler.services.storage import CLIENTS_KEY, JsonStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"name", "phone", "status", "notes"}


class ClientValidationError(ValueError):
    """Raised when a client is missing a name or phone."""


class ClientNotFoundError(Exception):
    """Raised when a client id is not in the registry."""


def _digits(phone: str) -> str:
    return re.sub(r"\D", "", phone)


def _status(value: ClientStatus | str) -> ClientStatus:
    try:
        return ClientStatus(value)
    except ValueError as exc:
        raise ClientValidationError(f"Unknown client status: {value}") from exc


class ClientRegistry:
    def __init__(self, store: JsonStore) -> None:
        self.store = store

    def _load(self) -> list[Client]:
        return [Client.model_validate(item) for item in self.store.load(CLIENTS_KEY)]

    def _save(self, clients: list[Client]) -> None:
        self.store.save(CLIENTS_KEY, [c.model_dump(mode="json") for c in clients])

    def list_clients(self) -> list[Client]:
        return self._load()

    def get(self, client_id: str) -> Client:
        for client in self._load():
            if client.id == client_id:
                return client
        raise ClientNotFoundError(client_id)

    def find_by_phone(self, phone: str) -> Client | None:
        """Match on digits only, so 720-555-1212 finds (720) 555 1212."""
        wanted = _digits(phone)
        if not wanted:
            return None
        for client in self._load():
            if _digits(client.phone) == wanted:
                return client
        return None

    def add(
        self,
        name: str,
        phone: str,
        status: ClientStatus | str = ClientStatus.LEAD,
        notes: str = "",
    ) -> Client:
        name, phone = self._require_name_and_phone(name, phone)
        client = Client(name=name, phone=phone, status=_status(status), notes=notes.strip())

        clients = self._load()
        clients.append(client)
        self._save(clients)

        logger.info(f"Added client {client.id}")
        return client

    def update(self, client_id: str, **fields: Any) -> Client:
        """Replace the given fields on a client.

        Raises:
            ClientValidationError: Unknown field, or name/phone left blank.
            ClientNotFoundError: No client with ``client_id``.
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ClientValidationError(f"Unknown client field(s): {', '.join(sorted(unknown))}")

        clients = self._load()
        for index, client in enumerate(clients):
            if client.id != client_id:
                continue

            merged = client.model_dump()
            merged.update({k: v for k, v in fields.items() if v is not None})
            name, phone = self._require_name_and_phone(merged["name"], merged["phone"])

            updated = Client(
                id=client.id,
                name=name,
                phone=phone,
                status=_status(merged["status"]),
                notes=str(merged["notes"]).strip(),
            )
            clients[index] = updated
            self._save(clients)

            logger.info(f"Updated client {client_id}")
            return updated

        raise ClientNotFoundError(client_id)

    def delete(self, client_id: str) -> bool:
        clients = self._load()
        remaining = [c for c in clients if c.id != client_id]
        if len(remaining) == len(clients):
            return False

        self._save(remaining)
        logger.info(f"Deleted client {client_id}")
        return True

    @staticmethod
    def _require_name_and_phone(name: str, phone: str) -> tuple[str, str]:
        name, phone = (name or "").strip(), (phone or "").strip()
        if not name or not phone:
            raise ClientValidationError("Name and phone are required")
        return name, phone

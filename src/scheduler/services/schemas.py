import uuid
from enum import Enum

from pydantic import BaseModel, Field


class ClientStatus(str, Enum):
    LEAD = "Lead"
    CONSULTATION = "Consultation"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


def generate_id() -> str:
    return str(uuid.uuid4())


class Appointment(BaseModel):
    id: str = Field(default_factory=generate_id)
    name: str
    phone: str
    details: str
    datetime: str
    client_id: str | None = None


class Client(BaseModel):
    id: str = Field(default_factory=generate_id)
    name: str
    phone: str
    status: ClientStatus = ClientStatus.LEAD
    notes: str = ""

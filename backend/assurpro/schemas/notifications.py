from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class NotificationCreate(BaseModel):
    contrat_id: int | None = None
    type: Literal["renouvellement", "expiration", "info"]
    titre: str
    message: str


class NotificationOut(BaseModel):
    id: int
    entreprise_id: UUID
    contrat_id: int | None = None
    numero_contrat: str | None = None
    type: str
    titre: str
    message: str
    lu: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

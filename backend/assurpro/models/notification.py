from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime

from ..core.db import Base


class NotificationType:
    """Type values for Notification."""
    RENOUVELLEMENT = "renouvellement"
    EXPIRATION = "expiration"
    INFO = "info"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entreprise_id = Column(Uuid(as_uuid=True),
                           ForeignKey("entreprises.id", ondelete="CASCADE"),
                           index=True,
                           nullable=False)
    contrat_id = Column(Integer,
                        ForeignKey("contrats.id", ondelete="SET NULL"),
                        nullable=True)
    type = Column(String(50), nullable=False)
    titre = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    lu = Column(Boolean, index=True, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    contrat = relationship("Contrat")

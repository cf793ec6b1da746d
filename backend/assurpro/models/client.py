from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime

from ..core.db import Base


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entreprise_id = Column(Uuid(as_uuid=True),
                           ForeignKey("entreprises.id", ondelete="CASCADE"),
                           index=True,
                           nullable=False)
    nom = Column(String(255), nullable=False)
    prenom = Column(String(255), nullable=False, default="")  # full name lives in nom
    telephone = Column(String(20), nullable=False)
    email = Column(String(255), nullable=True)
    adresse = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vehicules = relationship(
        "Vehicule",
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="Vehicule.id",
    )
    contrats = relationship(
        "Contrat",
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="Contrat.date_fin",
    )

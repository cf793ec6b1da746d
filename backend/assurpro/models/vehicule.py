from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from ..core.db import Base


class Vehicule(Base):
    __tablename__ = "vehicules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer,
                       ForeignKey("clients.id", ondelete="CASCADE"),
                       index=True,
                       nullable=False)
    marque = Column(String(100), nullable=False, default="")
    modele = Column(String(100), nullable=False, default="")
    immatriculation = Column(String(50), unique=True, nullable=True)
    annee = Column(Integer, nullable=True)
    couleur = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client", back_populates="vehicules")

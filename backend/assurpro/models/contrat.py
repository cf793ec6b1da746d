from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from ..core.db import Base


class ContractStatus(str, enum.Enum):
    ACTIF = "actif"
    EXPIRE = "expire"
    RENOUVELE = "renouvele"
    ANNULE = "annule"


class Contrat(Base):
    """
    Insurance policy on one vehicle.

    ``montant`` is the net premium; every other premium figure (fees, tax,
    FGA levy, commission, net payable) is derived from it on demand.
    """
    __tablename__ = "contrats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer,
                       ForeignKey("clients.id", ondelete="CASCADE"),
                       index=True,
                       nullable=False)
    vehicule_id = Column(Integer,
                         ForeignKey("vehicules.id", ondelete="CASCADE"),
                         nullable=False)
    entreprise_id = Column(Uuid(as_uuid=True),
                           ForeignKey("entreprises.id", ondelete="CASCADE"),
                           index=True,
                           nullable=False)
    numero_contrat = Column(String(100), unique=True, nullable=False)
    type_contrat = Column(String(50), nullable=False)
    duree_mois = Column(Integer, nullable=False)
    date_debut = Column(Date, nullable=False)
    date_fin = Column(Date, index=True, nullable=False)
    montant = Column(Numeric(12, 2), nullable=False)
    montant_paye = Column(Numeric(12, 2), nullable=False, default=0)
    montant_restant = Column(Numeric(12, 2), nullable=False, default=0)
    # actif | expire | renouvele | annule
    statut = Column(String(20), index=True, nullable=False, default=ContractStatus.ACTIF.value)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client", back_populates="contrats")
    vehicule = relationship("Vehicule")

from sqlalchemy import Column, String, Text, Boolean, DateTime, Uuid
from datetime import datetime

from ..core.db import Base


class Entreprise(Base):
    """
    Company profile extending an identity-provider user.

    The primary key is the provider's user id; in PostgreSQL it also carries a
    foreign key to ``auth.users`` (see the initial migration), which is why a
    freshly signed-up user can briefly be rejected on insert.
    """
    __tablename__ = "entreprises"

    id = Column(Uuid(as_uuid=True), primary_key=True)
    nom = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    telephone = Column(String(20), nullable=True)
    adresse = Column(Text, nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

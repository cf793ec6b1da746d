"""create core tables

Revision ID: 4e1f2a7c9b30
Revises:
Create Date: 2026-01-12 09:12:44.218311

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4e1f2a7c9b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create entreprises, clients, vehicules, contrats and notifications."""
    op.create_table(
        "entreprises",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("nom", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("telephone", sa.String(length=20), nullable=True),
        sa.Column("adresse", sa.Text(), nullable=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    # Profile rows extend provider users; the provider owns the auth schema.
    op.create_foreign_key(
        "entreprises_id_fkey",
        "entreprises",
        "users",
        ["id"],
        ["id"],
        referent_schema="auth",
        ondelete="CASCADE",
    )

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "entreprise_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("entreprises.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("nom", sa.String(length=255), nullable=False),
        sa.Column("prenom", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("telephone", sa.String(length=20), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("adresse", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_clients_entreprise_id", "clients", ["entreprise_id"])

    op.create_table(
        "vehicules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "client_id",
            sa.Integer(),
            sa.ForeignKey("clients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("marque", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("modele", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("immatriculation", sa.String(length=50), nullable=True, unique=True),
        sa.Column("annee", sa.Integer(), nullable=True),
        sa.Column("couleur", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_vehicules_client_id", "vehicules", ["client_id"])

    op.create_table(
        "contrats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "client_id",
            sa.Integer(),
            sa.ForeignKey("clients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "vehicule_id",
            sa.Integer(),
            sa.ForeignKey("vehicules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "entreprise_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("entreprises.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("numero_contrat", sa.String(length=100), nullable=False, unique=True),
        sa.Column("type_contrat", sa.String(length=50), nullable=False),
        sa.Column("duree_mois", sa.Integer(), nullable=False),
        sa.Column("date_debut", sa.Date(), nullable=False),
        sa.Column("date_fin", sa.Date(), nullable=False),
        sa.Column("montant", sa.Numeric(12, 2), nullable=False),
        sa.Column("statut", sa.String(length=20), nullable=False, server_default="actif"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint(
            "statut IN ('actif', 'expire', 'renouvele', 'annule')",
            name="contrats_statut_check",
        ),
    )
    op.create_index("ix_contrats_client_id", "contrats", ["client_id"])
    op.create_index("ix_contrats_entreprise_id", "contrats", ["entreprise_id"])
    op.create_index("ix_contrats_date_fin", "contrats", ["date_fin"])
    op.create_index("ix_contrats_statut", "contrats", ["statut"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "entreprise_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("entreprises.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "contrat_id",
            sa.Integer(),
            sa.ForeignKey("contrats.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("titre", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("lu", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_entreprise_id", "notifications", ["entreprise_id"])
    op.create_index("ix_notifications_lu", "notifications", ["lu"])


def downgrade() -> None:
    """Drop all core tables."""
    op.drop_index("ix_notifications_lu", table_name="notifications")
    op.drop_index("ix_notifications_entreprise_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_contrats_statut", table_name="contrats")
    op.drop_index("ix_contrats_date_fin", table_name="contrats")
    op.drop_index("ix_contrats_entreprise_id", table_name="contrats")
    op.drop_index("ix_contrats_client_id", table_name="contrats")
    op.drop_table("contrats")
    op.drop_index("ix_vehicules_client_id", table_name="vehicules")
    op.drop_table("vehicules")
    op.drop_index("ix_clients_entreprise_id", table_name="clients")
    op.drop_table("clients")
    op.drop_table("entreprises")

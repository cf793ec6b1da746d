"""add payment columns to contrats

Revision ID: 8d3b5e61a2f4
Revises: 4e1f2a7c9b30
Create Date: 2026-02-03 16:47:05.902114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8d3b5e61a2f4'
down_revision: Union[str, Sequence[str], None] = '4e1f2a7c9b30'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Track paid and outstanding amounts per contract."""
    op.add_column(
        "contrats",
        sa.Column("montant_paye", sa.Numeric(12, 2), nullable=False, server_default="0"),
    )
    op.add_column(
        "contrats",
        sa.Column("montant_restant", sa.Numeric(12, 2), nullable=False, server_default="0"),
    )
    # Existing contracts start with nothing paid
    op.execute(
        "UPDATE contrats SET montant_restant = montant - montant_paye "
        "WHERE montant_restant = 0"
    )


def downgrade() -> None:
    """Remove payment columns from contrats."""
    op.drop_column("contrats", "montant_restant")
    op.drop_column("contrats", "montant_paye")

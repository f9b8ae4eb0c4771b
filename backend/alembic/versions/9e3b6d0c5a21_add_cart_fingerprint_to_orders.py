"""Add cart_fingerprint to orders

Revision ID: 9e3b6d0c5a21
Revises: 4c8e1f2a9b37
Create Date: 2026-10-18 16:40:03.552190

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers used by Alembic
revision: str = '9e3b6d0c5a21'
down_revision: Union[str, Sequence[str], None] = '4c8e1f2a9b37'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Cart lines an order was priced from; a repeated attempt key must match them
    with op.batch_alter_table('orders') as batch_op:
        batch_op.add_column(sa.Column('cart_fingerprint', sa.String(64), nullable=True))


def downgrade() -> None:
    """Downgrade schema."""
    with op.batch_alter_table('orders') as batch_op:
        batch_op.drop_column('cart_fingerprint')

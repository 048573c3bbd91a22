"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


ACCESSORY_ENUM = sa.Enum('NONE', 'GOLD_CHAIN', 'SILK_SCARF', 'TOP_HAT', 'DIAMOND_STUD', name='accessorytype')


def upgrade() -> None:
    # Create alpacas table
    op.create_table(
        'alpacas',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('color', sa.String(length=50), nullable=False),
        sa.Column('accessory', ACCESSORY_ENUM, nullable=False),
        sa.Column('stable_color', sa.String(length=50), nullable=False),
        sa.Column('background_image', sa.String(length=500), nullable=True),
        sa.Column('current_value', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('owner_name', sa.String(length=50), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('last_transfer_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_alpacas_id'), 'alpacas', ['id'], unique=False)

    # Create transactions table (append-only ledger)
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('alpaca_id', sa.Integer(), nullable=False),
        sa.Column('previous_owner', sa.String(length=50), nullable=False),
        sa.Column('new_owner', sa.String(length=50), nullable=False),
        sa.Column('amount', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['alpaca_id'], ['alpacas.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_transactions_id'), 'transactions', ['id'], unique=False)
    op.create_index('idx_transaction_alpaca_occurred', 'transactions', ['alpaca_id', 'occurred_at'], unique=False)


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_index('idx_transaction_alpaca_occurred', table_name='transactions')
    op.drop_index(op.f('ix_transactions_id'), table_name='transactions')
    op.drop_table('transactions')

    op.drop_index(op.f('ix_alpacas_id'), table_name='alpacas')
    op.drop_table('alpacas')

    ACCESSORY_ENUM.drop(op.get_bind(), checkfirst=True)

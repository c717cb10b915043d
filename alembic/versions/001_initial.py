"""Initial schema - key versions, secure values, variables

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Key version metadata (material lives in the platform secret store)
    op.create_table('key_versions',
        sa.Column('version', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('fingerprint', sa.String(64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_key_versions_is_active', 'key_versions', ['is_active'])

    # Secure values
    op.create_table('secure_values',
        sa.Column('ref_id', sa.String(64), primary_key=True),
        sa.Column('ciphertext', sa.Text(), nullable=False),
        sa.Column('key_version', sa.Integer(), sa.ForeignKey('key_versions.version'), nullable=False),
        sa.Column('label', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('label', name='uq_secure_values_label'),
    )
    op.create_index('ix_secure_values_key_version', 'secure_values', ['key_version'])

    # Variables
    op.create_table('variables',
        sa.Column('ref_id', sa.String(64), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('label', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('label', name='uq_variables_label'),
    )


def downgrade() -> None:
    op.drop_table('variables')
    op.drop_index('ix_secure_values_key_version', table_name='secure_values')
    op.drop_table('secure_values')
    op.drop_index('ix_key_versions_is_active', table_name='key_versions')
    op.drop_table('key_versions')

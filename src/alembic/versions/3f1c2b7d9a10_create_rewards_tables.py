"""Create rewards tables

Revision ID: 3f1c2b7d9a10
Revises:
Create Date: 2025-01-15 09:12:44.318201

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel

# revision identifiers, used by Alembic.
revision: str = '3f1c2b7d9a10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('username', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('wallet_address', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('points', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=False)
    op.create_index(op.f('ix_users_wallet_address'), 'users', ['wallet_address'], unique=True)

    op.create_table(
        'merkle_distributions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('merkle_root', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column('total_amount', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('daily_pool', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('user_count', sa.Integer(), nullable=False),
        sa.Column('total_allocatable_points', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('submit_tx', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_merkle_distributions_created_at'), 'merkle_distributions', ['created_at'], unique=False)
    op.create_index(op.f('ix_merkle_distributions_submitted_at'), 'merkle_distributions', ['submitted_at'], unique=False)

    op.create_table(
        'user_rewards',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('distribution_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('wallet_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('amount', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('amount_earned', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('points_converted', sa.Float(), nullable=False),
        sa.Column('leaf_index', sa.Integer(), nullable=False),
        sa.Column('merkle_proof', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['distribution_id'], ['merkle_distributions.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_user_rewards_distribution_id'), 'user_rewards', ['distribution_id'], unique=False)
    op.create_index(op.f('ix_user_rewards_user_id'), 'user_rewards', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_rewards_wallet_address'), 'user_rewards', ['wallet_address'], unique=False)

    op.create_table(
        'claim_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('wallet_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('amount_claimed', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('cumulative_claimed', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('reward_id', sa.Uuid(), nullable=True),
        sa.Column('tx_signature', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('claimed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['reward_id'], ['user_rewards.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_claim_events_user_id'), 'claim_events', ['user_id'], unique=False)
    op.create_index(op.f('ix_claim_events_wallet_address'), 'claim_events', ['wallet_address'], unique=False)
    op.create_index(op.f('ix_claim_events_claimed_at'), 'claim_events', ['claimed_at'], unique=False)
    op.create_index(op.f('ix_claim_events_tx_signature'), 'claim_events', ['tx_signature'], unique=True)


def downgrade() -> None:
    op.drop_index(op.f('ix_claim_events_tx_signature'), table_name='claim_events')
    op.drop_index(op.f('ix_claim_events_claimed_at'), table_name='claim_events')
    op.drop_index(op.f('ix_claim_events_wallet_address'), table_name='claim_events')
    op.drop_index(op.f('ix_claim_events_user_id'), table_name='claim_events')
    op.drop_table('claim_events')
    op.drop_index(op.f('ix_user_rewards_wallet_address'), table_name='user_rewards')
    op.drop_index(op.f('ix_user_rewards_user_id'), table_name='user_rewards')
    op.drop_index(op.f('ix_user_rewards_distribution_id'), table_name='user_rewards')
    op.drop_table('user_rewards')
    op.drop_index(op.f('ix_merkle_distributions_submitted_at'), table_name='merkle_distributions')
    op.drop_index(op.f('ix_merkle_distributions_created_at'), table_name='merkle_distributions')
    op.drop_table('merkle_distributions')
    op.drop_index(op.f('ix_users_wallet_address'), table_name='users')
    op.drop_index(op.f('ix_users_username'), table_name='users')
    op.drop_table('users')

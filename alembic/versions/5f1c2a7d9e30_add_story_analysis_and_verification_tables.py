"""Add story analysis and verification tables.

Revision ID: 5f1c2a7d9e30
Revises:
Create Date: 2026-10-19

Creates story_metadata, verification_logs and verified_metrics. The
stories table is owned by the journaling app and must already exist.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '5f1c2a7d9e30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create analysis and verification tables."""
    op.create_table(
        'story_metadata',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('story_id', sa.String(255), nullable=False),
        sa.Column('themes', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('emotional_tone', sa.String(32), nullable=False, server_default='neutral'),
        sa.Column('life_domain', sa.String(32), nullable=False, server_default='general'),
        sa.Column('intensity_score', sa.Float(), nullable=False, server_default='0.5'),
        sa.Column('significance_score', sa.Float(), nullable=False, server_default='0.5'),
        sa.Column('people_mentioned', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('places_mentioned', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('time_references', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('brief_insight', sa.Text(), nullable=True),
        sa.Column('is_canonical', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('analysis_status', sa.String(16), nullable=False, server_default='pending',
                  comment='pending, processing, completed or failed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_story_metadata_story_id', 'story_metadata', ['story_id'], unique=True)
    op.create_index('ix_story_metadata_analysis_status', 'story_metadata', ['analysis_status'])

    op.create_table(
        'verification_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('story_id', sa.String(255), nullable=False),
        sa.Column('workflow_run_id', sa.String(64), nullable=False, unique=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending',
                  comment='pending, completed or expired'),
        sa.Column('dispatch_status', sa.String(16), nullable=False, server_default='queued',
                  comment='queued, delivered, skipped or failed'),
        sa.Column('dispatch_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('dispatch_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_verification_logs_story_id', 'verification_logs', ['story_id'])
    # At most one pending run per story
    op.create_index(
        'uq_verification_logs_pending_story',
        'verification_logs',
        ['story_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'verified_metrics',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('story_id', sa.String(255), nullable=False),
        sa.Column('significance_score', sa.Integer(), nullable=False),
        sa.Column('emotional_depth', sa.Integer(), nullable=False),
        sa.Column('quality_score', sa.Integer(), nullable=False),
        sa.Column('word_count', sa.Integer(), nullable=False),
        sa.Column('verified_themes', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('cre_attestation_id', sa.String(66), nullable=True),
        sa.Column('on_chain_verified_at', sa.BigInteger(), nullable=True,
                  comment='Unix seconds from the contract'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_verified_metrics_story_id', 'verified_metrics', ['story_id'], unique=True)


def downgrade() -> None:
    """Drop analysis and verification tables."""
    op.drop_index('ix_verified_metrics_story_id', table_name='verified_metrics')
    op.drop_table('verified_metrics')

    op.drop_index('uq_verification_logs_pending_story', table_name='verification_logs')
    op.drop_index('ix_verification_logs_story_id', table_name='verification_logs')
    op.drop_table('verification_logs')

    op.drop_index('ix_story_metadata_analysis_status', table_name='story_metadata')
    op.drop_index('ix_story_metadata_story_id', table_name='story_metadata')
    op.drop_table('story_metadata')

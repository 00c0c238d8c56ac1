"""Create generation pipeline tables.

Revision ID: 0001_generation_pipeline
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001_generation_pipeline'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'generated_artifacts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_email', sa.String(320), nullable=False, index=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('image_data', sa.Text(), nullable=True),
        sa.Column('image_is_placeholder', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('report', sa.Text(), nullable=False, server_default=''),
        sa.Column('astrology', sa.JSON(), nullable=False),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('release_at', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('release_delay_minutes', sa.Integer(), nullable=False),
        sa.Column('promised_window_hours', sa.Integer(), nullable=False),
        sa.Column('notification_sent', sa.Boolean(), nullable=False,
                  server_default=sa.false(), index=True),
        sa.Column('notification_scheduled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            'release_at >= generated_at',
            name='ck_generated_artifacts_release_after_generation',
        ),
    )

    op.create_table(
        'generation_requests',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_email', sa.String(320), nullable=False, index=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='queued'),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('birth_details', sa.JSON(), nullable=False),
        sa.Column('artifact_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('generated_artifacts.id', ondelete='SET NULL'),
                  nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )

    # One active (non-failed) request per owner
    op.create_index(
        'uq_generation_requests_active_owner',
        'generation_requests',
        ['owner_email'],
        unique=True,
        postgresql_where=sa.text("status <> 'failed'"),
    )
    # FIFO claim scan
    op.create_index(
        'ix_generation_requests_status_created',
        'generation_requests',
        ['status', 'created_at'],
    )

    op.create_table(
        'cached_readings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_email', sa.String(320), nullable=False, index=True),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('period_key', sa.String(10), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('emotion_score', sa.Integer(), nullable=True),
        sa.Column('energy_score', sa.Integer(), nullable=True),
        sa.Column('rolled_from', sa.String(20), nullable=True),
        sa.Column('model', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('owner_email', 'kind', 'period_key',
                            name='uq_cached_readings_owner_kind_period'),
    )


def downgrade() -> None:
    op.drop_table('cached_readings')
    op.drop_index('ix_generation_requests_status_created', table_name='generation_requests')
    op.drop_index('uq_generation_requests_active_owner', table_name='generation_requests')
    op.drop_table('generation_requests')
    op.drop_table('generated_artifacts')

"""Initial schema for facilities, cameras, alerts and incidents.

Revision ID: 0001
Revises:
Create Date: 2026-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create ENUM types
    op.execute("CREATE TYPE severity AS ENUM ('medium', 'high')")
    op.execute("CREATE TYPE triggertype AS ENUM ('distress', 'underwater_time')")
    op.execute("CREATE TYPE sensitivity AS ENUM ('low', 'medium', 'high')")
    op.execute("CREATE TYPE sourcetype AS ENUM ('browser', 'hls', 'file', 'upload')")

    severity = postgresql.ENUM('medium', 'high', name='severity', create_type=False)

    # Create facilities table
    op.create_table(
        'facilities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.text("(now() at time zone 'utc')"), nullable=False),
    )

    # Create cameras table
    op.create_table(
        'cameras',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('facility_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('source_type', postgresql.ENUM('browser', 'hls', 'file', 'upload', name='sourcetype', create_type=False), nullable=False, server_default='hls'),
        sa.Column('stream_url', sa.Text, nullable=True),
        sa.Column('underwater_threshold_seconds', sa.Integer, nullable=False, server_default='10'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('status', sa.String(32), nullable=False, server_default='offline'),
        sa.Column('created_at', sa.DateTime, server_default=sa.text("(now() at time zone 'utc')"), nullable=False),
    )
    op.create_index('ix_cameras_facility_id', 'cameras', ['facility_id'])

    # Create alert_settings table
    op.create_table(
        'alert_settings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('facility_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('sensitivity', postgresql.ENUM('low', 'medium', 'high', name='sensitivity', create_type=False), nullable=False, server_default='medium'),
        sa.Column('cooldown_seconds', sa.Integer, nullable=False, server_default='30'),
    )

    # Create alerts table
    op.create_table(
        'alerts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('facility_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('facilities.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('camera_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('cameras.id', ondelete='SET NULL'), nullable=True),
        sa.Column('severity', severity, nullable=False, server_default='medium'),
        sa.Column('trigger_type', postgresql.ENUM('distress', 'underwater_time', name='triggertype', create_type=False), nullable=False, server_default='distress'),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('frame_data', sa.JSON, nullable=True),
        sa.Column('thumbnail_url', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.text("(now() at time zone 'utc')"), nullable=False),
        sa.Column('dismissed_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_alerts_facility_created', 'alerts', ['facility_id', 'created_at'])

    # Create incidents table
    op.create_table(
        'incidents',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('facility_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('camera_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('cameras.id', ondelete='SET NULL'), nullable=True),
        sa.Column('severity', severity, nullable=False, server_default='medium'),
        sa.Column('frame_data', sa.JSON, nullable=True),
        sa.Column('detected_at', sa.DateTime, server_default=sa.text("(now() at time zone 'utc')"), nullable=False),
        sa.Column('resolved_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_incidents_facility_detected', 'incidents', ['facility_id', 'detected_at'])


def downgrade() -> None:
    op.drop_table('incidents')
    op.drop_table('alerts')
    op.drop_table('alert_settings')
    op.drop_table('cameras')
    op.drop_table('facilities')

    op.execute("DROP TYPE IF EXISTS sourcetype")
    op.execute("DROP TYPE IF EXISTS sensitivity")
    op.execute("DROP TYPE IF EXISTS triggertype")
    op.execute("DROP TYPE IF EXISTS severity")

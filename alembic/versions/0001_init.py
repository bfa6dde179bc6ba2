from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
	op.create_table(
		'app_user',
		sa.Column('id', sa.Integer, primary_key=True),
		sa.Column('email', sa.String(320), nullable=False, unique=True),
		sa.Column('name', sa.String(200)),
		sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
	)
	op.create_table(
		'monitor',
		sa.Column('id', sa.Integer, primary_key=True),
		sa.Column('user_id', sa.Integer, sa.ForeignKey('app_user.id', ondelete='CASCADE'), nullable=False),
		sa.Column('name', sa.String(200), nullable=False),
		sa.Column('type', sa.String(16), nullable=False),
		sa.Column('url', sa.String(2048)),
		sa.Column('hostname', sa.String(255)),
		sa.Column('port', sa.Integer),
		sa.Column('method', sa.String(16), nullable=False, server_default='GET'),
		sa.Column('expected_status', sa.Integer, nullable=False, server_default='200'),
		sa.Column('dns_record_type', sa.String(16)),
		sa.Column('interval_s', sa.Integer, nullable=False, server_default='60'),
		sa.Column('timeout_s', sa.Integer, nullable=False, server_default='30'),
		sa.Column('retries', sa.Integer, nullable=False, server_default='0'),
		sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
		sa.Column('maintenance_start', sa.DateTime(timezone=True)),
		sa.Column('maintenance_end', sa.DateTime(timezone=True)),
		sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
		sa.CheckConstraint('interval_s >= 60'),
		sa.CheckConstraint('timeout_s >= 1'),
		sa.CheckConstraint('retries >= 0 AND retries <= 5'),
		sa.CheckConstraint("type IN ('http', 'https', 'tcp', 'dns')", name='ck_monitor_type'),
	)
	op.create_table(
		'notification_channel',
		sa.Column('id', sa.Integer, primary_key=True),
		sa.Column('user_id', sa.Integer, sa.ForeignKey('app_user.id', ondelete='CASCADE'), nullable=False),
		sa.Column('name', sa.String(200), nullable=False),
		sa.Column('type', sa.String(16), nullable=False),
		sa.Column('config', sa.JSON, nullable=False),
		sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
		sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
		sa.CheckConstraint("type IN ('webhook', 'discord', 'telegram', 'slack', 'email')", name='ck_channel_type'),
	)
	op.create_table(
		'monitor_notification',
		sa.Column('monitor_id', sa.Integer, sa.ForeignKey('monitor.id', ondelete='CASCADE'), primary_key=True),
		sa.Column('channel_id', sa.Integer, sa.ForeignKey('notification_channel.id', ondelete='CASCADE'), primary_key=True),
	)
	op.create_table(
		'check_result',
		sa.Column('id', sa.Integer, primary_key=True),
		sa.Column('monitor_id', sa.Integer, sa.ForeignKey('monitor.id', ondelete='CASCADE'), nullable=False),
		sa.Column('ts', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
		sa.Column('status', sa.Boolean, nullable=False),
		sa.Column('status_code', sa.Integer),
		sa.Column('response_time_ms', sa.Integer),
		sa.Column('message', sa.String(512)),
	)
	op.create_index('idx_check_result_monitor_ts', 'check_result', ['monitor_id', 'ts'])
	op.create_table(
		'incident',
		sa.Column('id', sa.Integer, primary_key=True),
		sa.Column('monitor_id', sa.Integer, sa.ForeignKey('monitor.id', ondelete='CASCADE'), nullable=False),
		sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
		sa.Column('resolved_at', sa.DateTime(timezone=True)),
		sa.Column('duration_s', sa.Integer),
		sa.Column('cause', sa.String(512)),
	)
	op.create_index('idx_incident_monitor_open', 'incident', ['monitor_id', 'resolved_at'])
	op.create_table(
		'hourly_stat',
		sa.Column('id', sa.Integer, primary_key=True),
		sa.Column('monitor_id', sa.Integer, sa.ForeignKey('monitor.id', ondelete='CASCADE'), nullable=False),
		sa.Column('hour', sa.DateTime(timezone=True), nullable=False),
		sa.Column('avg_response_time', sa.Integer),
		sa.Column('min_response_time', sa.Integer),
		sa.Column('max_response_time', sa.Integer),
		sa.Column('uptime_percentage', sa.Integer, nullable=False),
		sa.Column('check_count', sa.Integer, nullable=False, server_default='0'),
		sa.Column('up_count', sa.Integer, nullable=False, server_default='0'),
		sa.Column('down_count', sa.Integer, nullable=False, server_default='0'),
		sa.UniqueConstraint('monitor_id', 'hour', name='uq_hourly_stat_monitor_hour'),
	)


def downgrade() -> None:
	op.drop_table('hourly_stat')
	op.drop_index('idx_incident_monitor_open', table_name='incident')
	op.drop_table('incident')
	op.drop_index('idx_check_result_monitor_ts', table_name='check_result')
	op.drop_table('check_result')
	op.drop_table('monitor_notification')
	op.drop_table('notification_channel')
	op.drop_table('monitor')
	op.drop_table('app_user')

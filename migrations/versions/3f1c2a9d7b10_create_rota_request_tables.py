"""create_rota_request_tables

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-12 09:14:03.512477

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c2a9d7b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Skip tables that create_all() already made on a fresh database
    from sqlalchemy import inspect
    conn = op.get_bind()
    existing_tables = inspect(conn).get_table_names()

    if 'users' not in existing_tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('role_id', sa.Integer(), nullable=False),
            sa.Column('is_admin', sa.Boolean(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.Column('display_order', sa.Integer(), nullable=False),
            sa.Column('preferred_lang', sa.String(length=2), nullable=False),
            sa.Column('pin_hash', sa.String(length=255), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_users_role_order', 'users', ['role_id', 'display_order'])

    if 'rota_periods' not in existing_tables:
        op.create_table(
            'rota_periods',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=100), nullable=True),
            sa.Column('start_date', sa.Date(), nullable=False),
            sa.Column('end_date', sa.Date(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.Column('is_hidden', sa.Boolean(), nullable=False, server_default=sa.text('0')),
            sa.Column('closes_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )

    if 'rota_weeks' not in existing_tables:
        op.create_table(
            'rota_weeks',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('period_id', sa.Integer(), nullable=False),
            sa.Column('week_start', sa.Date(), nullable=False),
            sa.Column('open', sa.Boolean(), nullable=False),
            sa.Column('open_after_close', sa.Boolean(), nullable=False),
            sa.ForeignKeyConstraint(['period_id'], ['rota_periods.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('period_id', 'week_start', name='uq_rota_weeks_period_start')
        )

    if 'rota_dates' not in existing_tables:
        op.create_table(
            'rota_dates',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('date', sa.Date(), nullable=False),
            sa.Column('week_id', sa.Integer(), nullable=True),
            sa.Column('period_id', sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(['period_id'], ['rota_periods.id']),
            sa.ForeignKeyConstraint(['week_id'], ['rota_weeks.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('date')
        )
        op.create_index('idx_rota_dates_period', 'rota_dates', ['period_id', 'date'])

    if 'requests' not in existing_tables:
        op.create_table(
            'requests',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('date', sa.Date(), nullable=False),
            sa.Column('value', sa.String(length=8), nullable=False),
            sa.Column('important_rank', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'date', name='uq_requests_user_date')
        )
        op.create_index('idx_requests_date', 'requests', ['date'])

    if 'request_cell_locks' not in existing_tables:
        op.create_table(
            'request_cell_locks',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('date', sa.Date(), nullable=False),
            sa.Column('reason_en', sa.Text(), nullable=True),
            sa.Column('reason_es', sa.Text(), nullable=True),
            sa.Column('locked_by', sa.Integer(), nullable=True),
            sa.Column('locked_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
            sa.ForeignKeyConstraint(['locked_by'], ['users.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'date', name='uq_cell_locks_user_date')
        )
        op.create_index('idx_cell_locks_date', 'request_cell_locks', ['date'])

    if 'notices' not in existing_tables:
        op.create_table(
            'notices',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(length=200), nullable=False),
            sa.Column('body_en', sa.Text(), nullable=True),
            sa.Column('body_es', sa.Text(), nullable=True),
            sa.Column('version', sa.Integer(), nullable=False),
            sa.Column('target_all', sa.Boolean(), nullable=False),
            sa.Column('target_roles', sa.JSON(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.Column('is_mandatory', sa.Boolean(), nullable=False),
            sa.Column('created_by', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['created_by'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )

    if 'notice_acks' not in existing_tables:
        op.create_table(
            'notice_acks',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('notice_id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('version', sa.Integer(), nullable=False),
            sa.Column('acknowledged_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['notice_id'], ['notices.id']),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('notice_id', 'user_id', name='uq_notice_acks_notice_user')
        )

    if 'week_comments' not in existing_tables:
        op.create_table(
            'week_comments',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('week_id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('comment', sa.Text(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
            sa.ForeignKeyConstraint(['week_id'], ['rota_weeks.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('week_id', 'user_id', name='uq_week_comments_week_user')
        )


def downgrade():
    op.drop_table('week_comments')
    op.drop_table('notice_acks')
    op.drop_table('notices')
    op.drop_index('idx_cell_locks_date', table_name='request_cell_locks')
    op.drop_table('request_cell_locks')
    op.drop_index('idx_requests_date', table_name='requests')
    op.drop_table('requests')
    op.drop_index('idx_rota_dates_period', table_name='rota_dates')
    op.drop_table('rota_dates')
    op.drop_table('rota_weeks')
    op.drop_table('rota_periods')
    op.drop_index('idx_users_role_order', table_name='users')
    op.drop_table('users')

"""create users, apps and reviews tables

Revision ID: 3c1d9a7f52b0
Revises: 
Create Date: 2026-10-17 09:12:40.118305

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1d9a7f52b0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the account, catalog and review tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'apps',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('short_description', sa.String(200), nullable=False),
        sa.Column('full_description', sa.Text(), nullable=False),
        sa.Column('icon_url', sa.String(), nullable=False),
        sa.Column('pwa_url', sa.String(), nullable=True),
        sa.Column('apk_url', sa.String(), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('version_name', sa.String(50), nullable=True),
        sa.Column('version_code', sa.Integer(), nullable=True),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('screenshots', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('developer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_apps_id', 'apps', ['id'])
    op.create_index('ix_apps_category', 'apps', ['category'])
    op.create_index('ix_apps_status', 'apps', ['status'])
    op.create_index('ix_apps_developer_id', 'apps', ['developer_id'])

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'app_id', sa.Integer(), sa.ForeignKey('apps.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('app_id', 'user_id', name='uq_reviews_app_user'),
    )
    op.create_index('ix_reviews_id', 'reviews', ['id'])
    op.create_index('ix_reviews_app_id', 'reviews', ['app_id'])
    op.create_index('ix_reviews_user_id', 'reviews', ['user_id'])


def downgrade() -> None:
    """Drop the tables in reverse dependency order."""
    op.drop_table('reviews')
    op.drop_table('apps')
    op.drop_table('users')

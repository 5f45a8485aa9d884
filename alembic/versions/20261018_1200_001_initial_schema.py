"""Initial schema for Mantrify

Revision ID: 001
Revises:
Create Date: 2026-10-18 12:00:00

This migration creates the initial database schema:
- users: Platform accounts
- mantras: Rendered mantra audio
- contract_users_mantras: Mantra ownership
- contract_user_mantra_listens: Per-user listen counts and favorites
- eleven_labs_files: Synthesized speech clips
- contract_mantras_eleven_labs_files: Mantra to speech clip links
- sound_files: Shared sound clips
- contract_mantras_sound_files: Mantra to sound clip links
- queue: Jobs submitted to the queuer

Design Decisions:
- Integer primary keys (exposed in URLs and JWT payloads)
- Link tables cascade on delete of either side
- Indexes on every foreign key
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True) -> list:
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True)]
    if updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True)
        )
    return columns


def _link(name: str, left: tuple, right: tuple, *extra) -> None:
    left_col, left_table = left
    right_col, right_table = right
    op.create_table(
        name,
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(left_col, sa.Integer(), nullable=False),
        sa.Column(right_col, sa.Integer(), nullable=False),
        *extra,
        sa.ForeignKeyConstraint([left_col], [f'{left_table}.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint([right_col], [f'{right_table}.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f(f'ix_{name}_{left_col}'), name, [left_col], unique=False)
    op.create_index(op.f(f'ix_{name}_{right_col}'), name, [right_col], unique=False)


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password', sa.String(length=255), nullable=True),
        sa.Column('is_email_verified', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('email_verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_admin', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # Create mantras table
    op.create_table(
        'mantras',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('visibility', sa.String(length=20), server_default='private', nullable=False),
        sa.Column('file_path', sa.String(length=1024), nullable=True),
        sa.Column('filename', sa.String(length=255), nullable=True),
        sa.Column('listen_count', sa.Integer(), server_default=sa.text('0'), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    # Create eleven_labs_files table
    op.create_table(
        'eleven_labs_files',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('voice_id', sa.String(length=100), nullable=True),
        sa.Column('voice_name', sa.String(length=255), nullable=True),
        sa.Column('source_text', sa.Text(), nullable=True),
        sa.Column('file_path', sa.String(length=1024), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Create sound_files table
    op.create_table(
        'sound_files',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('filename', sa.String(length=255), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('filename')
    )

    # Create link tables
    _link('contract_users_mantras', ('user_id', 'users'), ('mantra_id', 'mantras'))
    _link(
        'contract_user_mantra_listens',
        ('user_id', 'users'),
        ('mantra_id', 'mantras'),
        sa.Column('listen_count', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('favorite', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'mantra_id', name='uq_listen_user_mantra'),
    )
    _link(
        'contract_mantras_eleven_labs_files',
        ('mantra_id', 'mantras'),
        ('eleven_labs_file_id', 'eleven_labs_files'),
    )
    _link('contract_mantras_sound_files', ('mantra_id', 'mantras'), ('sound_file_id', 'sound_files'))

    # Create queue table
    op.create_table(
        'queue',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=50), server_default='queued', nullable=False),
        sa.Column('job_filename', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_queue_user_id'), 'queue', ['user_id'], unique=False)

    print("✅ Created Mantrify schema (9 tables)")


def downgrade() -> None:
    # Drop tables in reverse order (to handle foreign keys)
    op.drop_index(op.f('ix_queue_user_id'), table_name='queue')
    op.drop_table('queue')

    for name, left_col, right_col in (
        ('contract_mantras_sound_files', 'mantra_id', 'sound_file_id'),
        ('contract_mantras_eleven_labs_files', 'mantra_id', 'eleven_labs_file_id'),
        ('contract_user_mantra_listens', 'user_id', 'mantra_id'),
        ('contract_users_mantras', 'user_id', 'mantra_id'),
    ):
        op.drop_index(op.f(f'ix_{name}_{right_col}'), table_name=name)
        op.drop_index(op.f(f'ix_{name}_{left_col}'), table_name=name)
        op.drop_table(name)

    op.drop_table('sound_files')
    op.drop_table('eleven_labs_files')
    op.drop_table('mantras')

    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')

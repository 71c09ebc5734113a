"""create code_chunks and chunk_embeddings

Revision ID: c4e1a9b2d7f3
Revises:
Create Date: 2026-10-19 09:12:41.207315

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'c4e1a9b2d7f3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS vector')

    op.create_table(
        'code_chunks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chunk_id', sa.String(length=64), nullable=False),
        sa.Column('session_id', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('project_id', sa.String(length=255), nullable=True),
        sa.Column('project_name', sa.String(length=255), nullable=True),
        sa.Column('file_path', sa.Text(), nullable=False),
        sa.Column('file_name', sa.String(length=500), nullable=False),
        sa.Column('file_extension', sa.String(length=10), nullable=False),
        sa.Column('code', sa.Text(), nullable=False),
        sa.Column('chunk_type', sa.String(length=30), nullable=False),
        sa.Column('name', sa.String(length=500), nullable=False),
        sa.Column('start_line', sa.Integer(), nullable=False),
        sa.Column('end_line', sa.Integer(), nullable=False),
        sa.Column('start_column', sa.Integer(), nullable=True),
        sa.Column('end_column', sa.Integer(), nullable=True),
        sa.Column('start_index', sa.Integer(), nullable=True),
        sa.Column('end_index', sa.Integer(), nullable=True),
        sa.Column('language', sa.String(length=50), nullable=False),
        sa.Column('complexity', sa.Integer(), nullable=False),
        sa.Column('is_async', sa.Boolean(), nullable=False),
        sa.Column('is_static', sa.Boolean(), nullable=False),
        sa.Column('visibility', sa.String(length=20), nullable=False),
        sa.Column('parameters', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('dependencies', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('comments', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('parent_chunk_id', sa.String(length=64), nullable=True),
        sa.Column('child_chunk_ids', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('last_modified', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('tags', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('search_text', sa.Text(), nullable=True),
        sa.Column('similar_chunks', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('chunk_id'),
    )
    op.create_index('idx_chunks_session', 'code_chunks', ['session_id'])
    op.create_index('idx_chunks_session_file', 'code_chunks', ['session_id', 'file_path'])
    op.create_index('idx_chunks_session_type', 'code_chunks', ['session_id', 'chunk_type'])
    op.create_index('idx_chunks_session_language', 'code_chunks', ['session_id', 'language'])

    op.create_table(
        'chunk_embeddings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chunk_id', sa.String(length=64), nullable=False),
        sa.Column('session_id', sa.String(length=255), nullable=False),
        sa.Column('vector', Vector(), nullable=False),
        sa.Column('dimensions', sa.Integer(), nullable=False),
        sa.Column('model', sa.String(length=200), nullable=False),
        sa.Column('generated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('name', sa.String(length=500), nullable=True),
        sa.Column('file_path', sa.Text(), nullable=True),
        sa.Column('chunk_type', sa.String(length=30), nullable=True),
        sa.Column('language', sa.String(length=50), nullable=True),
        sa.Column('complexity', sa.Integer(), nullable=True),
        sa.Column('search_text', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['chunk_id'], ['code_chunks.chunk_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('chunk_id'),
    )
    op.create_index('idx_embeddings_session', 'chunk_embeddings', ['session_id'])


def downgrade() -> None:
    op.drop_index('idx_embeddings_session', table_name='chunk_embeddings')
    op.drop_table('chunk_embeddings')
    op.drop_index('idx_chunks_session_language', table_name='code_chunks')
    op.drop_index('idx_chunks_session_type', table_name='code_chunks')
    op.drop_index('idx_chunks_session_file', table_name='code_chunks')
    op.drop_index('idx_chunks_session', table_name='code_chunks')
    op.drop_table('code_chunks')

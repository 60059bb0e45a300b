from alembic import op
import sqlalchemy as sa

revision = '5d2e8c41a7f0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'documents',
        sa.Column('collection', sa.String(length=64), primary_key=True),
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_documents_collection_created', 'documents', ['collection', 'created_at'], unique=False)


def downgrade():
    op.drop_index('ix_documents_collection_created', table_name='documents')
    op.drop_table('documents')

from alembic import op
import sqlalchemy as sa

revision = '0002_add_wishlist_items'
down_revision = '0001_init'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'wishlist_items',
        sa.Column('user_id', sa.String(36), primary_key=True),
        sa.Column('item_id', sa.Integer, sa.ForeignKey('items.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now())
    )

def downgrade():
    op.drop_table('wishlist_items')

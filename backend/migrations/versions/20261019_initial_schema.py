"""Initial schema: catalog, distributors, par levels, action log, user profiles

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. categories and products (per-location stock, flags, freeze state)
2. distributors (products.distributor_id ON DELETE SET NULL)
3. par_levels (one row per product, ON DELETE CASCADE)
4. product_actions (append-only, product_id is not a foreign key)
5. user_profiles (email -> role)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. CATALOG
    # ==========================================================================
    op.create_table('categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_categories_name'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('categories', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_categories_order_index'), ['order_index'], unique=False)

    op.create_table('distributors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('whatsapp', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('volume', sa.String(length=64), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('bar1', sa.Float(), nullable=False, server_default='0'),
        sa.Column('bar2', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cold_room', sa.Float(), nullable=False, server_default='0'),
        sa.Column('order_index', sa.Integer(), nullable=True),
        sa.Column('red_flag', sa.Boolean(), nullable=True, server_default='0'),
        sa.Column('green_flag', sa.Boolean(), nullable=True, server_default='0'),
        sa.Column('yellow_flag', sa.Boolean(), nullable=True, server_default='0'),
        sa.Column('is_frozen', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('frozen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('frozen_by', sa.String(length=255), nullable=True),
        sa.Column('visible_to_bar1', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('visible_to_bar2', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('company', sa.String(length=255), nullable=True),
        sa.Column('distributor', sa.String(length=255), nullable=True),
        sa.Column('distributor_id', sa.Integer(), nullable=True),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.ForeignKeyConstraint(['distributor_id'], ['distributors.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_category_id'), ['category_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_distributor_id'), ['distributor_id'], unique=False)
        batch_op.create_index('ix_products_category_order', ['category_id', 'order_index'], unique=False)
        batch_op.create_index('ix_products_frozen', ['is_frozen'], unique=False)

    # ==========================================================================
    # 2. PAR LEVELS
    # ==========================================================================
    op.create_table('par_levels',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('total_par', sa.Float(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', name='uq_par_levels_product'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 3. ACTION LOG
    # ==========================================================================
    op.create_table('product_actions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('performed_by', sa.String(length=255), nullable=False),
        sa.Column('performed_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('product_actions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_product_actions_action'), ['action'], unique=False)
        batch_op.create_index(batch_op.f('ix_product_actions_performed_by'), ['performed_by'], unique=False)
        batch_op.create_index('ix_product_actions_performed_at', ['performed_at'], unique=False)
        batch_op.create_index('ix_product_actions_product', ['product_id', 'performed_at'], unique=False)

    # ==========================================================================
    # 4. USER PROFILES
    # ==========================================================================
    op.create_table('user_profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_user_profiles_email'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('user_profiles')

    with op.batch_alter_table('product_actions', schema=None) as batch_op:
        batch_op.drop_index('ix_product_actions_product')
        batch_op.drop_index('ix_product_actions_performed_at')
        batch_op.drop_index(batch_op.f('ix_product_actions_performed_by'))
        batch_op.drop_index(batch_op.f('ix_product_actions_action'))
    op.drop_table('product_actions')

    op.drop_table('par_levels')

    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.drop_index('ix_products_frozen')
        batch_op.drop_index('ix_products_category_order')
        batch_op.drop_index(batch_op.f('ix_products_distributor_id'))
        batch_op.drop_index(batch_op.f('ix_products_category_id'))
    op.drop_table('products')

    op.drop_table('distributors')

    with op.batch_alter_table('categories', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_categories_order_index'))
    op.drop_table('categories')

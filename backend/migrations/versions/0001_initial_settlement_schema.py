"""initial settlement schema

Revision ID: c0a1f3e8b201
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the car-wash settlement schema:
- stations: physical wash locations
- document_sequences: per-station coupon numbering
- coupons: wash tickets with pending/washing/done/paid lifecycle
- payments: append-only cash-register ledger
- bonds: single-use percentage discount codes
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c0a1f3e8b201'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'stations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nom', sa.String(length=120), nullable=False),
        sa.Column('adresse', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('nom'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('station_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('station_id', 'document_type', name='uq_document_sequences_station_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_station_id', 'document_sequences', ['station_id'])

    op.create_table(
        'coupons',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('station_id', sa.Integer(), nullable=False),
        sa.Column('numero', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('montant_total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('remise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('fiche_piste_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('numero'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_coupons_station_id', 'coupons', ['station_id'])
    op.create_index('ix_coupons_status', 'coupons', ['status'])
    op.create_index('ix_coupons_fiche_piste_id', 'coupons', ['fiche_piste_id'])
    op.create_index('ix_coupons_station_status', 'coupons', ['station_id', 'status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('montant', sa.Integer(), nullable=False),
        sa.Column('methode', sa.String(length=32), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('reference_externe', sa.String(length=128), nullable=True),
        sa.Column('categorie', sa.String(length=64), nullable=True),
        sa.Column('station_id', sa.Integer(), nullable=False),
        sa.Column('coupon_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id']),
        sa.ForeignKeyConstraint(['coupon_id'], ['coupons.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payments_type', 'payments', ['type'])
    op.create_index('ix_payments_methode', 'payments', ['methode'])
    op.create_index('ix_payments_station_id', 'payments', ['station_id'])
    op.create_index('ix_payments_coupon_id', 'payments', ['coupon_id'])
    op.create_index('ix_payments_created_by_user_id', 'payments', ['created_by_user_id'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])
    op.create_index('ix_payments_station_created', 'payments', ['station_id', 'created_at'])

    op.create_table(
        'bonds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('pourcentage', sa.Integer(), nullable=False),
        sa.Column('station_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('is_used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('coupon_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('pourcentage >= 5 AND pourcentage <= 100', name='ck_bonds_pourcentage_range'),
        sa.ForeignKeyConstraint(['station_id'], ['stations.id']),
        sa.ForeignKeyConstraint(['coupon_id'], ['coupons.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('coupon_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_bonds_code', 'bonds', ['code'], unique=True)
    op.create_index('ix_bonds_station_id', 'bonds', ['station_id'])
    op.create_index('ix_bonds_is_used', 'bonds', ['is_used'])


def downgrade():
    op.drop_table('bonds')
    op.drop_table('payments')
    op.drop_table('coupons')
    op.drop_table('document_sequences')
    op.drop_table('stations')

"""Initial schema for the household planner purchase engine

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def timestamps():
    return [
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def money(name, **kw):
    return sa.Column(name, sa.Numeric(10, 2), **kw)


def upgrade() -> None:
    # Tags
    op.create_table(
        'tags',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('household_id', sa.Uuid, nullable=False),
        sa.Column('name', sa.Text, nullable=False),
        *timestamps(),
    )
    op.create_index('ix_tags_household_id', 'tags', ['household_id'])

    # Stores
    op.create_table(
        'stores',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('household_id', sa.Uuid, nullable=False),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('store_number', sa.Text, comment="Store id printed on receipts (e.g. 'Store #1234' -> '1234')"),
        sa.Column('address', sa.Text),
        sa.Column('state', sa.String(8)),
        sa.Column('tax_rate', sa.Numeric(6, 4)),
        *timestamps(),
        sa.UniqueConstraint('household_id', 'store_number', name='uq_stores_household_store_number'),
    )
    op.create_index('ix_stores_household_id', 'stores', ['household_id'])

    # Shopping trips and stops
    op.create_table(
        'shopping_trips',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('household_id', sa.Uuid, nullable=False),
        sa.Column('user_id', sa.Uuid, nullable=False),
        sa.Column('driver_name', sa.Text),
        sa.Column('trip_start', sa.TIMESTAMP(timezone=True)),
        sa.Column('trip_end', sa.TIMESTAMP(timezone=True)),
        sa.Column('notes', sa.Text),
        *timestamps(),
    )
    op.create_index('ix_shopping_trips_household_id', 'shopping_trips', ['household_id'])
    op.create_index('ix_shopping_trips_trip_start', 'shopping_trips', ['trip_start'])

    op.create_table(
        'stops',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('trip_id', sa.Uuid, sa.ForeignKey('shopping_trips.id'), nullable=False),
        sa.Column('store_id', sa.Uuid, sa.ForeignKey('stores.id')),
        sa.Column('store_name', sa.Text, comment='Freeform name when no store row matched'),
        sa.Column('store_address', sa.Text),
        sa.Column('notes', sa.Text),
        sa.Column('position', sa.Integer, nullable=False),
        *timestamps(),
    )
    op.create_index('ix_stops_trip_id', 'stops', ['trip_id'])
    op.create_index('ix_stops_store_id', 'stops', ['store_id'])

    # Ledger
    op.create_table(
        'ledger_sources',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('household_id', sa.Uuid, nullable=False),
        sa.Column('user_id', sa.Uuid, nullable=False),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('type', sa.String(16), nullable=False),
        money('amount', nullable=False, server_default='0'),
        sa.Column('is_recurring', sa.Boolean, nullable=False, server_default=sa.false()),
        *timestamps(),
    )
    op.create_index('ix_ledger_sources_household_id', 'ledger_sources', ['household_id'])

    # line_item_id FK is added after line_items exists
    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('household_id', sa.Uuid, nullable=False),
        sa.Column('user_id', sa.Uuid, nullable=False),
        sa.Column('source_id', sa.Uuid, sa.ForeignKey('ledger_sources.id')),
        sa.Column('line_item_id', sa.Uuid, unique=True),
        sa.Column('date', sa.Date, nullable=False),
        money('amount', nullable=False),
        sa.Column('type', sa.String(16), nullable=False),
        sa.Column('notes', sa.Text),
        *timestamps(),
    )
    op.create_index('ix_ledger_entries_household_id', 'ledger_entries', ['household_id'])
    op.create_index('ix_ledger_entries_source_id', 'ledger_entries', ['source_id'])
    op.create_index('ix_ledger_entries_date', 'ledger_entries', ['date'])

    # Line items
    op.create_table(
        'line_items',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('household_id', sa.Uuid, nullable=False),
        sa.Column('stop_id', sa.Uuid, sa.ForeignKey('stops.id')),
        sa.Column('ledger_entry_id', sa.Uuid, sa.ForeignKey('ledger_entries.id'), nullable=False, unique=True),
        sa.Column('brand', sa.Text, nullable=False),
        sa.Column('item', sa.Text, nullable=False),
        sa.Column('unit_measurement', sa.Text),
        money('count'),
        sa.Column('count_unit', sa.Text),
        money('price_per_count'),
        money('units'),
        money('price_per_unit'),
        sa.Column('taxable', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('tax_rate', sa.Numeric(6, 4)),
        money('total_price', nullable=False),
        sa.Column('store_code', sa.Text),
        sa.Column('item_name', sa.Text, comment='Raw receipt text'),
        sa.Column('usage_mode', sa.String(16), nullable=False, server_default='count'),
        *timestamps(),
    )
    op.create_index('ix_line_items_household_id', 'line_items', ['household_id'])
    op.create_index('ix_line_items_stop_id', 'line_items', ['stop_id'])

    op.create_foreign_key(
        'fk_ledger_entries_line_item', 'ledger_entries', 'line_items', ['line_item_id'], ['id']
    )

    op.create_table(
        'line_item_tags',
        sa.Column('line_item_id', sa.Uuid, sa.ForeignKey('line_items.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('tag_id', sa.Uuid, sa.ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_table(
        'ledger_entry_tags',
        sa.Column('ledger_entry_id', sa.Uuid, sa.ForeignKey('ledger_entries.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('tag_id', sa.Uuid, sa.ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True),
    )

    # Stock
    op.create_table(
        'stock_sheets',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('household_id', sa.Uuid, nullable=False),
        sa.Column('name', sa.Text, nullable=False),
        *timestamps(),
    )
    op.create_index('ix_stock_sheets_household_id', 'stock_sheets', ['household_id'])

    op.create_table(
        'stock_items',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('sheet_id', sa.Uuid, sa.ForeignKey('stock_sheets.id'), nullable=False),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('brand', sa.Text),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('min_quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('unit_of_measure', sa.Text),
        money('count'),
        sa.Column('count_unit', sa.Text),
        money('price_per_count'),
        money('price_per_unit'),
        money('total_price'),
        sa.Column('taxable', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('store', sa.Text, comment='Store display name'),
        sa.Column('store_code', sa.Text),
        sa.Column('item_name', sa.Text),
        sa.Column('usage_mode', sa.String(16), nullable=False, server_default='count'),
        sa.Column('trip_id', sa.Uuid, sa.ForeignKey('shopping_trips.id')),
        sa.Column('stop_id', sa.Uuid, sa.ForeignKey('stops.id')),
        sa.Column('purchase_id', sa.Uuid, sa.ForeignKey('line_items.id')),
        *timestamps(),
    )
    op.create_index('ix_stock_items_sheet_id', 'stock_items', ['sheet_id'])
    op.create_index('ix_stock_items_trip_id', 'stock_items', ['trip_id'])
    op.create_index('ix_stock_items_stop_id', 'stock_items', ['stop_id'])
    op.create_index('ix_stock_items_purchase_id', 'stock_items', ['purchase_id'])

    # Learning: brands, corrections, tax rules
    op.create_table(
        'brands',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('household_id', sa.Uuid, nullable=False),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('default_item', sa.Text),
        sa.Column('default_unit_measurement', sa.Text),
        sa.Column('default_count_unit', sa.Text),
        money('default_quantity_per_count'),
        sa.Column('default_tags', sa.JSON, nullable=False),
        *timestamps(),
        sa.UniqueConstraint('household_id', 'name', name='uq_brands_household_name'),
    )
    op.create_index('ix_brands_household_id', 'brands', ['household_id'])

    op.create_table(
        'format_corrections',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('household_id', sa.Uuid, nullable=False),
        sa.Column('raw_text', sa.Text, nullable=False),
        sa.Column('corrected_brand', sa.Text),
        sa.Column('corrected_item', sa.Text),
        sa.Column('corrected_unit', sa.Text),
        money('corrected_quantity'),
        money('corrected_unit_quantity'),
        sa.Column('preference_notes', sa.Text),
        sa.Column('match_type', sa.String(16), nullable=False, server_default='exact'),
        *timestamps(),
        sa.UniqueConstraint('household_id', 'raw_text', name='uq_format_corrections_household_raw_text'),
    )
    op.create_index('ix_format_corrections_household_id', 'format_corrections', ['household_id'])

    op.create_table(
        'tax_rules',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('household_id', sa.Uuid, nullable=False),
        sa.Column('store_name', sa.Text, nullable=False),
        sa.Column('indicator', sa.String(5), nullable=False),
        sa.Column('is_taxable', sa.Boolean, nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('default_tax_rate', sa.Numeric(6, 4)),
        *timestamps(),
    )
    op.create_index('ix_tax_rules_household_id', 'tax_rules', ['household_id'])
    op.execute(
        "CREATE UNIQUE INDEX uq_tax_rules_household_store_indicator "
        "ON tax_rules (household_id, lower(store_name), upper(indicator))"
    )

    # Scheduler
    op.create_table(
        'scheduler_tasks',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('household_id', sa.Uuid, nullable=False),
        sa.Column('user_id', sa.Uuid, nullable=False),
        sa.Column('title', sa.Text, nullable=False),
        sa.Column('date', sa.Date),
        sa.Column('status', sa.String(16), nullable=False, server_default='not_started'),
        sa.Column('trip_id', sa.Uuid, sa.ForeignKey('shopping_trips.id')),
        *timestamps(),
    )
    op.create_index('ix_scheduler_tasks_household_id', 'scheduler_tasks', ['household_id'])
    op.create_index('ix_scheduler_tasks_trip_id', 'scheduler_tasks', ['trip_id'])


def downgrade() -> None:
    op.drop_table('scheduler_tasks')
    op.drop_table('tax_rules')
    op.drop_table('format_corrections')
    op.drop_table('brands')
    op.drop_table('stock_items')
    op.drop_table('stock_sheets')
    op.drop_table('ledger_entry_tags')
    op.drop_table('line_item_tags')
    op.drop_constraint('fk_ledger_entries_line_item', 'ledger_entries', type_='foreignkey')
    op.drop_table('line_items')
    op.drop_table('ledger_entries')
    op.drop_table('ledger_sources')
    op.drop_table('stops')
    op.drop_table('shopping_trips')
    op.drop_table('stores')
    op.drop_table('tags')

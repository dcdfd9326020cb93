"""create lab slot and booking tables

Revision ID: 0001
Revises:
Create Date: 2026-10-16 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_BOOKING_CONDITION = "status = 'CONFIRMED'"


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'slot',
        sa.Column('teacher_id', sa.String(length=64), nullable=False),
        sa.Column('teacher_name', sa.String(length=128), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('topic', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=200), nullable=False),
        sa.Column('max_students', sa.Integer(), nullable=False),
        sa.Column(
            'current_bookings',
            sa.Integer(),
            server_default=sa.text('0'),
            nullable=False,
        ),
        sa.Column(
            'is_active',
            sa.Boolean(),
            server_default=sa.text('true'),
            nullable=False,
        ),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
        sa.CheckConstraint('start_time < end_time', name='ck_slot_interval'),
        sa.CheckConstraint('max_students >= 1', name='ck_slot_max_students'),
        sa.CheckConstraint(
            'current_bookings >= 0',
            name='ck_slot_bookings_non_negative',
        ),
        sa.CheckConstraint(
            'current_bookings <= max_students',
            name='ck_slot_bookings_within_capacity',
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_slot_teacher_id', 'slot', ['teacher_id'])
    op.create_index(
        'ix_slot_level_date',
        'slot',
        ['level', 'date', 'start_time'],
    )

    op.create_table(
        'booking',
        sa.Column('slot_id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.String(length=64), nullable=False),
        sa.Column('student_name', sa.String(length=128), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('CONFIRMED', 'CANCELLED', name='booking_status'),
            server_default='CONFIRMED',
            nullable=False,
        ),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ['slot_id'],
            ['slot.id'],
            ondelete='RESTRICT',
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_booking_slot_id', 'booking', ['slot_id'])
    op.create_index('ix_booking_student_id', 'booking', ['student_id'])
    op.create_index(
        'ix_booking_slot_status',
        'booking',
        ['slot_id', 'status', 'created_at'],
    )
    # Одна активная запись студента на занятие.
    op.create_index(
        'uq_booking_active_student_slot',
        'booking',
        ['student_id', 'slot_id'],
        unique=True,
        postgresql_where=sa.text(ACTIVE_BOOKING_CONDITION),
        sqlite_where=sa.text(ACTIVE_BOOKING_CONDITION),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('uq_booking_active_student_slot', table_name='booking')
    op.drop_index('ix_booking_slot_status', table_name='booking')
    op.drop_index('ix_booking_student_id', table_name='booking')
    op.drop_index('ix_booking_slot_id', table_name='booking')
    op.drop_table('booking')
    sa.Enum(name='booking_status').drop(op.get_bind(), checkfirst=True)
    op.drop_index('ix_slot_level_date', table_name='slot')
    op.drop_index('ix_slot_teacher_id', table_name='slot')
    op.drop_table('slot')

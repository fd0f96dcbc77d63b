"""Bed management schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


BED_STATUS_VALUES = ('available', 'occupied', 'cleaning', 'maintenance', 'reserved')
BED_TYPE_VALUES = ('icu', 'private', 'semi_private', 'ward', 'isolation')

ENUM_TYPES = {
    'bed_status': BED_STATUS_VALUES,
    'bed_type': BED_TYPE_VALUES,
    'room_type': BED_TYPE_VALUES,
    'admission_type': ('elective', 'emergency', 'transfer', 'delivery'),
    'admission_source': ('er', 'outpatient', 'referral', 'direct'),
    'admission_status': ('active', 'discharged', 'transferred', 'deceased'),
    'discharge_type': ('routine', 'against_advice', 'transferred', 'deceased'),
}


def enum_column_type(name):
    # Types are created once up front; bed_status is shared by several columns
    return postgresql.ENUM(*ENUM_TYPES[name], name=name, create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUM_TYPES.items():
        sa.Enum(*values, name=name).create(bind, checkfirst=True)

    # Create rooms table
    op.create_table(
        'rooms',
        sa.Column('room_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('room_number', sa.String(length=20), nullable=False),
        sa.Column('room_type', enum_column_type('room_type'), nullable=False),
        sa.Column('floor_number', sa.Integer(), nullable=False),
        sa.Column('department_id', sa.Integer(), nullable=True),
        sa.Column('max_capacity', sa.Integer(), nullable=False),
        sa.Column('is_operational', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('room_id'),
        sa.UniqueConstraint('room_number')
    )
    op.create_index('ix_rooms_floor_number', 'rooms', ['floor_number'], unique=False)

    # Create admissions table
    op.create_table(
        'admissions',
        sa.Column('admission_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('admission_number', sa.String(length=30), nullable=True),
        sa.Column('patient_id', sa.Integer(), nullable=False),
        sa.Column('admission_date', sa.DateTime(), nullable=False),
        sa.Column('admission_type', enum_column_type('admission_type'), nullable=False),
        sa.Column('admission_source', enum_column_type('admission_source'), nullable=False),
        sa.Column('attending_doctor_id', sa.Integer(), nullable=False),
        sa.Column('diagnosis_at_admission', sa.Text(), nullable=False),
        sa.Column('expected_discharge_date', sa.Date(), nullable=True),
        sa.Column('admission_status', enum_column_type('admission_status'), nullable=False),
        sa.Column('discharge_date', sa.DateTime(), nullable=True),
        sa.Column('discharge_type', enum_column_type('discharge_type'), nullable=True),
        sa.Column('discharge_summary', sa.Text(), nullable=True),
        sa.Column('length_of_stay_days', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('admission_id'),
        sa.UniqueConstraint('admission_number')
    )
    op.create_index('ix_admissions_patient_id', 'admissions', ['patient_id'], unique=False)
    op.create_index('ix_admissions_admission_status', 'admissions', ['admission_status'], unique=False)

    # Create beds table
    op.create_table(
        'beds',
        sa.Column('bed_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False),
        sa.Column('bed_number', sa.String(length=20), nullable=False),
        sa.Column('bed_type', enum_column_type('bed_type'), nullable=False),
        sa.Column('status', enum_column_type('bed_status'), nullable=False),
        sa.Column('features', sa.JSON(), nullable=True),
        sa.Column('last_cleaned_at', sa.DateTime(), nullable=True),
        sa.Column('maintenance_reported_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.room_id'], ),
        sa.PrimaryKeyConstraint('bed_id'),
        sa.UniqueConstraint('room_id', 'bed_number', name='uq_beds_room_bed_number')
    )
    op.create_index('idx_bed_status', 'beds', ['status'], unique=False)

    # Create bed_assignments table
    op.create_table(
        'bed_assignments',
        sa.Column('assignment_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('admission_id', sa.Integer(), nullable=False),
        sa.Column('bed_id', sa.Integer(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
        sa.Column('assigned_by', sa.Integer(), nullable=True),
        sa.Column('released_at', sa.DateTime(), nullable=True),
        sa.Column('transfer_reason', sa.Text(), nullable=True),
        sa.Column('is_current', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['admission_id'], ['admissions.admission_id'], ),
        sa.ForeignKeyConstraint(['bed_id'], ['beds.bed_id'], ),
        sa.PrimaryKeyConstraint('assignment_id')
    )
    op.create_index('idx_admission_current', 'bed_assignments', ['admission_id', 'is_current'], unique=False)
    op.create_index(
        'uq_bed_assignments_current_bed', 'bed_assignments', ['bed_id'], unique=True,
        postgresql_where=sa.text('is_current'), sqlite_where=sa.text('is_current = 1')
    )
    op.create_index(
        'uq_bed_assignments_current_admission', 'bed_assignments', ['admission_id'], unique=True,
        postgresql_where=sa.text('is_current'), sqlite_where=sa.text('is_current = 1')
    )

    # Create bed_status_logs table
    op.create_table(
        'bed_status_logs',
        sa.Column('log_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('bed_id', sa.Integer(), nullable=False),
        sa.Column('old_status', enum_column_type('bed_status'), nullable=True),
        sa.Column('new_status', enum_column_type('bed_status'), nullable=False),
        sa.Column('changed_by', sa.Integer(), nullable=True),
        sa.Column('change_reason', sa.Text(), nullable=True),
        sa.Column('admission_id', sa.Integer(), nullable=True),
        sa.Column('assignment_id', sa.Integer(), nullable=True),
        sa.Column('changed_at', sa.DateTime(), nullable=False),
        sa.Column('additional_notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['bed_id'], ['beds.bed_id'], ),
        sa.ForeignKeyConstraint(['admission_id'], ['admissions.admission_id'], ),
        sa.ForeignKeyConstraint(['assignment_id'], ['bed_assignments.assignment_id'], ),
        sa.PrimaryKeyConstraint('log_id')
    )
    op.create_index('ix_bed_status_logs_bed_id', 'bed_status_logs', ['bed_id'], unique=False)
    op.create_index('ix_bed_status_logs_new_status', 'bed_status_logs', ['new_status'], unique=False)
    op.create_index('ix_bed_status_logs_changed_by', 'bed_status_logs', ['changed_by'], unique=False)
    op.create_index('ix_bed_status_logs_admission_id', 'bed_status_logs', ['admission_id'], unique=False)
    op.create_index('ix_bed_status_logs_changed_at', 'bed_status_logs', ['changed_at'], unique=False)
    op.create_index('idx_bed_status_timeline', 'bed_status_logs', ['bed_id', 'changed_at'], unique=False)
    op.create_index('idx_staff_actions', 'bed_status_logs', ['changed_by', 'changed_at'], unique=False)


def downgrade() -> None:
    op.drop_table('bed_status_logs')
    op.drop_table('bed_assignments')
    op.drop_table('beds')
    op.drop_table('admissions')
    op.drop_table('rooms')

    bind = op.get_bind()
    for name, values in ENUM_TYPES.items():
        sa.Enum(*values, name=name).drop(bind, checkfirst=True)

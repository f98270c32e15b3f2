"""Initial migration

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create pharmacies table
    op.create_table(
        'pharmacies',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_pharmacies_name', 'pharmacies', ['name'], unique=False)

    # Create profiles table
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('hospital_id', sa.String(length=36), nullable=True),
        sa.Column('pharmacy_id', sa.String(length=36), nullable=True),
        sa.Column('cnp', sa.String(length=13), nullable=True),
        sa.Column('department', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )
    op.create_index('ix_profiles_full_name', 'profiles', ['full_name'], unique=False)
    op.create_index('ix_profiles_cnp', 'profiles', ['cnp'], unique=True)

    # Create medical_history table
    op.create_table(
        'medical_history',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('medic_id', sa.String(length=36), nullable=True),
        sa.Column('visit_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('diagnosis', sa.Text(), nullable=True),
        sa.Column('symptoms', sa.Text(), nullable=True),
        sa.Column('treatment', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['medic_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_medical_history_patient_visit_date', 'medical_history', ['patient_id', 'visit_date'], unique=False
    )

    # Create prescriptions table
    op.create_table(
        'prescriptions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('medic_id', sa.String(length=36), nullable=False),
        sa.Column('medication_name', sa.String(length=255), nullable=False),
        sa.Column('dosage', sa.String(length=255), nullable=False),
        sa.Column('frequency', sa.String(length=255), nullable=False),
        sa.Column('duration', sa.String(length=255), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('prescribed_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('total_doses', sa.Integer(), nullable=False),
        sa.Column('doses_dispensed', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('status', sa.String(length=16), server_default='active', nullable=False),
        sa.Column('is_invalidated', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('invalidated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('invalidated_by', sa.String(length=36), nullable=True),
        sa.Column('invalidation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint('total_doses > 0', name='ck_prescriptions_total_doses_positive'),
        sa.CheckConstraint('doses_dispensed >= 0', name='ck_prescriptions_doses_dispensed_non_negative'),
        sa.CheckConstraint('doses_dispensed <= total_doses', name='ck_prescriptions_doses_within_total'),
        sa.ForeignKeyConstraint(['patient_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['medic_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['invalidated_by'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_prescriptions_patient_id', 'prescriptions', ['patient_id'], unique=False)
    op.create_index('ix_prescriptions_medication_name', 'prescriptions', ['medication_name'], unique=False)

    # Create prescription_dispensations table
    op.create_table(
        'prescription_dispensations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('prescription_id', sa.String(length=36), nullable=False),
        sa.Column('pharmacy_id', sa.String(length=36), nullable=False),
        sa.Column('pharmacist_id', sa.String(length=36), nullable=False),
        sa.Column('dose_number', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('idempotency_key', sa.String(length=255), nullable=True),
        sa.Column('dispensed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint('dose_number > 0', name='ck_dispensations_dose_number_positive'),
        sa.ForeignKeyConstraint(['prescription_id'], ['prescriptions.id'], ),
        sa.ForeignKeyConstraint(['pharmacy_id'], ['pharmacies.id'], ),
        sa.ForeignKeyConstraint(['pharmacist_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('prescription_id', 'dose_number', name='uq_dispensations_prescription_dose'),
        sa.UniqueConstraint('prescription_id', 'idempotency_key', name='uq_dispensations_prescription_idempotency_key')
    )
    op.create_index(
        'ix_prescription_dispensations_prescription_id', 'prescription_dispensations', ['prescription_id'], unique=False
    )
    op.create_index(
        'ix_dispensations_pharmacy_dispensed_at', 'prescription_dispensations', ['pharmacy_id', 'dispensed_at'],
        unique=False
    )


def downgrade() -> None:
    op.drop_index('ix_dispensations_pharmacy_dispensed_at', table_name='prescription_dispensations')
    op.drop_index('ix_prescription_dispensations_prescription_id', table_name='prescription_dispensations')
    op.drop_table('prescription_dispensations')
    op.drop_index('ix_medical_history_patient_visit_date', table_name='medical_history')
    op.drop_table('medical_history')
    op.drop_index('ix_prescriptions_medication_name', table_name='prescriptions')
    op.drop_index('ix_prescriptions_patient_id', table_name='prescriptions')
    op.drop_table('prescriptions')
    op.drop_index('ix_profiles_cnp', table_name='profiles')
    op.drop_index('ix_profiles_full_name', table_name='profiles')
    op.drop_table('profiles')
    op.drop_index('ix_pharmacies_name', table_name='pharmacies')
    op.drop_table('pharmacies')

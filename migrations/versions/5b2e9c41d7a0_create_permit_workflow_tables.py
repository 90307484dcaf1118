"""create permit workflow tables

Revision ID: 5b2e9c41d7a0
Revises:
Create Date: 2026-10-19 09:12:04.118230

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b2e9c41d7a0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'applications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('application_type', sa.String(length=20), nullable=False),
        sa.Column('reference_no', sa.String(length=20), nullable=False),
        sa.Column('applicant_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('rejection_details', sa.JSON(), nullable=False),
        sa.Column('admin_checklist', sa.JSON(), nullable=False),
        sa.Column('permit_number', sa.String(length=10), nullable=True),
        sa.Column('permit_issued_at', sa.DateTime(), nullable=True),
        sa.Column('permit_issued_by', sa.String(length=64), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('box1', sa.JSON(), nullable=True),
        sa.Column('box2', sa.JSON(), nullable=True),
        sa.Column('box3', sa.JSON(), nullable=True),
        sa.Column('box4', sa.JSON(), nullable=True),
        sa.Column('box5', sa.JSON(), nullable=True),
        sa.Column('box6', sa.JSON(), nullable=True),
        sa.Column('building_permit_id', sa.Integer(), nullable=True),
        sa.Column('permit_info', sa.JSON(), nullable=True),
        sa.Column('owner_details', sa.JSON(), nullable=True),
        sa.Column('requirements_submitted', sa.JSON(), nullable=True),
        sa.Column('other_docs', sa.JSON(), nullable=True),
        sa.Column('project_details', sa.JSON(), nullable=True),
        sa.Column('signatures', sa.JSON(), nullable=True),
        sa.Column('assessment_details', sa.JSON(), nullable=True),
        sa.Column('fees_details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['building_permit_id'], ['applications.id']),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('applications', schema=None) as batch_op:
        batch_op.create_index('ix_applications_application_type', ['application_type'], unique=False)
        batch_op.create_index('ix_applications_reference_no', ['reference_no'], unique=True)
        batch_op.create_index('ix_applications_applicant_id', ['applicant_id'], unique=False)
        batch_op.create_index('ix_applications_status', ['status'], unique=False)
        batch_op.create_index('ix_applications_permit_number', ['permit_number'], unique=True)
        batch_op.create_index('ix_applications_created_at', ['created_at'], unique=False)

    op.create_table(
        'workflow_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('application_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('updated_by', sa.String(length=64), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id']),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('workflow_history', schema=None) as batch_op:
        batch_op.create_index('ix_workflow_history_application_id', ['application_id'], unique=False)

    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('application_id', sa.Integer(), nullable=False),
        sa.Column('application_type', sa.String(length=20), nullable=False),
        sa.Column('requirement_name', sa.String(length=255), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('file_content', sa.LargeBinary(), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('original_index', sa.Integer(), nullable=False),
        sa.Column('uploaded_by', sa.String(length=20), nullable=False),
        sa.Column('uploaded_by_role', sa.String(length=20), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('superseded_by_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id']),
        sa.ForeignKeyConstraint(['superseded_by_id'], ['documents.id']),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('documents', schema=None) as batch_op:
        batch_op.create_index('ix_documents_application_id', ['application_id'], unique=False)
        batch_op.create_index('ix_documents_application_type', ['application_type'], unique=False)
        batch_op.create_index('ix_documents_requirement_name', ['requirement_name'], unique=False)
        batch_op.create_index('ix_documents_original_index', ['original_index'], unique=False)
        batch_op.create_index('ix_documents_uploaded_at', ['uploaded_at'], unique=False)
        batch_op.create_index('ix_documents_is_active', ['is_active'], unique=False)
        batch_op.create_index('ix_documents_app_index', ['application_id', 'original_index'], unique=False)
        batch_op.create_index(
            'ix_documents_app_requirement_active',
            ['application_id', 'requirement_name', 'is_active'],
            unique=False
        )
        batch_op.create_index(
            'uq_documents_app_active_index',
            ['application_id', 'original_index'],
            unique=True,
            postgresql_where=sa.text('is_active'),
            sqlite_where=sa.text('is_active')
        )

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('application_id', sa.Integer(), nullable=False),
        sa.Column('application_type', sa.String(length=20), nullable=False),
        sa.Column('method', sa.String(length=20), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('reference_number', sa.String(length=100), nullable=True),
        sa.Column('amount_paid', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('proof_file_name', sa.String(length=255), nullable=True),
        sa.Column('proof_content', sa.LargeBinary(), nullable=True),
        sa.Column('proof_mime_type', sa.String(length=100), nullable=True),
        sa.Column('proof_file_size', sa.Integer(), nullable=True),
        sa.Column('verified_by', sa.String(length=64), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('date_submitted', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id']),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('payments', schema=None) as batch_op:
        batch_op.create_index('ix_payments_application_id', ['application_id'], unique=True)
        batch_op.create_index('ix_payments_application_type', ['application_type'], unique=False)
        batch_op.create_index('ix_payments_status', ['status'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=True),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('audit_logs', schema=None) as batch_op:
        batch_op.create_index('ix_audit_logs_user_id', ['user_id'], unique=False)
        batch_op.create_index('ix_audit_logs_action', ['action'], unique=False)
        batch_op.create_index('ix_audit_logs_resource_type', ['resource_type'], unique=False)
        batch_op.create_index('ix_audit_logs_created_at', ['created_at'], unique=False)


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('payments')
    op.drop_table('documents')
    op.drop_table('workflow_history')
    op.drop_table('applications')

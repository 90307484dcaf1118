import logging
from datetime import datetime
from sqlalchemy import func, or_
from permitflow.errors import NotFound, ValidationError
from permitflow.models.application import (
    Application, BuildingApplication, OccupancyApplication, resolved_rejection_details,
)
from permitflow.models.audit_log import AuditLog
from permitflow.models.enums import (
    ADMIN_DOCUMENT_ROLES, ApplicationStatus, Role, UploadedBy,
)
from permitflow.models.payment import Payment
from permitflow.services.document_ledger import REVISION_REQUIREMENT, DocumentLedger
from permitflow.services.payment_ledger import PaymentLedger
from permitflow.services.visibility import filter_documents_for_requester
from permitflow.services.workflow_engine import WorkflowEngine
from permitflow.utils.validators import validate_building_submission, validate_occupancy_submission

logger = logging.getLogger(__name__)

FORM_REQUIREMENT = 'Completed Application Form'
OCCUPANCY_PAYLOAD_FIELDS = (
    'permit_info', 'owner_details', 'requirements_submitted', 'other_docs',
    'project_details', 'signatures',
)


class ApplicationStore:
    """Creates, finds and enriches Building and Occupancy applications.

    Writes that are not status transitions (creation, uploads) commit here;
    anything that moves an application is handed to the workflow engine so
    it lands in the engine's single transaction.
    """

    def __init__(self, session, engine=None, form_renderer=None):
        self.session = session
        self.engine = engine or WorkflowEngine(session)
        self.documents = self.engine.documents
        self.payments = self.engine.payments
        self.form_renderer = form_renderer

    def _new(self, model, applicant_id, **fields):
        now = datetime.utcnow()
        application = model(
            reference_no=model.next_reference_no(),
            applicant_id=str(applicant_id),
            status=ApplicationStatus.SUBMITTED.value,
            rejection_details=resolved_rejection_details(),
            admin_checklist={},
            created_at=now,
            updated_at=now,
            **fields
        )
        self.session.add(application)
        application.record_transition(
            ApplicationStatus.SUBMITTED.value,
            'Application submitted by user.',
            str(applicant_id),
            now
        )
        self.session.flush()
        return application

    def _attach_rendered_form(self, application):
        if self.form_renderer is None:
            return None
        content = self.form_renderer(application)
        if not content:
            return None
        return self.documents.append(
            application,
            FORM_REQUIREMENT,
            {
                'file_name': f'{application.reference_no}.pdf',
                'mime_type': 'application/pdf',
                'size': len(content),
                'content': content,
            },
            uploaded_by=UploadedBy.SYSTEM.value
        )

    def create_building(self, applicant_id, data):
        sections = validate_building_submission(data)
        try:
            application = self._new(BuildingApplication, applicant_id, **sections)
            self._attach_rendered_form(application)
            AuditLog.log(
                action='application_submitted',
                user_id=applicant_id,
                role=Role.APPLICANT.value,
                resource_type='application',
                resource_id=application.id,
                details={'reference_no': application.reference_no}
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info('Building application %s submitted by %s', application.reference_no, applicant_id)
        return application

    def create_occupancy(self, applicant_id, data):
        data = validate_occupancy_submission(data)
        parent = self.find_by_identifier(str(data['building_permit_identifier']))
        if parent is None or not isinstance(parent, BuildingApplication):
            raise NotFound('Building application not found')

        fields = {name: data.get(name) for name in OCCUPANCY_PAYLOAD_FIELDS}
        try:
            application = self._new(
                OccupancyApplication, applicant_id,
                building_permit_id=parent.id,
                **fields
            )
            AuditLog.log(
                action='application_submitted',
                user_id=applicant_id,
                role=Role.APPLICANT.value,
                resource_type='application',
                resource_id=application.id,
                details={'reference_no': application.reference_no, 'building': parent.reference_no}
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info('Occupancy application %s submitted for %s', application.reference_no, parent.reference_no)
        return application

    def get(self, application_id):
        application = self.session.get(Application, application_id)
        if application is None:
            raise NotFound('Application not found')
        return application

    def find_by_identifier(self, identifier):
        """Look up by numeric id or reference number (case-insensitive)"""
        identifier = (identifier or '').strip()
        if not identifier:
            return None
        if identifier.isdigit():
            return self.session.get(Application, int(identifier))
        return self.session.query(Application).filter(
            func.upper(Application.reference_no) == identifier.upper()
        ).first()

    def list_for_applicant(self, applicant_id):
        return self.session.query(Application).filter_by(
            applicant_id=str(applicant_id)
        ).order_by(Application.created_at.desc()).all()

    def list_all(self, status=None, search=None, application_type=None, page=1, per_page=20):
        query = self.session.query(Application)

        if status and status != 'all':
            query = query.filter(Application.status == status)
        if application_type and application_type != 'all':
            query = query.filter(Application.application_type == application_type)
        if search:
            pattern = f'%{search}%'
            query = query.filter(or_(
                Application.reference_no.ilike(pattern),
                Application.applicant_id.ilike(pattern),
                Application.permit_number.ilike(pattern)
            ))

        return query.order_by(Application.created_at.desc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

    def visible_documents(self, application, requester_role):
        return filter_documents_for_requester(
            self.documents.list_ordered(application.id),
            requester_role,
            application.status
        )

    def enrich(self, application, requester_role):
        """Serialise with the documents the requester may see and the payment"""
        data = application.to_dict(documents=self.visible_documents(application, requester_role))
        payment = self.payments.get(application.id)
        data['payment_details'] = payment.to_dict() if payment else Payment.empty_dict()
        return data

    def upload_document(self, application, requirement_name, blob, actor_id):
        """Applicant upload; replaces the active document for the requirement"""
        try:
            document = self.documents.replace(application, requirement_name, blob)
            AuditLog.log(
                action='document_uploaded',
                user_id=actor_id,
                role=Role.APPLICANT.value,
                resource_type='application',
                resource_id=application.id,
                details={'requirement_name': document.requirement_name, 'original_index': document.original_index}
            )
            self.session.commit()
            return document
        except Exception:
            self.session.rollback()
            raise

    def upload_admin_documents(self, application, blobs, actor_role, actor_id, requirement_name=None):
        """Admin uploads, tagged with the uploader's review stage"""
        document_role = ADMIN_DOCUMENT_ROLES.get(actor_role)
        if document_role is None:
            raise ValidationError([{'field': 'role', 'message': 'Only admins can upload review documents.'}])
        if not blobs:
            raise ValidationError([{'field': 'files', 'message': 'No documents uploaded.'}])

        try:
            uploaded = [
                self.documents.append(
                    application,
                    requirement_name or f'{document_role} Review Document',
                    blob,
                    uploaded_by=UploadedBy.ADMIN.value,
                    uploaded_by_role=document_role
                )
                for blob in blobs
            ]
            AuditLog.log(
                action='admin_documents_uploaded',
                user_id=actor_id,
                role=actor_role,
                resource_type='application',
                resource_id=application.id,
                details={'count': len(uploaded), 'document_role': document_role}
            )
            self.session.commit()
            return uploaded
        except Exception:
            self.session.rollback()
            raise

    def submit_revisions(self, application, blobs, actor_id, comments=None):
        """Store revised files and resubmit the application in one commit"""
        if not blobs:
            raise ValidationError([{'field': 'files', 'message': 'No documents uploaded.'}])

        try:
            for blob in blobs:
                self.documents.append(application, REVISION_REQUIREMENT, blob)
            AuditLog.log(
                action='revisions_uploaded',
                user_id=actor_id,
                role=Role.APPLICANT.value,
                resource_type='application',
                resource_id=application.id,
                details={'count': len(blobs)}
            )
        except Exception:
            self.session.rollback()
            raise

        return self.engine.resubmit(
            application.id, actor_id,
            comments=comments or f'Applicant uploaded {len(blobs)} revised document(s).'
        )

    def submit_payment(self, application, actor_id, method, reference_number=None,
                       amount_paid=None, proof=None):
        """Upsert the payment and move the application to Payment Submitted"""
        try:
            self.payments.submit(
                application, method,
                reference_number=reference_number,
                amount_paid=amount_paid,
                proof=proof
            )
            AuditLog.log(
                action='payment_submitted',
                user_id=actor_id,
                role=Role.APPLICANT.value,
                resource_type='application',
                resource_id=application.id,
                details={'method': method, 'reference_number': reference_number}
            )
        except Exception:
            self.session.rollback()
            raise

        return self.engine.apply_transition(
            application.id,
            ApplicationStatus.PAYMENT_SUBMITTED.value,
            Role.APPLICANT.value,
            actor_id,
            comments=f'Payment submitted via {method}.'
        )

import logging
from datetime import datetime
from permitflow.errors import (
    Forbidden, InvalidStatus, InvalidTransition, MissingRequiredDocuments,
    NotFound, UnresolvedFlags, ValidationError,
)
from permitflow.models.application import Application, resolved_rejection_details
from permitflow.models.audit_log import AuditLog
from permitflow.models.enums import (
    ApplicationStatus, ApplicationType, CLEARING_STATUSES, PROGRESSION_STATUSES, Role,
)
from permitflow.services import transitions
from permitflow.services.document_ledger import DocumentLedger
from permitflow.services.payment_ledger import PaymentLedger
from permitflow.services.permit_numbers import PermitNumberGenerator

logger = logging.getLogger(__name__)

LEGACY_ALIASES = {
    'Pending': ApplicationStatus.PENDING_MEO.value,
}

# UI statuses that are not native to Occupancy records
OCCUPANCY_ALIASES = {
    'Payment Pending': ApplicationStatus.PENDING_MEO.value,
    'For Review': ApplicationStatus.PENDING_MEO.value,
    'Returned': ApplicationStatus.PENDING_MEO.value,
    'Payment Verified': ApplicationStatus.PENDING_BFP.value,
}


def resolve_status_alias(status, application_type):
    status = LEGACY_ALIASES.get(status, status)
    if application_type == ApplicationType.OCCUPANCY.value:
        status = OCCUPANCY_ALIASES.get(status, status)
    return status


class WorkflowEngine:
    """Validates and applies status transitions.

    Each transition runs against a row locked with SELECT ... FOR UPDATE and
    lands in a single commit: the field writes, exactly one workflow history
    row and any ledger side effect. Concurrent transitions on the same
    application are serialised by that lock, so this path never retries.
    """

    def __init__(self, session, documents=None, payments=None, permit_numbers=None):
        self.session = session
        self.documents = documents or DocumentLedger(session)
        self.payments = payments or PaymentLedger(session)
        self.permit_numbers = permit_numbers or PermitNumberGenerator(session)

    def _load_for_update(self, application_id):
        application = self.session.query(Application).filter_by(
            id=application_id
        ).with_for_update().populate_existing().first()
        if application is None:
            raise NotFound('Application not found')
        return application

    @staticmethod
    def _check_unresolved_flags(application, target):
        if target in PROGRESSION_STATUSES and application.has_unresolved_flags():
            raise UnresolvedFlags(target, application.missing_documents)

    def _check_edge(self, application, target, actor_role):
        edge = transitions.find_edge(application.status, target)
        if edge is None:
            raise InvalidTransition(application.status, target)
        if actor_role not in edge.roles:
            raise Forbidden(f'Role "{actor_role}" cannot move an application from "{application.status}" to "{target}".')

        if edge.required_doc_role:
            count = self.documents.count_admin_documents(application.id, edge.required_doc_role)
            if count <= 0:
                raise MissingRequiredDocuments(edge.required_doc_role)
        return edge

    @staticmethod
    def _apply_rejection_details(application, target, comments, missing_documents, rejection_details):
        if target == ApplicationStatus.REJECTED.value:
            application.rejection_details = {
                'comments': comments or 'No comments provided.',
                'missing_documents': list(missing_documents or []),
                'is_resolved': False,
            }
        elif target in CLEARING_STATUSES:
            application.rejection_details = resolved_rejection_details()

        if rejection_details is not None:
            application.rejection_details = rejection_details

    def _apply_side_effects(self, application, edge, actor_id, now):
        for effect in edge.side_effects:
            if effect == transitions.ISSUE_PERMIT:
                if application.has_permit():
                    logger.info('Permit %s already issued for %s', application.permit_number, application.reference_no)
                    continue
                application.issue_permit(self.permit_numbers.generate(), actor_id, now)
            elif effect == transitions.VERIFY_PAYMENT:
                self.payments.verify(application.id, actor_id)
            elif effect == transitions.FAIL_PAYMENT:
                self.payments.fail(application.id, actor_id)

    def _commit_transition(self, application, target, comments, actor_id, now):
        from_status = application.status
        application.status = target
        application.updated_at = now
        application.record_transition(target, comments, actor_id, now)
        self.session.commit()
        logger.info(
            'Application %s moved from %s to %s by %s',
            application.reference_no, from_status, target, actor_id
        )
        return application

    def apply_transition(self, application_id, requested_status, actor_role, actor_id,
                         comments=None, missing_documents=None, rejection_details=None):
        """Move an application to requested_status on behalf of actor_role.

        Checks run in order: unresolved flags gate, status validation,
        transition table (edge and role), required admin documents. Any
        failure raises a WorkflowError before anything is written.
        """
        try:
            application = self._load_for_update(application_id)
            target = resolve_status_alias(requested_status, application.application_type)

            self._check_unresolved_flags(application, target)
            if not ApplicationStatus.is_valid(target):
                raise InvalidStatus(requested_status, ApplicationStatus.values())
            edge = self._check_edge(application, target, actor_role)

            now = datetime.utcnow()
            self._apply_rejection_details(application, target, comments, missing_documents, rejection_details)
            self._apply_side_effects(application, edge, actor_id, now)

            return self._commit_transition(
                application, target,
                comments or f'Status updated to {target} by {actor_role}.',
                actor_id, now
            )
        except Exception:
            self.session.rollback()
            raise

    def resubmit(self, application_id, actor_id, comments=None, actor_role=Role.APPLICANT.value):
        """Return a rejected application to review after the applicant revised it.

        Goes back to BFP when the rejection came from BFP, otherwise to MEO.
        The resubmission itself marks the rejection as resolved, so only
        outstanding missing documents can block the return to BFP.
        """
        try:
            application = self._load_for_update(application_id)
            if application.status != ApplicationStatus.REJECTED.value:
                raise InvalidTransition(application.status, ApplicationStatus.PENDING_MEO.value)

            details = application.rejection_details or resolved_rejection_details()
            target = ApplicationStatus.PENDING_MEO.value
            if 'BFP' in (details.get('comments') or ''):
                target = ApplicationStatus.PENDING_BFP.value

            if target == ApplicationStatus.PENDING_BFP.value and application.missing_documents:
                raise UnresolvedFlags(target, application.missing_documents)
            self._check_edge(application, target, actor_role)

            if target in CLEARING_STATUSES:
                application.rejection_details = resolved_rejection_details()
            else:
                application.rejection_details = dict(details, is_resolved=True)

            return self._commit_transition(
                application, target,
                comments or 'Applicant resubmitted revised documents.',
                actor_id, datetime.utcnow()
            )
        except Exception:
            self.session.rollback()
            raise

    def record_assessment(self, application_id, actor_role, actor_id, fields):
        """Save the MEO fee assessment without changing status"""
        try:
            if actor_role != Role.MEO_ADMIN.value:
                raise Forbidden('Only MEO admins can record assessments.')
            if not isinstance(fields, dict):
                raise ValidationError([{'field': 'body', 'message': 'JSON object expected.'}])

            application = self._load_for_update(application_id)
            allowed = application.ASSESSMENT_FIELDS
            details = [
                {'field': key, 'message': f'Not an assessment field for {application.application_type} applications.'}
                for key in (fields or {}) if key not in allowed
            ]
            if not fields:
                details.append({'field': 'body', 'message': f"Provide one of: {', '.join(allowed)}."})
            if details:
                raise ValidationError(details)

            for key, value in fields.items():
                setattr(application, key, value)
            application.updated_at = datetime.utcnow()

            AuditLog.log(
                action='assessment_recorded',
                user_id=actor_id,
                role=actor_role,
                resource_type='application',
                resource_id=application.id,
                details={'fields': sorted(fields)}
            )
            self.session.commit()
            logger.info('Assessment recorded for %s', application.reference_no)
            return application
        except Exception:
            self.session.rollback()
            raise

import logging
from datetime import datetime
from permitflow.checklist_taxonomy import CHECKLIST_CATEGORIES, parse_item_key
from permitflow.errors import Forbidden, NotFound, ValidationError
from permitflow.models.application import Application
from permitflow.models.audit_log import AuditLog
from permitflow.models.enums import ApplicationStatus, Role
from permitflow.utils.concurrency import optimistic_retry

logger = logging.getLogger(__name__)

CHECKLIST_MANAGERS = frozenset({Role.MEO_ADMIN.value, Role.BFP_ADMIN.value})


def blank_item(label):
    return {
        'item': label,
        'checked': False,
        'flagged': False,
        'resolved_by': None,
        'resolved_at': None,
    }


class ChecklistTracker:
    """Flag/resolve protocol over the admin checklist.

    Every operation rewrites the whole checklist together with the rejection
    details in one commit. The application row carries a version counter,
    so a concurrent edit makes the commit fail with a write conflict and the
    operation is retried from a fresh read.
    """

    def __init__(self, session, categories=CHECKLIST_CATEGORIES):
        self.session = session
        self.categories = categories

    def _load(self, application_id):
        application = self.session.query(Application).filter_by(
            id=application_id
        ).populate_existing().first()
        if application is None:
            raise NotFound('Application not found')
        return application

    @staticmethod
    def _require_manager(actor_role):
        if actor_role not in CHECKLIST_MANAGERS:
            raise Forbidden('Only MEO and BFP admins can manage this checklist.')

    def _resolve_keys(self, item_keys):
        targets, unknown = [], []
        for key in item_keys:
            parsed = parse_item_key(key, self.categories)
            if parsed is None:
                unknown.append({'field': 'item_keys', 'message': f'Unknown checklist item: {key}'})
            else:
                targets.append(parsed)
        if unknown:
            raise ValidationError(unknown)
        return targets

    def build_checklist(self, application):
        """Stored checklist laid over the taxonomy, as a fresh copy"""
        stored = application.checklist_copy()
        checklist = {}
        for category_key, _title, items in self.categories:
            existing = {entry.get('item'): entry for entry in stored.get(category_key, [])}
            checklist[category_key] = [
                dict(blank_item(label), **existing.get(label, {})) for label in items
            ]
        return checklist

    @optimistic_retry()
    def flag_items(self, application_id, item_keys, note=None, actor_role=None, actor_id=None):
        """Flag items as missing; any new flag rejects the application"""
        self._require_manager(actor_role)
        targets = self._resolve_keys(item_keys)
        application = self._load(application_id)
        checklist = self.build_checklist(application)

        newly_flagged = []
        for category_key, index, label in targets:
            item = checklist[category_key][index]
            if not item['flagged']:
                item.update(flagged=True, resolved_by=None, resolved_at=None)
                newly_flagged.append(label)

        if not newly_flagged:
            logger.info('All selected items already flagged on application %s', application_id)
            return application

        missing = application.missing_documents
        missing.extend(label for label in newly_flagged if label not in missing)
        comments = note or f"Missing or incomplete documents flagged: {', '.join(newly_flagged)}"

        now = datetime.utcnow()
        application.admin_checklist = checklist
        application.rejection_details = {
            'comments': comments,
            'missing_documents': missing,
            'is_resolved': False,
        }
        application.status = ApplicationStatus.REJECTED.value
        application.updated_at = now
        application.record_transition(ApplicationStatus.REJECTED.value, comments, actor_id, now)

        self.session.commit()
        logger.info('Flagged %d item(s) on application %s', len(newly_flagged), application_id)
        return application

    @optimistic_retry()
    def resolve_items(self, application_id, item_keys, actor_role=None, actor_id=None):
        """Clear flags; the rejection is resolved once nothing is missing"""
        self._require_manager(actor_role)
        targets = self._resolve_keys(item_keys)
        application = self._load(application_id)
        checklist = self.build_checklist(application)

        resolved_at = datetime.utcnow().isoformat()
        resolved = []
        for category_key, index, label in targets:
            item = checklist[category_key][index]
            if item['flagged']:
                item.update(flagged=False, resolved_by=actor_role, resolved_at=resolved_at)
                resolved.append(label)

        if not resolved:
            logger.info('All selected items already resolved on application %s', application_id)
            return application

        missing = [name for name in application.missing_documents if name not in resolved]
        application.admin_checklist = checklist
        application.rejection_details = {
            'comments': (application.rejection_details or {}).get('comments', ''),
            'missing_documents': missing,
            'is_resolved': not missing,
        }

        AuditLog.log(
            action='checklist_items_resolved',
            user_id=actor_id,
            role=actor_role,
            resource_type='application',
            resource_id=application.id,
            details={'items': resolved}
        )
        self.session.commit()
        logger.info('Resolved %d item(s) on application %s', len(resolved), application_id)
        return application

    @optimistic_retry()
    def mark_checked(self, application_id, item_keys, checked=True, actor_role=None, actor_id=None):
        """Tick or untick items without touching their flag state"""
        self._require_manager(actor_role)
        targets = self._resolve_keys(item_keys)
        application = self._load(application_id)
        checklist = self.build_checklist(application)

        for category_key, index, _label in targets:
            checklist[category_key][index]['checked'] = bool(checked)

        application.admin_checklist = checklist
        AuditLog.log(
            action='checklist_items_checked' if checked else 'checklist_items_unchecked',
            user_id=actor_id,
            role=actor_role,
            resource_type='application',
            resource_id=application.id,
            details={'items': [label for _c, _i, label in targets]}
        )
        self.session.commit()
        return application

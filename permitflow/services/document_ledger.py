import logging
from datetime import datetime
from sqlalchemy import func
from permitflow.errors import InvalidDocument, ValidationError
from permitflow.models.application import Application
from permitflow.models.document import Document
from permitflow.models.enums import UploadedBy

logger = logging.getLogger(__name__)

REVISION_REQUIREMENT = 'Revised Checklist/Documents'


class DocumentLedger:
    """Append-only document store presenting a versioned view through ``is_active``.

    Methods add and flush rows on the given session; committing is left to
    the caller so uploads can share a transaction with a status change.
    """

    def __init__(self, session):
        self.session = session

    def _lock_application(self, application_id):
        # Serializes index allocation and replacement per application
        self.session.query(Application.id).filter(
            Application.id == application_id
        ).with_for_update().scalar()

    def _next_index(self, application_id):
        # Counted over every row, active or not, so an index is never reused
        latest = self.session.query(func.max(Document.original_index)).filter(
            Document.application_id == application_id
        ).scalar()
        return 0 if latest is None else latest + 1

    @staticmethod
    def _check(requirement_name, blob):
        if not requirement_name or not requirement_name.strip():
            raise InvalidDocument()
        if not blob or not blob.get('content'):
            raise ValidationError([{'field': 'file', 'message': 'No document uploaded.'}])

    def _build(self, application, requirement_name, blob, uploaded_by, uploaded_by_role, original_index):
        return Document(
            application_id=application.id,
            application_type=application.application_type,
            requirement_name=requirement_name.strip(),
            file_name=blob.get('file_name') or 'document',
            file_content=blob['content'],
            mime_type=blob.get('mime_type') or 'application/octet-stream',
            file_size=blob.get('size', len(blob['content'])),
            original_index=original_index,
            uploaded_by=uploaded_by,
            uploaded_by_role=uploaded_by_role,
            uploaded_at=datetime.utcnow(),
            is_active=True
        )

    def append(self, application, requirement_name, blob,
               uploaded_by=UploadedBy.USER.value, uploaded_by_role=None):
        """Store a new document at the next free position"""
        self._check(requirement_name, blob)
        self._lock_application(application.id)
        document = self._build(
            application, requirement_name, blob, uploaded_by, uploaded_by_role,
            self._next_index(application.id)
        )
        self.session.add(document)
        self.session.flush()
        logger.info(
            'Document %r appended to application %s at index %d',
            document.requirement_name, application.id, document.original_index
        )
        return document

    def replace(self, application, requirement_name, blob,
                uploaded_by=UploadedBy.USER.value, uploaded_by_role=None):
        """Supersede the active document for requirement_name, keeping its position.

        Only a document from the same uploader class (uploader and role tag)
        is superseded. A name owned by another uploader gets a new position.
        """
        self._check(requirement_name, blob)
        self._lock_application(application.id)
        existing = self.session.query(Document).filter_by(
            application_id=application.id,
            requirement_name=requirement_name.strip(),
            uploaded_by=uploaded_by,
            uploaded_by_role=uploaded_by_role,
            is_active=True
        ).first()

        if existing is None:
            return self.append(application, requirement_name, blob, uploaded_by, uploaded_by_role)

        # Deactivated before the insert so the position never has two active rows
        existing.deactivate()
        self.session.flush()
        replacement = self._build(
            application, requirement_name, blob, uploaded_by, uploaded_by_role,
            existing.original_index
        )
        self.session.add(replacement)
        self.session.flush()
        existing.superseded_by_id = replacement.id
        self.session.flush()
        logger.info(
            'Document %r of application %s replaced at index %d',
            replacement.requirement_name, application.id, replacement.original_index
        )
        return replacement

    def get_by_index(self, application_id, index):
        """Active document at a position, or None"""
        if index is None or index < 0:
            return None
        return self.session.query(Document).filter_by(
            application_id=application_id,
            original_index=index,
            is_active=True
        ).first()

    def list_ordered(self, application_id):
        """All active documents ordered by position"""
        return self.session.query(Document).filter_by(
            application_id=application_id,
            is_active=True
        ).order_by(Document.original_index.asc()).all()

    def count_admin_documents(self, application_id, document_role):
        return self.session.query(Document).filter_by(
            application_id=application_id,
            uploaded_by=UploadedBy.ADMIN.value,
            uploaded_by_role=document_role,
            is_active=True
        ).count()

    def history(self, application_id, index):
        """Every stored version at a position, oldest first"""
        return self.session.query(Document).filter_by(
            application_id=application_id,
            original_index=index
        ).order_by(Document.id.asc()).all()

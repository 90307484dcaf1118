from datetime import datetime
from sqlalchemy import text
from permitflow import db
from permitflow.models.enums import UploadedBy


class Document(db.Model):
    """Versioned application document.

    Rows are never deleted. A replacement deactivates the current row and
    inserts a new one carrying the same ``original_index``, so clients can
    keep addressing a document by position across revisions.
    """
    __tablename__ = 'documents'

    id = db.Column(db.Integer, primary_key=True)

    # Parent application (Building or Occupancy)
    application_id = db.Column(db.Integer, db.ForeignKey('applications.id'), nullable=False, index=True)
    application_type = db.Column(db.String(20), nullable=False, index=True)

    # What the document satisfies, used as the replace key for revisions
    requirement_name = db.Column(db.String(255), nullable=False, index=True)

    # File
    file_name = db.Column(db.String(255), nullable=False)
    file_content = db.Column(db.LargeBinary, nullable=False)
    mime_type = db.Column(db.String(100), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)

    # Stable position, preserved across replacement
    original_index = db.Column(db.Integer, nullable=False, index=True)

    # Uploader: user, system, admin; admin uploads are tagged MEO, BFP or MAYOR
    uploaded_by = db.Column(db.String(20), nullable=False, default=UploadedBy.USER.value)
    uploaded_by_role = db.Column(db.String(20), nullable=True)
    uploaded_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    # Versioning
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    superseded_by_id = db.Column(db.Integer, db.ForeignKey('documents.id'), nullable=True)

    __table_args__ = (
        db.Index('ix_documents_app_index', 'application_id', 'original_index'),
        db.Index('ix_documents_app_requirement_active', 'application_id', 'requirement_name', 'is_active'),
        # One active version per position
        db.Index(
            'uq_documents_app_active_index', 'application_id', 'original_index',
            unique=True,
            postgresql_where=text('is_active'),
            sqlite_where=text('is_active')
        ),
    )

    def deactivate(self, superseded_by=None):
        """Soft-delete this version"""
        self.is_active = False
        if superseded_by is not None:
            self.superseded_by_id = superseded_by.id

    def to_dict(self):
        return {
            'id': self.id,
            'original_index': self.original_index,
            'requirement_name': self.requirement_name,
            'file_name': self.file_name,
            'mime_type': self.mime_type,
            'file_size': self.file_size,
            'uploaded_by': self.uploaded_by,
            'uploaded_by_role': self.uploaded_by_role,
            'uploaded_at': self.uploaded_at.isoformat() if self.uploaded_at else None,
        }

    def __repr__(self):
        return f'<Document {self.application_id}#{self.original_index} {self.requirement_name}>'

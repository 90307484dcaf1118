from copy import deepcopy
from datetime import datetime
from sqlalchemy.orm import validates
from permitflow import db
from permitflow.models.enums import ApplicationStatus, ApplicationType
from permitflow.models.workflow_history import WorkflowHistoryEntry


def resolved_rejection_details():
    return {'comments': '', 'missing_documents': [], 'is_resolved': True}


class Application(db.Model):
    """Permit application aggregate shared by Building and Occupancy records"""
    __tablename__ = 'applications'

    id = db.Column(db.Integer, primary_key=True)
    application_type = db.Column(db.String(20), nullable=False, index=True)
    reference_no = db.Column(db.String(20), unique=True, nullable=False, index=True)

    # JWT identity of the submitting applicant
    applicant_id = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(50), nullable=False, default=ApplicationStatus.SUBMITTED.value, index=True)

    # {comments, missing_documents, is_resolved}
    rejection_details = db.Column(db.JSON, nullable=False, default=resolved_rejection_details)

    # category key -> [{item, checked, flagged, resolved_by, resolved_at}]
    admin_checklist = db.Column(db.JSON, nullable=False, default=dict)

    # Permit (written once, on issuance)
    permit_number = db.Column(db.String(10), unique=True, nullable=True, index=True)
    permit_issued_at = db.Column(db.DateTime, nullable=True)
    permit_issued_by = db.Column(db.String(64), nullable=True)

    # Optimistic concurrency counter, bumped on every UPDATE
    version = db.Column(db.Integer, nullable=False)

    # Building payload
    box1 = db.Column(db.JSON, nullable=True)
    box2 = db.Column(db.JSON, nullable=True)
    box3 = db.Column(db.JSON, nullable=True)
    box4 = db.Column(db.JSON, nullable=True)
    box5 = db.Column(db.JSON, nullable=True)
    box6 = db.Column(db.JSON, nullable=True)

    # Occupancy payload
    building_permit_id = db.Column(db.Integer, db.ForeignKey('applications.id'), nullable=True)
    permit_info = db.Column(db.JSON, nullable=True)
    owner_details = db.Column(db.JSON, nullable=True)
    requirements_submitted = db.Column(db.JSON, nullable=True)
    other_docs = db.Column(db.JSON, nullable=True)
    project_details = db.Column(db.JSON, nullable=True)
    signatures = db.Column(db.JSON, nullable=True)
    assessment_details = db.Column(db.JSON, nullable=True)
    fees_details = db.Column(db.JSON, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    workflow_history = db.relationship(
        'WorkflowHistoryEntry',
        backref='application',
        order_by=WorkflowHistoryEntry.id,
        lazy='select'
    )

    __mapper_args__ = {
        'polymorphic_on': application_type,
        'version_id_col': version,
    }

    REFERENCE_PREFIX = None
    PAYLOAD_FIELDS = ()
    ASSESSMENT_FIELDS = ()

    @validates('permit_number')
    def validate_permit_number(self, key, value):
        if self.permit_number and value != self.permit_number:
            raise ValueError('Permit number is already set and cannot be changed')
        return value

    @classmethod
    def next_reference_no(cls):
        """Next sequential reference number for this application type"""
        latest = db.session.query(db.func.max(Application.reference_no)).filter(
            Application.application_type == cls.__mapper_args__['polymorphic_identity']
        ).scalar()
        sequence = int(latest.rsplit('-', 1)[1]) + 1 if latest else 1
        return f'{cls.REFERENCE_PREFIX}-{sequence:06d}'

    @property
    def missing_documents(self):
        return list((self.rejection_details or {}).get('missing_documents') or [])

    def has_unresolved_flags(self):
        details = self.rejection_details or {}
        return bool(details.get('missing_documents')) or details.get('is_resolved') is False

    def has_permit(self):
        return bool(self.permit_number)

    def record_transition(self, status, comments, updated_by, timestamp=None):
        """Append exactly one workflow history entry"""
        entry = WorkflowHistoryEntry(
            status=status,
            comments=comments,
            updated_by=updated_by,
            timestamp=timestamp or datetime.utcnow()
        )
        self.workflow_history.append(entry)
        return entry

    def issue_permit(self, permit_number, issued_by, issued_at=None):
        if self.has_permit():
            return False
        self.permit_number = permit_number
        self.permit_issued_at = issued_at or datetime.utcnow()
        self.permit_issued_by = issued_by
        return True

    def checklist_copy(self):
        """Deep copy of the checklist, so reassignment is seen as a change"""
        return deepcopy(self.admin_checklist or {})

    def payload_dict(self):
        return {field: getattr(self, field) for field in self.PAYLOAD_FIELDS}

    def summary_dict(self):
        return {
            'id': self.id,
            'application_type': self.application_type,
            'reference_no': self.reference_no,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def to_dict(self, documents=None, payment=None):
        data = self.summary_dict()
        data.update({
            'applicant_id': self.applicant_id,
            'workflow_history': [entry.to_dict() for entry in self.workflow_history],
            'rejection_details': self.rejection_details or resolved_rejection_details(),
            'admin_checklist': self.admin_checklist or {},
            'permit': {
                'permit_number': self.permit_number,
                'issued_at': self.permit_issued_at.isoformat() if self.permit_issued_at else None,
                'issued_by': self.permit_issued_by,
            } if self.has_permit() else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        })
        data.update(self.payload_dict())

        if documents is not None:
            data['documents'] = [doc.to_dict() for doc in documents]
        if payment is not None:
            data['payment_details'] = payment.to_dict()

        return data

    def __repr__(self):
        return f'<{type(self).__name__} {self.reference_no}>'


class BuildingApplication(Application):
    __mapper_args__ = {'polymorphic_identity': ApplicationType.BUILDING.value}

    REFERENCE_PREFIX = 'BLD'
    PAYLOAD_FIELDS = ('box1', 'box2', 'box3', 'box4', 'box5', 'box6')
    ASSESSMENT_FIELDS = ('box5', 'box6')


class OccupancyApplication(Application):
    __mapper_args__ = {'polymorphic_identity': ApplicationType.OCCUPANCY.value}

    REFERENCE_PREFIX = 'OCC'
    PAYLOAD_FIELDS = (
        'building_permit_id', 'permit_info', 'owner_details', 'requirements_submitted',
        'other_docs', 'project_details', 'signatures', 'assessment_details', 'fees_details',
    )
    ASSESSMENT_FIELDS = ('assessment_details', 'fees_details')


APPLICATION_MODELS = {
    ApplicationType.BUILDING.value: BuildingApplication,
    ApplicationType.OCCUPANCY.value: OccupancyApplication,
}

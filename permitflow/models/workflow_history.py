from datetime import datetime
from sqlalchemy import event
from permitflow import db


class WorkflowHistoryEntry(db.Model):
    """One audit row per accepted status transition. Rows are insert-only."""
    __tablename__ = 'workflow_history'

    id = db.Column(db.Integer, primary_key=True)
    application_id = db.Column(db.Integer, db.ForeignKey('applications.id'), nullable=False, index=True)
    status = db.Column(db.String(50), nullable=False)
    comments = db.Column(db.Text, nullable=True)
    updated_by = db.Column(db.String(64), nullable=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            'status': self.status,
            'comments': self.comments,
            'updated_by': self.updated_by,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f'<WorkflowHistoryEntry {self.application_id} {self.status}>'


@event.listens_for(WorkflowHistoryEntry, 'before_update')
def reject_history_update(mapper, connection, target):
    raise ValueError('Workflow history entries cannot be modified')

from datetime import datetime
from flask import request, has_request_context
from permitflow import db

APPLICATION_RESOURCE = 'application'


class AuditLog(db.Model):
    """Activity that is not a status transition (uploads, payments, checklist saves)"""
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=True, index=True)
    role = db.Column(db.String(20), nullable=True)
    action = db.Column(db.String(100), nullable=False, index=True)
    resource_type = db.Column(db.String(50), nullable=True, index=True)
    resource_id = db.Column(db.Integer, nullable=True)

    # Request context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.Text, nullable=True)
    details = db.Column(db.JSON, default=dict)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    @staticmethod
    def log(action, user_id=None, role=None, resource_type=None, resource_id=None, details=None):
        """Add an audit entry to the current session"""
        in_request = has_request_context()
        log_entry = AuditLog(
            user_id=str(user_id) if user_id is not None else None,
            role=role,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
            ip_address=request.remote_addr if in_request else None,
            user_agent=request.user_agent.string if in_request and request.user_agent else None
        )
        db.session.add(log_entry)
        # Don't commit here, the caller commits as part of its own transaction
        return log_entry

    @classmethod
    def for_application(cls, application_id):
        """Activity recorded against one application, newest first"""
        return cls.query.filter(
            cls.resource_type == APPLICATION_RESOURCE,
            cls.resource_id == application_id
        ).order_by(cls.created_at.desc(), cls.id.desc())

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'role': self.role,
            'action': self.action,
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'details': self.details,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

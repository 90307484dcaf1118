from datetime import datetime
from permitflow import db
from permitflow.models.enums import PaymentStatus


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)

    # One payment record per application
    application_id = db.Column(db.Integer, db.ForeignKey('applications.id'), nullable=False, unique=True, index=True)
    application_type = db.Column(db.String(20), nullable=False, index=True)

    # Payment Details
    method = db.Column(db.String(20), nullable=True)  # Walk-In, Online
    status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    reference_number = db.Column(db.String(100), nullable=True)
    amount_paid = db.Column(db.Numeric(12, 2), nullable=True)

    # Proof of payment
    proof_file_name = db.Column(db.String(255), nullable=True)
    proof_content = db.Column(db.LargeBinary, nullable=True)
    proof_mime_type = db.Column(db.String(100), nullable=True)
    proof_file_size = db.Column(db.Integer, nullable=True)

    # Verification
    verified_by = db.Column(db.String(64), nullable=True)
    verified_at = db.Column(db.DateTime, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Timestamps
    date_submitted = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def verify(self, admin_id):
        """Mark payment as verified"""
        self.status = PaymentStatus.VERIFIED.value
        self.verified_by = admin_id
        self.verified_at = datetime.utcnow()

    def fail(self, admin_id):
        """Mark payment as failed (invalid receipt)"""
        self.status = PaymentStatus.FAILED.value
        self.verified_by = admin_id
        self.verified_at = datetime.utcnow()

    def has_proof(self):
        return self.proof_content is not None

    def to_dict(self):
        return {
            'method': self.method,
            'status': self.status,
            'reference_number': self.reference_number,
            'amount_paid': float(self.amount_paid) if self.amount_paid is not None else None,
            'proof_file_name': self.proof_file_name,
            'proof_mime_type': self.proof_mime_type,
            'proof_file_size': self.proof_file_size,
            'date_submitted': self.date_submitted.isoformat() if self.date_submitted else None,
            'verified_at': self.verified_at.isoformat() if self.verified_at else None,
        }

    @staticmethod
    def empty_dict():
        return {
            'method': None,
            'status': PaymentStatus.PENDING.value,
            'reference_number': None,
            'amount_paid': None,
            'proof_file_name': None,
            'proof_mime_type': None,
            'proof_file_size': None,
            'date_submitted': None,
            'verified_at': None,
        }

    def __repr__(self):
        return f'<Payment {self.application_id} {self.status}>'

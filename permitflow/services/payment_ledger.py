import logging
from datetime import datetime
from permitflow.errors import NotFound
from permitflow.models.enums import PaymentStatus
from permitflow.models.payment import Payment

logger = logging.getLogger(__name__)


class PaymentLedger:
    """One mutable payment record per application, written with upsert semantics"""

    def __init__(self, session):
        self.session = session

    def get(self, application_id):
        return self.session.query(Payment).filter_by(
            application_id=application_id,
            is_active=True
        ).first()

    def submit(self, application, method, reference_number=None, amount_paid=None, proof=None):
        """Create or overwrite the application's payment and mark it awaiting verification"""
        payment = self.session.query(Payment).filter_by(application_id=application.id).first()

        if payment is None:
            payment = Payment(
                application_id=application.id,
                application_type=application.application_type
            )
            self.session.add(payment)

        payment.method = method
        payment.reference_number = reference_number or payment.reference_number
        payment.amount_paid = amount_paid if amount_paid is not None else payment.amount_paid
        payment.status = PaymentStatus.PENDING.value
        payment.verified_by = None
        payment.verified_at = None
        payment.is_active = True
        payment.date_submitted = datetime.utcnow()

        if proof:
            payment.proof_file_name = proof.get('file_name')
            payment.proof_content = proof['content']
            payment.proof_mime_type = proof.get('mime_type')
            payment.proof_file_size = proof.get('size', len(proof['content']))

        self.session.flush()
        logger.info('Payment (%s) submitted for application %s', method, application.id)
        return payment

    def _require(self, application_id):
        payment = self.get(application_id)
        if payment is None:
            raise NotFound('Payment not found')
        return payment

    def verify(self, application_id, admin_id):
        payment = self._require(application_id)
        payment.verify(admin_id)
        return payment

    def fail(self, application_id, admin_id):
        payment = self._require(application_id)
        payment.fail(admin_id)
        return payment

    def get_proof(self, application_id):
        """Proof of payment blob, or None"""
        payment = self.get(application_id)
        if payment is None or not payment.has_proof():
            return None
        return {
            'file_name': payment.proof_file_name,
            'mime_type': payment.proof_mime_type,
            'size': payment.proof_file_size,
            'content': payment.proof_content,
        }

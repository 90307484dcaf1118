from io import BytesIO
from flask import Blueprint, current_app, request, jsonify, send_file
from flask_jwt_extended import jwt_required
from permitflow import db
from permitflow.errors import NotFound, WorkflowError
from permitflow.utils.access import application_store, ensure_can_view, ensure_owner
from permitflow.utils.decorators import applicant_required, current_actor
from permitflow.utils.validators import read_upload, validate_payment_submission

payments_bp = Blueprint('payments', __name__)


@payments_bp.route('/<int:application_id>/payment', methods=['POST'])
@jwt_required()
@applicant_required
def submit_payment(application_id):
    """Submit or resubmit payment details (multipart, optional proof image)"""
    try:
        user_id, role = current_actor()
        store = application_store()
        application = store.get(application_id)
        ensure_owner(application, user_id)

        proof_file = request.files.get('proof')
        data = validate_payment_submission(request.form, proof_file)
        proof = read_upload(proof_file, field='proof') if proof_file else None

        application = store.submit_payment(
            application, user_id,
            method=data['method'],
            reference_number=data['reference_number'],
            amount_paid=data['amount_paid'],
            proof=proof
        )

        return jsonify({
            'message': 'Payment submitted successfully',
            'application': store.enrich(application, role)
        }), 200
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('Payment submission failed for %s', application_id)
        return jsonify({'message': 'Failed to submit payment', 'error': str(e)}), 500


@payments_bp.route('/<int:application_id>/payment', methods=['GET'])
@jwt_required()
def get_payment(application_id):
    try:
        user_id, role = current_actor()
        store = application_store()
        application = store.get(application_id)
        ensure_can_view(application, user_id, role)

        payment = store.payments.get(application.id)
        return jsonify({'payment': payment.to_dict() if payment else None}), 200
    except WorkflowError:
        raise
    except Exception as e:
        current_app.logger.exception('Failed to fetch payment for %s', application_id)
        return jsonify({'message': 'Failed to fetch payment', 'error': str(e)}), 500


@payments_bp.route('/<int:application_id>/payment/proof', methods=['GET'])
@jwt_required()
def get_payment_proof(application_id):
    """Stream the proof of payment image"""
    try:
        user_id, role = current_actor()
        store = application_store()
        application = store.get(application_id)
        ensure_can_view(application, user_id, role)

        proof = store.payments.get_proof(application.id)
        if proof is None:
            raise NotFound('Proof of payment not found')

        return send_file(
            BytesIO(proof['content']),
            mimetype=proof['mime_type'] or 'application/octet-stream',
            download_name=proof['file_name'] or 'proof'
        )
    except WorkflowError:
        raise
    except Exception as e:
        current_app.logger.exception('Failed to stream payment proof for %s', application_id)
        return jsonify({'message': 'Failed to fetch proof of payment', 'error': str(e)}), 500

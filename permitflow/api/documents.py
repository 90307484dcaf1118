from io import BytesIO
from flask import Blueprint, current_app, request, jsonify, send_file
from flask_jwt_extended import jwt_required
from permitflow import db
from permitflow.errors import NotFound, WorkflowError
from permitflow.utils.access import application_store, ensure_can_view, ensure_owner
from permitflow.utils.decorators import admin_required, applicant_required, current_actor
from permitflow.utils.sanitizers import sanitize_requirement_name, sanitize_string
from permitflow.utils.validators import read_upload

documents_bp = Blueprint('documents', __name__)


@documents_bp.route('/<int:application_id>/documents', methods=['GET'])
@jwt_required()
def list_documents(application_id):
    """Active documents the requester may see, ordered by position"""
    try:
        user_id, role = current_actor()
        store = application_store()
        application = store.get(application_id)
        ensure_can_view(application, user_id, role)

        documents = store.visible_documents(application, role)
        return jsonify({'documents': [d.to_dict() for d in documents]}), 200
    except WorkflowError:
        raise
    except Exception as e:
        current_app.logger.exception('Failed to list documents for %s', application_id)
        return jsonify({'message': 'Failed to fetch documents', 'error': str(e)}), 500


@documents_bp.route('/<int:application_id>/documents/<int:index>', methods=['GET'])
@jwt_required()
def get_document(application_id, index):
    """Stream a document by its stable position.

    Hidden documents answer 404 like absent ones, so their existence is not
    disclosed to the requester.
    """
    try:
        user_id, role = current_actor()
        store = application_store()
        application = store.get(application_id)
        ensure_can_view(application, user_id, role)

        document = store.documents.get_by_index(application.id, index)
        visible_ids = {d.id for d in store.visible_documents(application, role)}
        if document is None or document.id not in visible_ids:
            raise NotFound('Document not found')

        return send_file(
            BytesIO(document.file_content),
            mimetype=document.mime_type,
            as_attachment=request.args.get('download') == 'true',
            download_name=document.file_name
        )
    except WorkflowError:
        raise
    except Exception as e:
        current_app.logger.exception('Failed to stream document %s/%s', application_id, index)
        return jsonify({'message': 'Failed to fetch document', 'error': str(e)}), 500


@documents_bp.route('/<int:application_id>/documents/<int:index>/history', methods=['GET'])
@jwt_required()
@admin_required
def get_document_history(application_id, index):
    """Every stored version at a position, oldest first"""
    try:
        store = application_store()
        application = store.get(application_id)
        versions = store.documents.history(application.id, index)
        if not versions:
            raise NotFound('Document not found')

        return jsonify({
            'versions': [
                dict(v.to_dict(), is_active=v.is_active, superseded_by_id=v.superseded_by_id)
                for v in versions
            ]
        }), 200
    except WorkflowError:
        raise
    except Exception as e:
        current_app.logger.exception('Failed to fetch document history %s/%s', application_id, index)
        return jsonify({'message': 'Failed to fetch document history', 'error': str(e)}), 500


@documents_bp.route('/<int:application_id>/documents', methods=['POST'])
@jwt_required()
@applicant_required
def upload_document(application_id):
    """Applicant upload for a requirement; an existing upload is replaced in place"""
    try:
        user_id, _role = current_actor()
        store = application_store()
        application = store.get(application_id)
        ensure_owner(application, user_id)

        blob = read_upload(request.files.get('file'))
        requirement_name = sanitize_requirement_name(request.form.get('requirement_name'))
        document = store.upload_document(application, requirement_name, blob, user_id)

        return jsonify({
            'message': 'Document uploaded successfully',
            'document': document.to_dict()
        }), 201
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('Document upload failed for %s', application_id)
        return jsonify({'message': 'Failed to upload document', 'error': str(e)}), 500


@documents_bp.route('/<int:application_id>/documents/admin', methods=['POST'])
@jwt_required()
@admin_required
def upload_admin_documents(application_id):
    """Review documents from MEO, BFP or Mayor, tagged with the uploader's role"""
    try:
        admin_id, role = current_actor()
        store = application_store()
        application = store.get(application_id)

        blobs = [read_upload(f, field='files') for f in request.files.getlist('files')]
        requirement_name = sanitize_requirement_name(request.form.get('requirement_name')) or None
        documents = store.upload_admin_documents(
            application, blobs, role, admin_id, requirement_name=requirement_name
        )

        return jsonify({
            'message': f'{len(documents)} document(s) uploaded successfully',
            'documents': [d.to_dict() for d in documents]
        }), 201
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('Admin upload failed for %s', application_id)
        return jsonify({'message': 'Failed to upload documents', 'error': str(e)}), 500


@documents_bp.route('/<int:application_id>/documents/revisions', methods=['POST'])
@jwt_required()
@applicant_required
def upload_revisions(application_id):
    """Revised documents after a rejection; resubmits the application"""
    try:
        user_id, role = current_actor()
        store = application_store()
        application = store.get(application_id)
        ensure_owner(application, user_id)

        blobs = [read_upload(f, field='files') for f in request.files.getlist('files')]
        comments = sanitize_string(request.form.get('comments')) or None
        application = store.submit_revisions(application, blobs, user_id, comments=comments)

        return jsonify({
            'message': f'Revisions submitted. Application is now {application.status}.',
            'application': store.enrich(application, role)
        }), 200
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('Revision upload failed for %s', application_id)
        return jsonify({'message': 'Failed to submit revisions', 'error': str(e)}), 500

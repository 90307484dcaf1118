from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import jwt_required
from permitflow import db
from permitflow.errors import NotFound, WorkflowError
from permitflow.models.enums import Role
from permitflow.utils.access import application_store, ensure_can_view
from permitflow.utils.decorators import admin_required, applicant_required, current_actor, roles_required
from permitflow.utils.sanitizers import sanitize_search_query
from permitflow.utils.validators import validate_status_update

applications_bp = Blueprint('applications', __name__)


@applications_bp.route('/building', methods=['POST'])
@jwt_required()
@applicant_required
def submit_building_application():
    """Submit a Building permit application (box1 to box4 required)"""
    try:
        user_id, _role = current_actor()
        store = application_store()
        application = store.create_building(user_id, request.get_json(silent=True) or {})

        return jsonify({
            'message': 'Building application submitted successfully',
            'application': application.summary_dict()
        }), 201
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('Building submission failed')
        return jsonify({'message': 'Failed to submit application', 'error': str(e)}), 500


@applications_bp.route('/occupancy', methods=['POST'])
@jwt_required()
@applicant_required
def submit_occupancy_application():
    """Submit an Occupancy permit application against an existing Building application"""
    try:
        user_id, _role = current_actor()
        store = application_store()
        application = store.create_occupancy(user_id, request.get_json(silent=True) or {})

        return jsonify({
            'message': 'Occupancy application submitted successfully',
            'application': application.summary_dict()
        }), 201
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('Occupancy submission failed')
        return jsonify({'message': 'Failed to submit application', 'error': str(e)}), 500


@applications_bp.route('/my', methods=['GET'])
@jwt_required()
def get_my_applications():
    """Applications submitted by the current user"""
    try:
        user_id, _role = current_actor()
        applications = application_store().list_for_applicant(user_id)
        return jsonify({
            'applications': [
                dict(a.summary_dict(), permit_number=a.permit_number) for a in applications
            ]
        }), 200
    except Exception as e:
        current_app.logger.exception('Failed to list applications')
        return jsonify({'message': 'Failed to fetch applications', 'error': str(e)}), 500


@applications_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
@admin_required
def get_all_applications():
    """Admin listing with status, type and search filters"""
    try:
        page = request.args.get('page', 1, type=int)
        per_page = min(request.args.get('per_page', 20, type=int), 100)

        result = application_store().list_all(
            status=request.args.get('status'),
            search=sanitize_search_query(request.args.get('search')),
            application_type=request.args.get('type'),
            page=page,
            per_page=per_page
        )

        return jsonify({
            'applications': [
                dict(a.summary_dict(), applicant_id=a.applicant_id, permit_number=a.permit_number)
                for a in result.items
            ],
            'total': result.total,
            'page': result.page,
            'pages': result.pages
        }), 200
    except Exception as e:
        current_app.logger.exception('Failed to list applications')
        return jsonify({'message': 'Failed to fetch applications', 'error': str(e)}), 500


@applications_bp.route('/track/<identifier>', methods=['GET'])
@jwt_required()
def track_application(identifier):
    """Full application by id or reference number, with visible documents"""
    try:
        user_id, role = current_actor()
        store = application_store()

        application = store.find_by_identifier(identifier)
        if application is None:
            raise NotFound('Application not found')
        ensure_can_view(application, user_id, role)

        return jsonify({'application': store.enrich(application, role)}), 200
    except WorkflowError:
        raise
    except Exception as e:
        current_app.logger.exception('Failed to track application %s', identifier)
        return jsonify({'message': 'Failed to fetch application', 'error': str(e)}), 500


@applications_bp.route('/<int:application_id>/status', methods=['PUT'])
@jwt_required()
@admin_required
def update_application_status(application_id):
    """Admin status change through the workflow engine"""
    try:
        admin_id, role = current_actor()
        data = validate_status_update(request.get_json(silent=True))
        store = application_store()

        application = store.engine.apply_transition(
            application_id,
            data['status'],
            role,
            admin_id,
            comments=data['comments'],
            missing_documents=data['missing_documents'],
            rejection_details=data['rejection_details']
        )

        return jsonify({
            'message': f'Application status updated to {application.status}',
            'application': store.enrich(application, role)
        }), 200
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('Status update failed for application %s', application_id)
        return jsonify({'message': 'Failed to update status', 'error': str(e)}), 500


@applications_bp.route('/<int:application_id>/assessment', methods=['PUT'])
@jwt_required()
@roles_required(Role.MEO_ADMIN)
def record_assessment(application_id):
    """MEO saves the fee assessment; status is unchanged"""
    try:
        admin_id, role = current_actor()
        store = application_store()
        application = store.engine.record_assessment(
            application_id, role, admin_id, request.get_json(silent=True) or {}
        )

        return jsonify({
            'message': 'Assessment saved',
            'application': store.enrich(application, role)
        }), 200
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('Assessment failed for application %s', application_id)
        return jsonify({'message': 'Failed to save assessment', 'error': str(e)}), 500

from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import jwt_required
from permitflow import db
from permitflow.checklist_taxonomy import CHECKLIST_CATEGORIES, item_key
from permitflow.errors import WorkflowError
from permitflow.utils.access import application_store, checklist_tracker
from permitflow.utils.decorators import checklist_manager_required, current_actor
from permitflow.utils.sanitizers import sanitize_string
from permitflow.utils.validators import validate_item_keys

checklist_bp = Blueprint('checklist', __name__)


def _checklist_response(message, application, tracker):
    return jsonify({
        'message': message,
        'status': application.status,
        'admin_checklist': tracker.build_checklist(application),
        'rejection_details': application.rejection_details,
    }), 200


@checklist_bp.route('/checklist/taxonomy', methods=['GET'])
@jwt_required()
def get_taxonomy():
    """Static checklist categories with item keys"""
    return jsonify({
        'categories': [
            {
                'key': key,
                'title': title,
                'items': [{'key': item_key(key, i), 'label': label} for i, label in enumerate(items)]
            }
            for key, title, items in CHECKLIST_CATEGORIES
        ]
    }), 200


@checklist_bp.route('/<int:application_id>/checklist', methods=['GET'])
@jwt_required()
@checklist_manager_required
def get_checklist(application_id):
    try:
        application = application_store().get(application_id)
        tracker = checklist_tracker()
        return jsonify({
            'admin_checklist': tracker.build_checklist(application),
            'rejection_details': application.rejection_details,
        }), 200
    except WorkflowError:
        raise
    except Exception as e:
        current_app.logger.exception('Failed to fetch checklist for %s', application_id)
        return jsonify({'message': 'Failed to fetch checklist', 'error': str(e)}), 500


@checklist_bp.route('/<int:application_id>/checklist/flag', methods=['POST'])
@jwt_required()
@checklist_manager_required
def flag_items(application_id):
    """Flag items as missing or incomplete; rejects the application"""
    try:
        admin_id, role = current_actor()
        data = request.get_json(silent=True) or {}
        item_keys = validate_item_keys(data)
        note = sanitize_string(data.get('note')) or None

        tracker = checklist_tracker()
        application = tracker.flag_items(
            application_id, item_keys, note=note, actor_role=role, actor_id=admin_id
        )
        return _checklist_response('Checklist items flagged', application, tracker)
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('Flagging failed for application %s', application_id)
        return jsonify({'message': 'Failed to flag items', 'error': str(e)}), 500


@checklist_bp.route('/<int:application_id>/checklist/resolve', methods=['POST'])
@jwt_required()
@checklist_manager_required
def resolve_items(application_id):
    try:
        admin_id, role = current_actor()
        item_keys = validate_item_keys(request.get_json(silent=True) or {})

        tracker = checklist_tracker()
        application = tracker.resolve_items(
            application_id, item_keys, actor_role=role, actor_id=admin_id
        )
        return _checklist_response('Checklist items resolved', application, tracker)
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('Resolving failed for application %s', application_id)
        return jsonify({'message': 'Failed to resolve items', 'error': str(e)}), 500


@checklist_bp.route('/<int:application_id>/checklist/check', methods=['POST'])
@jwt_required()
@checklist_manager_required
def check_items(application_id):
    """Tick or untick items (``checked`` defaults to true)"""
    try:
        admin_id, role = current_actor()
        data = request.get_json(silent=True) or {}
        item_keys = validate_item_keys(data)

        tracker = checklist_tracker()
        application = tracker.mark_checked(
            application_id, item_keys,
            checked=bool(data.get('checked', True)),
            actor_role=role,
            actor_id=admin_id
        )
        return _checklist_response('Checklist saved', application, tracker)
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('Checklist save failed for application %s', application_id)
        return jsonify({'message': 'Failed to save checklist', 'error': str(e)}), 500

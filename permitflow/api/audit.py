from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import jwt_required
from permitflow.models.audit_log import AuditLog
from permitflow.utils.decorators import admin_required, current_actor
from datetime import datetime

audit_bp = Blueprint('audit', __name__)


@audit_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
@admin_required
def get_audit_logs():
    """Admin endpoint to fetch audit logs with filters"""
    try:
        page = request.args.get('page', 1, type=int)
        per_page = min(request.args.get('per_page', 50, type=int), 100)
        action_filter = request.args.get('action')
        resource_id_filter = request.args.get('application_id', type=int)
        user_id_filter = request.args.get('user_id')
        date_from = request.args.get('date_from')
        date_to = request.args.get('date_to')

        query = AuditLog.for_application(resource_id_filter) if resource_id_filter else AuditLog.query

        if action_filter and action_filter != 'all':
            query = query.filter(AuditLog.action == action_filter)
        if user_id_filter:
            query = query.filter(AuditLog.user_id == user_id_filter)
        if date_from:
            try:
                query = query.filter(AuditLog.created_at >= datetime.fromisoformat(date_from))
            except ValueError:
                current_app.logger.info(f'Ignoring malformed date_from filter: {date_from}')
        if date_to:
            try:
                query = query.filter(AuditLog.created_at <= datetime.fromisoformat(date_to))
            except ValueError:
                current_app.logger.info(f'Ignoring malformed date_to filter: {date_to}')

        logs = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

        distinct_actions = [r[0] for r in AuditLog.query.with_entities(AuditLog.action).distinct().all()]

        return jsonify({
            'logs': [log.to_dict() for log in logs.items],
            'total': logs.total,
            'page': logs.page,
            'pages': logs.pages,
            'distinct_actions': distinct_actions
        }), 200
    except Exception as e:
        current_app.logger.exception('Failed to fetch audit logs')
        return jsonify({'message': 'Failed to fetch audit logs', 'error': str(e)}), 500


@audit_bp.route('/my', methods=['GET'])
@jwt_required()
def get_my_audit_logs():
    """The current user's own activity"""
    try:
        user_id, _role = current_actor()
        page = request.args.get('page', 1, type=int)
        per_page = min(request.args.get('per_page', 20, type=int), 100)

        logs = AuditLog.query.filter(AuditLog.user_id == str(user_id)).order_by(
            AuditLog.created_at.desc()
        ).paginate(page=page, per_page=per_page, error_out=False)

        return jsonify({
            'logs': [log.to_dict() for log in logs.items],
            'total': logs.total,
            'page': logs.page,
            'pages': logs.pages
        }), 200
    except Exception as e:
        current_app.logger.exception('Failed to fetch user activity')
        return jsonify({'message': 'Failed to fetch your activity', 'error': str(e)}), 500

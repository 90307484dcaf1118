from functools import wraps
from flask import jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity
from permitflow.models.enums import ADMIN_ROLES, Role


def current_actor():
    """(identity, role) resolved by the auth service and carried in the JWT"""
    return get_jwt_identity(), get_jwt().get('role')


def roles_required(*roles):
    """Decorator to require one of the given roles; use after jwt_required"""
    allowed = {getattr(role, 'value', role) for role in roles}

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            role = get_jwt().get('role')

            if not role:
                return jsonify({'message': 'Role claim missing from token'}), 403

            if role not in allowed:
                return jsonify({'message': 'You do not have access to this resource'}), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator


def admin_required(fn):
    """Decorator to require an MEO, BFP or Mayor admin role"""
    return roles_required(*ADMIN_ROLES)(fn)


def applicant_required(fn):
    return roles_required(Role.APPLICANT)(fn)


def checklist_manager_required(fn):
    """Only MEO and BFP admins manage the checklist"""
    return roles_required(Role.MEO_ADMIN, Role.BFP_ADMIN)(fn)

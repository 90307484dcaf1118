from flask import current_app
from permitflow import db
from permitflow.errors import Forbidden
from permitflow.models.enums import is_admin_role
from permitflow.services.application_store import ApplicationStore
from permitflow.services.checklist_tracker import ChecklistTracker


def application_store():
    """Store bound to the request session and the configured form renderer"""
    return ApplicationStore(
        db.session,
        form_renderer=current_app.config.get('APPLICATION_FORM_RENDERER')
    )


def checklist_tracker():
    return ChecklistTracker(db.session)


def ensure_can_view(application, actor_id, role):
    """Admins see every application; applicants only their own"""
    if is_admin_role(role):
        return
    if application.applicant_id != str(actor_id):
        raise Forbidden('You do not have access to this application')


def ensure_owner(application, actor_id):
    if application.applicant_id != str(actor_id):
        raise Forbidden('You do not have access to this application')

import pytest
from sqlalchemy.orm.exc import StaleDataError
from permitflow import db
from permitflow.errors import Forbidden, RetryExhausted, UnresolvedFlags, ValidationError
from permitflow.models.application import Application
from permitflow.models.audit_log import AuditLog
from permitflow.services.checklist_tracker import ChecklistTracker
from permitflow.services.workflow_engine import WorkflowEngine
from permitflow.utils import concurrency

SOIL_TEST = 'additionalLocationalClearance-11'
FIRE_PLAN = 'buildingSurveyPlans-8'


@pytest.fixture
def tracker(session):
    return ChecklistTracker(session)


@pytest.fixture
def in_bfp_review(session, building):
    building.status = 'Pending BFP'
    session.commit()
    return building


def item(application, key):
    category, index = key.rsplit('-', 1)
    return application.admin_checklist[category][int(index)]


def test_flagging_rejects_application(tracker, in_bfp_review):
    application = tracker.flag_items(
        in_bfp_review.id, [SOIL_TEST, FIRE_PLAN], actor_role='bfpadmin', actor_id='bfp-1'
    )

    assert application.status == 'Rejected'
    assert application.rejection_details == {
        'comments': 'Missing or incomplete documents flagged: Soil Test Report, Fire Protection Plan',
        'missing_documents': ['Soil Test Report', 'Fire Protection Plan'],
        'is_resolved': False,
    }
    assert item(application, SOIL_TEST)['flagged'] is True
    assert [e.status for e in application.workflow_history] == ['Submitted', 'Rejected']


def test_flagging_again_changes_nothing(tracker, in_bfp_review):
    tracker.flag_items(in_bfp_review.id, [SOIL_TEST], note='Need soil test', actor_role='bfpadmin', actor_id='bfp-1')
    application = tracker.flag_items(in_bfp_review.id, [SOIL_TEST], actor_role='bfpadmin', actor_id='bfp-1')

    assert application.rejection_details['comments'] == 'Need soil test'
    assert len(application.workflow_history) == 2


def test_flags_block_progress_until_resolved(session, tracker, in_bfp_review):
    engine = WorkflowEngine(session)
    tracker.flag_items(in_bfp_review.id, [SOIL_TEST, FIRE_PLAN], actor_role='bfpadmin', actor_id='bfp-1')

    with pytest.raises(UnresolvedFlags) as exc:
        engine.apply_transition(in_bfp_review.id, 'Pending Mayor', 'bfpadmin', 'bfp-1')
    assert exc.value.unresolved_flags == ['Soil Test Report', 'Fire Protection Plan']

    application = tracker.resolve_items(in_bfp_review.id, [SOIL_TEST], actor_role='bfpadmin', actor_id='bfp-1')
    assert application.rejection_details['missing_documents'] == ['Fire Protection Plan']
    assert application.rejection_details['is_resolved'] is False
    assert item(application, SOIL_TEST)['resolved_by'] == 'bfpadmin'
    assert item(application, SOIL_TEST)['resolved_at']

    with pytest.raises(UnresolvedFlags):
        engine.apply_transition(in_bfp_review.id, 'Pending BFP', 'bfpadmin', 'bfp-1')

    application = tracker.resolve_items(in_bfp_review.id, [FIRE_PLAN], actor_role='bfpadmin', actor_id='bfp-1')
    assert application.rejection_details['is_resolved'] is True
    assert application.rejection_details['missing_documents'] == []

    application = engine.apply_transition(in_bfp_review.id, 'Pending BFP', 'bfpadmin', 'bfp-1')
    assert application.status == 'Pending BFP'


def test_mark_checked(tracker, building):
    application = tracker.mark_checked(building.id, [SOIL_TEST], checked=True, actor_role='meoadmin', actor_id='meo-1')
    assert item(application, SOIL_TEST)['checked'] is True
    assert item(application, SOIL_TEST)['flagged'] is False
    assert application.status == 'Submitted'
    assert AuditLog.query.filter_by(action='checklist_items_checked').count() == 1


def test_unknown_keys_rejected(tracker, building):
    with pytest.raises(ValidationError) as exc:
        tracker.flag_items(building.id, ['others-7', 'nope'], actor_role='meoadmin', actor_id='meo-1')
    assert len(exc.value.details) == 2


def test_only_meo_and_bfp_manage_checklist(tracker, building):
    with pytest.raises(Forbidden):
        tracker.flag_items(building.id, [SOIL_TEST], actor_role='mayoradmin', actor_id='mayor-1')


def test_retry_bound_leaves_row_untouched(monkeypatch, tracker, in_bfp_review):
    sleeps = []
    monkeypatch.setattr(concurrency.time, 'sleep', sleeps.append)

    def conflicting_commit():
        raise StaleDataError('UPDATE statement on table applications expected to update 1 row(s); 0 were matched.')

    monkeypatch.setattr(db.session, 'commit', conflicting_commit)

    with pytest.raises(RetryExhausted) as exc:
        tracker.flag_items(in_bfp_review.id, [SOIL_TEST], actor_role='bfpadmin', actor_id='bfp-1')
    assert exc.value.attempts == 3
    assert sleeps == pytest.approx([0.1, 0.2])

    monkeypatch.undo()
    application = db.session.get(Application, in_bfp_review.id)
    assert application.status == 'Pending BFP'
    assert application.admin_checklist == {}
    assert application.rejection_details['is_resolved'] is True
    assert len(application.workflow_history) == 1

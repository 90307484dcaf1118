import pytest
from conftest import make_blob
from permitflow.errors import (
    Forbidden, InvalidStatus, InvalidTransition, MissingRequiredDocuments,
    UnresolvedFlags, ValidationError,
)
from permitflow.models.application import Application
from permitflow.models.enums import PaymentStatus, UploadedBy
from permitflow.services.permit_numbers import period_key
from permitflow.services.workflow_engine import WorkflowEngine, resolve_status_alias

MEO = 'meoadmin'
BFP = 'bfpadmin'
MAYOR = 'mayoradmin'


@pytest.fixture
def engine(session):
    return WorkflowEngine(session)


def set_status(session, application, status):
    application.status = status
    session.commit()


def admin_doc(engine, application, tag):
    engine.documents.append(
        application, f'{tag} Review Document', make_blob(),
        uploaded_by=UploadedBy.ADMIN.value, uploaded_by_role=tag
    )
    engine.session.commit()


def test_creation_writes_first_history_entry(building):
    assert building.status == 'Submitted'
    assert building.reference_no == 'BLD-000001'
    assert [e.status for e in building.workflow_history] == ['Submitted']
    assert building.workflow_history[0].comments == 'Application submitted by user.'


def test_each_transition_appends_exactly_one_history_entry(engine, building):
    engine.apply_transition(building.id, 'Pending MEO', MEO, 'meo-1')
    engine.apply_transition(building.id, 'Payment Pending', MEO, 'meo-1')

    application = engine.session.get(Application, building.id)
    statuses = [e.status for e in application.workflow_history]
    assert statuses == ['Submitted', 'Pending MEO', 'Payment Pending']
    assert application.workflow_history[-1].comments == 'Status updated to Payment Pending by meoadmin.'


def test_rejected_transition_leaves_history_untouched(engine, building):
    with pytest.raises(InvalidTransition):
        engine.apply_transition(building.id, 'Approved', MEO, 'meo-1')

    application = engine.session.get(Application, building.id)
    assert application.status == 'Submitted'
    assert len(application.workflow_history) == 1


def test_invalid_status_is_rejected(engine, building):
    with pytest.raises(InvalidStatus) as exc:
        engine.apply_transition(building.id, 'Archived', MEO, 'meo-1')
    assert 'Pending MEO' in exc.value.valid_statuses


def test_legacy_pending_alias(engine, building):
    application = engine.apply_transition(building.id, 'Pending', MEO, 'meo-1')
    assert application.status == 'Pending MEO'


def test_occupancy_aliases():
    assert resolve_status_alias('Payment Verified', 'Occupancy') == 'Pending BFP'
    assert resolve_status_alias('Returned', 'Occupancy') == 'Pending MEO'
    assert resolve_status_alias('Payment Pending', 'Building') == 'Payment Pending'


def test_role_not_on_edge_is_forbidden(engine, building):
    with pytest.raises(Forbidden):
        engine.apply_transition(building.id, 'Pending MEO', BFP, 'bfp-1')


def test_meo_document_required_for_pending_bfp(engine, session, building):
    set_status(session, building, 'Pending MEO')

    with pytest.raises(MissingRequiredDocuments) as exc:
        engine.apply_transition(building.id, 'Pending BFP', MEO, 'meo-1')
    assert exc.value.role == 'MEO'

    application = session.get(Application, building.id)
    assert application.status == 'Pending MEO'
    assert len(application.workflow_history) == 1

    admin_doc(engine, application, 'MEO')
    application = engine.apply_transition(building.id, 'Pending BFP', MEO, 'meo-1')
    assert application.status == 'Pending BFP'


def test_documents_from_other_stage_do_not_satisfy_gate(engine, session, building):
    set_status(session, building, 'Pending BFP')
    admin_doc(engine, building, 'MEO')

    with pytest.raises(MissingRequiredDocuments):
        engine.apply_transition(building.id, 'Pending Mayor', BFP, 'bfp-1')


def test_rejection_records_details(engine, session, building):
    set_status(session, building, 'Pending BFP')
    application = engine.apply_transition(
        building.id, 'Rejected', BFP, 'bfp-1',
        comments='BFP: fire exits not shown', missing_documents=['Fire Protection Plan']
    )
    assert application.rejection_details == {
        'comments': 'BFP: fire exits not shown',
        'missing_documents': ['Fire Protection Plan'],
        'is_resolved': False,
    }


def test_rejection_defaults_comment(engine, building):
    application = engine.apply_transition(building.id, 'Rejected', MEO, 'meo-1')
    assert application.rejection_details['comments'] == 'No comments provided.'


def test_unresolved_flags_gate_checked_before_status(engine, session, building):
    building.rejection_details = {'comments': 'x', 'missing_documents': ['Soil Test Report'], 'is_resolved': False}
    set_status(session, building, 'Pending BFP')

    with pytest.raises(UnresolvedFlags) as exc:
        engine.apply_transition(building.id, 'Pending Mayor', BFP, 'bfp-1')
    assert exc.value.unresolved_flags == ['Soil Test Report']


def test_clearing_status_resets_rejection(engine, session, building):
    building.rejection_details = {'comments': 'x', 'missing_documents': ['Soil Test Report'], 'is_resolved': False}
    set_status(session, building, 'Rejected')

    application = engine.apply_transition(building.id, 'Pending MEO', MEO, 'meo-1')
    assert application.rejection_details == {'comments': '', 'missing_documents': [], 'is_resolved': True}


def test_permit_issuance_is_idempotent(engine, session, building):
    set_status(session, building, 'Approved')

    first = engine.apply_transition(building.id, 'Permit Issued', MEO, 'meo-1')
    number = first.permit_number
    assert number == f'{period_key()}000001'
    assert first.permit_issued_by == 'meo-1'

    again = engine.apply_transition(building.id, 'Permit Issued', MEO, 'meo-2')
    assert again.permit_number == number
    assert again.permit_issued_by == 'meo-1'
    assert [e.status for e in again.workflow_history][-2:] == ['Permit Issued', 'Permit Issued']


def test_payment_verification_side_effect(engine, session, building):
    set_status(session, building, 'Payment Pending')
    engine.payments.submit(building, 'Walk-In', reference_number='OR-1001')
    session.commit()

    engine.apply_transition(building.id, 'Payment Submitted', 'applicant', 'applicant-1')
    engine.apply_transition(building.id, 'Pending BFP', MEO, 'meo-1')

    payment = engine.payments.get(building.id)
    assert payment.status == PaymentStatus.VERIFIED.value
    assert payment.verified_by == 'meo-1'


def test_payment_rejection_side_effect(engine, session, building):
    set_status(session, building, 'Payment Submitted')
    engine.payments.submit(building, 'Online', proof=make_blob(b'\x89PNG', 'receipt.png', 'image/png'))
    session.commit()

    application = engine.apply_transition(building.id, 'Payment Pending', MEO, 'meo-1')
    assert application.status == 'Payment Pending'
    assert engine.payments.get(building.id).status == PaymentStatus.FAILED.value


def test_resubmit_returns_to_bfp_when_bfp_rejected(engine, session, building):
    set_status(session, building, 'Pending BFP')
    engine.apply_transition(building.id, 'Rejected', BFP, 'bfp-1', comments='Returned by BFP: revise fire plan')

    application = engine.resubmit(building.id, 'applicant-1')
    assert application.status == 'Pending BFP'
    assert application.rejection_details['is_resolved'] is True


def test_resubmit_blocked_while_documents_missing_for_bfp(engine, session, building):
    set_status(session, building, 'Pending BFP')
    engine.apply_transition(
        building.id, 'Rejected', BFP, 'bfp-1',
        comments='BFP review', missing_documents=['Fire Protection Plan']
    )

    with pytest.raises(UnresolvedFlags):
        engine.resubmit(building.id, 'applicant-1')


def test_resubmit_defaults_to_meo(engine, building):
    engine.apply_transition(building.id, 'Rejected', MEO, 'meo-1', comments='Incomplete forms')

    application = engine.resubmit(building.id, 'applicant-1')
    assert application.status == 'Pending MEO'
    assert application.rejection_details['is_resolved'] is True


def test_resubmit_requires_rejected_status(engine, building):
    with pytest.raises(InvalidTransition):
        engine.resubmit(building.id, 'applicant-1')


def test_record_assessment_keeps_status(engine, session, building):
    set_status(session, building, 'Pending MEO')

    application = engine.record_assessment(
        building.id, MEO, 'meo-1', {'box5': {'assessed_fee': 1500}}
    )
    assert application.box5 == {'assessed_fee': 1500}
    assert application.status == 'Pending MEO'
    assert len(application.workflow_history) == 1


def test_record_assessment_rejects_foreign_fields(engine, building):
    with pytest.raises(ValidationError):
        engine.record_assessment(building.id, MEO, 'meo-1', {'fees_details': {}})
    with pytest.raises(Forbidden):
        engine.record_assessment(building.id, BFP, 'bfp-1', {'box5': {}})

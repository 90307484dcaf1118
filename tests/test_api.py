import importlib.util
from pathlib import Path
from conftest import BUILDING_FORM, upload_field
from permitflow.models.audit_log import AuditLog
from permitflow.services.application_store import ApplicationStore
from permitflow.services.workflow_engine import WorkflowEngine

APPLICANT = 'applicant'
MEO = 'meoadmin'
BFP = 'bfpadmin'
MAYOR = 'mayoradmin'


def put_status(client, headers, application_id, status, **extra):
    return client.put(
        f'/api/applications/{application_id}/status',
        json=dict(status=status, **extra),
        headers=headers
    )


def upload_admin(client, headers, application_id, name):
    return client.post(
        f'/api/applications/{application_id}/documents/admin',
        data={'files': [upload_field(file_name=name)]},
        headers=headers,
        content_type='multipart/form-data'
    )


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'


def test_requires_token(client):
    assert client.get('/api/applications/my').status_code == 401


def test_building_submission_validates_sections(client, auth_headers):
    response = client.post(
        '/api/applications/building',
        json={'box1': {'owner': 'x'}},
        headers=auth_headers(APPLICANT)
    )
    assert response.status_code == 400
    body = response.get_json()
    assert body['error'] == 'ValidationError'
    assert {d['field'] for d in body['details']} == {'box2', 'box3', 'box4'}


def test_admin_routes_reject_applicants(client, auth_headers, building):
    response = put_status(client, auth_headers(APPLICANT), building.id, 'Pending MEO')
    assert response.status_code == 403


def test_applicants_cannot_track_other_applications(client, auth_headers, building):
    response = client.get(
        f'/api/applications/track/{building.reference_no}',
        headers=auth_headers(APPLICANT, identity='applicant-2')
    )
    assert response.status_code == 403


def test_invalid_transition_returns_conflict(client, auth_headers, building):
    response = put_status(client, auth_headers(MEO), building.id, 'Approved')
    assert response.status_code == 409
    assert response.get_json()['from_status'] == 'Submitted'


def test_hidden_document_answers_not_found(client, auth_headers, building):
    meo, applicant = auth_headers(MEO), auth_headers(APPLICANT, identity='applicant-1')
    put_status(client, meo, building.id, 'Pending MEO')
    upload_admin(client, meo, building.id, 'meo-notes.pdf')

    assert client.get(f'/api/applications/{building.id}/documents/0', headers=meo).status_code == 200
    assert client.get(f'/api/applications/{building.id}/documents/0', headers=applicant).status_code == 404
    assert client.get(f'/api/applications/{building.id}/documents', headers=applicant).get_json() == {'documents': []}


def test_payment_flow(client, auth_headers, building):
    meo, applicant = auth_headers(MEO), auth_headers(APPLICANT, identity='applicant-1')
    put_status(client, meo, building.id, 'Pending MEO')
    put_status(client, meo, building.id, 'Payment Pending')

    response = client.post(
        f'/api/applications/{building.id}/payment',
        data={'method': 'Online', 'reference_number': 'GCASH-7781', 'amount_paid': '1500.00'},
        headers=applicant,
        content_type='multipart/form-data'
    )
    assert response.status_code == 400

    response = client.post(
        f'/api/applications/{building.id}/payment',
        data={
            'method': 'Online',
            'reference_number': 'GCASH-7781',
            'amount_paid': '1500.00',
            'proof': upload_field(b'\x89PNG', 'receipt.png'),
        },
        headers=applicant,
        content_type='multipart/form-data'
    )
    assert response.status_code == 200
    application = response.get_json()['application']
    assert application['status'] == 'Payment Submitted'
    assert application['payment_details']['status'] == 'Pending'
    assert application['payment_details']['amount_paid'] == 1500.0

    proof = client.get(f'/api/applications/{building.id}/payment/proof', headers=meo)
    assert proof.status_code == 200
    assert proof.data == b'\x89PNG'

    response = put_status(client, meo, building.id, 'Pending BFP')
    assert response.status_code == 200
    assert response.get_json()['application']['payment_details']['status'] == 'Verified'


def test_revisions_resubmit_application(client, auth_headers, building):
    meo, applicant = auth_headers(MEO), auth_headers(APPLICANT, identity='applicant-1')
    put_status(client, meo, building.id, 'Rejected', comments='Please sign the forms')

    response = client.post(
        f'/api/applications/{building.id}/documents/revisions',
        data={'files': [upload_field(b'signed', 'signed.pdf'), upload_field(b'lot', 'lot.pdf')]},
        headers=applicant,
        content_type='multipart/form-data'
    )
    assert response.status_code == 200
    application = response.get_json()['application']
    assert application['status'] == 'Pending MEO'
    assert [d['requirement_name'] for d in application['documents']] == ['Revised Checklist/Documents'] * 2
    assert [d['original_index'] for d in application['documents']] == [0, 1]


def test_full_building_scenario(client, auth_headers):
    applicant = auth_headers(APPLICANT, identity='applicant-1')
    meo, bfp, mayor = auth_headers(MEO), auth_headers(BFP), auth_headers(MAYOR)

    response = client.post('/api/applications/building', json=BUILDING_FORM, headers=applicant)
    assert response.status_code == 201
    app_id = response.get_json()['application']['id']

    response = client.post(
        f'/api/applications/{app_id}/documents',
        data={'requirement_name': 'Locational Clearance', 'file': upload_field(b'lc', 'lc.pdf')},
        headers=applicant,
        content_type='multipart/form-data'
    )
    assert response.status_code == 201

    assert put_status(client, meo, app_id, 'Pending MEO').status_code == 200

    response = put_status(client, meo, app_id, 'Pending BFP')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'MissingRequiredDocuments'

    assert upload_admin(client, meo, app_id, 'meo-evaluation.pdf').status_code == 201
    assert put_status(client, meo, app_id, 'Pending BFP').status_code == 200

    response = client.post(
        f'/api/applications/{app_id}/checklist/flag',
        json={'item_keys': ['buildingSurveyPlans-8']},
        headers=bfp
    )
    assert response.status_code == 200
    assert response.get_json()['status'] == 'Rejected'

    response = put_status(client, bfp, app_id, 'Pending Mayor')
    assert response.status_code == 400
    assert response.get_json()['unresolved_flags'] == ['Fire Protection Plan']

    response = client.post(
        f'/api/applications/{app_id}/checklist/resolve',
        json={'item_keys': ['buildingSurveyPlans-8']},
        headers=bfp
    )
    assert response.get_json()['rejection_details']['is_resolved'] is True

    assert put_status(client, bfp, app_id, 'Pending BFP').status_code == 200
    assert upload_admin(client, bfp, app_id, 'fsec.pdf').status_code == 201
    assert put_status(client, bfp, app_id, 'Pending Mayor').status_code == 200
    assert upload_admin(client, mayor, app_id, 'endorsement.pdf').status_code == 201
    assert put_status(client, mayor, app_id, 'Pending MEO').status_code == 200
    assert put_status(client, meo, app_id, 'Approved').status_code == 200

    response = put_status(client, meo, app_id, 'Permit Issued')
    assert response.status_code == 200
    permit = response.get_json()['application']['permit']
    assert len(permit['permit_number']) == 10

    response = put_status(client, meo, app_id, 'Permit Issued')
    assert response.get_json()['application']['permit']['permit_number'] == permit['permit_number']

    response = client.get(f'/api/applications/track/{app_id}', headers=applicant)
    application = response.get_json()['application']
    assert [e['status'] for e in application['workflow_history']] == [
        'Submitted', 'Pending MEO', 'Pending BFP', 'Rejected', 'Pending BFP',
        'Pending Mayor', 'Pending MEO', 'Approved', 'Permit Issued', 'Permit Issued',
    ]
    assert [d['uploaded_by'] for d in application['documents']] == ['user', 'admin', 'admin', 'admin']

    response = client.get('/api/audit/', headers=meo)
    actions = set(response.get_json()['distinct_actions'])
    assert {'application_submitted', 'document_uploaded', 'admin_documents_uploaded',
            'checklist_items_resolved'} <= actions

    response = client.get(f'/api/audit/?application_id={app_id}&action=document_uploaded', headers=meo)
    logs = response.get_json()['logs']
    assert len(logs) == 1
    assert logs[0]['details']['requirement_name'] == 'Locational Clearance'


def test_applicant_upload_cannot_supersede_review_document(client, auth_headers, building):
    meo, applicant = auth_headers(MEO), auth_headers(APPLICANT, identity='applicant-1')
    put_status(client, meo, building.id, 'Pending MEO')
    assert upload_admin(client, meo, building.id, 'meo-evaluation.pdf').status_code == 201

    response = client.post(
        f'/api/applications/{building.id}/documents',
        data={'requirement_name': 'MEO Review Document', 'file': upload_field(b'forged', 'forged.pdf')},
        headers=applicant,
        content_type='multipart/form-data'
    )
    assert response.status_code == 201
    assert response.get_json()['document']['original_index'] == 1

    review = client.get(f'/api/applications/{building.id}/documents/0', headers=meo)
    assert review.data == b'%PDF-1.4 test'
    assert put_status(client, meo, building.id, 'Pending BFP').status_code == 200


def test_assessment_requires_json_object(client, auth_headers, building):
    response = client.put(
        f'/api/applications/{building.id}/assessment',
        json=['box5'],
        headers=auth_headers(MEO)
    )
    assert response.status_code == 400
    body = response.get_json()
    assert body['error'] == 'ValidationError'
    assert body['details'] == [{'field': 'body', 'message': 'JSON object expected.'}]


def test_audit_page_size_is_capped(client, auth_headers, session):
    for n in range(105):
        AuditLog.log(action='document_uploaded', user_id='applicant-1', details={'n': n})
    session.commit()

    response = client.get('/api/audit/?per_page=500', headers=auth_headers(MEO))
    assert response.status_code == 200
    body = response.get_json()
    assert len(body['logs']) == 100
    assert (body['total'], body['pages']) == (105, 2)


def test_shell_context_exposes_services(monkeypatch):
    monkeypatch.setenv('FLASK_CONFIG', 'testing')
    spec = importlib.util.spec_from_file_location('permitflow_runner', Path(__file__).parents[1] / 'app.py')
    runner = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(runner)

    with runner.app.app_context():
        context = runner.app.make_shell_context()
        assert context['ApplicationStore'] is ApplicationStore
        assert context['WorkflowEngine'] is WorkflowEngine
        assert isinstance(context['store'], ApplicationStore)
        assert context['engine'] is context['store'].engine

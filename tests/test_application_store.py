import pytest
from conftest import BUILDING_FORM, make_blob
from permitflow.errors import NotFound, ValidationError
from permitflow.services.application_store import ApplicationStore
from permitflow.utils.sanitizers import sanitize_filename, sanitize_names


def test_reference_numbers_are_sequential_per_type(store):
    first = store.create_building('applicant-1', dict(BUILDING_FORM))
    second = store.create_building('applicant-2', dict(BUILDING_FORM))
    assert (first.reference_no, second.reference_no) == ('BLD-000001', 'BLD-000002')


def test_rendered_form_stored_as_system_document(session):
    store = ApplicationStore(session, form_renderer=lambda application: b'%PDF-1.7 form')
    application = store.create_building('applicant-1', dict(BUILDING_FORM))

    documents = store.documents.list_ordered(application.id)
    assert [(d.requirement_name, d.uploaded_by, d.original_index) for d in documents] == [
        ('Completed Application Form', 'system', 0)
    ]
    assert documents[0].file_name == 'BLD-000001.pdf'


def test_renderer_returning_nothing_stores_nothing(session):
    store = ApplicationStore(session, form_renderer=lambda application: None)
    application = store.create_building('applicant-1', dict(BUILDING_FORM))
    assert store.documents.list_ordered(application.id) == []


def test_occupancy_requires_existing_building(store):
    with pytest.raises(NotFound):
        store.create_occupancy('applicant-1', {
            'building_permit_identifier': 'BLD-999999',
            'permit_info': {'x': 1},
            'project_details': {'x': 1},
            'signatures': {'x': 1},
        })


def test_occupancy_validation(store):
    with pytest.raises(ValidationError) as exc:
        store.create_occupancy('applicant-1', {'permit_info': {'x': 1}})
    fields = {d['field'] for d in exc.value.details}
    assert fields == {'building_permit_identifier', 'project_details', 'signatures'}


def test_find_by_identifier(store, building):
    assert store.find_by_identifier(str(building.id)) is building
    assert store.find_by_identifier('bld-000001') is building
    assert store.find_by_identifier('OCC-000001') is None
    assert store.find_by_identifier('') is None


def test_list_all_filters(store, session, building):
    other = store.create_building('applicant-2', dict(BUILDING_FORM))
    other.status = 'Pending MEO'
    session.commit()

    assert [a.id for a in store.list_all(status='Pending MEO').items] == [other.id]
    assert [a.id for a in store.list_all(search='000001').items] == [building.id]
    assert store.list_all().total == 2


def test_enrich_applies_visibility_and_empty_payment(store, building):
    store.upload_document(building, 'Lot Plan', make_blob(b'lot'), 'applicant-1')
    store.upload_admin_documents(building, [make_blob(b'bfp')], 'bfpadmin', 'bfp-1')
    store.upload_admin_documents(building, [make_blob(b'mayor')], 'mayoradmin', 'mayor-1')

    as_bfp = store.enrich(building, 'bfpadmin')
    assert [d['requirement_name'] for d in as_bfp['documents']] == ['Lot Plan', 'BFP Review Document']
    assert as_bfp['payment_details']['status'] == 'Pending'
    assert as_bfp['payment_details']['method'] is None

    as_applicant = store.enrich(building, 'applicant')
    assert [d['requirement_name'] for d in as_applicant['documents']] == ['Lot Plan']


def test_admin_upload_requires_admin_role(store, building):
    with pytest.raises(ValidationError):
        store.upload_admin_documents(building, [make_blob()], 'applicant', 'applicant-1')


def test_sanitizers():
    assert sanitize_names(['<b>Soil Test Report</b>', 'Soil Test Report', ' ']) == ['Soil Test Report']
    assert sanitize_filename('C:\\plans\\floor plan (v2).pdf') == 'floor_plan__v2_.pdf'

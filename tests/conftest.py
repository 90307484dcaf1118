from io import BytesIO
import pytest
from flask_jwt_extended import create_access_token
from permitflow import create_app, db
from permitflow.services.application_store import ApplicationStore

BUILDING_FORM = {
    'box1': {'owner': {'last_name': 'Santos', 'first_name': 'Maria'}, 'scope': 'new'},
    'box2': {'engineer': 'Engr. Reyes'},
    'box3': {'architect': 'Arch. Cruz'},
    'box4': {'lot_owner': 'Maria Santos'},
}


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def store(session):
    return ApplicationStore(session)


@pytest.fixture
def auth_headers(app):
    """Bearer headers for a role; identity defaults to '<role>-1'"""
    def make(role, identity=None):
        token = create_access_token(
            identity=identity or f'{role}-1',
            additional_claims={'role': role}
        )
        return {'Authorization': f'Bearer {token}'}
    return make


@pytest.fixture
def building(store):
    return store.create_building('applicant-1', dict(BUILDING_FORM))


def make_blob(content=b'%PDF-1.4 test', file_name='file.pdf', mime_type='application/pdf'):
    return {'file_name': file_name, 'mime_type': mime_type, 'size': len(content), 'content': content}


def upload_field(content=b'%PDF-1.4 test', file_name='file.pdf'):
    return (BytesIO(content), file_name)

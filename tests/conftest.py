import pytest

from bloodbank import create_app
from bloodbank.store import JsonFileStore


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(str(tmp_path / 'data'))


@pytest.fixture
def app(store):
    app = create_app({'TESTING': True, 'STORE_BACKEND': 'json'}, store=store)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def post(client):
    """Create records through the API and assert they were accepted"""
    def _post(collection, **fields):
        resp = client.post(f'/api/{collection}', json=fields)
        assert resp.status_code == 201, resp.get_json()
        return resp
    return _post

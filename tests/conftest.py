"""
Test configuration and fixtures.
The API runs in-process against a mongomock database.
"""
import os

os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['REQUIRE_AUTH'] = 'false'
os.environ['TOKEN_FILE'] = ''

import mongomock
import pytest
from fastapi.testclient import TestClient

from api_client import ApiClient, TokenStore
from config import get_settings
from database import ensure_indexes, get_db
from main import app


@pytest.fixture
def db():
    """Fresh in-memory database for each test, indexed like the real one"""
    database = mongomock.MongoClient()['crud_suite_test']
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    """Test client with the database dependency overridden"""
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def require_auth(monkeypatch):
    """Gate every record route for the duration of a test"""
    monkeypatch.setenv('REQUIRE_AUTH', 'true')
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_user_data() -> dict:
    return {'name': 'Ann Lee', 'email': 'ann@x.com', 'password': 'secret123'}


@pytest.fixture
def registered_user(client, test_user_data) -> dict:
    response = client.post('/api/register', json=test_user_data)
    assert response.status_code == 201
    return response.json()['user']


@pytest.fixture
def auth_headers(client, registered_user, test_user_data) -> dict:
    response = client.post(
        '/api/login',
        json={'email': test_user_data['email'], 'password': test_user_data['password']},
    )
    return {'Authorization': f"Bearer {response.json()['token']}"}


@pytest.fixture
def tokens() -> TokenStore:
    return TokenStore()


@pytest.fixture
def api(db, tokens):
    """ApiClient talking to the in-process app under /api"""
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app, base_url='http://testserver/api') as http:
        yield ApiClient(tokens=tokens, http=http)
    app.dependency_overrides.clear()

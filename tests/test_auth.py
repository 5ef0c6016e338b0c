from datetime import timedelta

import main
from security import create_access_token, get_password_hash, verify_password


def test_register_user(client, test_user_data):
    """Test user registration"""
    response = client.post('/api/register', json=test_user_data)

    assert response.status_code == 201
    user = response.json()['user']
    assert user['email'] == test_user_data['email']
    assert user['id']
    assert 'password' not in user


def test_password_stored_hashed(client, db, registered_user, test_user_data):
    stored = db['user'].find_one({'email': test_user_data['email']})
    assert stored['password'] != test_user_data['password']
    assert verify_password(test_user_data['password'], stored['password'])


def test_register_duplicate_email(client, registered_user, test_user_data):
    response = client.post('/api/register', json={**test_user_data, 'name': 'Other'})

    assert response.status_code == 409
    assert 'already registered' in response.json()['message']


def test_register_requires_fields(client):
    response = client.post('/api/register', json={'email': 'ann@x.com'})
    assert response.status_code == 422
    assert {'name', 'password'} <= set(response.json()['errors'])


def test_login_success(client, registered_user, test_user_data):
    response = client.post(
        '/api/login',
        json={'email': test_user_data['email'], 'password': test_user_data['password']},
    )

    assert response.status_code == 200
    data = response.json()
    assert data['token']
    assert data['user']['id'] == registered_user['id']


def test_login_failures_are_indistinguishable(client, registered_user, test_user_data):
    wrong_password = client.post('/api/login', json={'email': test_user_data['email'], 'password': 'nope-nope'})
    unknown_email = client.post('/api/login', json={'email': 'ghost@x.com', 'password': 'nope-nope'})

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json()['message'] == unknown_email.json()['message'] == 'Invalid email or password'


def test_profile_with_token(client, auth_headers, registered_user):
    response = client.get('/api/profile', headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == registered_user


def test_profile_without_token(client):
    response = client.get('/api/profile')
    assert response.status_code == 401
    assert response.headers['www-authenticate'] == 'Bearer'


def test_profile_with_forged_token(client, registered_user):
    headers = {'Authorization': 'Bearer not.a.token'}
    assert client.get('/api/profile', headers=headers).status_code == 401


def test_profile_with_expired_token(client, registered_user):
    token = create_access_token({'sub': registered_user['id']}, expires_delta=timedelta(minutes=-5))
    assert client.get('/api/profile', headers={'Authorization': f'Bearer {token}'}).status_code == 401


def test_profile_for_deleted_user(client, db, auth_headers, registered_user):
    db['user'].delete_many({})
    assert client.get('/api/profile', headers=auth_headers).status_code == 401


def test_record_routes_open_by_default(client):
    assert client.get('/api/student').status_code == 200
    assert client.get('/api/product/total').status_code == 200


def test_password_helpers():
    hashed = get_password_hash('hunter22')
    assert verify_password('hunter22', hashed)
    assert not verify_password('hunter23', hashed)
    assert not verify_password('hunter22', 'not-a-hash')


def test_concurrent_registration_same_email(client, db, monkeypatch, test_user_data):
    """Both requests pass the lookup; only one account may be created"""
    monkeypatch.setattr(main.RecordStore, 'find_one', lambda self, query: None)

    first = client.post('/api/register', json=test_user_data)
    second = client.post('/api/register', json={**test_user_data, 'name': 'Other'})

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()['message'] == 'Email already registered'
    assert db['user'].count_documents({'email': test_user_data['email']}) == 1


def test_profile_exposes_only_public_fields(client, db, auth_headers, test_user_data):
    db['user'].update_one({'email': test_user_data['email']}, {'$set': {'role': 'admin'}})

    response = client.get('/api/profile', headers=auth_headers)

    assert response.status_code == 200
    assert set(response.json()) == {'id', 'name', 'email'}


def test_login_user_exposes_only_public_fields(client, registered_user, test_user_data):
    response = client.post(
        '/api/login',
        json={'email': test_user_data['email'], 'password': test_user_data['password']},
    )
    assert set(response.json()['user']) == {'id', 'name', 'email'}
    assert set(registered_user) == {'id', 'name', 'email'}

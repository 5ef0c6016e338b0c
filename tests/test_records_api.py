from unittest.mock import MagicMock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from database import get_db
from main import app

STUDENT = {'name': 'Ann', 'email': 'a@x.com', 'course': 'CS', 'batch': '2025', 'grade': 'A'}
EMPLOYEE = {'name': 'Raj', 'email': 'raj@x.com', 'position': 'Engineer', 'department': 'R&D', 'salary': 5000}
UNKNOWN_ID = '507f1f77bcf86cd799439011'


def test_root_and_health(client):
    assert client.get('/').status_code == 200
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json()['database'] == 'connected'


def test_student_lifecycle(client):
    """Create, list, update and delete one student"""
    response = client.post('/api/student', json=STUDENT)
    assert response.status_code == 201
    body = response.json()
    assert body['message'] == 'Student is created'
    student = body['newStudent']
    assert student['_id']
    assert student['name'] == 'Ann'

    students = client.get('/api/student').json()['students']
    assert [s['_id'] for s in students] == [student['_id']]

    response = client.put(f"/api/student/{student['_id']}", json={'grade': 'A+'})
    assert response.status_code == 200
    updated = response.json()
    assert updated['grade'] == 'A+'
    for field in ('name', 'email', 'course', 'batch'):
        assert updated[field] == STUDENT[field]

    response = client.delete(f"/api/student/{student['_id']}")
    assert response.status_code == 200
    assert client.get('/api/student').json()['students'] == []


def test_get_student_by_id(client):
    student = client.post('/api/student', json=STUDENT).json()['newStudent']
    assert client.get(f"/api/student/{student['_id']}").json()['email'] == 'a@x.com'
    assert client.get(f'/api/student/{UNKNOWN_ID}').status_code == 404


def test_create_requires_every_field(client):
    response = client.post('/api/student', json={'name': 'Ann', 'email': 'a@x.com'})
    assert response.status_code == 422
    errors = response.json()['errors']
    assert {'course', 'batch', 'grade'} <= set(errors)
    assert client.get('/api/student').json()['students'] == []


def test_create_rejects_blank_field(client):
    response = client.post('/api/student', json={**STUDENT, 'course': '   '})
    assert response.status_code == 422
    assert 'course' in response.json()['errors']


def test_update_unknown_id_is_404_and_no_upsert(client):
    response = client.put(f'/api/student/{UNKNOWN_ID}', json={'grade': 'B'})
    assert response.status_code == 404
    assert client.get('/api/student').json()['students'] == []


def test_update_malformed_id_is_404(client):
    assert client.put('/api/student/nope', json={'grade': 'B'}).status_code == 404


def test_delete_twice_is_404(client):
    keep = client.post('/api/student', json=STUDENT).json()['newStudent']
    gone = client.post('/api/student', json={**STUDENT, 'name': 'Bo'}).json()['newStudent']
    assert client.delete(f"/api/student/{gone['_id']}").status_code == 200
    assert client.delete(f"/api/student/{gone['_id']}").status_code == 404
    students = client.get('/api/student').json()['students']
    assert [s['_id'] for s in students] == [keep['_id']]


def test_employee_salary_stored_as_number(client):
    response = client.post('/api/employee', json={**EMPLOYEE, 'salary': '5200'})
    assert response.status_code == 201
    employee = response.json()['newEmployee']
    assert employee['salary'] == 5200

    employees = client.get('/api/employee').json()['employees']
    assert isinstance(employees[0]['salary'], (int, float))


def test_employee_salary_must_be_numeric(client):
    response = client.post('/api/employee', json={**EMPLOYEE, 'salary': 'lots'})
    assert response.status_code == 422
    assert 'salary' in response.json()['errors']


def test_employee_update_and_delete(client):
    employee = client.post('/api/employee', json=EMPLOYEE).json()['newEmployee']
    updated = client.put(f"/api/employee/{employee['_id']}", json={'position': 'Lead'}).json()
    assert updated['position'] == 'Lead'
    assert updated['salary'] == 5000
    assert client.delete(f"/api/employee/{employee['_id']}").status_code == 200
    assert client.get('/api/employee').json() == {'employees': []}


def test_task_defaults(client):
    response = client.post('/api/task', json={'title': 'Write docs', 'description': 'API reference'})
    task = response.json()['newTask']
    assert task['priority'] == 'Low'
    assert task['status'] == 'Pending'
    assert client.get('/api/task').json()['tasks'][0]['_id'] == task['_id']


@pytest.mark.parametrize('field,value', [('priority', 'Urgent'), ('status', 'Blocked')])
def test_task_enums_enforced(client, field, value):
    response = client.post('/api/task', json={'title': 't', 'description': 'd', field: value})
    assert response.status_code == 422
    assert field in response.json()['errors']


def test_task_status_update(client):
    task = client.post('/api/task', json={'title': 't', 'description': 'd'}).json()['newTask']
    response = client.put(f"/api/task/{task['_id']}", json={'status': 'In Progress'})
    assert response.json()['status'] == 'In Progress'
    assert client.put(f"/api/task/{task['_id']}", json={'status': 'Later'}).status_code == 422


def test_storage_unavailable_is_500(client):
    broken = MagicMock()
    broken.__getitem__.return_value.find.side_effect = ServerSelectionTimeoutError('no servers')
    broken.__getitem__.return_value.insert_one.side_effect = ServerSelectionTimeoutError('no servers')
    app.dependency_overrides[get_db] = lambda: broken

    response = client.get('/api/student')
    assert response.status_code == 500
    assert response.json()['message'] == 'Storage unavailable'
    assert client.post('/api/student', json=STUDENT).status_code == 500


def test_record_routes_gated_when_required(client, require_auth, auth_headers):
    assert client.get('/api/student').status_code == 401
    assert client.post('/api/task', json={'title': 't', 'description': 'd'}).status_code == 401
    assert client.get('/api/student', headers=auth_headers).status_code == 200

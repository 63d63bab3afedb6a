"""
Unit Tests for the Subjects API
"""
import pytest
from unittest.mock import patch
from httpx import AsyncClient

from app.core.logging_config import logger
from app.models.subject import Subject


@pytest.fixture
async def curriculum(db_session):
    subjects = [
        Subject(name='Basic Mathematics', code='MA101', branch='Computer Engineering', semester=1, is_common=True),
        Subject(name='Data Structures', code='CS302', branch='Computer Engineering', semester=3),
        Subject(name='Database Systems', code='CS303', branch='Computer Engineering', semester=3),
        Subject(name='Surveying', code='CE301', branch='Civil Engineering', semester=3),
    ]
    db_session.add_all(subjects)
    await db_session.commit()
    return subjects


class TestReads:

    async def test_filter_by_branch_case_insensitive(self, client: AsyncClient, auth_headers, curriculum):
        response = await client.get('/api/subjects/?branch=computer engineering&semester=3', headers=auth_headers)

        assert response.status_code == 200
        assert [s['code'] for s in response.json()] == ['CS302', 'CS303']

    async def test_grouped_by_semester(self, client: AsyncClient, auth_headers, curriculum):
        response = await client.get('/api/subjects/branch/Computer Engineering', headers=auth_headers)

        grouped = response.json()
        assert sorted(grouped) == ['1', '3']
        assert len(grouped['3']) == 2

    async def test_grouped_single_semester_always_has_key(self, client: AsyncClient, auth_headers, curriculum):
        response = await client.get('/api/subjects/branch/Computer Engineering?semester=5', headers=auth_headers)

        assert response.json() == {'5': []}

    async def test_branches_default_when_empty(self, client: AsyncClient, auth_headers):
        response = await client.get('/api/subjects/branches', headers=auth_headers)

        assert 'Computer Engineering' in response.json()
        assert len(response.json()) == 10

    async def test_semesters_of_branch(self, client: AsyncClient, auth_headers, curriculum):
        response = await client.get('/api/subjects/branches/Computer Engineering/semesters', headers=auth_headers)

        assert response.json() == [1, 3]

    async def test_common_subjects_shape(self, client: AsyncClient, auth_headers, curriculum):
        response = await client.get('/api/subjects/common', headers=auth_headers)

        [common] = response.json()
        assert common['subjectCode'] == 'MA101'
        assert common['subjectName'] == 'Basic Mathematics'


class TestWrites:

    async def test_create_uppercases_code(self, client: AsyncClient, admin_auth_headers):
        response = await client.post('/api/subjects/', json={
            'name': 'Operating Systems', 'code': 'cs401', 'branch': 'Computer Engineering', 'semester': 4,
        }, headers=admin_auth_headers)

        assert response.status_code == 201
        assert response.json()['subject']['code'] == 'CS401'

    async def test_same_code_other_branch_allowed(self, client: AsyncClient, admin_auth_headers, curriculum):
        response = await client.post('/api/subjects/', json={
            'name': 'Data Structures', 'code': 'CS302', 'branch': 'Information Technology', 'semester': 3,
        }, headers=admin_auth_headers)

        assert response.status_code == 201

    async def test_duplicate_code_in_branch(self, client: AsyncClient, admin_auth_headers, curriculum):
        response = await client.post('/api/subjects/', json={
            'name': 'Another', 'code': 'cs302', 'branch': 'Computer Engineering', 'semester': 3,
        }, headers=admin_auth_headers)

        assert response.status_code == 409

    async def test_missing_fields(self, client: AsyncClient, admin_auth_headers):
        response = await client.post('/api/subjects/', json={'name': 'Only name'}, headers=admin_auth_headers)

        assert response.status_code == 400
        assert response.json() == {'error': 'Name, code, branch, and semester are required'}

    async def test_semester_out_of_range(self, client: AsyncClient, admin_auth_headers):
        response = await client.post('/api/subjects/', json={
            'name': 'Too Late', 'code': 'X1', 'branch': 'Computer Engineering', 'semester': 7,
        }, headers=admin_auth_headers)

        assert response.status_code == 400

    async def test_update_conflict(self, client: AsyncClient, admin_auth_headers, curriculum):
        target = curriculum[2]

        response = await client.put(
            f'/api/subjects/{target.id}', json={'code': 'CS302'}, headers=admin_auth_headers
        )

        assert response.status_code == 409

    async def test_delete_branch(self, client: AsyncClient, admin_auth_headers, curriculum):
        with patch.object(logger, 'log_db_query') as log_db_query:
            response = await client.delete('/api/subjects/branch/Computer Engineering', headers=admin_auth_headers)

        assert response.status_code == 200
        assert response.json()['deletedCount'] == 3
        operation, table, _, rows = log_db_query.call_args.args
        assert (operation, table, rows) == ('DELETE', 'subjects', 3)


class TestBulkImport:

    async def test_partial_success(self, client: AsyncClient, admin_auth_headers, curriculum):
        response = await client.post('/api/subjects/bulk-import', json={'subjects': [
            {'name': 'Networks', 'code': 'cs501', 'branch': 'Computer Engineering', 'semester': '5'},
            {'name': 'Dup', 'code': 'CS302', 'branch': 'Computer Engineering', 'semester': 3},
            {'name': 'Bad', 'code': 'BAD1', 'branch': 'Computer Engineering', 'semester': 9},
            {'code': 'NONAME'},
        ]}, headers=admin_auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body['imported'] == 1
        assert body['errors'] == 3
        assert body['total'] == 4
        assert body['results'] == [{'code': 'CS501', 'name': 'Networks'}]
        assert 'Invalid semester' in body['errorDetails'][1]['error']

    async def test_duplicates_inside_batch(self, client: AsyncClient, admin_auth_headers):
        row = {'name': 'Networks', 'code': 'CS501', 'branch': 'Computer Engineering', 'semester': 5}

        response = await client.post('/api/subjects/bulk-import', json={'subjects': [row, row]}, headers=admin_auth_headers)

        assert response.json()['imported'] == 1

    @pytest.mark.parametrize('payload, error', [
        ({'subjects': 'nope'}, 'Subjects must be an array'),
        ({'subjects': []}, 'Subjects array cannot be empty'),
    ])
    async def test_bad_payload(self, client: AsyncClient, admin_auth_headers, payload, error):
        response = await client.post('/api/subjects/bulk-import', json=payload, headers=admin_auth_headers)

        assert response.status_code == 400
        assert response.json() == {'error': error}

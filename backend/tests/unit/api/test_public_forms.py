"""
Unit Tests for the unauthenticated forms (internships, contact) and courses
"""
import base64
from unittest.mock import AsyncMock, patch
from httpx import AsyncClient
from sqlalchemy import select

from app.models.contact import ContactMessage


RESUME = base64.b64encode(b'%PDF-1.4 resume').decode()


def application(**overrides) -> dict:
    data = {
        'name': 'Ravi Kumar',
        'email': 'Ravi@Example.com',
        'phone': '9876543210',
        'collegeName': 'Government Polytechnic',
        'branch': 'Computer Engineering',
        'semester': 5,
        'type': 'Summer',
        'mode': 'Remote',
        'internshipType': 'Web Development',
        'resumeBase64': RESUME,
        'resumeFileName': 'ravi_resume',
    }
    data.update(overrides)
    return data


class TestInternships:

    async def test_apply(self, client: AsyncClient):
        response = await client.post('/api/internships/apply', json=application())

        assert response.status_code == 201
        stored = response.json()['application']
        assert stored['email'] == 'ravi@example.com'
        assert stored['semester'] == '5'
        assert stored['resumeUrl'].startswith('/uploads/internships/')
        assert stored['resumeUrl'].endswith('.pdf')

    async def test_onsite_requires_location(self, client: AsyncClient):
        response = await client.post('/api/internships/apply', json=application(mode='Onsite'))

        assert response.status_code == 400
        assert response.json() == {'error': 'Preferred location is required for Hybrid or Onsite mode.'}

    async def test_one_application_per_semester(self, client: AsyncClient):
        await client.post('/api/internships/apply', json=application())

        response = await client.post('/api/internships/apply', json=application(email='ravi@example.com'))

        assert response.status_code == 409

    async def test_resume_required(self, client: AsyncClient):
        response = await client.post(
            '/api/internships/apply', json=application(resumeBase64=None, resumeFileName=None)
        )

        assert response.status_code == 400
        assert response.json() == {'error': 'Resume upload failed. Please try again.'}

    async def test_unknown_mode(self, client: AsyncClient):
        response = await client.post('/api/internships/apply', json=application(mode='Moon'))

        assert response.status_code == 400

    async def test_admin_list(self, client: AsyncClient, admin_auth_headers):
        await client.post('/api/internships/apply', json=application())

        response = await client.get('/api/internships/', headers=admin_auth_headers)

        assert len(response.json()['applications']) == 1


class TestContact:

    async def test_submit(self, client: AsyncClient, db_session):
        response = await client.post('/api/contact/messages', json={
            'name': 'Meera', 'email': 'MEERA@example.com', 'subject': 'Fees', 'message': 'When is the deadline?',
        })

        assert response.status_code == 200
        body = response.json()
        assert body['ok'] is True
        assert body['adminEmailSent'] is False
        stored = (await db_session.execute(select(ContactMessage))).scalar_one()
        assert stored.email == 'meera@example.com'

    async def test_submit_records_alert_time(self, client: AsyncClient, db_session):
        with patch('app.api.endpoints.contact.email_service.send_contact_alert', AsyncMock(return_value=True)):
            response = await client.post('/api/contact/messages', json={
                'name': 'Meera', 'email': 'meera@example.com', 'subject': 'Fees', 'message': 'Hello',
            })

        assert response.json()['adminEmailSent'] is True
        stored = (await db_session.execute(select(ContactMessage))).scalar_one()
        assert stored.admin_alert_email_sent_at is not None

    async def test_message_required(self, client: AsyncClient):
        response = await client.post('/api/contact/messages', json={
            'name': 'Meera', 'email': 'meera@example.com', 'subject': 'Fees',
        })

        assert response.status_code == 400
        assert 'details' in response.json()

    async def test_inbox_admin_only(self, client: AsyncClient, auth_headers):
        response = await client.get('/api/contact/messages', headers=auth_headers)

        assert response.status_code == 403

    async def test_reply(self, client: AsyncClient, db_session, admin_auth_headers):
        message = ContactMessage(name='Meera', email='meera@example.com', subject='Fees', message='Hello')
        db_session.add(message)
        await db_session.commit()

        response = await client.post(f'/api/contact/messages/{message.id}/reply', json={
            'replySubject': 'Re: Fees', 'messageText': 'Friday',
        }, headers=admin_auth_headers)

        # Email is not configured in tests; the reply is still recorded
        assert response.json() == {'ok': True, 'emailSent': False, 'status': 'replied'}
        inbox = await client.get('/api/contact/messages', headers=admin_auth_headers)
        assert inbox.json()[0]['replyHistory'][0]['emailSent'] is False


class TestCourses:

    async def test_launch_and_filter(self, client: AsyncClient, admin_auth_headers):
        response = await client.post('/api/courses/', json={
            'title': 'Python Basics', 'description': 'Intro', 'branch': 'Computer Engineering',
            'semester': 2, 'subject': 'Programming',
        }, headers=admin_auth_headers)

        assert response.status_code == 201
        assert response.json()['semester'] == '2'

        public = await client.get('/api/courses/public?semester=2')
        other = await client.get('/api/courses/public?semester=3')
        assert len(public.json()['courses']) == 1
        assert other.json()['courses'] == []

    async def test_missing_fields(self, client: AsyncClient, admin_auth_headers):
        response = await client.post('/api/courses/', json={'title': 'Python'}, headers=admin_auth_headers)

        assert response.status_code == 400
        assert response.json() == {'error': 'Missing required fields'}

    async def test_delete_unknown(self, client: AsyncClient, admin_auth_headers):
        response = await client.delete('/api/courses/missing', headers=admin_auth_headers)

        assert response.status_code == 404

"""
Unit Tests for the Notifications API and the realtime socket
"""
import pytest
from httpx import AsyncClient
from starlette.testclient import TestClient

from app.api.endpoints.realtime import identify
from app.core.security import create_access_token, create_password_reset_token, create_user_token
from app.main import app
from app.models.notification import Notification
from app.models.user import UserType


@pytest.fixture
async def inactive_user(user_factory):
    return await user_factory(is_active=False)


@pytest.fixture
def notification_factory(db_session):
    async def _make(user_id: str, **fields) -> Notification:
        notification = Notification(user_id=user_id, title='Welcome', message='Hello', **fields)
        db_session.add(notification)
        await db_session.commit()
        await db_session.refresh(notification)
        return notification
    return _make


class TestMyNotifications:

    async def test_list_with_counts(self, client: AsyncClient, test_user, auth_headers, notification_factory):
        await notification_factory(test_user.id)
        await notification_factory(test_user.id, is_read=True)

        response = await client.get('/api/notifications/my-notifications', headers=auth_headers)

        body = response.json()
        assert body['total'] == 2
        assert body['unread'] == 1
        assert len(body['notifications']) == 2

    async def test_mark_read_and_unread(self, client: AsyncClient, test_user, auth_headers, notification_factory):
        notification = await notification_factory(test_user.id)

        read = await client.put(f'/api/notifications/{notification.id}/read', headers=auth_headers)
        count = await client.get('/api/notifications/unread-count', headers=auth_headers)
        unread = await client.put(f'/api/notifications/{notification.id}/unread', headers=auth_headers)

        assert read.json()['isRead'] is True
        assert read.json()['readAt'] is not None
        assert count.json() == {'count': 0}
        assert unread.json()['readAt'] is None

    async def test_cannot_touch_others(self, client: AsyncClient, user_factory, auth_headers, notification_factory):
        other = await user_factory()
        notification = await notification_factory(other.id)

        response = await client.delete(f'/api/notifications/{notification.id}', headers=auth_headers)

        assert response.status_code == 403
        assert response.json() == {'error': 'Unauthorized'}

    async def test_mark_all_read(self, client: AsyncClient, test_user, auth_headers, notification_factory):
        await notification_factory(test_user.id)
        await notification_factory(test_user.id)

        response = await client.put('/api/notifications/mark-all-read', headers=auth_headers)

        assert response.json() == {'message': 'Marked 2 notifications as read'}


class TestPushTokens:

    async def test_register_token(self, client: AsyncClient, db_session, test_user, auth_headers):
        response = await client.post(
            '/api/notifications/register-token', json={'token': 'fcm-token-1'}, headers=auth_headers
        )

        assert response.status_code == 200
        await db_session.refresh(test_user)
        assert test_user.fcm_token == 'fcm-token-1'

    async def test_subscribe_needs_registered_token(self, client: AsyncClient, auth_headers):
        response = await client.post('/api/notifications/subscribe', json={'topic': 'exams'}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json() == {'error': 'FCM token not found. Please register token first.'}

    async def test_subscribe_degrades_without_firebase(self, client: AsyncClient, auth_headers):
        await client.post('/api/notifications/register-token', json={'token': 'fcm-token-1'}, headers=auth_headers)

        response = await client.post('/api/notifications/subscribe', json={'topic': 'exams'}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()['push']['success'] is False


class TestAdminTools:

    async def test_send_to_listed_users(self, client: AsyncClient, test_user, admin_auth_headers):
        response = await client.post('/api/notifications/admin/send', json={
            'userIds': [test_user.id],
            'notificationData': {'title': 'Results', 'message': 'Published', 'type': 'success'},
        }, headers=admin_auth_headers)

        assert response.json()['message'] == 'Sent 1 notifications'

    async def test_broadcast_to_active_users(self, client: AsyncClient, test_user, user_factory, admin_auth_headers):
        await user_factory(is_active=False)

        response = await client.post('/api/notifications/admin/send', json={
            'notificationData': {'title': 'Holiday', 'message': 'Closed Monday'},
        }, headers=admin_auth_headers)
        stats = await client.get('/api/notifications/admin/stats', headers=admin_auth_headers)

        # the admin and the active student
        assert response.json()['message'] == 'Sent 2 broadcast notifications'
        assert stats.json() == {'total': 2, 'unread': 2, 'read': 0, 'byCategory': {'general': 2}}

    async def test_send_push_requires_fields(self, client: AsyncClient, admin_auth_headers):
        response = await client.post('/api/notifications/send-push', json={'title': 'Hi'}, headers=admin_auth_headers)

        assert response.status_code == 400
        assert response.json() == {'error': 'userId, title, and body are required'}

    async def test_topic_push_without_firebase(self, client: AsyncClient, admin_auth_headers):
        response = await client.post('/api/notifications/send-topic-push', json={
            'topic': 'exams', 'title': 'Exam', 'body': 'Tomorrow',
        }, headers=admin_auth_headers)

        assert response.status_code == 200
        assert response.json()['success'] is False

    async def test_students_cannot_send(self, client: AsyncClient, auth_headers):
        response = await client.post('/api/notifications/admin/send', json={
            'notificationData': {'title': 'x', 'message': 'y'},
        }, headers=auth_headers)

        assert response.status_code == 403


class TestRealtimeSocket:

    def test_anonymous_welcome_and_ping(self):
        with TestClient(app).websocket_connect('/ws') as websocket:
            welcome = websocket.receive_json()
            websocket.send_json({'type': 'ping'})
            pong = websocket.receive_json()

        assert welcome['type'] == 'connected'
        assert welcome['data']['authenticated'] is False
        assert pong == {'type': 'pong', 'data': None}

    def test_authenticated_socket(self, test_user):
        token = create_user_token(test_user)

        with TestClient(app).websocket_connect(f'/ws?token={token}') as websocket:
            welcome = websocket.receive_json()

        assert welcome['data']['authenticated'] is True

    def test_deactivated_user_is_anonymous(self, inactive_user):
        token = create_user_token(inactive_user)

        with TestClient(app).websocket_connect(f'/ws?token={token}') as websocket:
            welcome = websocket.receive_json()

        assert welcome['data']['authenticated'] is False

    def test_reset_token_is_anonymous(self):
        token = create_password_reset_token('user-1')

        with TestClient(app).websocket_connect(f'/ws?token={token}') as websocket:
            welcome = websocket.receive_json()

        assert welcome['data']['authenticated'] is False


class TestSocketIdentity:

    async def test_role_comes_from_the_user_row(self, db_session, test_user):
        stale_admin_token = create_access_token({'sub': test_user.id, 'userType': 'admin'})

        assert await identify(stale_admin_token) == (test_user.id, UserType.STUDENT)

    async def test_deactivated_user(self, inactive_user):
        assert await identify(create_user_token(inactive_user)) == (None, None)

    async def test_unknown_user(self, db_session):
        token = create_access_token({'sub': 'missing-user', 'userType': 'student'})

        assert await identify(token) == (None, None)

"""
Unit Tests for the Subscriptions API
"""
from datetime import datetime, timedelta
from httpx import AsyncClient

from app.models.subscription import Subscription, SubscriptionPlan, SubscriptionStatus


class TestStudentFlow:

    async def test_create_premium(self, client: AsyncClient, test_user, auth_headers):
        response = await client.post(
            '/api/subscriptions/', json={'semester': 3, 'plan': 'premium', 'amount': 299}, headers=auth_headers
        )

        assert response.status_code == 201
        body = response.json()
        assert body['status'] == 'pending'
        assert body['semester'] == '3'
        assert body['features'] == ['pdf_access', 'video_access', 'quiz_access']
        assert body['user']['email'] == test_user.email
        start = datetime.fromisoformat(body['startDate'])
        end = datetime.fromisoformat(body['endDate'])
        assert (end - start).days == 90

    async def test_unknown_plan(self, client: AsyncClient, auth_headers):
        response = await client.post(
            '/api/subscriptions/', json={'semester': 3, 'plan': 'gold', 'amount': 1}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()['error'].startswith('Invalid plan')

    async def test_negative_amount(self, client: AsyncClient, auth_headers):
        response = await client.post(
            '/api/subscriptions/', json={'semester': 3, 'plan': 'basic', 'amount': -5}, headers=auth_headers
        )

        assert response.status_code == 400

    async def test_my_subscriptions_and_cancel(self, client: AsyncClient, auth_headers):
        created = await client.post(
            '/api/subscriptions/', json={'semester': 3, 'plan': 'basic', 'amount': 99}, headers=auth_headers
        )
        subscription_id = created.json()['id']

        mine = await client.get('/api/subscriptions/my', headers=auth_headers)
        cancelled = await client.put(f'/api/subscriptions/{subscription_id}/cancel', headers=auth_headers)

        assert [s['id'] for s in mine.json()] == [subscription_id]
        assert cancelled.json()['status'] == 'cancelled'

    async def test_cannot_view_others(self, client: AsyncClient, db_session, user_factory, auth_headers):
        other = await user_factory()
        subscription = Subscription.for_plan(other.id, '3', SubscriptionPlan.BASIC, 99)
        db_session.add(subscription)
        await db_session.commit()

        response = await client.get(f'/api/subscriptions/{subscription.id}', headers=auth_headers)

        assert response.status_code == 403
        assert response.json() == {'error': 'Access denied'}


class TestAdmin:

    async def test_activate_and_extend(self, client: AsyncClient, db_session, test_user, admin_auth_headers):
        subscription = Subscription.for_plan(test_user.id, '3', SubscriptionPlan.BASIC, 99)
        db_session.add(subscription)
        await db_session.commit()
        original_end = subscription.end_date

        activated = await client.put(
            f'/api/subscriptions/{subscription.id}/status', json={'status': 'active'}, headers=admin_auth_headers
        )
        extended = await client.put(
            f'/api/subscriptions/{subscription.id}/extend', json={'days': 10}, headers=admin_auth_headers
        )

        assert activated.json()['status'] == 'active'
        new_end = datetime.fromisoformat(extended.json()['endDate'])
        assert new_end - original_end == timedelta(days=10)

    async def test_expiring_soon(self, client: AsyncClient, db_session, test_user, admin_auth_headers):
        now = datetime.utcnow()
        soon = Subscription.for_plan(test_user.id, '3', SubscriptionPlan.BASIC, 99, start=now - timedelta(days=27))
        later = Subscription.for_plan(test_user.id, '4', SubscriptionPlan.COMPLETE, 999, start=now)
        soon.status = later.status = SubscriptionStatus.ACTIVE
        db_session.add_all([soon, later])
        await db_session.commit()

        response = await client.get('/api/subscriptions/expiring/soon', headers=admin_auth_headers)

        assert [s['id'] for s in response.json()] == [soon.id]

    async def test_stats(self, client: AsyncClient, db_session, test_user, admin_auth_headers):
        active = Subscription.for_plan(test_user.id, '3', SubscriptionPlan.PREMIUM, 299)
        active.status = SubscriptionStatus.ACTIVE
        pending = Subscription.for_plan(test_user.id, '4', SubscriptionPlan.BASIC, 99)
        db_session.add_all([active, pending])
        await db_session.commit()

        response = await client.get('/api/subscriptions/stats/overview', headers=admin_auth_headers)

        stats = response.json()
        assert stats['total'] == 2
        assert stats['active'] == 1
        assert stats['pending'] == 1
        assert stats['totalRevenue'] == 398
        assert stats['revenueByPlan'] == {'basic': 99.0, 'premium': 299.0, 'complete': 0.0}

    async def test_list_requires_admin(self, client: AsyncClient, auth_headers):
        response = await client.get('/api/subscriptions/', headers=auth_headers)

        assert response.status_code == 403

"""
Unit Tests for the Payments API with a mocked Razorpay gateway
"""
import hashlib
import hmac
import json
import pytest
from unittest.mock import AsyncMock, patch
from httpx import AsyncClient
from razorpay.errors import GatewayError
from requests.exceptions import ConnectionError as RequestsConnectionError
from sqlalchemy import select

from app.core.config import settings
from app.core.security import create_user_token
from app.models.material import Material, MaterialType, AccessType
from app.models.payment import Payment, PaymentStatus, DownloadToken
from app.services.razorpay_service import razorpay_service


KEY_SECRET = 'rzp_test_secret'
WEBHOOK_SECRET = 'whsec_test'


def sign(message: str, secret: str = KEY_SECRET) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def razorpay_keys(monkeypatch):
    monkeypatch.setattr(settings, 'RAZORPAY_KEY_ID', 'rzp_test_key123')
    monkeypatch.setattr(settings, 'RAZORPAY_KEY_SECRET', KEY_SECRET)
    monkeypatch.setattr(settings, 'RAZORPAY_WEBHOOK_SECRET', WEBHOOK_SECRET)


@pytest.fixture
async def paid_material(db_session) -> Material:
    material = Material(
        title='Solved Question Bank', type=MaterialType.PDF, url='/uploads/materials/qb.pdf',
        subject_id='subject-1', subject_code='CS302', semester='3',
        access_type=AccessType.PAID, price=49,
    )
    db_session.add(material)
    await db_session.commit()
    await db_session.refresh(material)
    return material


@pytest.fixture
async def pending_payment(db_session, test_user, paid_material) -> Payment:
    payment = Payment(
        user_id=test_user.id, material_id=paid_material.id, razorpay_order_id='order_abc',
        amount=4900, status=PaymentStatus.PENDING,
    )
    db_session.add(payment)
    await db_session.commit()
    await db_session.refresh(payment)
    return payment


class TestConfiguration:

    async def test_not_configured(self, client: AsyncClient, auth_headers, paid_material):
        response = await client.post(
            '/api/payments/create-order', json={'materialId': paid_material.id}, headers=auth_headers
        )

        assert response.status_code == 503
        assert response.json()['code'] == 'PAYMENT_NOT_CONFIGURED'

    async def test_config_status(self, client: AsyncClient, auth_headers, razorpay_keys):
        response = await client.get('/api/payments/config-status', headers=auth_headers)

        assert response.json()['configured'] is True
        assert KEY_SECRET not in response.text


class TestCreateOrder:

    async def test_creates_pending_payment(self, client: AsyncClient, db_session, auth_headers,
                                           razorpay_keys, paid_material):
        order = {'id': 'order_new', 'amount': 4900, 'currency': 'INR'}
        with patch.object(razorpay_service, 'create_order', AsyncMock(return_value=order)) as create:
            response = await client.post(
                '/api/payments/create-order', json={'materialId': paid_material.id}, headers=auth_headers
            )

        assert response.status_code == 200
        body = response.json()
        assert body['orderId'] == 'order_new'
        assert body['keyId'] == 'rzp_test_key123'
        assert create.await_args.args[0] == 4900
        assert len(create.await_args.args[1]) <= 40
        payment = (await db_session.execute(select(Payment))).scalar_one()
        assert payment.status == PaymentStatus.PENDING

    async def test_reuses_pending_order(self, client: AsyncClient, auth_headers, razorpay_keys,
                                        paid_material, pending_payment):
        with patch.object(razorpay_service, 'create_order', AsyncMock()) as create:
            response = await client.post(
                '/api/payments/create-order', json={'materialId': paid_material.id}, headers=auth_headers
            )

        assert response.json()['orderId'] == 'order_abc'
        create.assert_not_awaited()

    async def test_already_purchased(self, client: AsyncClient, db_session, auth_headers, razorpay_keys,
                                     paid_material, pending_payment):
        pending_payment.status = PaymentStatus.COMPLETED
        await db_session.commit()

        response = await client.post(
            '/api/payments/create-order', json={'materialId': paid_material.id}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()['alreadyPurchased'] is True

    async def test_free_material_rejected(self, client: AsyncClient, db_session, auth_headers,
                                          razorpay_keys, paid_material):
        paid_material.access_type = AccessType.FREE
        await db_session.commit()

        response = await client.post(
            '/api/payments/create-order', json={'materialId': paid_material.id}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json() == {'error': 'This material is not a paid material'}


class TestVerifyPayment:

    async def test_valid_signature_completes_and_issues_token(
        self, client: AsyncClient, db_session, auth_headers, razorpay_keys, pending_payment
    ):
        gateway = {'id': 'pay_1', 'status': 'captured', 'method': 'upi'}
        with patch.object(razorpay_service, 'fetch_payment', AsyncMock(return_value=gateway)):
            response = await client.post('/api/payments/verify-payment', json={
                'razorpay_order_id': 'order_abc',
                'razorpay_payment_id': 'pay_1',
                'razorpay_signature': sign('order_abc|pay_1'),
            }, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()['payment']['status'] == 'completed'
        assert response.json()['payment']['paymentMethod'] == 'upi'
        tokens = (await db_session.execute(select(DownloadToken))).scalars().all()
        assert len(tokens) == 1

    async def test_tampered_signature_marks_failed(
        self, client: AsyncClient, db_session, auth_headers, razorpay_keys, pending_payment
    ):
        response = await client.post('/api/payments/verify-payment', json={
            'razorpay_order_id': 'order_abc',
            'razorpay_payment_id': 'pay_1',
            'razorpay_signature': sign('order_abc|pay_2'),
        }, headers=auth_headers)

        assert response.status_code == 400
        assert response.json() == {'error': 'Payment verification failed: Invalid signature'}
        await db_session.refresh(pending_payment)
        assert pending_payment.status == PaymentStatus.FAILED

    async def test_gateway_not_captured(self, client: AsyncClient, db_session, auth_headers,
                                        razorpay_keys, pending_payment):
        with patch.object(razorpay_service, 'fetch_payment', AsyncMock(return_value={'status': 'failed'})):
            response = await client.post('/api/payments/verify-payment', json={
                'razorpay_order_id': 'order_abc',
                'razorpay_payment_id': 'pay_1',
                'razorpay_signature': sign('order_abc|pay_1'),
            }, headers=auth_headers)

        assert response.status_code == 400
        await db_session.refresh(pending_payment)
        assert pending_payment.status == PaymentStatus.FAILED

    async def test_unknown_order(self, client: AsyncClient, auth_headers, razorpay_keys):
        response = await client.post('/api/payments/verify-payment', json={
            'razorpay_order_id': 'order_missing',
            'razorpay_payment_id': 'pay_1',
            'razorpay_signature': 'sig',
        }, headers=auth_headers)

        assert response.status_code == 404

    async def test_other_students_order_is_not_found(
        self, client: AsyncClient, db_session, user_factory, razorpay_keys, pending_payment
    ):
        intruder = await user_factory()

        response = await client.post('/api/payments/verify-payment', json={
            'razorpay_order_id': 'order_abc',
            'razorpay_payment_id': 'pay_1',
            'razorpay_signature': 'bogus',
        }, headers={'Authorization': f'Bearer {create_user_token(intruder)}'})

        assert response.status_code == 404
        await db_session.refresh(pending_payment)
        assert pending_payment.status == PaymentStatus.PENDING

    async def test_gateway_outage_is_reported(
        self, client: AsyncClient, auth_headers, razorpay_keys, pending_payment
    ):
        outage = AsyncMock(side_effect=RequestsConnectionError('connection reset'))
        with patch.object(razorpay_service, 'fetch_payment', outage):
            response = await client.post('/api/payments/verify-payment', json={
                'razorpay_order_id': 'order_abc',
                'razorpay_payment_id': 'pay_1',
                'razorpay_signature': sign('order_abc|pay_1'),
            }, headers=auth_headers)

        assert response.status_code == 500
        assert response.json() == {'error': 'Failed to verify payment with Razorpay'}


class TestWebhook:

    def captured_event(self, order_id: str = 'order_abc') -> bytes:
        return json.dumps({
            'event': 'payment.captured',
            'payload': {'payment': {'entity': {'id': 'pay_9', 'order_id': order_id}}},
        }).encode()

    async def test_bad_signature(self, client: AsyncClient, razorpay_keys):
        body = self.captured_event()

        response = await client.post(
            '/api/payments/webhook', content=body, headers={'x-razorpay-signature': 'nope'}
        )

        assert response.status_code == 400
        assert response.json() == {'error': 'Invalid signature'}

    async def test_captured_completes_payment(self, client: AsyncClient, db_session, razorpay_keys, pending_payment):
        body = self.captured_event()
        gateway = {'id': 'pay_9', 'status': 'captured', 'method': 'card'}

        with patch.object(razorpay_service, 'fetch_payment', AsyncMock(return_value=gateway)):
            response = await client.post(
                '/api/payments/webhook', content=body,
                headers={'x-razorpay-signature': sign(body.decode(), WEBHOOK_SECRET)},
            )

        assert response.json() == {'received': True}
        await db_session.refresh(pending_payment)
        assert pending_payment.status == PaymentStatus.COMPLETED
        assert pending_payment.razorpay_payment_id == 'pay_9'

    async def test_unknown_order(self, client: AsyncClient, razorpay_keys):
        body = self.captured_event('order_unknown')

        response = await client.post(
            '/api/payments/webhook', content=body,
            headers={'x-razorpay-signature': sign(body.decode(), WEBHOOK_SECRET)},
        )

        assert response.status_code == 404

    async def test_other_events_acknowledged(self, client: AsyncClient, razorpay_keys):
        body = json.dumps({'event': 'order.paid'}).encode()

        response = await client.post(
            '/api/payments/webhook', content=body,
            headers={'x-razorpay-signature': sign(body.decode(), WEBHOOK_SECRET)},
        )

        assert response.status_code == 200


class TestDownloadLinks:

    async def test_requires_purchase(self, client: AsyncClient, auth_headers, paid_material):
        response = await client.post(
            '/api/payments/generate-download-link', json={'materialId': paid_material.id}, headers=auth_headers
        )

        assert response.status_code == 403
        assert response.json()['requiresPayment'] is True

    async def test_reuses_unused_token(self, client: AsyncClient, db_session, auth_headers,
                                       paid_material, pending_payment):
        pending_payment.status = PaymentStatus.COMPLETED
        await db_session.commit()

        first = await client.post(
            '/api/payments/generate-download-link', json={'materialId': paid_material.id}, headers=auth_headers
        )
        second = await client.post(
            '/api/payments/generate-download-link', json={'materialId': paid_material.id}, headers=auth_headers
        )

        assert first.status_code == 200
        assert first.json()['token'] == second.json()['token']
        assert first.json()['downloadUrl'].endswith(f"/api/materials/secure-download/{first.json()['token']}")

    async def test_check_purchase(self, client: AsyncClient, auth_headers, paid_material):
        response = await client.get(f'/api/payments/check-purchase/{paid_material.id}', headers=auth_headers)

        assert response.json() == {'hasPurchased': False, 'payment': None}


class TestRefund:

    async def test_only_completed(self, client: AsyncClient, admin_auth_headers, razorpay_keys, pending_payment):
        response = await client.post(
            '/api/payments/refund', json={'paymentId': pending_payment.id}, headers=admin_auth_headers
        )

        assert response.status_code == 400

    async def test_refund(self, client: AsyncClient, db_session, admin_auth_headers, razorpay_keys, pending_payment):
        pending_payment.status = PaymentStatus.COMPLETED
        pending_payment.razorpay_payment_id = 'pay_1'
        await db_session.commit()

        refund = AsyncMock(return_value={'id': 'rfnd_1', 'amount': 4900})
        with patch.object(razorpay_service, 'refund', refund):
            response = await client.post(
                '/api/payments/refund', json={'paymentId': pending_payment.id}, headers=admin_auth_headers
            )

        assert response.status_code == 200
        body = response.json()
        assert body['refundId'] == 'rfnd_1'
        assert body['payment']['status'] == 'refunded'
        assert body['payment']['extraMetadata']['refundId'] == 'rfnd_1'

    async def test_gateway_error(self, client: AsyncClient, db_session, admin_auth_headers, razorpay_keys,
                                 pending_payment):
        pending_payment.status = PaymentStatus.COMPLETED
        pending_payment.razorpay_payment_id = 'pay_1'
        await db_session.commit()

        refund = AsyncMock(side_effect=GatewayError('upstream timeout'))
        with patch.object(razorpay_service, 'refund', refund):
            response = await client.post(
                '/api/payments/refund', json={'paymentId': pending_payment.id}, headers=admin_auth_headers
            )

        assert response.status_code == 400
        assert response.json()['code'] == 'REFUND_FAILED'
        await db_session.refresh(pending_payment)
        assert pending_payment.status == PaymentStatus.COMPLETED

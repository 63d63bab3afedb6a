"""
Payments API (Razorpay)

Purchase flow for paid materials:
- create-order / create-payment-link open a pending Payment
- verify-payment (checkout) or the webhook (payment links) complete it
- a completed payment entitles the buyer to single-use download tokens
"""

import json
import time
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import PaymentError
from app.core.logging_config import logger
from app.core.security import generate_download_token
from app.models.activity_log import LogAction
from app.models.material import Material, AccessType
from app.models.payment import Payment, PaymentStatus, DownloadToken
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, require_admin
from app.schemas.material import MaterialResponse
from app.schemas.payment import (
    MaterialPaymentRequest,
    VerifyPaymentRequest,
    RefundRequest,
    PaymentResponse,
)
from app.services.activity_service import log_activity
from app.services.razorpay_service import (
    GATEWAY_ERRORS,
    razorpay_service,
    verify_payment_signature,
    verify_webhook_signature,
    build_receipt,
)

router = APIRouter()

SUCCESSFUL_PAYMENT_STATES = ("captured", "authorized")


async def _load_paid_material(db: AsyncSession, material_id: str) -> Material:
    if not material_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Material ID is required")

    result = await db.execute(select(Material).where(Material.id == material_id))
    material = result.scalar_one_or_none()
    if not material:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Material not found")
    if material.access_type != AccessType.PAID:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This material is not a paid material")
    return material


async def _find_payment(db: AsyncSession, user_id: str, material_id: str, payment_status: PaymentStatus):
    result = await db.execute(
        select(Payment)
        .where(
            Payment.user_id == str(user_id),
            Payment.material_id == str(material_id),
            Payment.status == payment_status,
        )
        .order_by(Payment.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def _already_purchased() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={
        "error": "You have already purchased this material",
        "alreadyPurchased": True,
    })


def _amount_in_paise(material: Material) -> int:
    amount = int(round((material.price or 0) * 100))
    if amount <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid material price")
    return amount


async def _issue_download_token(db: AsyncSession, payment: Payment) -> DownloadToken:
    token = DownloadToken(
        token=generate_download_token(),
        user_id=payment.user_id,
        material_id=payment.material_id,
        payment_id=payment.id,
        expires_at=datetime.utcnow() + timedelta(hours=settings.DOWNLOAD_TOKEN_EXPIRE_HOURS),
    )
    db.add(token)
    await db.flush()
    return token


async def _complete_payment(db: AsyncSession, payment: Payment, razorpay_payment_id: str,
                            signature: str = None, method: str = None) -> None:
    """Mark a payment completed and issue the first download token for paid materials"""
    payment.status = PaymentStatus.COMPLETED
    payment.razorpay_payment_id = razorpay_payment_id
    payment.razorpay_signature = signature
    payment.payment_method = method

    if payment.material_id:
        result = await db.execute(select(Material.access_type).where(Material.id == payment.material_id))
        if result.scalar_one_or_none() == AccessType.PAID:
            await _issue_download_token(db, payment)


@router.get("/config-status")
async def config_status(current_user: User = Depends(get_current_user)):
    return razorpay_service.config_status()


@router.post("/create-payment-link")
async def create_payment_link(
    data: MaterialPaymentRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """UPI QR flow; completion arrives through the payment_link.paid webhook"""
    razorpay_service.ensure_configured()
    material = await _load_paid_material(db, data.material_id)

    if await _find_payment(db, current_user.id, material.id, PaymentStatus.COMPLETED):
        return _already_purchased()

    amount = _amount_in_paise(material)
    frontend = settings.FRONTEND_URL.rstrip("/")
    customer = {"name": current_user.name or "Customer"}
    if current_user.email:
        customer["email"] = current_user.email
    if current_user.phone:
        customer["contact"] = current_user.phone

    try:
        link = await razorpay_service.create_payment_link({
            "amount": amount,
            "currency": "INR",
            "description": f"Purchase: {material.title}",
            "customer": customer,
            "notify": {"sms": False, "email": False},
            "reminder_enable": False,
            "notes": {
                "materialId": material.id,
                "materialTitle": material.title,
                "userId": str(current_user.id),
            },
            "callback_url": f"{frontend}/payment-success?materialId={material.id}",
            "callback_method": "get",
        })
    except GATEWAY_ERRORS as e:
        logger.log_integration_event("razorpay", "create_payment_link", False, error=str(e))
        raise PaymentError("Failed to create payment link", code="PAYMENT_LINK_FAILED", details=str(e))

    order_id = f"order_{link['id']}"
    payment = Payment(
        user_id=str(current_user.id),
        material_id=material.id,
        razorpay_order_id=order_id,
        payment_link_id=link["id"],
        amount=amount,
        currency="INR",
        status=PaymentStatus.PENDING,
        extra_metadata={
            "materialTitle": material.title,
            "materialSubjectCode": material.subject_code,
            "paymentMethod": "upi_qr",
        },
    )
    db.add(payment)
    await db.commit()

    return {
        "paymentLinkId": link["id"],
        "shortUrl": link.get("short_url"),
        "qrCode": link.get("qr_code"),
        "amount": link.get("amount", amount),
        "currency": link.get("currency", "INR"),
        "orderId": order_id,
        "paymentId": payment.id,
    }


@router.post("/create-order")
async def create_order(
    data: MaterialPaymentRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    razorpay_service.ensure_configured()
    material = await _load_paid_material(db, data.material_id)

    if await _find_payment(db, current_user.id, material.id, PaymentStatus.COMPLETED):
        return _already_purchased()

    pending = await _find_payment(db, current_user.id, material.id, PaymentStatus.PENDING)
    if pending and not pending.payment_link_id:
        return {
            "orderId": pending.razorpay_order_id,
            "amount": pending.amount,
            "currency": pending.currency,
            "keyId": settings.RAZORPAY_KEY_ID,
            "paymentId": pending.id,
        }

    amount = _amount_in_paise(material)
    receipt = build_receipt(material.id, str(current_user.id), int(time.time() * 1000))

    try:
        order = await razorpay_service.create_order(amount, receipt, {
            "materialId": material.id,
            "userId": str(current_user.id),
            "materialTitle": material.title,
        })
    except GATEWAY_ERRORS as e:
        logger.log_integration_event("razorpay", "create_order", False, error=str(e))
        raise PaymentError("Failed to create payment order", code="ORDER_FAILED", details=str(e))

    if not order or not order.get("id"):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Invalid order response from payment gateway"
        )

    payment = Payment(
        user_id=str(current_user.id),
        material_id=material.id,
        razorpay_order_id=order["id"],
        amount=amount,
        currency="INR",
        status=PaymentStatus.PENDING,
        extra_metadata={
            "materialTitle": material.title,
            "materialSubjectCode": material.subject_code,
        },
    )
    db.add(payment)
    await db.commit()

    return {
        "orderId": order["id"],
        "amount": order.get("amount", amount),
        "currency": order.get("currency") or "INR",
        "keyId": settings.RAZORPAY_KEY_ID,
        "paymentId": payment.id,
    }


@router.post("/verify-payment")
async def verify_payment(
    data: VerifyPaymentRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    razorpay_service.ensure_configured()

    if not (data.razorpay_order_id and data.razorpay_payment_id and data.razorpay_signature):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment verification data is required")

    result = await db.execute(
        select(Payment).where(
            Payment.razorpay_order_id == data.razorpay_order_id,
            Payment.user_id == current_user.id,
        )
    )
    payment = result.scalar_one_or_none()
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment record not found")

    if payment.status == PaymentStatus.COMPLETED:
        return {"success": True, "message": "Payment already verified", "payment": PaymentResponse.dump(payment)}

    if not verify_payment_signature(data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature):
        payment.status = PaymentStatus.FAILED
        payment.razorpay_payment_id = data.razorpay_payment_id
        await db.commit()
        logger.warning(f"[Payment] Signature mismatch for order {data.razorpay_order_id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment verification failed: Invalid signature"
        )

    try:
        gateway_payment = await razorpay_service.fetch_payment(data.razorpay_payment_id)
    except GATEWAY_ERRORS as e:
        logger.log_integration_event("razorpay", "fetch_payment", False, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to verify payment with Razorpay"
        )

    if gateway_payment.get("status") not in SUCCESSFUL_PAYMENT_STATES:
        payment.status = PaymentStatus.FAILED
        payment.razorpay_payment_id = data.razorpay_payment_id
        payment.razorpay_signature = data.razorpay_signature
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Payment not successful. Status: {gateway_payment.get('status')}"
        )

    await _complete_payment(
        db, payment, data.razorpay_payment_id,
        signature=data.razorpay_signature,
        method=gateway_payment.get("method"),
    )
    await log_activity(db, LogAction.PAYMENT_COMPLETED, current_user, {
        "paymentId": payment.id,
        "materialId": payment.material_id,
        "amount": payment.amount,
    }, request)
    await db.commit()
    await db.refresh(payment)

    logger.info(f"[Payment] Verified {data.razorpay_payment_id} for order {data.razorpay_order_id}")
    return {"success": True, "message": "Payment verified successfully", "payment": PaymentResponse.dump(payment)}


@router.get("/check-purchase/{material_id}")
async def check_purchase(
    material_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    payment = await _find_payment(db, current_user.id, material_id, PaymentStatus.COMPLETED)
    return {
        "hasPurchased": payment is not None,
        "payment": PaymentResponse.dump(payment) if payment else None,
    }


@router.get("/my-purchases")
async def my_purchases(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Payment, Material)
        .outerjoin(Material, Material.id == Payment.material_id)
        .where(
            Payment.user_id == str(current_user.id),
            Payment.status == PaymentStatus.COMPLETED,
        )
        .order_by(Payment.created_at.desc())
        .limit(100)
    )
    return {
        "purchases": [
            {
                "payment": PaymentResponse.dump(payment),
                "material": MaterialResponse.dump(material) if material else None,
            }
            for payment, material in result.all()
        ]
    }


async def _handle_payment_link_paid(db: AsyncSession, event: dict) -> None:
    link = event.get("payload", {}).get("payment_link", {}).get("entity", {})
    link_id = link.get("id")
    payments = link.get("payments") or []
    gateway_payment_id = payments[0].get("id") if payments and isinstance(payments[0], dict) else None

    result = await db.execute(select(Payment).where(Payment.payment_link_id == link_id))
    payment = result.scalar_one_or_none()
    if not payment:
        logger.error(f"[Payment] Webhook: no payment record for link {link_id}")
        return
    if payment.status == PaymentStatus.COMPLETED or not gateway_payment_id:
        return

    gateway_payment = await razorpay_service.fetch_payment(gateway_payment_id)
    if gateway_payment.get("status") in SUCCESSFUL_PAYMENT_STATES:
        await _complete_payment(db, payment, gateway_payment_id, method=gateway_payment.get("method") or "upi")
        logger.info(f"[Payment] Completed via payment link {link_id}")


async def _handle_payment_captured(db: AsyncSession, event: dict) -> bool:
    entity = event.get("payload", {}).get("payment", {}).get("entity", {})
    order_id = entity.get("order_id")
    notes = entity.get("notes") or {}
    link_id = notes.get("payment_link_id") or notes.get("paymentLinkId")

    result = await db.execute(select(Payment).where(Payment.razorpay_order_id == order_id))
    payment = result.scalar_one_or_none()
    if not payment and link_id:
        result = await db.execute(select(Payment).where(Payment.payment_link_id == link_id))
        payment = result.scalar_one_or_none()
    if not payment:
        logger.error(f"[Payment] Webhook: no payment record for order {order_id}")
        return False
    if payment.status == PaymentStatus.COMPLETED:
        return True

    gateway_payment = await razorpay_service.fetch_payment(entity.get("id"))
    if gateway_payment.get("status") in SUCCESSFUL_PAYMENT_STATES:
        await _complete_payment(db, payment, entity.get("id"), method=gateway_payment.get("method"))
        logger.info(f"[Payment] Completed via webhook for order {order_id}")
    else:
        payment.status = PaymentStatus.FAILED
        logger.warning(f"[Payment] Webhook payment not captured: {gateway_payment.get('status')}")
    return True


@router.post("/webhook")
async def razorpay_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Razorpay webhook receiver.

    The signature is checked against the raw body when a webhook secret is
    configured. Unknown events are acknowledged so Razorpay stops retrying.
    """
    if not razorpay_service.is_configured:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            content={"error": "Payment service not configured"})

    body = await request.body()
    signature = request.headers.get("x-razorpay-signature")

    if settings.RAZORPAY_WEBHOOK_SECRET:
        if not verify_webhook_signature(body, signature):
            logger.warning("[Payment] Webhook rejected: invalid signature")
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid signature"})
    else:
        logger.warning("[Payment] RAZORPAY_WEBHOOK_SECRET not set, webhook signature not checked")

    try:
        event = json.loads(body or b"{}")
    except ValueError:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid payload"})

    event_name = event.get("event")
    logger.info(f"[Payment] Webhook event: {event_name}")

    try:
        if event_name == "payment_link.paid":
            await _handle_payment_link_paid(db, event)
        elif event_name == "payment.captured":
            if not await _handle_payment_captured(db, event):
                return JSONResponse(status_code=status.HTTP_404_NOT_FOUND,
                                    content={"error": "Payment record not found"})
    except GATEWAY_ERRORS as e:
        logger.log_integration_event("razorpay", "webhook_fetch_payment", False, error=str(e))
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            content={"error": "Failed to verify payment"})

    await db.commit()
    return {"received": True}


@router.post("/generate-download-link")
async def generate_download_link(
    data: MaterialPaymentRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not data.material_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Material ID is required")

    payment = await _find_payment(db, current_user.id, data.material_id, PaymentStatus.COMPLETED)
    if not payment:
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={
            "error": "You must purchase this material before downloading",
            "requiresPayment": True,
        })

    result = await db.execute(
        select(DownloadToken)
        .where(
            DownloadToken.user_id == str(current_user.id),
            DownloadToken.material_id == data.material_id,
            DownloadToken.is_used.is_(False),
            DownloadToken.expires_at > datetime.utcnow(),
        )
        .order_by(DownloadToken.created_at.desc())
        .limit(1)
    )
    token = result.scalar_one_or_none()
    if not token:
        token = await _issue_download_token(db, payment)
        await db.commit()

    return {
        "downloadUrl": f"{settings.public_base_url}/api/materials/secure-download/{token.token}",
        "expiresAt": token.expires_at.isoformat(),
        "token": token.token,
    }


@router.post("/refund")
async def refund_payment(
    data: RefundRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    if not data.payment_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment ID is required")

    result = await db.execute(select(Payment).where(Payment.id == data.payment_id))
    payment = result.scalar_one_or_none()
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment record not found")
    if payment.status != PaymentStatus.COMPLETED or not payment.razorpay_payment_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only completed payments can be refunded")

    amount_paise = int(round(data.amount * 100)) if data.amount else None
    try:
        refund = await razorpay_service.refund(
            payment.razorpay_payment_id,
            amount_paise,
            {"reason": data.reason or "Refund requested by admin", "refundedBy": str(current_user.id)},
        )
    except GATEWAY_ERRORS as e:
        logger.log_integration_event("razorpay", "refund", False, error=str(e))
        raise PaymentError("Failed to process refund", code="REFUND_FAILED", details=str(e))

    payment.status = PaymentStatus.REFUNDED
    payment.extra_metadata = {
        **(payment.extra_metadata or {}),
        "refundId": refund.get("id"),
        "refundAmount": refund.get("amount", amount_paise or payment.amount),
        "refundedAt": datetime.utcnow().isoformat(),
    }
    await db.commit()
    await db.refresh(payment)

    return {
        "success": True,
        "message": "Refund processed successfully",
        "refundId": refund.get("id"),
        "payment": PaymentResponse.dump(payment),
    }

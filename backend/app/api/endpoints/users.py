"""
Users API

Signup with email OTP, login by email or enrollment number, token refresh,
profile and password management, plus admin user management.
"""

import math
from datetime import datetime, timedelta

from email_validator import validate_email, EmailNotValidError
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import DigiDiplomaError
from app.core.logging_config import logger
from app.core.rate_limiter import auth_rate_limit, otp_rate_limit
from app.core.security import (
    verify_password,
    get_password_hash,
    create_user_token,
    create_password_reset_token,
    decode_token,
    generate_otp,
    PASSWORD_RESET_TOKEN_TYPE,
)
from app.models.activity_log import LogAction
from app.models.user import User, UserType, EmailOtp
from app.modules.auth.dependencies import get_current_user, get_current_user_allow_expired, require_admin
from app.schemas.user import (
    SendOtpRequest,
    VerifyOtpRequest,
    UserRegister,
    UserLogin,
    ProfileUpdate,
    AvatarUpdate,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    ChangePasswordRequest,
    AdminChangePasswordRequest,
    UserSummary,
    UserResponse,
)
from app.services.activity_service import log_activity
from app.services.email_service import email_service
from app.services.notification_service import notification_manager, EventType

router = APIRouter()

# base64 length of a ~2MB image
MAX_AVATAR_LENGTH = 3 * 1024 * 1024


async def _get_otp(db: AsyncSession, email: str) -> EmailOtp:
    result = await db.execute(select(EmailOtp).where(EmailOtp.email == email))
    return result.scalar_one_or_none()


async def _get_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == str(user_id)))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def _find_by_login(db: AsyncSession, raw_value: str):
    """Email first when the value looks like one, enrollment number first otherwise"""
    value = raw_value.strip()
    lowered = value.lower()
    by_email = select(User).where(User.email == lowered)
    by_student_id = select(User).where(User.student_id == value)
    order = (by_email, by_student_id) if "@" in lowered else (by_student_id, by_email)

    for query in order:
        user = (await db.execute(query)).scalar_one_or_none()
        if user:
            return user
    return None


# ==================== Email OTP ====================

@router.post("/send-email-otp")
@otp_rate_limit()
async def send_email_otp(
    request: Request,
    body: SendOtpRequest,
    db: AsyncSession = Depends(get_db)
):
    if not body.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")
    try:
        validate_email(body.email, check_deliverability=False)
    except EmailNotValidError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email format")

    email = body.email.strip().lower()
    now = datetime.utcnow()
    record = await _get_otp(db, email)

    cooldown = settings.OTP_RESEND_COOLDOWN_SECONDS
    if record and (now - record.last_sent_at).total_seconds() < cooldown:
        remaining = math.ceil(cooldown - (now - record.last_sent_at).total_seconds())
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "error": f"Please wait {remaining} second{'s' if remaining > 1 else ''} before requesting a new OTP.",
                "retryAfter": remaining,
                "cooldown": True,
            },
        )

    otp = generate_otp()
    expires_at = now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
    if record:
        record.otp = otp
        record.expires_at = expires_at
        record.verified = False
        record.last_sent_at = now
    else:
        db.add(EmailOtp(email=email, otp=otp, expires_at=expires_at, last_sent_at=now))
    await db.commit()

    sent = await email_service.send_otp_email(email, otp)
    if sent:
        return {
            "message": "OTP sent successfully to your email",
            "note": "Please check your email inbox for the verification code",
        }

    logger.warning(f"[Auth] OTP for {email} stored but email delivery failed")
    response = {
        "message": "OTP generated successfully",
        "note": "Email delivery is not available. Configure SENDGRID_API_KEY or SMTP_USER/SMTP_PASS.",
    }
    if settings.ENVIRONMENT == "development":
        response["otp"] = otp
    return response


@router.post("/verify-email-otp")
@otp_rate_limit()
async def verify_email_otp(
    request: Request,
    body: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db)
):
    if not body.email or not body.otp:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email and OTP are required")

    record = await _get_otp(db, body.email.strip().lower())
    if not record:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="OTP not found or expired. Please request a new one."
        )

    if datetime.utcnow() > record.expires_at:
        await db.delete(record)
        await db.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="OTP expired. Please request a new one.")

    if record.otp != body.otp.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP")

    record.verified = True
    await db.commit()
    return {"message": "Email verified successfully", "verified": True}


# ==================== Register / Login ====================

@router.post("/register", status_code=status.HTTP_201_CREATED)
@auth_rate_limit()
async def register(
    request: Request,
    body: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    email = body.email.strip().lower()

    record = await _get_otp(db, email)
    if not record or not record.verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email not verified. Please verify your email with OTP first."
        )

    student_id = body.student_id.strip() if body.student_id else None
    conditions = [User.email == email]
    if student_id:
        conditions.append(User.student_id == student_id)
    existing = await db.execute(select(User.id).where(or_(*conditions)))
    if existing.first():
        logger.log_auth_event("register", False, user_email=email, reason="duplicate")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email, enrollment number, or phone number already exists."
        )

    user = User(
        name=body.name.strip(),
        email=email,
        password=get_password_hash(body.password),
        college=body.college,
        student_id=student_id,
        branch=body.branch,
        semester=body.semester,
        user_type=UserType.STUDENT,
        phone=body.phone or "",
    )
    db.add(user)
    await db.delete(record)
    await db.flush()

    await log_activity(db, LogAction.USER_REGISTERED, user, {"branch": user.branch}, request)
    await db.commit()

    logger.log_auth_event("register", True, user_email=email, user_id=str(user.id))
    summary = UserSummary.dump(user)
    await notification_manager.broadcast_to_admins(EventType.USER_CREATED, summary)

    return {
        "message": "User registered successfully",
        "token": create_user_token(user),
        "user": summary,
    }


@router.post("/login")
@auth_rate_limit()
async def login(
    request: Request,
    body: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    if not body.email_or_student_id or not body.password:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Email/Student ID and password are required",
                "received": {
                    "emailOrStudentId": bool(body.email_or_student_id),
                    "password": bool(body.password),
                },
            },
        )

    user = await _find_by_login(db, body.email_or_student_id)
    if not user or not verify_password(body.password, user.password):
        logger.log_auth_event("login", False, user_email=body.email_or_student_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials.")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

    user.last_login = datetime.utcnow()
    action = LogAction.ADMIN_LOGIN if user.is_admin else LogAction.USER_LOGIN
    await log_activity(db, action, user, request=request)
    await db.commit()

    logger.log_auth_event("login", True, user_email=user.email, user_id=str(user.id))
    return {
        "message": "Login successful",
        "token": create_user_token(user),
        "user": UserSummary.dump(user),
    }


@router.post("/refresh")
async def refresh_token(current_user: User = Depends(get_current_user_allow_expired)):
    return {"token": create_user_token(current_user)}


# ==================== Profile ====================

@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    return UserResponse.dump(current_user)


@router.put("/profile")
async def update_profile(
    body: ProfileUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Email and enrollment number cannot be changed here"""
    updates = {}
    if body.name and body.name.strip():
        updates["name"] = body.name.strip()
    for field in ("phone", "address", "bio"):
        value = getattr(body, field)
        if value is not None:
            updates[field] = value.strip()
    if body.avatar:
        updates["avatar"] = body.avatar
    if body.branch and body.branch.strip():
        updates["branch"] = body.branch.strip()
    if body.semester is not None:
        updates["semester"] = body.semester

    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")

    for field, value in updates.items():
        setattr(current_user, field, value)

    await log_activity(db, LogAction.PROFILE_UPDATED, current_user, {"fields": sorted(updates)}, request)
    await db.commit()
    await db.refresh(current_user)

    return {"message": "Profile updated successfully", "user": UserResponse.dump(current_user)}


@router.post("/profile/avatar")
async def update_avatar(
    body: AvatarUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not body.avatar:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Avatar data is required")
    if len(body.avatar) > MAX_AVATAR_LENGTH:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image too large. Maximum size is 2MB")

    current_user.avatar = body.avatar
    await db.commit()
    return {"message": "Avatar updated successfully", "avatar": body.avatar}


# ==================== Passwords ====================

@router.post("/forgot-password")
@auth_rate_limit()
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    if not body.email_or_student_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email or Enrollment Number is required."
        )

    user = await _find_by_login(db, body.email_or_student_id)
    if user and user.email:
        token = create_password_reset_token(str(user.id))
        sent = await email_service.send_password_reset_email(user.email, user.name, token)
        logger.log_auth_event("password_reset_requested", sent, user_email=user.email)

    # Same answer whether or not the account exists
    return {"message": "If this account exists, a password reset link will be sent to your email."}


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    if not body.token or not body.new_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token and new password are required")
    if len(body.new_password) < 6:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must be at least 6 characters long"
        )

    try:
        payload = decode_token(body.token)
    except DigiDiplomaError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")
    if payload.get("type") != PASSWORD_RESET_TOKEN_TYPE or not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    result = await db.execute(select(User).where(User.id == str(payload["sub"])))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    user.password = get_password_hash(body.new_password)
    await log_activity(db, LogAction.PASSWORD_CHANGED, user, {"via": "reset"})
    await db.commit()
    logger.log_auth_event("password_reset", True, user_email=user.email)
    return {"message": "Password has been reset successfully"}


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not verify_password(body.current_password, current_user.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Current password is incorrect")

    current_user.password = get_password_hash(body.new_password)
    await log_activity(db, LogAction.PASSWORD_CHANGED, current_user, request=request)
    await db.commit()
    return {"message": "Password changed successfully"}


@router.post("/admin/change-password")
async def admin_change_password(
    body: AdminChangePasswordRequest,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Admins may reset anyone's password; without userId they change their own"""
    target_id = body.user_id or str(current_user.id)
    target = await _get_user(db, target_id)

    target.password = get_password_hash(body.new_password)
    own = str(target.id) == str(current_user.id)
    await log_activity(db, LogAction.PASSWORD_CHANGED, current_user, {"targetUserId": str(target.id)}, request)
    await db.commit()
    logger.info(f"[Auth] Admin {current_user.email} changed password for {'themselves' if own else target.email}")

    return {
        "message": "Your password has been changed successfully" if own
        else "User password has been changed successfully",
        "userId": str(target.id),
    }


# ==================== Admin user management ====================

@router.get("/")
@router.get("/users")
async def list_users(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return UserResponse.dump_many(result.scalars().all())


@router.put("/{user_id}/toggle-status")
async def toggle_user_status(
    user_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_user(db, user_id)
    user.is_active = not user.is_active
    await log_activity(
        db, LogAction.USER_STATUS_CHANGED, current_user,
        {"targetUserId": str(user.id), "isActive": user.is_active}, request
    )
    await db.commit()

    payload = UserResponse.dump(user)
    await notification_manager.notify_user_change(EventType.USER_UPDATED, str(user.id), {"isActive": user.is_active})
    return {
        "message": f"User {'activated' if user.is_active else 'deactivated'} successfully",
        "user": payload,
    }


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_user(db, user_id)
    await log_activity(db, LogAction.USER_DELETED, current_user, {"targetUserId": str(user.id), "email": user.email}, request)
    await db.delete(user)
    await db.commit()

    await notification_manager.notify_user_change(EventType.USER_DELETED, user_id)
    return {"message": "User deleted successfully"}

"""Authentication & signup: OTP gate, resumable registration wizard, completion, login."""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from sqlalchemy.sql import func
from sqlalchemy.exc import IntegrityError

from wellbank.database import get_db
from wellbank.dependencies import get_current_user, get_registration_coordinator
from wellbank.models.user import User
from wellbank.schemas.auth import (
    SaveStepRequest,
    RegistrationStateRequest,
    ResumeRegistrationRequest,
    ClearRegistrationRequest,
    RegistrationStateData,
    OtpSendRequest,
    OtpVerifyRequest,
    CompleteRegistrationRequest,
    LoginRequest,
    RefreshTokenRequest,
    UserResponse,
)
from wellbank.services import otp
from wellbank.services.audit_log import (
    create_log,
    request_context,
    CATEGORY_REGISTRATION,
    CATEGORY_OTP,
    CATEGORY_FAILED_ATTEMPT,
)
from wellbank.services.auth import (
    get_password_hash,
    verify_password,
    issue_tokens,
    decode_token_with_error,
    REFRESH,
)
from wellbank.services.clock import as_utc
from wellbank.services.notifications import send_welcome_email
from wellbank.services.registration import RegistrationCoordinator, RegistrationFinalizedError

router = APIRouter(prefix="/auth", tags=["auth"])

NO_STATE_MESSAGE = "No registration state found or token expired"
NO_RESUME_MESSAGE = "No registration to resume"

_OTP_REJECT_MESSAGES = {
    otp.NOT_FOUND: "Verification code not found. Please request a new code.",
    otp.EXPIRED: "Verification code has expired. Please request a new code.",
    otp.ALREADY_VERIFIED: "This code has already been used.",
    otp.TOO_MANY_ATTEMPTS: "Too many attempts. Please request a new code.",
    otp.INVALID_CODE: "Invalid verification code.",
}


def _user_to_response(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


def _checkpoint_to_response(checkpoint) -> dict:
    return RegistrationStateData.model_validate(checkpoint.as_dict()).model_dump()


# --- OTP gate ---


@router.post("/otp/send")
def send_otp(request: Request, data: OtpSendRequest, db: Session = Depends(get_db)):
    try:
        challenge = otp.send_code(db, data.type, data.destination)
    except otp.OtpDeliveryError:
        raise HTTPException(
            status_code=503,
            detail=f"We could not send the verification code by {data.type}. Please try again later.",
        )
    create_log(
        db,
        CATEGORY_OTP,
        "OTP sent",
        f"Verification code issued by {data.type}.",
        actor_email=data.destination if data.type == "email" else None,
        meta={"otp_id": challenge.id, "channel": data.type},
        **request_context(request),
    )
    db.commit()
    return {
        "status": "success",
        "message": "OTP sent",
        "data": {"otpId": challenge.id, "expiresAt": as_utc(challenge.expires_at).isoformat()},
    }


@router.post("/otp/verify")
def verify_otp(request: Request, data: OtpVerifyRequest, db: Session = Depends(get_db)):
    try:
        challenge = otp.verify_code(db, data.otp_id, data.code)
    except otp.OtpRejected as e:
        create_log(
            db,
            CATEGORY_FAILED_ATTEMPT,
            "OTP verification failed",
            f"OTP verification failed for challenge {data.otp_id}: {e.reason}.",
            meta={"otp_id": data.otp_id, "reason": e.reason},
            **request_context(request),
        )
        db.commit()
        raise HTTPException(status_code=400, detail=_OTP_REJECT_MESSAGES.get(e.reason, "Invalid verification code."))
    return {
        "status": "success",
        "message": "OTP verified",
        "data": {"verificationToken": challenge.verification_token},
    }


# --- Registration checkpoint ---


@router.post("/register/save-step")
def save_registration_step(
    request: Request,
    data: SaveStepRequest,
    db: Session = Depends(get_db),
    coordinator: RegistrationCoordinator = Depends(get_registration_coordinator),
):
    try:
        checkpoint = coordinator.save_step(data.email, data.step, data.data)
    except RegistrationFinalizedError:
        raise HTTPException(status_code=409, detail="Registration for this email is already complete. Please log in.")
    create_log(
        db,
        CATEGORY_REGISTRATION,
        "Registration step saved",
        f"Signup progress saved at step {checkpoint.step}.",
        actor_email=data.email,
        meta={"step": checkpoint.step},
        **request_context(request),
    )
    db.commit()
    return {"status": "success", "data": _checkpoint_to_response(checkpoint)}


@router.post("/register/state")
def get_registration_state(
    data: RegistrationStateRequest,
    coordinator: RegistrationCoordinator = Depends(get_registration_coordinator),
):
    checkpoint = coordinator.get_state(data.email, data.token)
    if checkpoint is None:
        return {"status": "error", "message": NO_STATE_MESSAGE}
    return {"status": "success", "data": _checkpoint_to_response(checkpoint)}


@router.post("/register/resume")
def resume_registration(
    data: ResumeRegistrationRequest,
    coordinator: RegistrationCoordinator = Depends(get_registration_coordinator),
):
    checkpoint = coordinator.resume_by_email(data.email)
    if checkpoint is None:
        return {"status": "error", "message": NO_RESUME_MESSAGE}
    return {"status": "success", "data": _checkpoint_to_response(checkpoint)}


@router.post("/register/clear")
def clear_registration_state(
    data: ClearRegistrationRequest,
    coordinator: RegistrationCoordinator = Depends(get_registration_coordinator),
):
    coordinator.clear_state(data.email)
    return {"status": "success", "message": "Registration state cleared"}


# --- Completion / login ---


def _owns_placeholder(
    existing: User,
    data: CompleteRegistrationRequest,
    challenge,
    coordinator: RegistrationCoordinator,
) -> bool:
    """A placeholder row is finished only by someone who proved the email, or who holds the
    verification token saved with its live checkpoint. A phone code alone says nothing about the email."""
    if challenge.channel == "email" and challenge.destination == existing.email:
        return True
    saved = (existing.registration_data or {}).get("verificationToken")
    return bool(saved) and saved == data.verification_token and coordinator.is_live(existing)


@router.post("/register/complete", status_code=201)
def complete_registration(
    request: Request,
    data: CompleteRegistrationRequest,
    db: Session = Depends(get_db),
    coordinator: RegistrationCoordinator = Depends(get_registration_coordinator),
):
    existing = db.query(User).filter(User.email == data.email).first()
    if existing is not None and existing.is_finalized:
        raise HTTPException(status_code=409, detail="User with this email already exists")

    try:
        challenge = otp.consume_verification_token(
            db, data.verification_token, email=data.email, phone_number=data.phone_number
        )
    except otp.OtpRejected as e:
        db.rollback()
        if e.reason == otp.DESTINATION_MISMATCH:
            raise HTTPException(status_code=400, detail="The verified email or phone number does not match this registration.")
        raise HTTPException(status_code=400, detail="Invalid or expired verification token. Please verify again.")

    if existing is not None and not _owns_placeholder(existing, data, challenge, coordinator):
        db.rollback()
        raise HTTPException(
            status_code=400,
            detail="A registration for this email is already in progress. Verify the email address to finish it.",
        )

    user = existing or User(email=data.email, registration_step=0)
    user.hashed_password = get_password_hash(data.password)
    user.first_name = data.first_name.strip()
    user.last_name = data.last_name.strip()
    user.phone_number = data.phone_number
    user.roles = [data.role.value]
    user.active_role = data.role
    user.is_email_verified = challenge.channel == "email"
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="User with this email already exists")
    db.refresh(user)

    # Finalized accounts must never be resumable
    coordinator.clear_state(user.email)

    create_log(
        db,
        CATEGORY_REGISTRATION,
        "Registration completed",
        f"Account created for {user.email} as {data.role.value}.",
        actor_user_id=user.id,
        actor_email=user.email,
        meta={"role": data.role, "verified_by": challenge.channel},
        **request_context(request),
    )
    db.commit()
    send_welcome_email(user.email, user.first_name)

    return {
        "status": "success",
        "message": "Registration complete",
        "data": {
            "userId": user.id,
            "roles": user.roles,
            "activeRole": user.active_role.value,
            "needsOnboarding": True,
            **issue_tokens(user),
        },
    }


@router.post("/login")
def login(request: Request, data: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email).first()
    if not user or not user.is_active or not verify_password(data.password, user.hashed_password):
        create_log(
            db,
            CATEGORY_FAILED_ATTEMPT,
            "Login failed",
            f"Failed login attempt for email: {data.email}.",
            actor_email=data.email,
            meta={"reason": "invalid_email_or_password"},
            **request_context(request),
        )
        db.commit()
        raise HTTPException(status_code=401, detail="Invalid credentials")
    user.last_login_at = func.now()
    db.commit()
    db.refresh(user)
    return {
        "status": "success",
        "message": "Login successful",
        "data": {**issue_tokens(user), "user": _user_to_response(user)},
    }


@router.post("/refresh")
def refresh(data: RefreshTokenRequest, db: Session = Depends(get_db)):
    payload, _ = decode_token_with_error(data.refresh_token, kind=REFRESH)
    user = None
    if payload:
        try:
            user = db.query(User).filter(User.id == int(payload.get("sub"))).first()
        except (TypeError, ValueError):
            user = None
    if not user or not user.is_finalized or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    return {"status": "success", "message": "Token refreshed", "data": issue_tokens(user)}


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {"status": "success", "data": _user_to_response(current_user)}

import logging

from flask import Blueprint, current_app, g, request

from dropiq.auth.decorators import AUTH_COOKIE, require_auth
from dropiq.auth.rate_limit import SIGN_IN_LIMIT, TWO_FACTOR_LIMIT, limiter
from dropiq.auth.tokens import TWO_FACTOR_PENDING, verify_token
from dropiq.auth.wallet import is_valid_address, normalize_address
from dropiq.db.session import get_session
from dropiq.errors import BadRequest, NotFound, Unauthorized
from dropiq.models import User
from dropiq.payloads import (
    ChangePasswordRequest,
    LinkEmailRequest,
    LoginRequest,
    PasswordRequest,
    RegisterRequest,
    TwoFactorCodeRequest,
    TwoFactorVerifyRequest,
    UnlinkWalletRequest,
    WalletSignatureRequest,
)
from dropiq.routes.common import ok, parse_body
from dropiq.serializers import user_to_dict
from dropiq.services.registry import get_services

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

SIGN_IN_METHODS = ("wallet", "email")


def _me(session) -> User:
    user = session.get(User, g.current_user.id)
    if user is None:
        raise Unauthorized("User not found")
    return user


def _with_cookie(response, result):
    """Mirror the issued access token into an HTTP-only cookie for browser clients."""
    token = result.get("token") if isinstance(result, dict) else None
    if token:
        resp, status = response
        resp.set_cookie(
            AUTH_COOKIE,
            token,
            httponly=True,
            secure=current_app.config["FLASK_ENV"] == "production",
            samesite="Strict",
            max_age=current_app.config["JWT_EXPIRES_DAYS"] * 24 * 60 * 60,
        )
        return resp, status
    return response


@auth_bp.route("/auth/register", methods=["POST"])
def register():
    payload = parse_body(RegisterRequest)
    session = get_session()
    try:
        result = get_services().auth.register_with_email(session, payload.email, payload.password, payload.name)
        return _with_cookie(ok(result, 201), result)
    finally:
        session.close()


@auth_bp.route("/auth/login", methods=["POST"])
@limiter.limit(SIGN_IN_LIMIT)
def login():
    payload = parse_body(LoginRequest)
    session = get_session()
    try:
        result = get_services().auth.authenticate_with_email(session, payload.email, payload.password)
        return _with_cookie(ok(result), result)
    finally:
        session.close()


@auth_bp.route("/auth/connect-wallet", methods=["GET"])
def wallet_nonce():
    address = request.args.get("address", "")
    if not is_valid_address(address):
        raise BadRequest("Invalid Ethereum address")
    session = get_session()
    try:
        return ok(get_services().auth.issue_nonce(session, normalize_address(address)))
    finally:
        session.close()


@auth_bp.route("/auth/connect-wallet", methods=["POST"])
@limiter.limit(SIGN_IN_LIMIT)
def connect_wallet():
    payload = parse_body(WalletSignatureRequest)
    session = get_session()
    try:
        result = get_services().auth.authenticate_with_wallet(session, payload.address, payload.signature, payload.message)
        return _with_cookie(ok(result), result)
    finally:
        session.close()


@auth_bp.route("/auth/hybrid-signin", methods=["POST"])
@limiter.limit(SIGN_IN_LIMIT)
def hybrid_signin():
    body = request.get_json(silent=True) or {}
    method = body.get("method")
    if method not in SIGN_IN_METHODS:
        raise BadRequest("Authentication method is required (wallet or email)")
    credentials = {k: v for k, v in body.items() if k != "method"}
    auth = get_services().auth
    session = get_session()
    try:
        if method == "wallet":
            payload = WalletSignatureRequest.model_validate(credentials)
            result = auth.authenticate_with_wallet(session, payload.address, payload.signature, payload.message)
        else:
            payload = LoginRequest.model_validate(credentials)
            result = auth.authenticate_with_email(session, payload.email, payload.password)
        return _with_cookie(ok(result), result)
    finally:
        session.close()


@auth_bp.route("/auth/link-wallet-to-account", methods=["POST"])
@require_auth
def link_wallet():
    payload = parse_body(WalletSignatureRequest)
    session = get_session()
    try:
        result = get_services().auth.link_wallet_to_account(
            session, _me(session), payload.address, payload.signature, payload.message
        )
        return ok(result)
    finally:
        session.close()


@auth_bp.route("/auth/link-email", methods=["POST"])
@require_auth
def link_email():
    payload = parse_body(LinkEmailRequest)
    session = get_session()
    try:
        return ok(get_services().auth.link_email_to_account(session, _me(session), payload.email, payload.password))
    finally:
        session.close()


@auth_bp.route("/auth/change-password", methods=["POST"])
@require_auth
def change_password():
    payload = parse_body(ChangePasswordRequest)
    session = get_session()
    try:
        get_services().auth.change_password(session, _me(session), payload.current_password, payload.new_password)
        return ok({"message": "Password changed successfully"})
    finally:
        session.close()


@auth_bp.route("/auth/unlink-wallet", methods=["POST"])
@require_auth
def unlink_wallet():
    payload = parse_body(UnlinkWalletRequest)
    session = get_session()
    try:
        get_services().auth.unlink_wallet(session, _me(session), payload.address)
        return ok({"message": "Wallet unlinked successfully"})
    finally:
        session.close()


@auth_bp.route("/auth/me", methods=["GET"])
@require_auth
def me():
    session = get_session()
    try:
        return ok(user_to_dict(_me(session), include_private=True))
    finally:
        session.close()


@auth_bp.route("/auth/logout", methods=["POST"])
def logout():
    resp, status = ok({"message": "Logged out"})
    resp.delete_cookie(AUTH_COOKIE)
    return resp, status


# Two-factor


@auth_bp.route("/auth/2fa/setup", methods=["POST"])
@require_auth
def two_factor_setup():
    session = get_session()
    try:
        return ok(get_services().two_factor.setup(session, _me(session)))
    finally:
        session.close()


@auth_bp.route("/auth/2fa/enable", methods=["POST"])
@require_auth
def two_factor_enable():
    payload = parse_body(TwoFactorCodeRequest)
    session = get_session()
    try:
        return ok(get_services().two_factor.enable(session, _me(session), payload.code))
    finally:
        session.close()


@auth_bp.route("/auth/2fa/verify", methods=["POST"])
@limiter.limit(TWO_FACTOR_LIMIT)
def two_factor_verify():
    payload = parse_body(TwoFactorVerifyRequest)
    try:
        claims = verify_token(payload.temp_token, expected_type=TWO_FACTOR_PENDING)
    except Unauthorized:
        raise Unauthorized("Invalid or expired temporary token")
    services = get_services()
    session = get_session()
    try:
        user = session.get(User, claims.get("userId"))
        if user is None:
            raise NotFound("User not found")
        verification = services.two_factor.verify_login(session, user, payload.code, payload.backup_code)
        result = services.auth.complete_two_factor(session, user, claims)
        result.update(verification)
        return _with_cookie(ok(result), result)
    finally:
        session.close()


@auth_bp.route("/auth/2fa/disable", methods=["POST"])
@require_auth
def two_factor_disable():
    payload = parse_body(PasswordRequest)
    session = get_session()
    try:
        get_services().two_factor.disable(session, _me(session), payload.password)
        return ok({"enabled": False})
    finally:
        session.close()


@auth_bp.route("/auth/2fa/backup-codes", methods=["POST"])
@require_auth
def two_factor_backup_codes():
    session = get_session()
    try:
        return ok({"backupCodes": get_services().two_factor.regenerate_backup_codes(session, _me(session))})
    finally:
        session.close()

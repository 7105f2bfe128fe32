"""Identity and session provider.

Accounts hold credentials and the display name; sessions are documents so a
logout invalidates the token even before it expires.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from jose import JWTError, jwt
from pydantic import ValidationError as SchemaError
from werkzeug.security import check_password_hash, generate_password_hash

from config import JWT_ALG, JWT_SECRET, TOKEN_EXPIRE_MIN
from database import (create_document, delete_document, find_document,
                      get_document, to_object_id, update_document)
from errors import AuthError, RemoteError, ValidationError
from schemas import Account

logger = logging.getLogger(__name__)


def create_jwt(payload: Dict[str, Any]) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=TOKEN_EXPIRE_MIN)
    to_encode = {"exp": exp, "iat": now, **payload}
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)


def decode_jwt(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError as e:
        logger.info(f"Rejected session token: {e}")
        return None


def public_identity(account: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": account["id"],
        "email": account.get("email"),
        "name": account.get("name"),
        "created_at": account.get("created_at"),
    }


def create_identity(email: str, password: str, name: str) -> Dict[str, Any]:
    try:
        model = Account(email=email, name=name, password_hash=generate_password_hash(password))
    except SchemaError:
        raise ValidationError("Please enter a valid email address")
    try:
        account = create_document("accounts", model.model_dump())
    except RemoteError as e:
        if e.code == RemoteError.DUPLICATE_KEY:
            raise AuthError("This email is already registered", code=AuthError.ALREADY_REGISTERED) from e
        raise
    logger.info(f"Created identity {account['id']} for {email}")
    return public_identity(account)


def create_session(email: str, password: str) -> Tuple[Dict[str, Any], str]:
    account = find_document("accounts", {"email": email})
    if not account or not check_password_hash(account["password_hash"], password):
        raise AuthError("Invalid email or password", code=AuthError.INVALID_CREDENTIALS)

    expires_at = datetime.now(timezone.utc) + timedelta(minutes=TOKEN_EXPIRE_MIN)
    session = create_document("sessions", {"user_id": account["id"], "expires_at": expires_at})
    token = create_jwt({"sub": account["id"], "sid": session["id"]})
    logger.info(f"Opened session {session['id']} for identity {account['id']}")
    return session, token


def get_session(token: Optional[str]) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    claims = decode_jwt(token)
    if not claims or not claims.get("sid"):
        return None
    try:
        to_object_id(claims["sid"])
    except ValidationError:
        return None
    session = get_document("sessions", claims["sid"])
    if not session or session.get("user_id") != claims.get("sub"):
        return None
    return session


def get_account(identity_id: str) -> Optional[Dict[str, Any]]:
    account = get_document("accounts", identity_id)
    return public_identity(account) if account else None


def get_identity(token: Optional[str]) -> Optional[Dict[str, Any]]:
    session = get_session(token)
    if session is None:
        return None
    identity = get_account(session["user_id"])
    if identity is not None:
        identity["session_id"] = session["id"]
    return identity


def rename_identity(identity_id: str, name: str) -> Dict[str, Any]:
    account = update_document("accounts", identity_id, {"name": name})
    return public_identity(account)


def delete_session(token: Optional[str]) -> bool:
    session = get_session(token)
    if session is None:
        return False
    deleted = delete_document("sessions", session["id"])
    logger.info(f"Closed session {session['id']}")
    return deleted

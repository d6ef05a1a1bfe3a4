import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .application.ports.identity import Actor
from .config import Settings
from .db.models import Position, Role

logger = logging.getLogger(__name__)

oauth2_scheme = HTTPBearer(auto_error=False)


def create_jwt_token(settings: Settings, account_id: int, role: str, positions: Iterable[str] = (), patient_id: Optional[int] = None) -> str:
    """Create JWT access token carrying the actor's role and positions"""
    if not settings.SECRET_KEY or settings.SECRET_KEY == "change-me-in-prod":
        raise ValueError("SECRET_KEY not properly configured")
    payload = {
        "sub": str(account_id),
        "role": role,
        "positions": list(positions),
        "patient_id": patient_id,
        "exp": datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "type": "access",
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_jwt_token(settings: Settings, token: str) -> Optional[dict]:
    """Decode and verify JWT token"""
    if not settings.SECRET_KEY or settings.SECRET_KEY == "change-me-in-prod":
        return None
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def actor_from_claims(payload: dict) -> Actor:
    try:
        account_id = int(payload["sub"])
        role = Role(payload.get("role"))
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token: missing or malformed identity claims")
    positions = set()
    for name in payload.get("positions") or []:
        try:
            positions.add(Position(name))
        except ValueError:
            logger.warning(f"Ignoring unknown position claim '{name}' for account {account_id}")
    patient_id = payload.get("patient_id")
    return Actor(
        account_id=account_id,
        role=role,
        positions=frozenset(positions),
        patient_id=int(patient_id) if patient_id is not None else None,
    )


def get_current_actor(request: Request, credentials: HTTPAuthorizationCredentials = Depends(oauth2_scheme)) -> Actor:
    token = credentials.credentials if credentials and credentials.credentials else request.cookies.get("access_token")
    if not token:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    payload = decode_jwt_token(request.app.state.settings, token)
    if not payload:
        logger.warning("JWT token decode failed - invalid or expired token")
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return actor_from_claims(payload)

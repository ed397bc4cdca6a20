"""
Auth module: JWT creation/validation and the principal FastAPI dependencies.

Tokens are issued by the account service; this module only validates them.
``create_token`` exists for operational tooling and tests. Unlike the QR
emergency path, every patient endpoint requires a valid bearer token.
"""

import time
from dataclasses import dataclass
from typing import Optional
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, Request
from lifeline.config import get_settings

ALGORITHM = "HS256"
TOKEN_EXPIRE_SECONDS = 86400  # 24 hours


@dataclass
class PatientPrincipal:
    """Resolved identity attached to each request."""
    patient_id: str
    role: str = "patient"         # "patient" | "admin"
    display_name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def actor_name(self) -> str:
        return self.display_name or self.patient_id


def create_token(patient_id: str, role: str = "patient", display_name: Optional[str] = None) -> str:
    """Create a signed JWT for the given patient (or admin) id."""
    settings = get_settings()
    payload = {
        "sub": patient_id,
        "role": role,
        "display_name": display_name,
        "exp": int(time.time()) + TOKEN_EXPIRE_SECONDS,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[PatientPrincipal]:
    """Decode and validate a JWT. Returns None if invalid/expired."""
    try:
        settings = get_settings()
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
        return PatientPrincipal(
            patient_id=payload["sub"],
            role=payload.get("role", "patient"),
            display_name=payload.get("display_name"),
        )
    except (JWTError, KeyError):
        return None


async def get_current_patient(request: Request) -> PatientPrincipal:
    """FastAPI dependency. Extracts the JWT from the Authorization header or raises 401."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"})
    principal = decode_token(auth_header[7:])
    if not principal:
        raise HTTPException(status_code=401, detail="Invalid or expired token", headers={"WWW-Authenticate": "Bearer"})
    return principal


async def require_admin(principal: PatientPrincipal = Depends(get_current_patient)) -> PatientPrincipal:
    if not principal.is_admin:
        raise HTTPException(status_code=403, detail="Administrator role required")
    return principal

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from jose import jwt, JWTError

from worktime.core.config import settings

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REPORT_DOWNLOAD = "report_download"


def create_access_token(
    subject: str | UUID,
    tenant_id: str | UUID,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Access-Token im Format des Auth-Dienstes.
    Login/Refresh laufen extern – hier nur für Tests und interne Werkzeuge.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    expire = datetime.now(timezone.utc) + expires_delta
    payload: dict[str, Any] = {
        "sub": str(subject),
        "tenant_id": str(tenant_id),
        "role": role,
        "exp": expire,
        "type": TOKEN_TYPE_ACCESS,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_report_download_token(
    report_id: str | UUID,
    tenant_id: str | UUID,
    expires_delta: timedelta | None = None,
) -> tuple[str, datetime]:
    """Signierter, zeitlich begrenzter Download-Token für ein Report-Artefakt."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.REPORT_URL_TTL_MINUTES)

    expire = datetime.now(timezone.utc) + expires_delta
    payload: dict[str, Any] = {
        "sub": str(report_id),
        "tenant_id": str(tenant_id),
        "exp": expire,
        "type": TOKEN_TYPE_REPORT_DOWNLOAD,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM), expire


def decode_token(token: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError as e:
        raise ValueError(f"Invalid token: {e}")

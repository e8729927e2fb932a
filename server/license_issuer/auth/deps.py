import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from license_issuer.core.config import settings

admin_secret_scheme = APIKeyHeader(name="X-Admin-Secret", auto_error=False)


def require_admin_secret(secret: str | None = Depends(admin_secret_scheme)) -> None:
    expected = settings.ADMIN_SECRET
    if not expected:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="License issuance is not configured")
    if not secret or not hmac.compare_digest(secret.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin secret")

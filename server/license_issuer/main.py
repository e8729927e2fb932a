import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from license_issuer.core.config import settings
from license_issuer.core.errors import LicenseError
from license_issuer.routers import license as license_router
from license_issuer.services.issuance import get_key_loader

app = FastAPI(title="License Issuer API", version="0.1.0")

logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(license_router.router)

LICENSE_ERROR_STATUS = {
    "key_missing": status.HTTP_503_SERVICE_UNAVAILABLE,
    "key_format": status.HTTP_503_SERVICE_UNAVAILABLE,
    "key_parse": status.HTTP_503_SERVICE_UNAVAILABLE,
    "key_unsupported": status.HTTP_503_SERVICE_UNAVAILABLE,
    "machine_id_invalid": status.HTTP_400_BAD_REQUEST,
    "date_format": status.HTTP_400_BAD_REQUEST,
    "expiry_out_of_range": status.HTTP_400_BAD_REQUEST,
    "signing_failed": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "serialization_failed": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@app.exception_handler(LicenseError)
async def handle_license_error(request: Request, exc: LicenseError) -> JSONResponse:
    status_code = LICENSE_ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("license_engine_error", extra={"code": exc.code, "path": request.url.path})
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": exc.code})


@app.on_event("startup")
def warm_signing_key() -> None:
    """Load the signing key early so misconfiguration shows up in the logs at boot."""
    try:
        material = get_key_loader().load()
    except LicenseError as exc:
        logger.warning("license_key_unavailable", extra={"code": exc.code, "detail": str(exc)})
        return
    logger.info("license_key_ready", extra={"provenance": material.provenance})


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok"}

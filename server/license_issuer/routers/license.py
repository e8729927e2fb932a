from fastapi import APIRouter, Depends

from license_issuer.auth.deps import require_admin_secret
from license_issuer.core.config import settings
from license_issuer.core.expiry import ExpiryPolicy
from license_issuer.core.keys import public_key_pem
from license_issuer.schemas.license import LicenseIssueIn, LicenseIssueOut, PublicKeyOut
from license_issuer.services.issuance import KeyLoader, get_expiry_policy, get_key_loader, issue_license

router = APIRouter(prefix="/license", tags=["license"], dependencies=[Depends(require_admin_secret)])


@router.post("/issue", response_model=LicenseIssueOut)
def issue_license_token(
    payload: LicenseIssueIn,
    loader: KeyLoader = Depends(get_key_loader),
    policy: ExpiryPolicy = Depends(get_expiry_policy),
) -> LicenseIssueOut:
    issued = issue_license(
        payload.machine_id,
        payload.expiry_date,
        loader=loader,
        policy=policy,
        min_machine_id_length=settings.LICENSE_MIN_MACHINE_ID_LENGTH,
    )
    return LicenseIssueOut(
        token=issued.token,
        machine_id=issued.machine_id,
        expiry_date=issued.expiry_date,
        expires_at=issued.expires_at,
        expiry_utc=issued.expiry_utc,
    )


@router.get("/public-key", response_model=PublicKeyOut)
def read_public_key(loader: KeyLoader = Depends(get_key_loader)) -> PublicKeyOut:
    material = loader.load()
    return PublicKeyOut(public_key=public_key_pem(material.private_key).decode("ascii"))

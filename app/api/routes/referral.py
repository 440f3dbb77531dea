from fastapi import APIRouter, Depends

from app.api.deps import get_referral_service, require_client_id
from app.referral.service import ReferralAccessService, ReferralAccessStatus


router = APIRouter(prefix="/referral", tags=["referral"])


@router.get("/access", response_model=ReferralAccessStatus)
def get_referral_access(
    client_id: str = Depends(require_client_id),
    service: ReferralAccessService = Depends(get_referral_service),
) -> ReferralAccessStatus:
    return service.check_access(client_id)

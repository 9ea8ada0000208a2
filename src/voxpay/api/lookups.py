from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..logging_config import get_logger
from ..schemas import RecipientOut, VerifiedAccountOut
from ..utils import as_uuid
from .deps import Services, get_services

logger = get_logger("voxpay.api.lookups")

router = APIRouter(tags=["lookups"])


@router.get("/banks/resolve/{account_number}", response_model=VerifiedAccountOut)
async def resolve_account(
    account_number: str,
    bank_code: Optional[str] = Query(None, description="Institution code, when already known"),
    services: Services = Depends(get_services),
):
    """
    Verify an account number, detecting its bank when no code is given.
    """
    acct_num = account_number.strip()
    logger.info("Resolve account_number=%s bank_code=%s", acct_num, bank_code)
    verified = await services.resolver.resolve(acct_num, bank_code)
    return VerifiedAccountOut(
        account_name=verified.account_name,
        account_number=verified.account_number,
        bank_name=verified.bank_name,
        bank_code=verified.bank_code,
    )


@router.get("/customers/{customer_id}/recipients", response_model=List[RecipientOut])
async def search_recipients(
    customer_id: str,
    name: str = Query(..., min_length=1),
    services: Services = Depends(get_services),
):
    candidates = await services.matcher.search(as_uuid(customer_id), name)
    return [RecipientOut(**c.to_dict()) for c in candidates]

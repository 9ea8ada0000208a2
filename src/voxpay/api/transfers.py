from fastapi import APIRouter, Depends

from ..logging_config import get_logger
from ..nlu import parse_transfer_message
from ..nlu.request import ParsedRequest
from ..schemas import (
    InitiateTransferIn,
    InternalTransferIn,
    PinConfirmation,
    PinIn,
    SelectionIn,
    TransferMessageIn,
    TransferReply,
)
from .deps import Services, get_services

logger = get_logger("voxpay.api.transfers")

router = APIRouter(tags=["transfers"])


@router.post("/transfers", response_model=TransferReply)
async def initiate_transfer(payload: InitiateTransferIn, services: Services = Depends(get_services)):
    """
    Start a transfer from a structured request produced by the intent extractor.
    """
    logger.info("Initiate transfer customer=%s request=%s", payload.customer_id, payload.request.model_dump())
    return await services.orchestrator.initiate_transfer(payload.customer_id, payload.request)


@router.post("/transfers/message", response_model=TransferReply)
async def initiate_transfer_from_message(payload: TransferMessageIn, services: Services = Depends(get_services)):
    """
    Start a transfer from raw text when no structured request is available.
    """
    parsed = parse_transfer_message(payload.message)
    logger.info("Fallback parse customer=%s -> %s", payload.customer_id, parsed.model_dump())
    return await services.orchestrator.initiate_transfer(payload.customer_id, parsed)


@router.post("/transfers/{pending_id}/selection", response_model=TransferReply)
async def submit_selection(pending_id: str, payload: SelectionIn, services: Services = Depends(get_services)):
    return await services.orchestrator.submit_selection(pending_id, payload.customer_id, payload.reply)


@router.post("/transfers/{pending_id}/pin", response_model=PinConfirmation)
async def confirm_pin(pending_id: str, payload: PinIn, services: Services = Depends(get_services)):
    # never log the PIN itself
    logger.info("PIN confirmation for pending=%s customer=%s", pending_id, payload.customer_id)
    return await services.orchestrator.confirm_pin(pending_id, payload.customer_id, payload.pin)


@router.post("/internal-transfers", response_model=TransferReply)
async def initiate_internal_transfer(payload: InternalTransferIn, services: Services = Depends(get_services)):
    """
    Move money between two accounts of the same customer.
    """
    parsed = ParsedRequest(
        amount=payload.amount,
        source_account_ending=payload.source_account_ending,
        target_account_ending=payload.target_account_ending,
    )
    return await services.orchestrator.initiate_internal_transfer(payload.customer_id, parsed)

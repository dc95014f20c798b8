"""Network endpoints."""
from fastapi import APIRouter, Depends

from anoncheckin.api.deps import get_services
from anoncheckin.schemas import NetworkInfo
from anoncheckin.services import LedgerServices

router = APIRouter()


@router.get("", response_model=NetworkInfo)
def network_info_endpoint(services: LedgerServices = Depends(get_services)):
    """Target chain, contract and the account writes are sent from."""
    settings = services.settings
    return NetworkInfo(
        chain_id=settings.CHAIN_ID,
        chain_name=settings.CHAIN_NAME,
        contract_address=settings.CONTRACT_ADDRESS,
        deployer=settings.DEPLOYER_ADDRESS,
        block_explorer_url=settings.BLOCK_EXPLORER_URL,
        account=services.session.account,
        can_sign=services.submitter.can_sign,
    )


@router.post("/connect", response_model=NetworkInfo)
def connect_wallet_endpoint(services: LedgerServices = Depends(get_services)):
    """Connect the signing wallet, making its first account active."""
    services.session.connect()
    return network_info_endpoint(services)

"""Network schemas."""
from typing import Optional
from pydantic import BaseModel


class NetworkInfo(BaseModel):
    chain_id: int
    chain_name: str
    contract_address: Optional[str] = None
    deployer: Optional[str] = None
    block_explorer_url: str
    account: Optional[str] = None
    can_sign: bool

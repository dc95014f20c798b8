"""Common response schemas."""
from pydantic import BaseModel
from typing import Optional


class SuccessResponse(BaseModel):
    """Standard success response."""
    success: bool = True
    message: Optional[str] = None


class ErrorDetail(BaseModel):
    """Error detail structure."""
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response returned for every ledger error."""
    success: bool = False
    error: ErrorDetail


class TransactionResponse(SuccessResponse):
    """A confirmed ledger transaction."""
    tx_hash: str

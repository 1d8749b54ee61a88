from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal

from installment_recon.models.transaction import TransactionStatus


class ImportMapping(BaseModel):
    """Spreadsheet column name for each transaction field"""
    customer_sequence: str
    customer_name: Optional[str] = None
    sequence_number: Optional[str] = None
    cost_price: Optional[str] = None
    extra_price: Optional[str] = None
    amount: Optional[str] = None
    number_of_installments: Optional[str] = None
    start_date: Optional[str] = None
    created_at: Optional[str] = None
    notes: Optional[str] = None
    legacy_image: Optional[str] = None
    legacy_pdf: Optional[str] = None


class TransactionDraft(BaseModel):
    sequence_number: Optional[str] = None
    customer_id: str
    cost_price: Decimal
    extra_price: Decimal
    amount: Decimal
    installment_amount: Decimal
    number_of_installments: int
    start_date: date
    remaining_balance: Decimal
    status: TransactionStatus = TransactionStatus.ACTIVE
    has_legal_case: bool = False
    notes: Optional[str] = None
    created_at: datetime


class LegacyAttachments(BaseModel):
    image: Optional[str] = None
    pdf: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.image or self.pdf)


class TransactionResponse(BaseModel):
    id: str
    sequence_number: Optional[str] = None
    customer_id: str
    cost_price: Decimal
    extra_price: Decimal
    amount: Decimal
    installment_amount: Decimal
    number_of_installments: int
    start_date: date
    remaining_balance: Decimal
    status: TransactionStatus
    notes: Optional[str] = None
    created_at: datetime
    
    class Config:
        from_attributes = True


class ImportErrorItem(BaseModel):
    row: Optional[int] = None
    message: str
    error_codes: List[str] = []
    original_data: Dict[str, Any] = Field(default_factory=dict, alias="originalData")
    
    class Config:
        populate_by_name = True


class RowDefaults(BaseModel):
    row: int
    fields: Dict[str, str]


class ImportRequest(BaseModel):
    rows: List[Dict[str, Any]]
    mapping: ImportMapping


class ImportResult(BaseModel):
    imported: int
    errors: List[ImportErrorItem]
    records: List[TransactionResponse]
    defaults_applied: List[RowDefaults] = []


class RetryRequest(BaseModel):
    row: Dict[str, Any]
    mapping: ImportMapping
    row_number: Optional[int] = None


class RetryResponse(BaseModel):
    success: bool
    transaction: TransactionResponse
    defaults_applied: Dict[str, str] = {}


class ErrorExportRequest(BaseModel):
    errors: List[ImportErrorItem]

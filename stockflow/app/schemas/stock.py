from datetime import datetime

from pydantic import BaseModel

from stockflow.app.db.models.core_types import TransactionType


class TransactionDestination(BaseModel):
    id: int
    name: str
    description: str | None


class TransactionRead(BaseModel):
    id: int
    type: TransactionType
    quantity: int
    product_id: int
    entreprise_id: int
    destination_id: int | None
    created_at: datetime

    product_name: str
    unit: str
    image_url: str
    category_name: str
    destination: TransactionDestination | None = None


class LedgerBalanceRead(BaseModel):
    product_id: int
    quantity: int
    total_in: int
    total_out: int
    ledger_quantity: int
    consistent: bool

from datetime import datetime

from pydantic import BaseModel


class EntrepriseRead(BaseModel):
    id: int
    email: str
    name: str

    class Config:
        from_attributes = True


class CategoryRead(BaseModel):
    id: int
    name: str
    description: str
    entreprise_id: int

    class Config:
        from_attributes = True


class SubCategoryRead(BaseModel):
    id: int
    name: str
    description: str
    category_id: int
    entreprise_id: int

    class Config:
        from_attributes = True


class ProductRead(BaseModel):
    id: int
    name: str
    description: str
    image_url: str
    unit: str
    reference: str | None
    quantity: int  # lecture seule : écrit uniquement par le ledger
    category_id: int
    sub_category_id: int | None
    category_name: str
    sub_category_name: str | None
    created_at: datetime


class ProductPage(BaseModel):
    items: list[ProductRead]
    total_count: int
    total_pages: int
    limit: int
    offset: int


class DestinationRead(BaseModel):
    id: int
    name: str
    description: str | None
    entreprise_id: int
    transaction_count: int = 0

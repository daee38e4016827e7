"""Exceptions métier de stockflow (traduites en réponses HTTP par app.main)."""
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Iterable


class StockflowError(Exception):
    """Classe de base : porte un message lisible par l'utilisateur."""

    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "code": self.code, "detail": self.message}


class NotFound(StockflowError):
    code = "not_found"


class EntrepriseNotFound(NotFound):
    def __init__(self, email: str):
        super().__init__(f"Entreprise not found for {email}")
        self.email = email


class ProductNotFound(NotFound):
    def __init__(self, product_ids: Iterable[int]):
        self.product_ids = list(product_ids)
        ids = ", ".join(str(pid) for pid in self.product_ids)
        super().__init__(f"Product not found: {ids}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["product_ids"] = self.product_ids
        return data


class InvalidArgument(StockflowError):
    code = "invalid_argument"


@dataclass(frozen=True)
class Shortfall:
    product_id: int
    product_name: str
    requested: int
    available: int


class InsufficientStock(StockflowError):
    code = "insufficient_stock"

    def __init__(self, shortfalls: list[Shortfall]):
        self.shortfalls = shortfalls
        parts = [
            f"'{s.product_name}' (id={s.product_id}): requested={s.requested}, available={s.available}"
            for s in shortfalls
        ]
        super().__init__("Insufficient stock for " + "; ".join(parts))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["shortfalls"] = [asdict(s) for s in self.shortfalls]
        return data


class Conflict(StockflowError):
    code = "conflict"


class StorageError(StockflowError):
    code = "storage_error"


class PathNotAllowed(StockflowError):
    code = "path_not_allowed"


class ImageStoreError(StockflowError):
    code = "image_store_error"

from fastapi import APIRouter

from stockflow.app.api.v1.endpoints.health import router as health_router
from stockflow.app.api.v1.endpoints.entreprises import router as entreprises_router
from stockflow.app.api.v1.endpoints.categories import router as categories_router
from stockflow.app.api.v1.endpoints.sub_categories import router as sub_categories_router
from stockflow.app.api.v1.endpoints.products import router as products_router
from stockflow.app.api.v1.endpoints.stock_movements import router as stock_movements_router
from stockflow.app.api.v1.endpoints.stock import router as stock_router
from stockflow.app.api.v1.endpoints.transactions import router as transactions_router
from stockflow.app.api.v1.endpoints.destinations import router as destinations_router
from stockflow.app.api.v1.endpoints.uploads import router as uploads_router
from stockflow.app.api.v1.endpoints.stats import router as stats_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(entreprises_router, tags=["entreprises"])
router.include_router(categories_router, tags=["categories"])
router.include_router(sub_categories_router, tags=["sub_categories"])
router.include_router(products_router, tags=["products"])
router.include_router(stock_movements_router, tags=["stock_movements"])
router.include_router(stock_router, tags=["stock"])
router.include_router(transactions_router, tags=["transactions"])
router.include_router(destinations_router, tags=["destinations"])
router.include_router(uploads_router, tags=["uploads"])
router.include_router(stats_router, tags=["stats"])

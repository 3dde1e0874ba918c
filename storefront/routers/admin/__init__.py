from fastapi import APIRouter
from .orders_router import router as orders_router
from .promotions_router import router as promotions_router

router = APIRouter(prefix="/admin")

router.include_router(orders_router)
router.include_router(promotions_router)

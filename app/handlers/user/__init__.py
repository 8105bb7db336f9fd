from aiogram import Router

from .start import user_router as start_router

router = Router()

router.include_router(start_router)

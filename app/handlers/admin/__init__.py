from aiogram import Router

from .kol import admin_kol_router

router = Router()

router.include_router(admin_kol_router)

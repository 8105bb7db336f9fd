from aiogram import Router

from .membership import membership_router

router = Router()

router.include_router(membership_router)

from aiogram import Router

from .verification import verification_router

router = Router()
router.include_router(verification_router)

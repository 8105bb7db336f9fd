"""
Handlers module - Telegram update routing.

Root aggregation: group membership, callbacks, user commands, admin commands.
The callbacks router ends with a catch-all, so it must stay the only callback router.
"""
from aiogram import Router

from .group import router as group_router
from .callbacks import router as callbacks_router
from .user import router as user_router
from .admin import router as admin_router

router = Router()

router.include_router(group_router)
router.include_router(callbacks_router)
router.include_router(user_router)
router.include_router(admin_router)

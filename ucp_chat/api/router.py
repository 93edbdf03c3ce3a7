from fastapi import APIRouter
from ucp_chat.api.proxy import router as proxy_router
from ucp_chat.api.sessions import router as sessions_router

router = APIRouter()
router.include_router(proxy_router)
router.include_router(sessions_router)

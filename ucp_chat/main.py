import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from ucp_chat.config import settings
from ucp_chat.dependencies import get_http_client
from fastapi.middleware.cors import CORSMiddleware
from ucp_chat.api.router import router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # shutdown: close the shared HTTP client
    await get_http_client().aclose()
    get_http_client.cache_clear()

app = FastAPI(
    title="UCP Chat Client",
    description="A conversational shopping assistant that talks to Universal Commerce Protocol merchants.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}

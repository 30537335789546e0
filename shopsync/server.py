import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from shopsync.api.graphql.router import graphql_router
from shopsync.api.routers import admin_router, api_router, auth_router, webhooks
from shopsync.core.config import get_settings
from shopsync.core.exceptions import ShopSyncError

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ShopSyncError)
async def shopsync_error_handler(request: Request, exc: ShopSyncError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


# Include routers
app.include_router(auth_router.router, tags=["auth"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(admin_router.router, prefix=f"{settings.API_PREFIX}/admin", tags=["admin"])
app.include_router(api_router.router, prefix=settings.API_PREFIX, tags=["api"])
app.include_router(graphql_router, prefix="/graphql", tags=["graphql"])


@app.get("/health", tags=["Root"])
async def health():
    return {"status": "ok"}


@app.get("/", tags=["Root"])
async def read_root():
    return {"message": f"Welcome to the {settings.PROJECT_NAME}", "install": "/auth?shop=<store>.myshopify.com"}


if __name__ == "__main__":
    uvicorn.run("shopsync.server:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)

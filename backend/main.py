from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.auth import auth_backend, fastapi_users
from core.config import settings
from core.errors import StockError
from core.logging import configure_logging
from db.database import create_db_and_tables, dispose_engine
from routers.brands import router as brands_router
from routers.images import router as images_router
from routers.items import router as items_router
from routers.promoters import router as promoters_router
from routers.reports import router as reports_router
from routers.transactions import router as transactions_router
from routers.users import router as employees_router
from schemas.users import UserCreate, UserRead, UserUpdate

configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    logger.info("app.started")
    yield
    await dispose_engine()


app = FastAPI(
    title="Merch Inventory API",
    description="API for brand merchandise stock, promoters and stock transactions",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StockError)
async def stock_error_handler(request: Request, exc: StockError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


# Authentication routes (fastapi-users)
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"])
app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"])

# Image upload routes
app.include_router(images_router, prefix="/images", tags=["images"])

# Inventory routes
app.include_router(brands_router, prefix="/brands", tags=["brands"])
app.include_router(items_router, tags=["items"])
app.include_router(promoters_router, prefix="/promoters", tags=["promoters"])
app.include_router(transactions_router, prefix="/transactions", tags=["transactions"])
app.include_router(employees_router, prefix="/employees", tags=["employees"])
app.include_router(reports_router, prefix="/reports", tags=["reports"])


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)

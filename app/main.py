from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger

# --- ADMIN ROUTES ---
from app.api.v1.admin import analytics as admin_analytics
from app.api.v1.admin import book as admin_book
from app.api.v1.admin import category as admin_category
from app.api.v1.admin import tutorial as admin_tutorial
from app.api.v1.admin import upload as admin_upload
from app.api.v1.admin import user as admin_user

# --- SHARED ROUTES ---
from app.api.v1.shares import thumbnail

# --- USER ROUTES ---
from app.api.v1.user import book, category, rating, role, tutorial
from app.core.exceptions import (
    LibraryError,
    library_error_handler,
    request_validation_handler,
)
from app.core.settings import settings
from app.db.session import AsyncSessionLocal

# --- MIDDLEWARE ---
from app.middleware.request_context import RequestContextMiddleware
from app.services.admin.category import seed_default_categories
from app.services.shares.storage import get_blob_store


@asynccontextmanager
async def lifespan(app: FastAPI):

    # ================================
    # 1) UPLOADS DIRECTORY
    # ================================
    uploads = get_blob_store().ensure_uploads_dir()
    logger.info(f"📂 Uploads directory: {uploads}")

    # ================================
    # 2) DEFAULT CATEGORIES
    # ================================
    try:
        async with AsyncSessionLocal() as db:
            await seed_default_categories(db)
    except Exception as e:
        logger.error(f"⚠ Could not seed default categories: {e}")

    yield
    logger.info("🛑 Server stopped")


# ===== APP CONFIG =====
app = FastAPI(
    title="Library Hub API",
    description="Books, tutorials and thumbnails for the library catalog",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "ETag"],
)

app.add_middleware(RequestContextMiddleware)

# --- ERRORS ---
app.add_exception_handler(LibraryError, library_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)

# --- STATIC ---
app.mount(
    "/uploads",
    StaticFiles(directory=settings.UPLOADS_DIR, check_dir=False),
    name="uploads",
)

prefix = "/api"

# ===== REGISTER ROUTERS =====

# --- USER ROUTES ---
app.include_router(book.router, prefix=prefix)
app.include_router(category.router, prefix=prefix)
app.include_router(tutorial.router, prefix=prefix)
app.include_router(rating.router, prefix=prefix)
app.include_router(role.router, prefix=prefix)

# --- SHARED ---
app.include_router(thumbnail.router, prefix=prefix)

# --- ADMIN ROUTES ---
app.include_router(admin_book.router, prefix=prefix)
app.include_router(admin_category.router, prefix=prefix)
app.include_router(admin_tutorial.router, prefix=prefix)
app.include_router(admin_user.router, prefix=prefix)
app.include_router(admin_analytics.router, prefix=prefix)
app.include_router(admin_upload.router, prefix=prefix)


# ===== ROOT =====
@app.get("/")
async def hello_world():
    return {"message": "Hello world"}


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT, reload=settings.is_development, log_level="info")

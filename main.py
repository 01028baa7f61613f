import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

import api
import config
import database
import pages
import site_settings
from errors import AppError, validation_message

config.setup_logging()
logger = logging.getLogger(__name__)


def init_db(db) -> None:
    """Create indexes and the settings document. Safe to run repeatedly."""
    database.ensure_indexes(db)
    site_settings.ensure_settings(db)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        try:
            init_db(database.db)
        except PyMongoError as e:
            # the landing page still renders in demo mode
            logger.warning(f"Database initialisation failed: {str(e)[:200]}")
    yield


# App setup
app = FastAPI(title="KI-Stammtisch Köln", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error envelope

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"success": False, "error": validation_message(exc.errors())})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Ein Fehler ist aufgetreten. Bitte versuchen Sie es später erneut."},
    )


app.include_router(api.router)
app.include_router(pages.router)


@app.get("/api/health")
def health():
    response = {
        "backend": "running",
        "database": "not available",
        "database_url": "set" if config.MONGODB_URI else "not set",
        "database_name": config.DATABASE_NAME,
        "collections": [],
    }
    if database.db is not None:
        try:
            response["collections"] = database.db.list_collection_names()[:10]
            response["database"] = "connected"
        except PyMongoError as e:
            response["database"] = f"error: {str(e)[:80]}"
    return response


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "init-db":
        if database.db is None:
            raise SystemExit("MONGODB_URI is not set")
        init_db(database.db)
        print(f"Initialised database {config.DATABASE_NAME}")
    else:
        import uvicorn
        port = int(os.getenv("PORT", 8000))
        uvicorn.run(app, host="0.0.0.0", port=port)

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

import admin_chat_routes
import ai_routes
import booking_routes
import car_routes
import chat_routes
import contact_routes
import footer_routes
import oauth_routes
import seed_routes
import user_routes
from database import db, ensure_indexes
from llm import LLMError
from schemas import format_errors
from security import public_user, require_admin, require_user
from settings import CORS_ORIGINS, DATABASE_NAME, DATABASE_URL, LOG_LEVEL, PORT
from storage import StorageError

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes()
    yield


app = FastAPI(title="Car Dealership API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "PUT", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
)


# Error handling

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": {"message": "Validation failed", "errors": format_errors(exc.errors())}},
    )


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception(f"Database error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Database error"})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Image upload failed"})


@app.exception_handler(LLMError)
async def llm_error_handler(request: Request, exc: LLMError):
    logger.error(f"LLM error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "AI service request failed"})


app.include_router(user_routes.router)
app.include_router(oauth_routes.router)
app.include_router(car_routes.router)
app.include_router(seed_routes.router)
app.include_router(booking_routes.router)
app.include_router(contact_routes.router)
app.include_router(chat_routes.router)
app.include_router(admin_chat_routes.router)
app.include_router(admin_chat_routes.user_router)
app.include_router(ai_routes.router)
app.include_router(footer_routes.router)


@app.get("/")
def root():
    return {"status": "ok", "service": "car-dealership-backend"}


@app.get("/schema")
def schema_overview():
    # For platform inspector
    return {
        "collections": [
            "car", "user", "session", "booking", "message",
            "chat", "adminchat", "chatlog", "aiprediction", "footer",
        ],
    }


@app.get("/api/profile")
def profile(user=Depends(require_user)):
    return public_user(user)


@app.get("/api/admin")
def admin_panel(admin=Depends(require_admin)):
    return {"message": "Welcome to admin panel"}


# Simple health
@app.get("/test")
def test_database():
    status = {
        "backend": "running",
        "database": "not-configured",
        "database_url": "set" if DATABASE_URL else "not-set",
        "database_name": "set" if DATABASE_NAME else "not-set",
        "collections": [],
    }
    if db is None:
        return status
    try:
        status["collections"] = db.list_collection_names()[:10]
        status["database"] = "connected"
    except PyMongoError as e:
        logger.warning(f"Health check could not reach MongoDB: {e}")
        status["database"] = "error"
    return status


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from tortoise import connections
from tortoise.exceptions import BaseORMException

from helper.ai_logging import ai_err, ai_warn, clear_log_context
from helper.config import get_settings
from helper.error_handling import AppError, StorageFailure, ValidationFailure
from helper.tortoise_config import lifespan
from controller.auth_controller import router as auth_router
from controller.chat_controller import router as chat_router

APP_VERSION = "1.0.0"

app = FastAPI(title="PentaChat API", version=APP_VERSION, lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().frontend_origins),
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(chat_router, prefix="/api/chat", tags=["chat"])


@app.middleware("http")
async def reset_log_context(request: Request, call_next):
    clear_log_context()
    return await call_next(request)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        ai_err("http.error", {"path": request.url.path, "status": exc.status_code, "msg": exc.message})
    else:
        ai_warn("http.rejected", {"path": request.url.path, "status": exc.status_code, "msg": exc.message})
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    failure = ValidationFailure("Invalid request body", errors=[
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
    ])
    return await app_error_handler(request, failure)


@app.exception_handler(BaseORMException)
async def storage_error_handler(request: Request, exc: BaseORMException):
    return await app_error_handler(request, StorageFailure())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    ai_err("http.unhandled", {"path": request.url.path, "exc": f"{exc.__class__.__name__}: {exc}"}, exc_info=True)
    return JSONResponse(status_code=500, content={"msg": "Server error"})


@app.get('/')
def default_api():
    return {
        "message": "PentaChat API is running",
        "version": APP_VERSION,
        "endpoints": {"health": "/health", "api": "/api"},
    }


@app.get('/health')
async def health_check():
    now = datetime.now(timezone.utc).isoformat()
    try:
        await connections.get("default").execute_query("SELECT 1")
    except Exception as e:
        return JSONResponse(status_code=503, content={
            "status": "error", "timestamp": now, "database": "disconnected", "error": str(e),
        })
    return {"status": "ok", "timestamp": now, "database": "connected"}

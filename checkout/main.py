import time
from contextlib import asynccontextmanager

import stripe
from fastapi import FastAPI, Request, Header, Depends, status
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from checkout.config import get_settings
from checkout.database import Base, engine, get_db
from checkout.errors import AppError, ValidationError
from checkout.logging_config import setup_logging, get_logger
from checkout.reconciler import WebhookReconciler
from checkout.routes import orders_router, payments_router

import checkout.models  # noqa: F401  registers tables on Base

settings = get_settings()
setup_logging(log_level=settings.log_level, log_dir=settings.log_dir)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Application startup complete", extra={"event": "startup"})
    yield
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(title="Checkout Service", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration = (time.time() - start_time) * 1000

    logger.info(
        f'"{request.method} {request.url.path}" {response.status_code}',
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration, 2),
        }
    )
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(
            exc.message,
            extra={"path": request.url.path, "error_type": type(exc).__name__},
            exc_info=exc.__cause__ is not None
        )
    else:
        logger.warning(exc.message, extra={"path": request.url.path, "status_code": exc.status_code})

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Validation failed",
            "errors": jsonable_encoder(exc.errors()),
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception: {exc}",
        extra={"path": request.url.path, "method": request.method, "error_type": type(exc).__name__},
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error"}
    )


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.post("/payments/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db)
):
    payload = await request.body()
    webhook_secret = get_settings().stripe_webhook_secret
    if not webhook_secret:
        raise AppError("STRIPE_WEBHOOK_SECRET is not defined")

    try:
        event = stripe.Webhook.construct_event(payload, stripe_signature, webhook_secret)
    except ValueError:
        raise ValidationError("Invalid payload")
    except stripe.SignatureVerificationError:
        logger.warning("Webhook signature verification failed")
        raise ValidationError("Invalid signature")

    # blocking session work runs in the threadpool
    await run_in_threadpool(WebhookReconciler(db).handle_event, event)
    return {"received": True}


app.include_router(orders_router)
app.include_router(payments_router)

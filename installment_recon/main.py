from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from installment_recon.api.v1.router import api_router
from installment_recon.core.config import settings
from installment_recon.core.database import Base, engine
from installment_recon.core.exceptions import AppException
from installment_recon.core.logging import setup_logging
from installment_recon.models import audit_log, customer, document_attachment, payment_invoice, reconciliation, transaction  # noqa: F401

setup_logging(settings.LOG_LEVEL, enable_json=settings.LOG_JSON, log_dir=settings.LOG_DIR)

app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "error_code": exc.error_code, "details": exc.details}
    )


# --- Create tables ---
Base.metadata.create_all(bind=engine)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def root():
    return {"message": f"{settings.PROJECT_NAME} is running"}

from fastapi import APIRouter

from installment_recon.api.v1.endpoints import imports, webhooks, reconciliation

api_router = APIRouter()

api_router.include_router(imports.router, prefix="/imports", tags=["Imports"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
api_router.include_router(reconciliation.router, prefix="/reconciliation", tags=["Reconciliation"])

# core/dependencies.py
"""FastAPI providers. Tests swap these out through ``app.dependency_overrides``."""
from functools import lru_cache

from fastapi import Depends

from app.core.config import settings
from app.core.store import DocumentStore, FirestoreDocumentStore, MemoryDocumentStore
from app.services.finalization_service import FinalizationService
from app.services.frog import FrogClient
from app.services.invoice_service import InvoiceService
from app.services.nalo import NaloClient
from app.services.settlement import SettlementScheduler


@lru_cache
def get_store() -> DocumentStore:
    if settings.STORE_BACKEND == "memory":
        return MemoryDocumentStore()

    from app.core.firebase import get_db
    return FirestoreDocumentStore(get_db())


@lru_cache
def get_settlement_scheduler() -> SettlementScheduler:
    return SettlementScheduler(
        delay_seconds=settings.SIMULATED_PAYMENT_DELAY_SECONDS,
        enabled=settings.SIMULATE_PAYMENTS,
    )


@lru_cache
def get_frog_client() -> FrogClient:
    return FrogClient()


@lru_cache
def get_nalo_client() -> NaloClient:
    return NaloClient()


def get_invoice_service(
    store: DocumentStore = Depends(get_store),
    scheduler: SettlementScheduler = Depends(get_settlement_scheduler),
) -> InvoiceService:
    return InvoiceService(store, scheduler)


def get_finalization_service(
    store: DocumentStore = Depends(get_store),
    frog: FrogClient = Depends(get_frog_client),
) -> FinalizationService:
    return FinalizationService(store, frog)

# deps/services.py
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from app.payments.checkout import CheckoutService
from app.payments.gateway import TransactionGateway
from app.payments.ingest import StatusPoller, WebhookIngestor
from app.payments.reconcile import ReconciliationCoordinator
from app.providers.base import PaymentProvider
from app.providers.config import midtrans_config
from app.providers.factory import get_provider
from app.store.base import DocumentStore
from settings import Settings


@dataclass
class Services:
    store: DocumentStore
    provider: PaymentProvider
    coordinator: ReconciliationCoordinator
    gateway: TransactionGateway
    checkout: CheckoutService
    webhook: WebhookIngestor
    poller: StatusPoller


def build_store(cfg: Settings) -> DocumentStore:
    if cfg.STORE_BACKEND == "postgres":
        from app.store.postgres import PostgresDocumentStore
        return PostgresDocumentStore()

    from app.store.memory import InMemoryDocumentStore
    return InMemoryDocumentStore()


def build_services(
    cfg: Settings,
    *,
    store: DocumentStore | None = None,
    provider: PaymentProvider | None = None,
) -> Services:
    store = store if store is not None else build_store(cfg)
    provider = provider if provider is not None else get_provider(cfg=cfg)
    if provider is None:
        raise RuntimeError(f"Unknown PAYMENT_PROVIDER: {cfg.PAYMENT_PROVIDER}")

    coordinator = ReconciliationCoordinator(store)
    gateway = TransactionGateway(provider, store, item_name=cfg.ITEM_NAME)
    return Services(
        store=store,
        provider=provider,
        coordinator=coordinator,
        gateway=gateway,
        checkout=CheckoutService(store, gateway),
        webhook=WebhookIngestor(
            coordinator,
            server_key=midtrans_config(cfg).server_key,
            verify_signature=cfg.WEBHOOK_VERIFY_SIGNATURE,
        ),
        poller=StatusPoller(store, gateway, coordinator),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services

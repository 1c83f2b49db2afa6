"""Shared in-memory collaborators for the order-to-cash tests."""
from __future__ import annotations

import itertools
import pathlib
import sys
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Sequence

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from catering_backend.app.customers import Client  # noqa: E402
from catering_backend.app.errors import ConflictError, PersistenceError  # noqa: E402
from catering_backend.app.gateway import LocalSandboxGateway, load_gateway_config  # noqa: E402
from catering_backend.app.invoices import Invoice, InvoiceStatus  # noqa: E402
from catering_backend.app.orders import (  # noqa: E402
    Order,
    OrderFees,
    OrderItem,
    OrderPaymentMethod,
    OrderStatus,
)
from catering_backend.app.payments import PaymentTransaction, StoredCard, TransactionStatus  # noqa: E402
from catering_backend.app.services.container import ServiceContainer, build_container  # noqa: E402
from catering_backend.app.webhooks import WebhookEvent  # noqa: E402
from catering_backend.mail import EmailProvider, load_email_config  # noqa: E402


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryOrderRepository:
    def __init__(self) -> None:
        self.orders: Dict[int, Order] = {}
        self._ids = itertools.count(1)
        self._item_ids = itertools.count(1)

    def _with_item_ids(self, order: Order) -> Order:
        items = [
            item if item.id is not None else item.model_copy(update={"id": next(self._item_ids)})
            for item in order.items
        ]
        return order.model_copy(update={"items": items})

    def get_order(self, order_id: int) -> Optional[Order]:
        return self.orders.get(order_id)

    def last_order_number(self) -> Optional[str]:
        numbers = sorted(order.order_number for order in self.orders.values())
        return numbers[-1] if numbers else None

    def create_order(self, order: Order) -> Order:
        stored = self._with_item_ids(order.model_copy(update={"id": next(self._ids)}))
        self.orders[stored.id] = stored
        return stored

    def save_order(self, order: Order) -> Order:
        stored = self._with_item_ids(order.model_copy(update={"updated_at": _now()}))
        self.orders[stored.id] = stored
        return stored

    def update_status(self, order_id: int, *, status: OrderStatus, completed_at: Optional[datetime]) -> Optional[Order]:
        order = self.orders.get(order_id)
        if order is None:
            return None
        updated = order.model_copy(update={"status": status, "completed_at": completed_at, "updated_at": _now()})
        self.orders[order_id] = updated
        return updated


class InMemoryClientRepository:
    def __init__(self) -> None:
        self.clients: Dict[int, Client] = {}
        self.fail_updates = False

    def add(self, client: Client) -> Client:
        self.clients[client.id] = client
        return client

    def get_client(self, client_id: int) -> Optional[Client]:
        return self.clients.get(client_id)

    def update_gateway_customer_id(self, client_id: int, gateway_customer_id: str) -> Optional[Client]:
        if self.fail_updates:
            raise PersistenceError("Database operation failed")
        client = self.clients.get(client_id)
        if client is None:
            return None
        updated = client.model_copy(update={"gateway_customer_id": gateway_customer_id})
        self.clients[client_id] = updated
        return updated


class InMemoryInvoiceRepository:
    def __init__(self) -> None:
        self.invoices: Dict[int, Invoice] = {}
        self._ids = itertools.count(1)
        self._locks: Dict[int, threading.Lock] = defaultdict(threading.Lock)
        self._guard = threading.Lock()
        self.lock_calls: List[int] = []

    def create_invoice(self, invoice: Invoice) -> Invoice:
        with self._guard:
            if invoice.is_unsettled and any(
                existing.order_id == invoice.order_id and existing.is_unsettled
                for existing in self.invoices.values()
            ):
                raise ConflictError("Order already has an unsettled invoice")
            stored = invoice.model_copy(update={"id": next(self._ids)})
            self.invoices[stored.id] = stored
            return stored

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        return self.invoices.get(invoice_id)

    def get_by_gateway_invoice_id(self, gateway_invoice_id: str) -> Optional[Invoice]:
        for invoice in self.invoices.values():
            if invoice.gateway_invoice_id == gateway_invoice_id:
                return invoice
        return None

    def list_for_order(self, order_id: int) -> List[Invoice]:
        return [invoice for invoice in self.invoices.values() if invoice.order_id == order_id]

    def _update(self, invoice_id: int, **changes) -> Optional[Invoice]:
        invoice = self.invoices.get(invoice_id)
        if invoice is None:
            return None
        updated = invoice.model_copy(update={**changes, "updated_at": _now()})
        self.invoices[invoice_id] = updated
        return updated

    def update_public_url(self, invoice_id: int, public_url: str) -> Optional[Invoice]:
        return self._update(invoice_id, public_url=public_url)

    def update_status(
        self,
        invoice_id: int,
        *,
        status: InvoiceStatus,
        paid_at: Optional[datetime] = None,
    ) -> Optional[Invoice]:
        changes = {"status": status}
        if paid_at is not None:
            changes["paid_at"] = paid_at
        return self._update(invoice_id, **changes)

    def mark_email_sent(self, invoice_id: int, sent_at: datetime) -> Optional[Invoice]:
        return self._update(invoice_id, email_sent_at=sent_at)

    @contextmanager
    def order_lock(self, order_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks[order_id]
        self.lock_calls.append(order_id)
        with lock:
            yield


class InMemoryPaymentRepository:
    def __init__(self) -> None:
        self.transactions: Dict[int, PaymentTransaction] = {}
        self.cards: Dict[int, StoredCard] = {}
        self._txn_ids = itertools.count(1)
        self._card_ids = itertools.count(1)

    def create_transaction(self, transaction: PaymentTransaction) -> Optional[PaymentTransaction]:
        if self.get_by_gateway_payment_id(transaction.gateway_payment_id) is not None:
            return None
        stored = transaction.model_copy(update={"id": next(self._txn_ids)})
        self.transactions[stored.id] = stored
        return stored

    def get_transaction(self, transaction_id: int) -> Optional[PaymentTransaction]:
        return self.transactions.get(transaction_id)

    def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Optional[PaymentTransaction]:
        for transaction in self.transactions.values():
            if transaction.gateway_payment_id == gateway_payment_id:
                return transaction
        return None

    def list_transactions_for_order(self, order_id: int) -> List[PaymentTransaction]:
        return [txn for txn in self.transactions.values() if txn.order_id == order_id]

    def update_transaction_status(
        self,
        transaction_id: int,
        *,
        status: TransactionStatus,
        error_message: Optional[str] = None,
    ) -> Optional[PaymentTransaction]:
        transaction = self.transactions.get(transaction_id)
        if transaction is None:
            return None
        changes = {"status": status, "updated_at": _now()}
        if error_message is not None:
            changes["error_message"] = error_message
        updated = transaction.model_copy(update=changes)
        self.transactions[transaction_id] = updated
        return updated

    def create_stored_card(self, card: StoredCard) -> StoredCard:
        if card.is_default:
            self._clear_defaults(card.client_id)
        stored = card.model_copy(update={"id": next(self._card_ids)})
        self.cards[stored.id] = stored
        return stored

    def _clear_defaults(self, client_id: int) -> None:
        for card_id, card in list(self.cards.items()):
            if card.client_id == client_id and card.is_default:
                self.cards[card_id] = card.model_copy(update={"is_default": False})

    def get_stored_card(self, card_id: int) -> Optional[StoredCard]:
        return self.cards.get(card_id)

    def get_stored_card_by_gateway_card_id(self, gateway_card_id: str) -> Optional[StoredCard]:
        for card in self.cards.values():
            if card.gateway_card_id == gateway_card_id:
                return card
        return None

    def list_stored_cards(self, client_id: int) -> List[StoredCard]:
        return [card for card in self.cards.values() if card.client_id == client_id]

    def set_default_card(self, client_id: int, card_id: int) -> Optional[StoredCard]:
        card = self.cards.get(card_id)
        if card is None or card.client_id != client_id:
            return None
        self._clear_defaults(client_id)
        updated = card.model_copy(update={"is_default": True})
        self.cards[card_id] = updated
        return updated

    def delete_stored_card(self, card_id: int) -> bool:
        return self.cards.pop(card_id, None) is not None


class InMemoryWebhookEventRepository:
    def __init__(self) -> None:
        self.events: List[WebhookEvent] = []
        self.processed: Dict[str, datetime] = {}

    def record_webhook_event(self, event: WebhookEvent) -> bool:
        self.events.append(event)
        return event.event_id not in self.processed

    def mark_webhook_event_processed(self, event_id: str, processed_at: datetime) -> None:
        self.processed.setdefault(event_id, processed_at)


class RecordingEmailProvider(EmailProvider):
    name = "recording"

    def __init__(self, *, failing: Sequence[str] = ()) -> None:
        super().__init__(from_email="billing@example.com")
        self.sent: List[Dict[str, str]] = []
        self.failing = set(failing)

    def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        if to in self.failing:
            raise RuntimeError(f"mailbox unavailable: {to}")
        self.sent.append({"to": to, "subject": subject, "html": html_body, "text": text_body})


@pytest.fixture()
def order_repo() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture()
def client_repo() -> InMemoryClientRepository:
    return InMemoryClientRepository()


@pytest.fixture()
def invoice_repo() -> InMemoryInvoiceRepository:
    return InMemoryInvoiceRepository()


@pytest.fixture()
def payment_repo() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture()
def event_repo() -> InMemoryWebhookEventRepository:
    return InMemoryWebhookEventRepository()


@pytest.fixture()
def gateway() -> LocalSandboxGateway:
    return LocalSandboxGateway()


@pytest.fixture()
def email_provider() -> RecordingEmailProvider:
    return RecordingEmailProvider()


@pytest.fixture()
def gateway_env() -> Dict[str, str]:
    return {}


@pytest.fixture()
def container(
    order_repo,
    client_repo,
    invoice_repo,
    payment_repo,
    event_repo,
    gateway,
    email_provider,
    gateway_env,
) -> ServiceContainer:
    return build_container(
        gateway_config=load_gateway_config(env=gateway_env),
        email_config=load_email_config(env={}),
        order_repository=order_repo,
        client_repository=client_repo,
        invoice_repository=invoice_repo,
        payment_repository=payment_repo,
        webhook_event_repository=event_repo,
        gateway=gateway,
        email_provider=email_provider,
    )


@pytest.fixture()
def client(client_repo) -> Client:
    return client_repo.add(
        Client(
            id=7,
            full_name="Ava Pilot",
            company_name="Skyline Charters",
            email="ava@skyline.example",
            contact_number="+15555550100",
        )
    )


@pytest.fixture()
def make_order(container, client) -> Callable[..., Order]:
    def _make(**overrides) -> Order:
        params = {
            "client_name": client.full_name,
            "client_id": client.id,
            "items": [
                OrderItem(name="Fruit Platter", portion_size="1", price_cents=12_500),
                OrderItem(name="Sandwich Tray", description="Assorted", portion_size="2", price_cents=8_000),
            ],
            "fees": OrderFees(delivery_fee=2_500, service_charge=1_000),
            "payment_method": OrderPaymentMethod.CARD,
        }
        params.update(overrides)
        return container.orders.create_order(**params)

    return _make

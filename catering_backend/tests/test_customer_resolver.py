import pytest

from catering_backend.app.customers import Client, CustomerResolver
from catering_backend.app.errors import GatewayError
from catering_backend.app.gateway import GatewayCustomer, LocalSandboxGateway


class _SearchFailingGateway(LocalSandboxGateway):
    def search_customers_by_email(self, email):
        raise GatewayError("Payment gateway is unavailable", gateway_code="transport_error")


@pytest.fixture()
def resolver_parts(client_repo, gateway, client):
    return CustomerResolver(clients=client_repo, gateway=gateway), client_repo, gateway


def test_cached_customer_id_wins(resolver_parts, client):
    resolver, clients, gateway = resolver_parts
    clients.add(client.model_copy(update={"gateway_customer_id": "cust_cached"}))

    assert resolver.resolve(client.id, email="AVA@skyline.example") == "cust_cached"
    assert resolver.resolve(client.id) == "cust_cached"
    assert gateway.customers == {}


def test_different_email_bypasses_cache_and_searches(resolver_parts, client):
    resolver, clients, gateway = resolver_parts
    clients.add(client.model_copy(update={"gateway_customer_id": "cust_cached"}))
    gateway.customers["cust_other"] = GatewayCustomer(id="cust_other", email="ops@skyline.example")

    resolved = resolver.resolve(client.id, email="ops@skyline.example")

    assert resolved == "cust_other"
    assert clients.get_client(client.id).gateway_customer_id == "cust_other"


def test_creates_customer_and_caches_it(resolver_parts, client):
    resolver, clients, gateway = resolver_parts

    resolved = resolver.resolve(client.id, email=client.email, display_name="Skyline Charters")

    created = gateway.customers[resolved]
    assert created.given_name == "Skyline Charters"
    assert created.family_name == f"#{client.id}"
    assert clients.get_client(client.id).gateway_customer_id == resolved

    # Second lookup reuses the cached id without creating another customer.
    assert resolver.resolve(client.id, email=client.email) == resolved
    assert len(gateway.customers) == 1


def test_returns_none_without_contact_details(resolver_parts):
    resolver, _, gateway = resolver_parts

    assert resolver.resolve(None, email=None, display_name="Walk-in") is None
    assert gateway.customers == {}


def test_phone_only_client_gets_customer(resolver_parts):
    resolver, _, gateway = resolver_parts

    resolved = resolver.resolve(None, phone="+15555550199")

    assert resolved is not None
    assert gateway.customers[resolved].given_name == "Client"
    assert gateway.customers[resolved].family_name == "Customer"


def test_search_failure_falls_through_to_creation(client_repo, client):
    gateway = _SearchFailingGateway()
    resolver = CustomerResolver(clients=client_repo, gateway=gateway)

    resolved = resolver.resolve(client.id, email=client.email)

    assert resolved in gateway.customers


def test_cache_failure_does_not_block_resolution(resolver_parts, client):
    resolver, clients, gateway = resolver_parts
    clients.fail_updates = True

    resolved = resolver.resolve(client.id, email=client.email)

    assert resolved in gateway.customers
    assert clients.get_client(client.id).gateway_customer_id is None


def test_client_display_name_falls_back_to_company(client):
    assert client.display_name == "Ava Pilot"
    assert Client(id=1, company_name="Solo Flyer LLC").display_name == "Solo Flyer LLC"

"""
CeyLog Test Configuration and Shared Fixtures

Every fixture here is in-memory; no test touches Firebase, Postmark, OpenAI
or Stripe over the network.

Example usage:
    def test_send_report(client, mailer):
        response = client.post("/api/send-report-email", json=valid_delivery_body(), headers=auth_headers())
        assert mailer.sent
"""

import os

# Per-IP throttles are bound when the route modules are imported.
os.environ.setdefault("CEYLOG_DISABLE_IP_RATELIMIT", "1")

import pytest
from fastapi.testclient import TestClient

from app import create_app
from core.config import Settings
from tests.helpers import (
    FakeAuditStore,
    FakeCounterStore,
    FakeMailer,
    FakeReportStore,
    FakeTokenVerifier,
    FakeUserStore,
    make_services,
)


@pytest.fixture
def settings():
    return Settings(
        allowed_origins=["https://ceylog.com", "*.ceylog.com"],
        allowed_email_domains=["gmail.com", "outlook.com", "ceylog.com"],
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret="whsec_test_123",
        base_url="https://ceylog.com",
    )


@pytest.fixture
def verifier():
    return FakeTokenVerifier()


@pytest.fixture
def counter_store():
    return FakeCounterStore()


@pytest.fixture
def audit_store():
    return FakeAuditStore()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def users():
    return FakeUserStore()


@pytest.fixture
def reports():
    return FakeReportStore()


@pytest.fixture
def services(settings, verifier, counter_store, audit_store, mailer, users, reports):
    return make_services(
        settings=settings,
        verifier=verifier,
        counter_store=counter_store,
        audit_store=audit_store,
        mailer=mailer,
        users=users,
        reports=reports,
    )


@pytest.fixture
def client(services):
    """
    Test client over an app built from the in-memory services.

    Returns:
        TestClient: Client for the configured app
    """
    return TestClient(create_app(services=services))

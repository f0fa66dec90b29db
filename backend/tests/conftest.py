import os

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("SIMULATE_PAYMENTS", "false")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient

from app.core.dependencies import get_frog_client, get_settlement_scheduler, get_store
from app.core.store import MemoryDocumentStore
from app.services.settlement import SettlementScheduler
from main import app

OTP_CODE = "123456"


class FakeFrogClient:
    """Stands in for FrogClient: one fixed code, SMS kept in memory."""

    def __init__(self):
        self.otp_ok = True
        self.sms_ok = True
        self.otp_requests = []
        self.sent = []

    async def generate_otp(self, phone):
        self.otp_requests.append(phone)
        if not self.otp_ok:
            return {"status": "FAILURE", "message": "Insufficient OTP balance"}
        return {"status": "SUCCESS", "message": "OTP sent"}

    async def verify_otp(self, phone, code):
        status = "SUCCESS" if code == OTP_CODE else "FAILURE"
        return {"status": status, "message": None}

    async def send_sms(self, recipients, message):
        if not self.sms_ok:
            return {"success": False, "error": "Insufficient SMS credit"}
        self.sent.append((list(recipients), message))
        return {"success": True}


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def frog():
    return FakeFrogClient()


@pytest.fixture
def scheduler():
    # Off unless a test turns it on
    return SettlementScheduler(delay_seconds=0.05, enabled=False)


@pytest.fixture
def overrides(store, frog, scheduler):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_frog_client] = lambda: frog
    app.dependency_overrides[get_settlement_scheduler] = lambda: scheduler
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(overrides):
    with TestClient(overrides) as c:
        yield c

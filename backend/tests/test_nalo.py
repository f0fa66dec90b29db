import asyncio
import hashlib
import json

import httpx
import pytest

from app.core.dependencies import get_nalo_client
from app.core.errors import ProviderError, ValidationError
from app.services.nalo import NaloClient


def _md5(text):
    return hashlib.md5(text.encode()).hexdigest()


def _client(handler, **kwargs):
    options = dict(
        api_url="https://nalo.test/payplus/api/",
        merchant_id="NPS_000123",
        username="campusflow",
        password="pa55word",
        callback_url="https://campusflow.test/api/nalo-callback",
        transport=httpx.MockTransport(handler),
    )
    options.update(kwargs)
    return NaloClient(**options)


def _initiate(client, **overrides):
    args = dict(
        order_id="inv_1a2b3c4d",
        customer_name="CampusFlow User",
        amount="20",
        item_desc="500 SMS Credits",
        customer_number="0241234567",
        payby="MTN",
    )
    args.update(overrides)
    return asyncio.run(client.initiate_payment(**args))


def test_request_body_and_signature():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"Status": "Accepted", "InvoiceNo": "NL-77"})

    result = _initiate(_client(handler))
    body = seen["body"]

    assert result["InvoiceNo"] == "NL-77"
    assert list(body) == [
        "merchant_id", "secrete", "key", "order_id", "customerName",
        "amount", "item_desc", "customerNumber", "payby", "callback",
    ]
    assert len(body["key"]) == 4 and body["key"].isdigit()
    assert body["secrete"] == _md5("campusflow" + body["key"] + _md5("pa55word"))
    assert body["amount"] == "20.00"
    assert body["customerNumber"] == "233241234567"
    assert body["callback"] == "https://campusflow.test/api/nalo-callback"


def test_not_accepted_is_provider_error():
    def handler(request):
        return httpx.Response(200, json={"Status": "Failed", "Description": "Invalid merchant"})

    with pytest.raises(ProviderError, match="Invalid merchant"):
        _initiate(_client(handler))


def test_http_error_is_provider_error():
    def handler(request):
        return httpx.Response(500, json={"Status": "Error"})

    with pytest.raises(ProviderError):
        _initiate(_client(handler))


def test_unreachable_provider():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ProviderError):
        _initiate(_client(handler))


def test_missing_credentials():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(ProviderError):
        _initiate(_client(handler, merchant_id=""))


def test_bad_number_or_network():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(ValidationError):
        _initiate(_client(handler), customer_number="12345")
    with pytest.raises(ValidationError):
        _initiate(_client(handler), payby="GLO")


def test_initiate_route(client, overrides):
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"Status": "Accepted"})

    overrides.dependency_overrides[get_nalo_client] = lambda: _client(handler)
    invoice = client.post(
        "/api/create-invoice",
        json={"amount": "20.00", "description": "500 SMS Credits (Starter)", "reference": "cf-sms-1a2b3c4d"},
    ).json()

    response = client.post(
        "/api/initiate-nalo-payment",
        json={
            "order_id": invoice["id"],
            "amount": invoice["amount"],
            "item_desc": "500 SMS Credits",
            "customerNumber": "0241234567",
            "payby": "VODAFONE",
        },
    )

    assert response.status_code == 200
    assert response.json() == {"Status": "Accepted"}
    assert seen["body"]["order_id"] == invoice["id"]
    assert seen["body"]["customerName"] == "CampusFlow User"


def test_initiate_route_errors(client, overrides):
    def handler(request):
        return httpx.Response(200, json={"Status": "Declined", "Description": "Wallet not found"})

    overrides.dependency_overrides[get_nalo_client] = lambda: _client(handler)
    body = {"order_id": "inv_missing", "amount": "5", "item_desc": "d", "customerNumber": "0241234567", "payby": "MTN"}

    assert client.post("/api/initiate-nalo-payment", json=body).status_code == 404

    invoice = client.post("/api/create-invoice", json={"amount": "5", "description": "d", "reference": "r"}).json()
    response = client.post("/api/initiate-nalo-payment", json={**body, "order_id": invoice["id"]})
    assert response.status_code == 502
    assert response.json() == {"error": "Wallet not found", "code": "provider_error"}

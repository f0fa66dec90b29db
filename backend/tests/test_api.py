from app.services.gh_qr import verify

PHONE = "0241234567"


def _create_invoice(client, amount="20.00"):
    response = client.post(
        "/api/create-invoice",
        json={"amount": amount, "description": "500 SMS Credits (Starter)", "reference": "cf-sms-1a2b3c4d"},
    )
    assert response.status_code == 200
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_invoice(client):
    invoice = _create_invoice(client)

    assert invoice["id"].startswith("inv_")
    assert invoice["status"] == "PENDING"
    assert invoice["amount"] == "20.00"
    assert invoice["dialCode"] == "*170#"
    assert invoice["payToken"]


def test_create_invoice_missing_fields(client):
    response = client.post("/api/create-invoice", json={"amount": "20.00"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Missing required fields"
    assert body["code"] == "validation_error"


def test_invoice_status(client):
    invoice = _create_invoice(client)

    response = client.get("/api/invoice-status", params={"id": invoice["id"]})
    assert response.json() == {"status": "PENDING"}


def test_invoice_status_errors(client):
    assert client.get("/api/invoice-status").status_code == 400

    response = client.get("/api/invoice-status", params={"id": "inv_missing"})
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_generate_qr_payload(client):
    response = client.post("/api/generate-qr-payload", json={"amount": "50.00", "referenceId": "cf-sms-1a2b3c4d"})

    assert response.status_code == 200
    payload = response.json()["qrPayload"]
    assert payload.startswith("000201010212")
    assert "540550.00" in payload
    assert verify(payload)


def test_generate_qr_payload_bad_amount(client):
    response = client.post("/api/generate-qr-payload", json={"amount": "0", "referenceId": "r"})

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_argument"

    # JSON booleans must not be read as 1 or 0
    response = client.post("/api/generate-qr-payload", json={"amount": True, "referenceId": "r"})
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_otp_send_and_verify(client, frog):
    response = client.post("/api/otp/send", json={"phone": PHONE})
    assert response.status_code == 200
    assert frog.otp_requests == ["233241234567"]

    response = client.post("/api/otp/verify", json={"phone": PHONE, "otp": "123456"})
    assert response.json() == {"verified": True}

    response = client.post("/api/otp/verify", json={"phone": PHONE, "otp": "999999"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid OTP", "code": "invalid_otp"}


def test_otp_bad_phone(client, frog):
    response = client.post("/api/otp/send", json={"phone": "12345"})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
    assert frog.otp_requests == []


def test_otp_provider_failure(client, frog):
    frog.otp_ok = False

    response = client.post("/api/otp/send", json={"phone": PHONE})
    assert response.status_code == 502
    assert response.json()["code"] == "provider_error"


def test_send_payment_instructions(client, frog):
    invoice = _create_invoice(client)

    response = client.post("/api/send-payment-instructions", json={"phone": PHONE, "invoiceId": invoice["id"]})

    assert response.status_code == 200
    assert response.json()["success"] is True
    [(recipients, message)] = frog.sent
    assert recipients == ["233241234567"]
    assert "*170#" in message
    assert "cf-sms-1a2b3c4d" in message
    assert "20.00 GHS" in message


def test_send_payment_instructions_failure(client, frog):
    invoice = _create_invoice(client)
    frog.sms_ok = False

    response = client.post("/api/send-payment-instructions", json={"phone": PHONE, "invoiceId": invoice["id"]})
    assert response.status_code == 502

    response = client.post("/api/send-payment-instructions", json={"phone": PHONE, "invoiceId": "inv_missing"})
    assert response.status_code == 404


def test_nalo_callback_settles_invoice(client):
    invoice = _create_invoice(client)
    callback = {"Order_id": invoice["id"], "Status": "PAID", "InvoiceNo": "NL-1", "Timestamp": "2024-05-01 12:00"}

    assert client.post("/api/nalo-callback", json=callback).json() == {"Response": "OK"}
    assert client.get("/api/invoice-status", params={"id": invoice["id"]}).json() == {"status": "PAID"}

    # replays and late contradictions are acknowledged but change nothing
    assert client.post("/api/nalo-callback", json=callback).json() == {"Response": "OK"}
    client.post("/api/nalo-callback", json={**callback, "Status": "FAILED"})
    assert client.get("/api/invoice-status", params={"id": invoice["id"]}).json() == {"status": "PAID"}


def test_nalo_callback_errors(client):
    invoice = _create_invoice(client)

    assert client.post("/api/nalo-callback", json={"Status": "PAID"}).status_code == 400
    assert client.post("/api/nalo-callback", json={"Order_id": "inv_missing", "Status": "PAID"}).status_code == 404

    response = client.post("/api/nalo-callback", json={"Order_id": invoice["id"], "Status": "MAYBE"})
    assert response.status_code == 400
    assert response.json()["Response"] == "ERROR"


def test_finalize_purchase_flow(client):
    invoice = _create_invoice(client)
    body = {"phone": PHONE, "otp": "123456", "bundleCredits": 500, "invoiceId": invoice["id"]}

    response = client.post("/api/finalize-purchase", json=body)
    assert response.status_code == 409

    client.post("/api/nalo-callback", json={"Order_id": invoice["id"], "Status": "PAID"})

    response = client.post("/api/finalize-purchase", json={**body, "otp": "000000"})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_otp"

    response = client.post("/api/finalize-purchase", json=body)
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Purchase confirmed and bundle applied.", "smsBalance": 500}

    response = client.post("/api/finalize-purchase", json=body)
    assert response.status_code == 409


def test_finalize_purchase_missing_fields(client):
    response = client.post("/api/finalize-purchase", json={"phone": PHONE})

    assert response.status_code == 400
    assert "invoiceId" in response.json()["fields"]


def test_routing_errors_use_error_body(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found", "code": "not_found"}

    response = client.get("/api/create-invoice")
    assert response.status_code == 405
    assert response.json()["code"] == "method_not_allowed"

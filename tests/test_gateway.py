import json

import httpx
import pytest

from bookery.domain.payments.gateway import PaystackGateway, normalize_gateway_status
from bookery.errors import ExternalServiceError
from bookery.webhook_security import (
    WebhookSignatureError,
    compute_hmac_sha512,
    verify_paystack_signature,
)


def gateway_with(handler) -> PaystackGateway:
    return PaystackGateway(
        secret_key="sk_test_123",
        base_url="https://api.paystack.test",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestCreateSession:
    @pytest.mark.asyncio
    async def test_initializes_transaction(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "data": {
                        "authorization_url": "https://checkout.paystack.com/abc",
                        "access_code": "abc",
                        "reference": "ps_ref_1",
                    },
                },
            )

        session = await gateway_with(handler).create_session(
            amount_minor=4400,
            currency="GHS",
            metadata={"booking_type": "laundry", "user_id": "client"},
            email="client@example.com",
            callback_url="https://app.test/payment-return?type=laundry",
        )

        assert session.url == "https://checkout.paystack.com/abc"
        assert session.session_id == "abc"
        assert session.reference == "ps_ref_1"
        assert seen["path"] == "/transaction/initialize"
        assert seen["auth"] == "Bearer sk_test_123"
        assert seen["body"]["amount"] == 4400
        assert seen["body"]["metadata"]["user_id"] == "client"

    @pytest.mark.asyncio
    async def test_rejected_request(self):
        def handler(request):
            return httpx.Response(400, json={"status": False, "message": "Invalid email"})

        with pytest.raises(ExternalServiceError) as exc_info:
            await gateway_with(handler).create_session(100, "GHS", {}, "bad", "https://app.test")

        assert exc_info.value.code == "GATEWAY_REJECTED"
        assert exc_info.value.message == "Invalid email"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        gateway = PaystackGateway(secret_key=None, base_url="https://api.paystack.test")

        with pytest.raises(ExternalServiceError) as exc_info:
            await gateway.create_session(100, "GHS", {}, "client@example.com", "https://app.test")

        assert exc_info.value.code == "GATEWAY_NOT_CONFIGURED"


class TestVerify:
    @pytest.mark.asyncio
    async def test_successful_transaction(self):
        def handler(request):
            assert request.url.path == "/transaction/verify/ps_ref_1"
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "data": {
                        "status": "success",
                        "amount": 4400,
                        "currency": "GHS",
                        "customer": {"email": "client@example.com"},
                        "metadata": {"booking_type": "laundry"},
                    },
                },
            )

        result = await gateway_with(handler).verify("ps_ref_1")

        assert result.status == "complete"
        assert result.amount == 4400
        assert result.payer_email == "client@example.com"
        assert result.metadata == {"booking_type": "laundry"}

    @pytest.mark.asyncio
    async def test_metadata_sent_as_json_string(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"status": True, "data": {"status": "success", "metadata": '{"booking_type": "beauty"}'}},
            )

        result = await gateway_with(handler).verify("ps_ref_2")

        assert result.metadata == {"booking_type": "beauty"}

    @pytest.mark.asyncio
    async def test_unknown_reference_is_failed(self):
        def handler(request):
            return httpx.Response(404, json={"status": False, "message": "Transaction reference not found"})

        result = await gateway_with(handler).verify("nope")

        assert result.status == "failed"

    @pytest.mark.asyncio
    async def test_server_error(self):
        def handler(request):
            return httpx.Response(500, json={"status": False})

        with pytest.raises(ExternalServiceError):
            await gateway_with(handler).verify("ps_ref_3")

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ExternalServiceError) as exc_info:
            await gateway_with(handler).verify("ps_ref_4")

        assert exc_info.value.code == "GATEWAY_UNREACHABLE"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("success", "complete"),
            ("SUCCESS", "complete"),
            ("failed", "failed"),
            ("abandoned", "failed"),
            ("reversed", "failed"),
            ("ongoing", "pending"),
            ("processing", "pending"),
            (None, "pending"),
        ],
    )
    def test_status_mapping(self, raw, expected):
        assert normalize_gateway_status(raw) == expected


class TestWebhookSignature:
    def test_valid_signature(self):
        body = b'{"event": "charge.success"}'
        verify_paystack_signature("sk_test_123", body, compute_hmac_sha512("sk_test_123", body))

    def test_tampered_body(self):
        signature = compute_hmac_sha512("sk_test_123", b'{"amount": 100}')

        with pytest.raises(WebhookSignatureError):
            verify_paystack_signature("sk_test_123", b'{"amount": 1}', signature)

    def test_missing_signature(self):
        with pytest.raises(WebhookSignatureError):
            verify_paystack_signature("sk_test_123", b"{}", None)

    def test_missing_secret(self):
        with pytest.raises(WebhookSignatureError):
            verify_paystack_signature(None, b"{}", "abc")

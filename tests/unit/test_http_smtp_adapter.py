import json

import httpx
import pytest

from gatekeeper.infrastructure.email.http_smtp_adapter import (
    EmailDeliveryError,
    HttpSmtpEmailAdapter,
)


def _adapter(handler) -> tuple[HttpSmtpEmailAdapter, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    adapter = HttpSmtpEmailAdapter(
        base_url="http://smtp-mock:8025/", client=client, send_path="send"
    )
    return adapter, client


@pytest.mark.asyncio
async def test_send_success_no_idempotency():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["json"] = json.loads(request.content.decode("utf-8"))
        seen["idem"] = request.headers.get("Idempotency-Key")
        return httpx.Response(202, text="Accepted")

    adapter, client = _adapter(handler)
    await adapter.send(to="a@a.com", subject="Hi", body="Your code is 123456")
    assert seen["url"] == "http://smtp-mock:8025/send"
    assert seen["json"] == {
        "to": "a@a.com",
        "subject": "Hi",
        "body": "Your code is 123456",
    }
    assert seen["idem"] is None

    await client.aclose()


@pytest.mark.asyncio
async def test_send_success_with_idempotency():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["idem"] = request.headers.get("Idempotency-Key")
        return httpx.Response(200, json={"ok": True})

    adapter, client = _adapter(handler)
    await adapter.send(to="b@a.com", subject="Hi", body="Hello", idempotency_key="17")
    assert seen["idem"] == "17"

    await client.aclose()


@pytest.mark.asyncio
async def test_send_non_2xx_raises_delivery_error():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(422, text="nope")

    adapter, client = _adapter(handler)
    with pytest.raises(EmailDeliveryError) as ei:
        await adapter.send(to="x@y.com", subject="S", body="B")

    msg = str(ei.value)
    assert "responded 422" in msg
    assert "nope" in msg

    await client.aclose()


@pytest.mark.asyncio
async def test_network_error_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    adapter, client = _adapter(handler)
    with pytest.raises(EmailDeliveryError) as ei:
        await adapter.send(to="x@y.com", subject="S", body="B")

    assert "unreachable" in str(ei.value)
    assert isinstance(ei.value, RuntimeError)

    await client.aclose()


@pytest.mark.asyncio
async def test_aclose_closes_owned_client_only():
    owned = HttpSmtpEmailAdapter(base_url="http://smtp-mock:8025")
    await owned.aclose()
    assert owned._client.is_closed  # type: ignore[attr-defined]

    not_owned, shared_client = _adapter(lambda _: httpx.Response(200))
    await not_owned.aclose()
    assert shared_client.is_closed is False

    await shared_client.aclose()

import httpx

from clickdeal_gateway.notifications import WhatsAppNotifier, format_order_message
from clickdeal_gateway.schemas import OrderRequest
from tests.conftest import FakeUpstream, make_settings

ORDER = OrderRequest(
    name="Amina Otieno",
    phone="+254700000001",
    address="12 Moi Avenue",
    city="Nairobi",
    product_handle="blue-mug",
    quantity=3,
)


def test_format_order_message() -> None:
    text = format_order_message(ORDER, "https://clickdeal.test/invoices/abc")

    assert text.splitlines() == [
        "\U0001f6cd\ufe0f New ClickDeal GPT Order",
        "Name: Amina Otieno",
        "Phone: +254700000001",
        "City: Nairobi",
        "Address: 12 Moi Avenue",
        "Handle: blue-mug",
        "Qty: 3",
        "Invoice: https://clickdeal.test/invoices/abc",
    ]


def test_notify_sends_to_each_recipient(notifier, whatsapp_upstream) -> None:
    delivered = notifier.notify("hello")

    assert delivered == ["+15550001", "+15550002"]
    request = whatsapp_upstream.requests[0]
    assert str(request.url) == "https://graph.facebook.com/v20.0/555000/messages"
    assert request.headers["Authorization"] == "Bearer wa-token"
    assert whatsapp_upstream.json_bodies()[0] == {
        "messaging_product": "whatsapp",
        "to": "+15550001",
        "type": "text",
        "text": {"body": "hello"},
    }


def test_notify_isolates_failures(notifier, whatsapp_upstream) -> None:
    def reject_first(request):
        if b"+15550001" in request.content:
            return httpx.Response(400, json={"error": {"message": "invalid recipient"}})
        return httpx.Response(200, json={})

    whatsapp_upstream.responder = reject_first

    delivered = notifier.notify("hello")

    assert delivered == ["+15550002"]
    assert len(whatsapp_upstream.requests) == 2


def test_notify_skipped_when_unconfigured() -> None:
    for overrides in ({"WA_TOKEN": ""}, {"WA_PHONE_ID": ""}, {"WA_RECIPIENTS": " , "}):
        upstream = FakeUpstream()
        notifier = WhatsAppNotifier(make_settings(**overrides), http=upstream.client())

        assert notifier.enabled is False
        assert notifier.notify("hello") == []
        assert upstream.requests == []


def test_recipients_are_parsed_from_csv() -> None:
    settings = make_settings(WA_RECIPIENTS=" +1 ,, +2,")

    assert settings.wa_recipients == ("+1", "+2")

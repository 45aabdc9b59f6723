import pytest
import requests

from conftest import stryve_response
from stryve_gateway import stryve_service
from stryve_gateway.exceptions import (
    AuthenticationError,
    InvalidArgumentError,
    OrderCreationError,
    VerificationError,
)
from stryve_gateway.schemas import CustomerDetails, OrderItem

BASE_URL = "https://stryve.test/api/v1"


def form_fields(call):
    """Flatten the multipart parts of a mocked request call into a dict."""
    return {name: value for name, (_, value) in call.kwargs["files"]}


def test_resolve_base_url_sandbox_default():
    assert stryve_service.resolve_base_url("", True) == stryve_service.SANDBOX_BASE_URL


def test_resolve_base_url_production_default():
    assert stryve_service.resolve_base_url("", False) == "https://app.stryve.me/api/v1"


def test_resolve_base_url_custom_wins_and_strips_trailing_slashes():
    assert stryve_service.resolve_base_url("https://x/", False) == "https://x"
    assert stryve_service.resolve_base_url("  https://x//  ", True) == "https://x"


def test_resolve_base_url_blank_custom_is_ignored():
    assert stryve_service.resolve_base_url("   ", False) == stryve_service.PRODUCTION_BASE_URL
    assert stryve_service.resolve_base_url(None, True) == stryve_service.SANDBOX_BASE_URL


def test_authenticate_success(mocker):
    mock_request = mocker.patch(
        "stryve_gateway.stryve_service.requests.request",
        return_value=stryve_response(mocker, payload={"success": True, "token": "tok_1"}),
    )

    assert stryve_service.authenticate("key_123", BASE_URL) == "tok_1"

    call = mock_request.call_args
    assert call.args == ("POST", f"{BASE_URL}/payment-gateway/authenticate")
    assert call.kwargs["headers"] == {"Accept": "application/json"}
    assert call.kwargs["timeout"] == 30
    assert call.kwargs["files"] == [("api_key", (None, "key_123"))]


@pytest.mark.parametrize(
    "status_code, payload, expected",
    [
        (401, {"success": False, "message": "Invalid API key"}, "Invalid API key"),
        (200, {"success": False, "message": "Account disabled"}, "Account disabled"),
        (500, None, "HTTP 500"),
        (200, {"success": True}, "No token received"),
    ],
)
def test_authenticate_failures(mocker, status_code, payload, expected):
    mocker.patch(
        "stryve_gateway.stryve_service.requests.request",
        return_value=stryve_response(mocker, status_code, payload),
    )

    with pytest.raises(AuthenticationError) as exc_info:
        stryve_service.authenticate("key_123", BASE_URL)

    assert expected in exc_info.value.message


def test_authenticate_timeout_is_typed(mocker):
    mocker.patch(
        "stryve_gateway.stryve_service.requests.request",
        side_effect=requests.Timeout("read timed out"),
    )

    with pytest.raises(AuthenticationError):
        stryve_service.authenticate("key_123", BASE_URL)


def test_create_order_authenticates_once_and_encodes_form(mocker):
    mock_request = mocker.patch(
        "stryve_gateway.stryve_service.requests.request",
        side_effect=[
            stryve_response(mocker, payload={"success": True, "token": "tok_fresh"}),
            stryve_response(mocker, payload={
                "success": True,
                "order": {"id": "ord-uuid", "payment_url": "https://stryve.me/pay/abc", "status": "pending"},
            }),
        ],
    )

    order = stryve_service.create_order(
        api_key="key_123",
        base_url=BASE_URL,
        merchant_reference=123,
        callback_url="https://app.test/payments/callback?shop=demo&ref=123",
        items=[
            OrderItem(name="Order Payment", quantity=1, price="100.00", description=None),
            OrderItem(name="Gift wrap", quantity="abc", price="not-a-number", description="Red"),
        ],
        customer_details=CustomerDetails(
            first_name="Ada", last_name="Lovelace", phone="0100", email="", address_line=None,
            address_city="Cairo", address_country="EG",
        ),
    )

    assert order == {"id": "ord-uuid", "payment_url": "https://stryve.me/pay/abc", "status": "pending"}
    assert mock_request.call_count == 2

    create_call = mock_request.call_args_list[1]
    assert create_call.args == ("POST", f"{BASE_URL}/payment-gateway/create-order")
    fields = form_fields(create_call)
    assert fields == {
        "token": "tok_fresh",
        "merchant_reference": "123",
        "callback_url": "https://app.test/payments/callback?shop=demo&ref=123",
        "items[0][name]": "Order Payment",
        "items[0][quantity]": "1",
        "items[0][price]": "100",
        "items[1][name]": "Gift wrap",
        "items[1][quantity]": "1",
        "items[1][price]": "0",
        "items[1][description]": "Red",
        "customer_details[first_name]": "Ada",
        "customer_details[last_name]": "Lovelace",
        "customer_details[phone]": "0100",
        "customer_details[address_city]": "Cairo",
        "customer_details[address_country]": "EG",
    }
    assert "items[0][description]" not in fields
    assert "customer_details[email]" not in fields


def test_create_order_never_reuses_a_token(mocker):
    mock_request = mocker.patch(
        "stryve_gateway.stryve_service.requests.request",
        side_effect=[
            stryve_response(mocker, payload={"success": True, "token": "tok_a"}),
            stryve_response(mocker, payload={"payment_url": "https://stryve.me/pay/a"}),
            stryve_response(mocker, payload={"success": True, "token": "tok_b"}),
            stryve_response(mocker, payload={"payment_url": "https://stryve.me/pay/b"}),
        ],
    )
    item = OrderItem(name="Order Payment", quantity=1, price="10")

    first = stryve_service.create_order("key", BASE_URL, "ref-a", "https://cb", [item])
    second = stryve_service.create_order("key", BASE_URL, "ref-b", "https://cb", [item])

    assert first["payment_url"] == "https://stryve.me/pay/a"
    assert second["payment_url"] == "https://stryve.me/pay/b"
    paths = [call.args[1].rsplit("/", 1)[-1] for call in mock_request.call_args_list]
    assert paths == ["authenticate", "create-order", "authenticate", "create-order"]
    assert form_fields(mock_request.call_args_list[1])["token"] == "tok_a"
    assert form_fields(mock_request.call_args_list[3])["token"] == "tok_b"


def test_create_order_requires_payment_url(mocker):
    mocker.patch(
        "stryve_gateway.stryve_service.requests.request",
        side_effect=[
            stryve_response(mocker, payload={"success": True, "token": "tok"}),
            stryve_response(mocker, payload={"success": True, "order": {"id": "ord"}}),
        ],
    )

    with pytest.raises(OrderCreationError) as exc_info:
        stryve_service.create_order("key", BASE_URL, "ref", "https://cb", [])

    assert "No payment URL received" in exc_info.value.message


def test_create_order_carries_upstream_message(mocker):
    mocker.patch(
        "stryve_gateway.stryve_service.requests.request",
        side_effect=[
            stryve_response(mocker, payload={"success": True, "token": "tok"}),
            stryve_response(mocker, 422, {"success": False, "message": "merchant_reference already used"}),
        ],
    )

    with pytest.raises(OrderCreationError) as exc_info:
        stryve_service.create_order("key", BASE_URL, "ref", "https://cb", [])

    assert "merchant_reference already used" in exc_info.value.message
    assert exc_info.value.status_code == 502


def test_create_order_stops_when_authentication_fails(mocker):
    mock_request = mocker.patch(
        "stryve_gateway.stryve_service.requests.request",
        return_value=stryve_response(mocker, 401, {"success": False, "message": "bad key"}),
    )

    with pytest.raises(AuthenticationError):
        stryve_service.create_order("key", BASE_URL, "ref", "https://cb", [])

    assert mock_request.call_count == 1


def test_get_order_prefers_order_id(mocker):
    mock_request = mocker.patch(
        "stryve_gateway.stryve_service.requests.request",
        return_value=stryve_response(mocker, payload={"success": True, "order": {"id": "ord", "status": "paid"}}),
    )

    order = stryve_service.get_order("key", BASE_URL, order_id="ord", merchant_reference="ref")

    assert order["status"] == "paid"
    call = mock_request.call_args
    assert call.args == ("GET", f"{BASE_URL}/payment-gateway/get-order")
    assert call.kwargs["params"] == {"api_key": "key", "order_id": "ord"}


def test_get_order_uses_misspelled_reference_parameter(mocker):
    mock_request = mocker.patch(
        "stryve_gateway.stryve_service.requests.request",
        return_value=stryve_response(mocker, payload={"status": "processing"}),
    )

    order = stryve_service.get_order("key", BASE_URL, merchant_reference="SHOP-1-abc")

    assert order == {"status": "processing"}
    params = mock_request.call_args.kwargs["params"]
    assert params == {"api_key": "key", "mechant_reference": "SHOP-1-abc"}
    assert "merchant_reference" not in params


def test_get_order_requires_an_identifier(mocker):
    mock_request = mocker.patch("stryve_gateway.stryve_service.requests.request")

    with pytest.raises(InvalidArgumentError):
        stryve_service.get_order("key", BASE_URL)

    mock_request.assert_not_called()


def test_get_order_failure(mocker):
    mocker.patch(
        "stryve_gateway.stryve_service.requests.request",
        return_value=stryve_response(mocker, 404, {"success": False, "message": "Order not found"}),
    )

    with pytest.raises(VerificationError) as exc_info:
        stryve_service.get_order("key", BASE_URL, order_id="missing")

    assert "Order not found" in exc_info.value.message

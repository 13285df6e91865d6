from decimal import Decimal

import pytest
import requests

from storefront.exceptions import InvalidPincodeError, ShippingServiceError, UnserviceableError
from storefront.schemas.checkout_schemas import CartLine, CartSnapshot
from storefront.services import shipping_service
from storefront.services.shipping_service import ShiprocketClient, parcel_weight, resolve_quote


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = {} if payload is None else payload
        self.text = str(payload)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


SERVICEABLE = {
    "data": {
        "available_courier_companies": [
            {"courier_company_id": 10, "courier_name": "Delhivery", "rate": 95.5,
             "estimated_delivery_days": "4", "etd": "Oct 24, 2026"},
            {"courier_company_id": 24, "courier_name": "Xpressbees", "rate": 0},
        ]
    }
}


@pytest.fixture
def http(monkeypatch):
    calls = {"post": 0, "get": []}
    responses = {"get": FakeResponse(200, SERVICEABLE), "post": FakeResponse(200, {"token": "tkn"})}

    def fake_post(url, json=None, timeout=None):
        calls["post"] += 1
        return responses["post"]

    def fake_get(url, params=None, headers=None, timeout=None):
        calls["get"].append((url, params, headers))
        response = responses["get"]
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(shipping_service.requests, "post", fake_post)
    monkeypatch.setattr(shipping_service.requests, "get", fake_get)
    return calls, responses


def client():
    return ShiprocketClient("https://shiprocket.test/v1/external/", "ops@example.com", "pw", "110001")


def test_quotes_map_couriers_and_skip_zero_rates(http):
    calls, _ = http

    quotes = client().quotes("560001", 1.0, cod=True)

    assert [q.courier_id for q in quotes] == ["10"]
    assert quotes[0].cost == Decimal("95.5")
    assert quotes[0].estimated_days == 4
    url, params, headers = calls["get"][0]
    assert url == "https://shiprocket.test/v1/external/courier/serviceability/"
    assert params == {"pickup_postcode": "110001", "delivery_postcode": "560001", "weight": 1.0, "cod": 1}
    assert headers["Authorization"] == "Bearer tkn"


def test_token_is_reused(http):
    calls, _ = http
    shiprocket = client()

    shiprocket.quotes("560001", 0.5)
    shiprocket.quotes("400001", 0.5)

    assert calls["post"] == 1


def test_unreachable_pincode_is_empty_not_error(http):
    _, responses = http
    responses["get"] = FakeResponse(404, {"message": "not serviceable"})

    assert client().quotes("999999", 0.5) == []


@pytest.mark.parametrize("response", [FakeResponse(500, {}), requests.Timeout("slow")])
def test_service_failures_raise(http, response):
    _, responses = http
    responses["get"] = response

    with pytest.raises(ShippingServiceError):
        client().quotes("560001", 0.5)


def test_non_json_serviceability_body_raises(http):
    _, responses = http
    responses["get"] = FakeResponse(200, ValueError("<html>maintenance</html>"))

    with pytest.raises(ShippingServiceError):
        client().quotes("560001", 0.5)


@pytest.mark.parametrize(
    "login",
    [FakeResponse(200, {"message": "ok"}), FakeResponse(200, ValueError("not json"))],
)
def test_login_without_token_raises_and_sends_nothing(http, login):
    calls, responses = http
    responses["post"] = login

    with pytest.raises(ShippingServiceError):
        client().quotes("560001", 0.5)
    assert calls["get"] == []


@pytest.mark.parametrize("pincode", ["5600", "56000a", "", "5600011"])
def test_bad_pincode_rejected_before_any_request(http, pincode):
    calls, _ = http

    with pytest.raises(InvalidPincodeError):
        client().quotes(pincode, 0.5)
    assert calls["get"] == []


def _cart(quantity):
    return CartSnapshot(items=[CartLine(product_id="sku", name="Item", unit_price=Decimal("10"), quantity=quantity)])


def test_parcel_weight_has_a_floor():
    assert parcel_weight(_cart(1)) == 0.5
    assert parcel_weight(_cart(3)) == 1.5


def test_resolve_quote_uses_server_price(shipping):
    quote = resolve_quote(shipping, "560001", "24", _cart(1))

    assert quote.cost == Decimal("120.00")


def test_resolve_quote_unserviceable(shipping):
    shipping.options = []

    with pytest.raises(UnserviceableError):
        resolve_quote(shipping, "560001", "10", _cart(1))


def test_resolve_quote_unknown_courier(shipping):
    with pytest.raises(UnserviceableError):
        resolve_quote(shipping, "560001", "999", _cart(1))

from types import SimpleNamespace

import pytest

from restaurant_api.services.customer_loyalty import points_for_amount
from restaurant_api.services.inventory import parse_metadata, product_ingredients
from restaurant_api.services.orders import (
    OrderAccessDenied,
    OrderNotFoundError,
    OrderValidationError,
    derive_order_status,
    format_order_tag,
    get_order_for_business,
    parse_line_items,
    parse_order_ref,
)


class FakeQuery:
    def __init__(self, result):
        self._result = result

    def filter(self, *args, **kwargs):
        return self

    def first(self):
        return self._result


class FakeSession:
    def __init__(self, result):
        self._result = result

    def query(self, *args, **kwargs):
        return FakeQuery(self._result)


def test_derive_order_status_needs_every_item_completed():
    assert derive_order_status([]) == "Pending"
    assert derive_order_status(["Completed", "Pending"]) == "Pending"
    assert derive_order_status([SimpleNamespace(status="Completed")] * 3) == "Completed"


@pytest.mark.parametrize("raw, expected", [("ORD00012", 12), ("ord7", 7), ("12", 12), (" 3 ", 3)])
def test_parse_order_ref_accepts_tags_and_raw_ids(raw, expected):
    assert parse_order_ref(raw) == expected


@pytest.mark.parametrize("raw", ["ORD", "abc", "ORD-1", "", None])
def test_parse_order_ref_rejects_garbage(raw):
    with pytest.raises(OrderValidationError):
        parse_order_ref(raw)


def test_format_order_tag_pads_to_five_digits():
    assert format_order_tag(1) == "ORD00001"
    assert format_order_tag(123456) == "ORD123456"


def test_parse_line_items_accepts_camel_case_and_status_only_when_allowed():
    raw = [{"productId": "5", "name": " Naan ", "qty": "2", "price": "30", "status": "completed"}]

    plain = parse_line_items(raw)
    with_status = parse_line_items(raw, allow_status=True)

    assert (plain[0].product_id, plain[0].name, plain[0].quantity, plain[0].price) == (5, "Naan", 2, 30.0)
    assert plain[0].status is None
    assert with_status[0].status == "Completed"


def test_parse_line_items_rejects_unknown_status():
    with pytest.raises(OrderValidationError) as exc:
        parse_line_items([{"product_id": 1, "name": "Naan", "quantity": 1, "price": 1, "status": "Served"}], allow_status=True)
    assert str(exc.value) == "Invalid status value"


def test_points_for_amount_floors_and_ignores_non_positive():
    assert points_for_amount(499.99) == 4
    assert points_for_amount(100) == 1
    assert points_for_amount(0) == 0
    assert points_for_amount(-50) == 0


def test_parse_metadata_tolerates_strings_and_garbage():
    assert parse_metadata('{"ingredients": []}') == {"ingredients": []}
    assert parse_metadata("not json") == {}
    assert parse_metadata("[1, 2]") == {}
    assert parse_metadata(None) == {}


def test_product_ingredients_skips_non_numeric_quantities():
    product = SimpleNamespace(
        id=1,
        meta={"ingredients": [{"name": "Rice", "quantity": "0.1"}, {"name": "Salt", "quantity": "pinch"}, {"quantity": 1}]},
    )
    assert product_ingredients(product) == [("Rice", 0.1)]


def test_get_order_for_business_checks_ownership():
    order = SimpleNamespace(id=4, business_id=1)

    assert get_order_for_business(FakeSession(order), 4, 1) is order
    assert get_order_for_business(FakeSession(order), 4, None) is order
    with pytest.raises(OrderAccessDenied):
        get_order_for_business(FakeSession(order), 4, 2)
    with pytest.raises(OrderNotFoundError):
        get_order_for_business(FakeSession(None), 4, 1)

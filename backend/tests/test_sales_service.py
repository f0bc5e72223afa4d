"""Sales: completed sales, quotes and voids."""

import re

import pytest

from retailpos.models import InventoryAdjustment, Payment, Product, Transaction
from retailpos.services import inventory_service, products_service, sales_service
from retailpos.validation import (
    InsufficientPaymentError,
    InsufficientStockError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)


def cash(amount_cents, tendered=None):
    payment = {"method": "cash", "amount_cents": amount_cents}
    if tendered is not None:
        payment["cash_tendered_cents"] = tendered
    return payment


def _qty(db_session, product_id):
    return db_session.get(Product, product_id).quantity_in_stock


def test_round_half_up_bps():
    assert sales_service.round_half_up_bps(2900, 825) == 239
    assert sales_service.round_half_up_bps(10, 500) == 1
    assert sales_service.round_half_up_bps(9, 500) == 0
    assert sales_service.round_half_up_bps(1000, 0) == 0


def test_sale_deducts_stock_and_records_everything(db_session, product, actor):
    txn = sales_service.create_transaction(
        [{"product_id": product.id, "quantity": 3}],
        [cash(3000)],
        actor,
    )

    assert txn.status == "completed"
    assert txn.cashier_id == actor
    assert txn.total_cents == 3000
    assert txn.amount_paid_cents == 3000
    assert txn.change_due_cents == 0
    assert txn.completed_at is not None
    assert _qty(db_session, product.id) == 7

    assert len(txn.items) == 1
    assert txn.items[0].quantity == 3
    assert txn.items[0].product_sku == "WIDGET-1"

    sale_rows = db_session.query(InventoryAdjustment).filter_by(adjustment_type="sale").all()
    assert len(sale_rows) == 1
    assert sale_rows[0].quantity_change == -3
    assert sale_rows[0].reference_type == "transaction"
    assert sale_rows[0].reference_id == txn.id


def test_line_tax_and_discount(db_session, make_product, actor):
    taxed = make_product(qty=5, price_cents=1000, tax_rate_bps=825)

    txn = sales_service.create_transaction(
        [{"product_id": taxed.id, "quantity": 3, "discount_cents": 100}],
        [cash(3139)],
        actor,
    )

    item = txn.items[0]
    assert item.tax_rate_bps == 825
    assert item.tax_cents == 239
    assert item.line_total_cents == 3139
    assert txn.subtotal_cents == 3000
    assert txn.discount_cents == 100
    assert txn.tax_cents == 239
    assert txn.total_cents == 3139


def test_default_tax_rate_applies_when_product_has_none(app, db_session, product, actor, monkeypatch):
    monkeypatch.setitem(app.config, "DEFAULT_TAX_RATE_BPS", 500)

    quote = sales_service.quote_transaction([{"product_id": product.id, "quantity": 1}])

    assert quote["items"][0]["tax_rate_bps"] == 500
    assert quote["tax_cents"] == 50
    assert quote["total_cents"] == 1050


def test_quote_does_not_mutate(db_session, product):
    quote = sales_service.quote_transaction([{"product_id": product.id, "quantity": 25}])

    assert quote["subtotal_cents"] == 25000
    assert _qty(db_session, product.id) == 10
    assert db_session.query(Transaction).count() == 0


def test_cash_change(db_session, product, actor):
    txn = sales_service.create_transaction(
        [{"product_id": product.id, "quantity": 1}],
        [cash(1000, tendered=2000)],
        actor,
    )

    payment = db_session.query(Payment).filter_by(transaction_id=txn.id).one()
    assert payment.cash_tendered_cents == 2000
    assert payment.change_cents == 1000


def test_overpayment_becomes_change_due(db_session, product, actor):
    txn = sales_service.create_transaction(
        [{"product_id": product.id, "quantity": 1}],
        [cash(600), {"method": "credit_card", "amount_cents": 500, "card_last_four": "4242"}],
        actor,
    )

    assert txn.amount_paid_cents == 1100
    assert txn.change_due_cents == 100
    assert [p.method for p in txn.payments] == ["cash", "credit_card"]


def test_insufficient_payment(db_session, product, actor):
    with pytest.raises(InsufficientPaymentError):
        sales_service.create_transaction(
            [{"product_id": product.id, "quantity": 2}],
            [cash(1999)],
            actor,
        )

    assert _qty(db_session, product.id) == 10
    assert db_session.query(Transaction).count() == 0


def test_fully_discounted_sale_takes_zero_payment(db_session, product, actor):
    txn = sales_service.create_transaction(
        [{"product_id": product.id, "quantity": 1, "discount_cents": 1000}],
        [cash(0)],
        actor,
    )

    assert txn.total_cents == 0
    assert txn.amount_paid_cents == 0
    assert txn.change_due_cents == 0
    assert _qty(db_session, product.id) == 9


def test_sale_is_all_or_nothing(db_session, make_product, actor):
    plenty = make_product(qty=10)
    scarce = make_product(qty=1)
    adjustments_before = db_session.query(InventoryAdjustment).count()

    with pytest.raises(InsufficientStockError) as exc:
        sales_service.create_transaction(
            [
                {"product_id": plenty.id, "quantity": 2},
                {"product_id": scarce.id, "quantity": 2},
            ],
            [cash(4000)],
            actor,
        )

    assert exc.value.details["product_id"] == scarce.id
    assert _qty(db_session, plenty.id) == 10
    assert _qty(db_session, scarce.id) == 1
    assert db_session.query(Transaction).count() == 0
    assert db_session.query(InventoryAdjustment).count() == adjustments_before


@pytest.mark.parametrize("items, payments", [
    ([], [cash(100)]),
    ([{"product_id": 1, "quantity": 0}], [cash(100)]),
    ([{"product_id": 1, "quantity": -1}], [cash(100)]),
    ([{"product_id": 1, "quantity": "2"}], [cash(100)]),
    ([{"product_id": 1, "quantity": 1}], []),
    ([{"product_id": 1, "quantity": 1}], [{"method": "barter", "amount_cents": 100}]),
    ([{"product_id": 1, "quantity": 1}], [cash(-1)]),
    ([{"product_id": 1, "quantity": 1}], [cash(500, tendered=400)]),
    ([{"product_id": 1, "quantity": 1}], [{"method": "credit_card", "amount_cents": 1, "card_last_four": "42"}]),
])
def test_request_shape_validation(db_session, actor, items, payments):
    with pytest.raises(ValidationError):
        sales_service.create_transaction(items, payments, actor)


def test_discount_larger_than_line(db_session, product, actor):
    with pytest.raises(ValidationError):
        sales_service.create_transaction(
            [{"product_id": product.id, "quantity": 1, "discount_cents": 1001}],
            [cash(1000)],
            actor,
        )


def test_unknown_product(db_session, actor):
    with pytest.raises(NotFoundError):
        sales_service.create_transaction(
            [{"product_id": 987654, "quantity": 1}],
            [cash(1000)],
            actor,
        )


def test_inactive_product_cannot_be_sold(db_session, product, actor):
    products_service.deactivate_product(product.id)

    with pytest.raises(ValidationError):
        sales_service.create_transaction(
            [{"product_id": product.id, "quantity": 1}],
            [cash(1000)],
            actor,
        )


def test_sale_then_void_restores_stock(db_session, product, actor):
    txn = sales_service.create_transaction(
        [{"product_id": product.id, "quantity": 4}],
        [cash(4000)],
        actor,
    )
    assert _qty(db_session, product.id) == 6

    voided = sales_service.void_transaction(txn.id, "Customer changed mind", "manager-1")

    assert voided.status == "voided"
    assert voided.voided_by == "manager-1"
    assert voided.void_reason == "Customer changed mind"
    assert voided.voided_at is not None
    assert _qty(db_session, product.id) == 10

    history = inventory_service.get_product_history(product.id)
    assert [h.adjustment_type for h in history] == ["initial", "sale", "sale_void"]
    assert history[-1].quantity_change == 4
    assert history[-1].reference_id == txn.id


def test_void_uses_recorded_snapshot(db_session, product, actor):
    txn = sales_service.create_transaction(
        [{"product_id": product.id, "quantity": 2}],
        [cash(2000)],
        actor,
    )
    products_service.update_product(product.id, {"price_cents": 5000, "name": "Renamed"})

    fetched = sales_service.get_transaction(txn.id)
    assert fetched.items[0].unit_price_cents == 1000
    assert fetched.items[0].product_name == "Product 1"
    assert fetched.total_cents == 2000

    sales_service.void_transaction(txn.id, "Wrong item", actor)
    assert _qty(db_session, product.id) == 10


def test_void_twice_is_rejected(db_session, product, actor):
    txn = sales_service.create_transaction(
        [{"product_id": product.id, "quantity": 1}],
        [cash(1000)],
        actor,
    )
    sales_service.void_transaction(txn.id, "first", actor)

    with pytest.raises(InvalidStateTransitionError):
        sales_service.void_transaction(txn.id, "second", actor)

    assert _qty(db_session, product.id) == 10


def test_void_requires_reason(db_session, product, actor):
    txn = sales_service.create_transaction(
        [{"product_id": product.id, "quantity": 1}],
        [cash(1000)],
        actor,
    )

    with pytest.raises(ValidationError):
        sales_service.void_transaction(txn.id, "   ", actor)

    assert sales_service.get_transaction(txn.id).status == "completed"
    assert _qty(db_session, product.id) == 9


def test_void_unknown_transaction(db_session, actor):
    with pytest.raises(NotFoundError):
        sales_service.void_transaction(123456, "reason", actor)


def test_transaction_numbers_are_sequential(db_session, product, actor):
    numbers = [
        sales_service.create_transaction(
            [{"product_id": product.id, "quantity": 1}], [cash(1000)], actor
        ).transaction_number
        for _ in range(3)
    ]

    assert all(re.fullmatch(r"TXN-\d{6}", n) for n in numbers)
    assert numbers == sorted(numbers)
    assert len(set(numbers)) == 3
    assert sales_service.get_transaction_by_number(numbers[1]).transaction_number == numbers[1]


def test_list_transactions_filters(db_session, product, actor):
    first = sales_service.create_transaction(
        [{"product_id": product.id, "quantity": 1}], [cash(1000)], actor
    )
    sales_service.create_transaction(
        [{"product_id": product.id, "quantity": 1}], [cash(1000)], "cashier-2"
    )
    sales_service.void_transaction(first.id, "test", actor)

    rows, total = sales_service.list_transactions()
    assert total == 2

    rows, total = sales_service.list_transactions(status="voided")
    assert total == 1
    assert rows[0].id == first.id

    rows, total = sales_service.list_transactions(cashier_id="cashier-2")
    assert total == 1
    assert rows[0].cashier_id == "cashier-2"

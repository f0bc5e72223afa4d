import pytest

from retailpos.models import Product
from retailpos.services import adjustment_service, inventory_service
from retailpos.validation import InsufficientStockError, NotFoundError, ValidationError


def test_manual_adjustment_goes_through_ledger(db_session, product, actor):
    adj = adjustment_service.create_adjustment(
        product.id, "damage", -3, "Water damage", actor, notes="Shelf 4"
    )

    assert adj.adjustment_type == "damage"
    assert adj.quantity_before == 10
    assert adj.quantity_after == 7
    assert adj.reason == "Water damage"
    assert adj.notes == "Shelf 4"
    assert adj.reference_type is None
    assert db_session.get(Product, product.id).quantity_in_stock == 7
    assert adjustment_service.get_adjustment(adj.id).adjustment_number == adj.adjustment_number


def test_found_stock_is_positive(db_session, product, actor):
    adj = adjustment_service.create_adjustment(product.id, "found", 4, "Back room", actor)
    assert adj.quantity_after == 14


def test_adjustment_cannot_go_negative(db_session, product, actor):
    with pytest.raises(InsufficientStockError):
        adjustment_service.create_adjustment(product.id, "theft", -11, "Missing", actor)

    assert inventory_service.get_quantity_on_hand(product.id) == 10
    rows, total = inventory_service.list_adjustments(product_id=product.id)
    assert total == 1


@pytest.mark.parametrize("adjustment_type", ["sale", "sale_void", "po_receive", "bogus"])
def test_system_and_unknown_types_are_rejected(db_session, product, actor, adjustment_type):
    with pytest.raises(ValidationError):
        adjustment_service.create_adjustment(product.id, adjustment_type, 1, "x", actor)


def test_zero_change_and_missing_reason(db_session, product, actor):
    with pytest.raises(ValidationError):
        adjustment_service.create_adjustment(product.id, "correction", 0, "Recount", actor)
    with pytest.raises(ValidationError):
        adjustment_service.create_adjustment(product.id, "correction", 1, "  ", actor)


def test_unknown_product_and_adjustment(db_session, actor):
    with pytest.raises(NotFoundError):
        adjustment_service.create_adjustment(555555, "found", 1, "x", actor)
    with pytest.raises(NotFoundError):
        adjustment_service.get_adjustment(555555)

import pytest

from retailpos.services import purchase_order_service as po_service
from retailpos.services import reorder_service, vendor_service
from retailpos.validation import NotFoundError, ValidationError


@pytest.fixture
def catalog(db_session, make_vendor, make_product):
    acme = make_vendor("Acme Wholesale", contact_name="Ann")
    north = make_vendor("Northwind Traders")
    products = {
        "bolts": make_product("BOLT", qty=2, price_cents=150, name="Bolts",
                              reorder_level=5, reorder_quantity=50, vendor_id=acme.id),
        "nuts": make_product("NUT", qty=5, price_cents=100, name="Nuts",
                             reorder_level=5, reorder_quantity=40, vendor_id=acme.id),
        "plenty": make_product("PLENTY", qty=100, name="Plenty",
                               reorder_level=5, reorder_quantity=10, vendor_id=acme.id),
        "rope": make_product("ROPE", qty=0, price_cents=900, name="Rope",
                             reorder_level=1, reorder_quantity=3, vendor_id=north.id),
        "orphan": make_product("ORPHAN", qty=0, name="No vendor", reorder_level=1, reorder_quantity=1),
    }
    return acme, north, products


def test_suggestions_grouped_by_vendor(db_session, catalog):
    acme, north, products = catalog

    groups = reorder_service.get_reorder_suggestions()

    assert [g["vendor_name"] for g in groups] == ["Acme Wholesale", "Northwind Traders"]
    acme_group = groups[0]
    assert acme_group["vendor_contact"] == "Ann"
    assert [p["sku"] for p in acme_group["products"]] == ["BOLT", "NUT"]
    assert acme_group["total_items"] == 90
    assert acme_group["estimated_total_cents"] == 50 * 150 + 40 * 100
    assert groups[1]["products"][0]["unit_cost_cents"] == 900


def test_suggestions_for_one_vendor(db_session, catalog):
    acme, north, products = catalog

    groups = reorder_service.get_reorder_suggestions(vendor_id=north.id)

    assert len(groups) == 1
    assert groups[0]["vendor_id"] == north.id
    assert groups[0]["products"][0]["product_id"] == products["rope"].id


def test_inactive_vendor_is_skipped(db_session, catalog):
    acme, north, products = catalog
    vendor_service.deactivate_vendor(north.id)

    groups = reorder_service.get_reorder_suggestions()
    assert [g["vendor_id"] for g in groups] == [acme.id]


def test_latest_po_cost_is_used(db_session, catalog, actor):
    acme, north, products = catalog
    po_service.create_po(acme.id, actor, [
        {"product_id": products["bolts"].id, "quantity_ordered": 1, "unit_cost_cents": 90},
    ])
    po_service.create_po(acme.id, actor, [
        {"product_id": products["bolts"].id, "quantity_ordered": 1, "unit_cost_cents": 80},
    ])

    groups = reorder_service.get_reorder_suggestions(vendor_id=acme.id)
    bolts = next(p for p in groups[0]["products"] if p["sku"] == "BOLT")
    assert bolts["unit_cost_cents"] == 80


def test_suggestions_are_read_only(db_session, catalog):
    acme, north, products = catalog
    reorder_service.get_reorder_suggestions()
    assert products["bolts"].quantity_in_stock == 2


def test_create_po_from_suggestions(db_session, catalog, actor):
    acme, north, products = catalog

    po = reorder_service.create_po_from_suggestions(acme.id, actor)

    assert po.status == "draft"
    assert po.vendor_id == acme.id
    assert sorted((line.sku, line.quantity_ordered) for line in po.lines) == [("BOLT", 50), ("NUT", 40)]
    assert po.subtotal_cents == 50 * 150 + 40 * 100


def test_create_po_from_suggestions_without_candidates(db_session, make_vendor, actor):
    empty = make_vendor("Empty Supply")
    with pytest.raises(ValidationError):
        reorder_service.create_po_from_suggestions(empty.id, actor)
    with pytest.raises(NotFoundError):
        reorder_service.create_po_from_suggestions(987654, actor)

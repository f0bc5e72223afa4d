import re
from datetime import date

from retailpos.services import document_service


def test_numbers_are_per_key_and_sequential(db_session):
    assert document_service.next_transaction_number() == "TXN-000001"
    assert document_service.next_transaction_number() == "TXN-000002"
    assert document_service.next_adjustment_number() == "ADJ-000001"
    assert document_service.next_receipt_number() == "RCV-000001"
    db_session.commit()


def test_po_numbers_restart_each_day(db_session):
    assert document_service.next_po_number(date(2026, 3, 1)) == "PO-20260301-0001"
    assert document_service.next_po_number(date(2026, 3, 1)) == "PO-20260301-0002"
    assert document_service.next_po_number(date(2026, 3, 2)) == "PO-20260302-0001"
    assert re.fullmatch(r"PO-\d{8}-\d{4}", document_service.next_po_number())
    db_session.commit()


def test_rolled_back_numbers_are_reused(db_session):
    document_service.next_document_number("TEST", "T")
    db_session.commit()

    assert document_service.next_document_number("TEST", "T") == "T-000002"
    db_session.rollback()

    assert document_service.next_document_number("TEST", "T") == "T-000002"
    db_session.commit()

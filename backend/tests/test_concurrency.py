"""
Threaded tests against a file-backed SQLite database.

Each worker thread pushes its own app context and therefore uses its own
session and connection, the way concurrent requests do.
"""
import os
import sqlite3
import tempfile
import threading
import unittest

from retailpos import create_app
from retailpos.extensions import db
from retailpos.models import Product
from retailpos.services import (
    adjustment_service,
    inventory_service,
    products_service,
    purchase_order_service,
    sales_service,
    vendor_service,
)
from retailpos.validation import ConcurrencyConflictError, InsufficientStockError, OverReceiveError


ACTOR = "cashier-1"


def _cash(amount_cents):
    return [{"method": "cash", "amount_cents": amount_cents}]


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "SQLALCHEMY_ENGINE_OPTIONS": {
                "connect_args": {"check_same_thread": False, "timeout": 15},
            },
            "DEFAULT_TAX_RATE_BPS": 0,
            "LOCK_RETRY_ATTEMPTS": 5,
            "LOCK_RETRY_BACKOFF": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            vendor = vendor_service.create_vendor(name="Concurrency Supply")
            self.vendor_id = vendor.id

            product = products_service.create_product(
                {"sku": "CONCUR-1", "name": "Concurrent Product", "price_cents": 1000, "initial_quantity": 10},
                ACTOR,
            )
            self.product_id = product.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_threads(self, target, args_list):
        results = []
        lock = threading.Lock()

        def worker(*args):
            with self.app.app_context():
                try:
                    value = target(*args)
                    with lock:
                        results.append(value)
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=args) for args in args_list]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _on_hand(self):
        with self.app.app_context():
            return db.session.get(Product, self.product_id).quantity_in_stock

    def test_concurrent_sales_cannot_oversell(self):
        def sell():
            txn = sales_service.create_transaction(
                [{"product_id": self.product_id, "quantity": 6}], _cash(6000), ACTOR
            )
            return txn.transaction_number

        results = self._run_threads(sell, [(), ()])

        sold = [r for r in results if isinstance(r, str)]
        rejected = [r for r in results if isinstance(r, InsufficientStockError)]
        self.assertEqual(len(sold), 1, results)
        self.assertEqual(len(rejected), 1, results)
        self.assertEqual(self._on_hand(), 4)

    def test_concurrent_adjustments_stay_non_negative(self):
        with self.app.app_context():
            adjustment_service.create_adjustment(self.product_id, "correction", -5, "Recount", ACTOR)

        def take_one():
            return adjustment_service.create_adjustment(
                self.product_id, "theft", -1, "Missing", ACTOR
            ).quantity_after

        results = self._run_threads(take_one, [()] * 8)

        applied = [r for r in results if isinstance(r, int)]
        rejected = [r for r in results if isinstance(r, InsufficientStockError)]
        self.assertEqual(len(applied), 5, results)
        self.assertEqual(len(rejected), 3, results)
        self.assertEqual(self._on_hand(), 0)

        with self.app.app_context():
            history = inventory_service.get_product_history(self.product_id)
            for prev, nxt in zip(history, history[1:]):
                self.assertEqual(prev.quantity_after, nxt.quantity_before)
            self.assertEqual(history[-1].quantity_after, 0)

    def test_document_numbers_unique_under_concurrency(self):
        def sell_one():
            return sales_service.create_transaction(
                [{"product_id": self.product_id, "quantity": 1}], _cash(1000), ACTOR
            ).transaction_number

        results = self._run_threads(sell_one, [()] * 8)

        numbers = [r for r in results if isinstance(r, str)]
        self.assertEqual(len(numbers), 8, results)
        self.assertEqual(len(set(numbers)), 8)
        self.assertEqual(self._on_hand(), 2)

    def test_concurrent_receipts_cannot_over_receive(self):
        with self.app.app_context():
            po = purchase_order_service.create_po(
                self.vendor_id,
                ACTOR,
                [{"product_id": self.product_id, "quantity_ordered": 5, "unit_cost_cents": 400}],
            )
            purchase_order_service.submit_po(po.id, ACTOR)
            purchase_order_service.approve_po(po.id, ACTOR)
            po_id = po.id
            line_id = po.lines[0].id

        def receive_three():
            po = purchase_order_service.receive_items(
                po_id, [{"line_item_id": line_id, "quantity_received": 3}], ACTOR
            )
            return po.status

        results = self._run_threads(receive_three, [(), ()])

        received = [r for r in results if isinstance(r, str)]
        rejected = [r for r in results if isinstance(r, OverReceiveError)]
        self.assertEqual(received, ["partially_received"], results)
        self.assertEqual(len(rejected), 1, results)
        self.assertEqual(self._on_hand(), 13)


class LockTimeoutTests(unittest.TestCase):
    """A writer that cannot get the database lock gives up with a typed error."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.tmpdir.name, "locked.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{self.db_path}",
            "SQLITE_BUSY_TIMEOUT": 0.05,
            "LOCK_RETRY_ATTEMPTS": 2,
            "LOCK_RETRY_BACKOFF": 0,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()
            product = products_service.create_product(
                {"sku": "LOCKED-1", "name": "Locked Product", "price_cents": 500, "initial_quantity": 3},
                ACTOR,
            )
            self.product_id = product.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def test_lock_wait_exhaustion_raises_conflict(self):
        holder = sqlite3.connect(self.db_path, isolation_level=None)
        try:
            holder.execute("BEGIN IMMEDIATE")

            with self.app.app_context():
                with self.assertRaises(ConcurrencyConflictError) as ctx:
                    adjustment_service.create_adjustment(self.product_id, "damage", -1, "Broken", ACTOR)
                db.session.remove()

            self.assertEqual(ctx.exception.code, "CONCURRENCY_CONFLICT")
            self.assertEqual(ctx.exception.http_status, 503)
            self.assertEqual(ctx.exception.details["attempts"], 2)
        finally:
            holder.execute("ROLLBACK")
            holder.close()

        with self.app.app_context():
            self.assertEqual(inventory_service.get_quantity_on_hand(self.product_id), 3)
            self.assertEqual(len(inventory_service.get_product_history(self.product_id)), 1)

            adj = adjustment_service.create_adjustment(self.product_id, "damage", -1, "Broken", ACTOR)
            self.assertEqual(adj.quantity_before, 3)
            self.assertEqual(adj.quantity_after, 2)


if __name__ == "__main__":
    unittest.main()

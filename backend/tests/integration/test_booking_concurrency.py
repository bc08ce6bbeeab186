# backend/tests/integration/test_booking_concurrency.py
"""
Concurrent booking creation against the real database.

Each worker uses its own session, as separate API requests would. The
per-staff lock (BEGIN IMMEDIATE on SQLite, advisory locks on PostgreSQL)
must let exactly one of two overlapping inserts through.
"""

import threading
from typing import List

import pytest

from bookdesk.core.exceptions import BookingConflictException
from bookdesk.models import Booking
from bookdesk.schemas.booking import BookingCreate
from bookdesk.services.booking_service import BookingService
from conftest import TestSessionLocal

pytestmark = pytest.mark.integration


def _run_concurrently(ctx, payloads: List[BookingCreate]):
    barrier = threading.Barrier(len(payloads))
    results: List[object] = [None] * len(payloads)

    def worker(index: int, data: BookingCreate) -> None:
        session = TestSessionLocal()
        try:
            service = BookingService(session)
            barrier.wait(timeout=5)
            results[index] = service.create_booking(ctx, data).id
        except Exception as exc:  # collected for assertions below
            results[index] = exc
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(i, p)) for i, p in enumerate(payloads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results


class TestConcurrentCreate:
    def test_exactly_one_overlapping_booking_wins(self, db, manager_ctx, catalog, at):
        db.commit()
        payloads = [
            BookingCreate(
                customer_id=customer.id,
                service_ids=[catalog.s1.id],
                staff_id=catalog.st1.id,
                start_time=at(10, minute),
            )
            for customer, minute in ((catalog.c1, 0), (catalog.c2, 30))
        ]

        results = _run_concurrently(manager_ctx, payloads)

        successes = [r for r in results if isinstance(r, str)]
        conflicts = [r for r in results if isinstance(r, BookingConflictException)]
        assert len(successes) == 1, results
        assert len(conflicts) == 1, results

        db.expire_all()
        assert db.query(Booking).filter(Booking.staff_id == catalog.st1.id).count() == 1

    def test_different_staff_both_succeed(self, db, manager_ctx, catalog, at):
        db.commit()
        payloads = [
            BookingCreate(
                customer_id=catalog.c1.id,
                service_ids=[catalog.s1.id],
                staff_id=staff.id,
                start_time=at(10),
            )
            for staff in (catalog.st1, catalog.st2)
        ]

        results = _run_concurrently(manager_ctx, payloads)

        assert all(isinstance(r, str) for r in results), results
        db.expire_all()
        assert db.query(Booking).count() == 2

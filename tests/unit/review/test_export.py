"""Unit tests for the approved-professionals CSV export."""

import csv
import io

from vetverify.review_queue import EXPORT_COLUMNS


def _rows(text):
    return list(csv.DictReader(io.StringIO(text)))


def test_header_only_when_nobody_approved(queue, make_pending):
    make_pending("vet-1")
    text = queue.export_approved()

    assert text.splitlines() == [",".join(EXPORT_COLUMNS)]


def test_one_row_per_approved_account(engine, queue, make_pending, make_approved):
    make_approved("vet-1")
    make_approved("ven-1", role="vendor")
    make_pending("vet-2")
    make_pending("vet-3")
    engine.record_decision("vet-3", "rejected", {"reason": "Unreadable Documents"})

    rows = _rows(queue.export_approved())

    assert [r["account_id"] for r in rows] == ["ven-1", "vet-1"]
    vendor = rows[0]
    assert vendor["role"] == "vendor"
    assert vendor["name"] == "Happy Tails Pet Store"
    assert vendor["license_number"] == "BL-55555"
    assert vendor["status"] == "approved"


def test_snapshot_unaffected_by_later_changes(engine, queue, make_approved):
    make_approved("vet-1")
    make_approved("vet-2")

    snapshot = queue.export_approved()
    engine.suspend("vet-1", admin_id="admin-1", comments="Licence lapsed")

    assert [r["account_id"] for r in _rows(snapshot)] == ["vet-1", "vet-2"]
    assert [r["account_id"] for r in _rows(queue.export_approved())] == ["vet-2"]


def test_write_to_file(queue, make_approved, tmp_path):
    make_approved("vet-1", full_name="Dr. Aisha, Sharma")
    target = tmp_path / "exports" / "approved.csv"

    count = queue.write_approved_export(target)

    assert count == 1
    rows = _rows(target.read_text())
    assert rows[0]["name"] == "Dr. Aisha, Sharma"

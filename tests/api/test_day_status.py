"""
Tests for business-day API endpoints.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.exc import OperationalError

from hospital_ledger.models.enums import AppointmentStatus
from hospital_ledger.services.revenue_aggregator import RevenueAggregator


def test_status_of_fresh_system(client):
    data = client.get("/day-status").json()
    assert data["status"] == "day_started"
    assert data["new_day_available"] is False


def test_close_day(client, db_session, make_appointment):
    make_appointment(
        status=AppointmentStatus.COMPLETED, when=datetime(2025, 3, 13, 10)
    )
    db_session.commit()

    response = client.post("/day-status/close", headers={"X-User-Id": "5"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["boundary"] == "2025-03-14T15:00:00"
    assert len(data["snapshots"]) == 1
    assert data["snapshots"][0]["snapshot_date"] == "2025-03-13"


def test_new_day_after_close(client, clock, db_session, make_appointment):
    make_appointment(status=AppointmentStatus.COMPLETED)
    db_session.commit()
    client.post("/day-status/close")

    clock.advance(days=1)
    data = client.get("/day-status").json()

    assert data["status"] == "new_day_available"
    assert data["days_behind"] == 1


def test_summary_resets_after_close(client, clock, db_session, make_appointment):
    make_appointment(status=AppointmentStatus.COMPLETED)
    db_session.commit()
    before = client.get("/day-status/summary").json()
    assert Decimal(before["revenue"]["total"]) == Decimal("100.00")

    client.post("/day-status/close")
    clock.advance(minutes=5)
    after = client.get("/day-status/summary").json()

    assert Decimal(after["revenue"]["total"]) == Decimal("0")
    assert after["period_start"] == "2025-03-14T15:00:00"


def test_yesterday_summary(client):
    data = client.get("/day-status/yesterday").json()
    assert data["date"] == "2025-03-13"
    assert data["source"] == "unavailable"


def test_failed_close_reports_500(client, monkeypatch, make_appointment, db_session):
    make_appointment(
        status=AppointmentStatus.COMPLETED,
        when=datetime(2025, 3, 14) - timedelta(hours=6),
    )
    db_session.commit()

    def broken(self, window):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    monkeypatch.setattr(RevenueAggregator, "aggregate", broken)

    response = client.post("/day-status/close")

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert client.get("/day-status").json()["day_end_timestamp"] is None

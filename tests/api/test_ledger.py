"""
Tests for ledger API endpoints.

These test the HTTP layer: status codes, response format and
error handling. Business logic is tested under tests/services.
"""

from decimal import Decimal

from hospital_ledger.models import Appointment
from hospital_ledger.models.enums import AppointmentStatus


class TestWallet:

    def test_empty_wallet(self, client):
        response = client.get("/ledger/wallet")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Hospital Wallet"
        assert Decimal(data["balance"]) == Decimal("0")
        assert data["recent_transactions"] == []

    def test_wallet_lists_recent_transactions(
        self, client, db_session, make_appointment
    ):
        make_appointment(status=AppointmentStatus.COMPLETED)
        make_appointment(status=AppointmentStatus.COMPLETED, fee="50.00")
        db_session.commit()

        data = client.get("/ledger/wallet", params={"limit": 1}).json()

        assert Decimal(data["balance"]) == Decimal("150.00")
        assert len(data["recent_transactions"]) == 1
        assert data["recent_transactions"][0]["type"] == "credit"


class TestReferenceLedger:

    def test_reference_history(self, client, db_session, records, make_appointment):
        appointment = make_appointment(status=AppointmentStatus.COMPLETED)
        records.update(appointment, fee=Decimal("130.00"))
        db_session.commit()

        response = client.get(f"/ledger/references/appointment/{appointment.id}")

        assert response.status_code == 200
        data = response.json()
        assert [t["type"] for t in data["transactions"]] == ["credit", "debit", "credit"]
        assert Decimal(data["net"]) == Decimal("130.00")
        assert data["transactions"][1]["reversal_of_id"] == data["transactions"][0]["id"]

    def test_unknown_reference_returns_404(self, client):
        response = client.get("/ledger/references/payment/12345")
        assert response.status_code == 404

    def test_invalid_reference_type_returns_422(self, client):
        response = client.get("/ledger/references/invoice/1")
        assert response.status_code == 422


class TestSync:

    def _unbooked(self, db_session, clock):
        db_session.add(Appointment(
            patient_name="Walk In",
            status=AppointmentStatus.COMPLETED,
            fee=Decimal("80.00"),
            appointment_date=clock.now(),
        ))
        db_session.commit()

    def test_dry_run_then_sync(self, client, db_session, clock):
        self._unbooked(db_session, clock)

        dry = client.post("/ledger/sync", params={"dry_run": True}).json()
        assert dry["dry_run"] is True
        assert dry["total_changes"] == 1
        wallet = client.get("/ledger/wallet").json()
        assert Decimal(wallet["balance"]) == Decimal("0")

        real = client.post("/ledger/sync").json()
        assert real["total_changes"] == 1
        wallet = client.get("/ledger/wallet").json()
        assert Decimal(wallet["balance"]) == Decimal("80.00")

    def test_sync_single_source(self, client, db_session, clock):
        self._unbooked(db_session, clock)

        data = client.post(
            "/ledger/sync", params={"reference_type": "payment"}
        ).json()

        assert [s["reference_type"] for s in data["sources"]] == ["payment"]
        assert data["total_changes"] == 0


class TestCrossCheck:

    def test_cross_check_consistent(self, client, db_session, make_appointment):
        make_appointment(status=AppointmentStatus.COMPLETED)
        db_session.commit()

        data = client.get("/ledger/cross-check").json()

        assert data["consistent"] is True
        names = [line["name"] for line in data["lines"]]
        assert "appointments" in names

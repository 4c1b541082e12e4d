from datetime import datetime

import pytest

from bookery.domain.payments.schemas import GatewayVerification
from bookery.models import Appointment, Payment
from bookery.worker import finalize_booking_task, reconcile_pending_payments
from tests.conftest import beauty_metadata, make_payment, make_service_type

LONG_AGO = datetime(2026, 1, 5, 9, 0, 0)


@pytest.fixture
def ctx(session_factory, gateway, email_sender):
    return {"gateway": gateway, "email_sender": email_sender, "session_factory": session_factory}


class TestReconcile:
    @pytest.mark.asyncio
    async def test_settles_stale_payments(self, ctx, db, gateway, client_profile, stylist):
        st = make_service_type(db, 40, specialist_id=stylist.id)
        make_payment(db, "ref_paid", beauty_metadata([st.id]), amount=4400, gateway_status=None, created_at=LONG_AGO)
        make_payment(db, "ref_declined", beauty_metadata([st.id]), amount=4400, gateway_status=None, created_at=LONG_AGO)
        make_payment(db, "ref_fresh", beauty_metadata([st.id]), amount=4400, gateway_status=None)
        gateway.results["ref_declined"] = GatewayVerification(reference="ref_declined", status="failed")

        summary = await reconcile_pending_payments(ctx)

        assert summary == {"checked": 2, "finalized": 1, "unpaid": 1, "errors": 0}
        assert "ref_fresh" not in gateway.verify_calls

        db.expire_all()
        payments = {p.reference: p for p in db.query(Payment).all()}
        appointment = db.query(Appointment).one()
        assert payments["ref_paid"].resource_id == appointment.id
        assert payments["ref_declined"].status == "failed"
        assert payments["ref_fresh"].status == "pending"

    @pytest.mark.asyncio
    async def test_nothing_to_do(self, ctx):
        summary = await reconcile_pending_payments(ctx)

        assert summary == {"checked": 0, "finalized": 0, "unpaid": 0, "errors": 0}


class TestFinalizeTask:
    @pytest.mark.asyncio
    async def test_finalizes_reference(self, ctx, db, client_profile, stylist):
        st = make_service_type(db, 40, specialist_id=stylist.id)
        make_payment(db, "ref_task", beauty_metadata([st.id]), amount=4400)

        result = await finalize_booking_task(ctx, "ref_task")

        assert result["success"] is True
        assert result["resource_type"] == "appointment"

    @pytest.mark.asyncio
    async def test_reports_failure(self, ctx, gateway):
        gateway.results["ref_gone"] = GatewayVerification(reference="ref_gone", status="failed")

        result = await finalize_booking_task(ctx, "ref_gone")

        assert result["success"] is False
        assert result["code"] == "PaymentNotFound"

"""Tests for ReferralAccessService: subscription vs paid access, idempotent grant."""
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import LedgerWriteError
from app.models.referral_access import ReferralAccess
from app.models.subscription import Subscription
from app.referral.service import ReferralAccessService


def _subscribe(db, user_id, end):
    db.add(
        Subscription(
            user_id=user_id,
            active=True,
            plan="monthly",
            amount=100,
            start_date=end - timedelta(days=30),
            end_date=end,
        )
    )
    db.commit()


class TestCheckAccess:
    def test_no_access(self, db, clock):
        status = ReferralAccessService(db, now=clock.now).check_access("u1")
        assert status.has_access is False
        assert status.access_type == "none"
        assert "K30" in status.message

    def test_subscription_gives_access(self, db, clock):
        _subscribe(db, "u1", clock.now() + timedelta(days=10))
        status = ReferralAccessService(db, now=clock.now).check_access("u1")
        assert status.has_access is True
        assert status.access_type == "subscription"

    def test_expired_subscription_gives_nothing(self, db, clock):
        _subscribe(db, "u1", clock.now() - timedelta(days=1))
        assert ReferralAccessService(db, now=clock.now).check_access("u1").has_access is False

    def test_paid_access_is_lifetime(self, db, clock):
        svc = ReferralAccessService(db, now=clock.now)
        svc.grant("u1", 30, "mobile_money", reference="ref_1")
        db.commit()
        clock.advance(days=3650)

        status = svc.check_access("u1")
        assert status.has_access is True
        assert status.access_type == "payment"

    def test_subscription_wins_over_payment(self, db, clock):
        svc = ReferralAccessService(db, now=clock.now)
        svc.grant("u1", 30, "card")
        _subscribe(db, "u1", clock.now() + timedelta(days=10))
        assert svc.check_access("u1").access_type == "subscription"


class TestGrant:
    def test_grant_is_idempotent(self, db):
        svc = ReferralAccessService(db)
        first = svc.grant("u1", 30, "mobile_money", reference="ref_1")
        db.commit()
        second = svc.grant("u1", 30, "card", reference="ref_2")
        db.commit()

        assert db.query(ReferralAccess).count() == 1
        assert first.id == second.id
        assert second.payment_reference == "ref_1"

    def test_storage_error(self):
        db = MagicMock()
        db.get_bind.return_value.dialect.name = "sqlite"
        db.execute.side_effect = OperationalError("INSERT", {}, Exception("db down"))

        with pytest.raises(LedgerWriteError):
            ReferralAccessService(db).grant("u1", 30, "mobile_money")
        db.rollback.assert_called_once()

# tests/test_db.py
"""
Tests for the unit-of-work session context.
"""
import pytest

from core.db import get_db_session_ctx
from models import Affiliate, AffiliateStatus


def new_affiliate(user_id):
    return Affiliate(
        userID=user_id,
        displayName="Ctx",
        code=f"CTX{user_id}",
        status=AffiliateStatus.ACTIVE.value,
    )


class TestSessionContext:

    def test_commits_on_success(self, session_factory, session):
        with get_db_session_ctx(session_factory) as ctx_session:
            ctx_session.add(new_affiliate(1))

        assert session.query(Affiliate).filter_by(userID=1).count() == 1

    def test_rolls_back_on_error(self, session_factory, session):
        """
        TEST: An exception inside the block discards the pending work and propagates.
        """
        with pytest.raises(RuntimeError):
            with get_db_session_ctx(session_factory) as ctx_session:
                ctx_session.add(new_affiliate(2))
                ctx_session.flush()
                raise RuntimeError("handler failed")

        assert session.query(Affiliate).filter_by(userID=2).count() == 0

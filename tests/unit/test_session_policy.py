"""Unit tests for the pure session rules."""

import pytest

from services.session_policy import (
    SessionAction,
    SessionDecision,
    is_session_valid,
    reconcile_session,
)
from tests.fakes import SimpleIdentity

NOW = 1_700_000_000_000
HOUR = 3_600_000


class TestIsSessionValid:
    @pytest.mark.parametrize(
        "expiry, expected",
        [
            (None, False),
            (NOW - 1, False),
            (NOW, False),
            (NOW + 1, True),
            (NOW + HOUR, True),
        ],
        ids=["none", "past", "exactly_now", "one_ms_left", "an_hour_left"],
    )
    def test_strictly_in_future(self, expiry, expected):
        assert is_session_valid(expiry, NOW) is expected


class TestReconcileSession:
    def test_no_identity_clears(self):
        assert reconcile_session(None, NOW + HOUR, NOW, HOUR) == SessionDecision(
            SessionAction.CLEAR
        )

    def test_adopts_live_stored_session(self):
        identity = SimpleIdentity("a@x.com", verified=True)
        decision = reconcile_session(identity, NOW + 10, NOW, HOUR)
        assert decision.action is SessionAction.ADOPT
        assert decision.session_expiry == NOW + 10

    def test_adopts_even_when_unverified(self):
        identity = SimpleIdentity("a@x.com", verified=False)
        assert reconcile_session(identity, NOW + 10, NOW, HOUR).action is SessionAction.ADOPT

    @pytest.mark.parametrize("stored", [None, NOW - 1, NOW], ids=["missing", "expired", "boundary"])
    def test_mints_full_session_for_verified(self, stored):
        identity = SimpleIdentity("a@x.com", verified=True)
        decision = reconcile_session(identity, stored, NOW, HOUR)
        assert decision.action is SessionAction.MINT
        assert decision.session_expiry == NOW + HOUR

    def test_signs_out_unverified_without_session(self):
        identity = SimpleIdentity("a@x.com", verified=False)
        decision = reconcile_session(identity, None, NOW, HOUR)
        assert decision.action is SessionAction.SIGN_OUT
        assert decision.session_expiry is None

    def test_is_deterministic(self):
        identity = SimpleIdentity("a@x.com", verified=True)
        first = reconcile_session(identity, None, NOW, HOUR)
        assert reconcile_session(identity, None, NOW, HOUR) == first

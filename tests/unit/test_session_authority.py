"""Unit tests for SessionAuthority: sign-in gating, sign-out, reconciliation, expiry."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from config import AccessSettings
from errors import (
    EmailVerificationRequiredError,
    InvalidCredentialsError,
    NotAuthorizedError,
    StoreError,
)
from schemas.models.user import LoginHistoryEntry, UserDoc
from services.session_authority import SessionAuthority

HOUR = 3_600_000


@pytest.fixture
async def authority(provider, users, access, clock):
    auth = SessionAuthority(provider, users, access, clock=clock)
    await auth.start()
    yield auth
    await auth.close()


# ── signIn ────────────────────────────────────────────────────────────────────


class TestSignInAllowList:
    async def test_rejects_email_not_on_allow_list(self, authority, provider):
        with pytest.raises(NotAuthorizedError):
            await authority.sign_in("b@x.com", "anything")

    async def test_never_reaches_identity_provider(self, authority, provider):
        provider.add_account("b@x.com", "anything", verified=True)
        with pytest.raises(NotAuthorizedError):
            await authority.sign_in("b@x.com", "anything")
        assert provider.authenticate_calls == []
        assert not authority.is_session_valid()

    async def test_allow_list_match_ignores_case_and_spaces(self, authority, provider):
        provider.add_account(" A@X.com ", "right", verified=True)
        await authority.sign_in(" A@X.com ", "right")
        assert authority.is_session_valid()


class TestSignInCredentials:
    async def test_wrong_password(self, authority, provider):
        provider.add_account("a@x.com", "right", verified=True)
        with pytest.raises(InvalidCredentialsError):
            await authority.sign_in("a@x.com", "wrong")
        assert not authority.is_session_valid()

    async def test_unknown_account(self, authority):
        with pytest.raises(InvalidCredentialsError):
            await authority.sign_in("a@x.com", "whatever")


class TestSignInUnverified:
    async def test_requires_verification(self, authority, provider):
        provider.add_account("a@x.com", "right", verified=False)
        with pytest.raises(EmailVerificationRequiredError) as exc:
            await authority.sign_in("a@x.com", "right")
        assert "verification email has been sent" in exc.value.message

    async def test_sends_exactly_one_email_and_leaves_no_session(self, authority, provider, users):
        provider.add_account("a@x.com", "right", verified=False)
        with pytest.raises(EmailVerificationRequiredError):
            await authority.sign_in("a@x.com", "right")

        assert provider.verification_emails == ["a@x.com"]
        assert provider.current_identity is None
        assert authority.identity is None
        assert not authority.is_session_valid()
        assert authority.needs_email_verification is True
        assert "record_login" not in users.calls

    async def test_reloads_identity_before_deciding(self, authority, provider):
        provider.add_account("a@x.com", "right", verified=True)
        await authority.sign_in("a@x.com", "right")
        assert provider.reloads == 1
        assert authority.is_session_valid()

    async def test_message_differs_from_credential_failure(self, authority, provider):
        provider.add_account("a@x.com", "right", verified=False)
        with pytest.raises(EmailVerificationRequiredError) as unverified:
            await authority.sign_in("a@x.com", "right")
        with pytest.raises(InvalidCredentialsError) as bad:
            await authority.sign_in("a@x.com", "wrong")
        assert unverified.value.message != bad.value.message
        assert unverified.value.error_code != bad.value.error_code


class TestSignInVerified:
    async def test_starts_session_of_configured_duration(self, authority, provider, users, clock):
        uid = provider.add_account("a@x.com", "right", verified=True)
        expiry = await authority.sign_in("a@x.com", "right", user_agent="pytest")

        assert expiry == clock.now + HOUR
        assert authority.session_expiry == expiry
        assert authority.is_session_valid()
        assert authority.identity.uid == uid
        assert users.raw(uid)["sessionExpiry"] == expiry

    async def test_valid_until_expiry(self, authority, provider, clock):
        provider.add_account("a@x.com", "right", verified=True)
        await authority.sign_in("a@x.com", "right")

        clock.advance(HOUR - 1)
        assert authority.is_session_valid()
        clock.advance(1)
        assert not authority.is_session_valid()

    async def test_appends_login_history_without_clobbering(self, authority, provider, users, clock):
        uid = provider.add_account("a@x.com", "right", verified=True)
        earlier = datetime(2024, 1, 1, tzinfo=timezone.utc)
        users.add(
            UserDoc(
                _id=uid,
                email="a@x.com",
                workspace_id="ws_test",
                login_history=[
                    LoginHistoryEntry(timestamp=earlier, user_agent="old-1"),
                    LoginHistoryEntry(timestamp=earlier, user_agent="old-2"),
                ],
            )
        )

        await authority.sign_in("a@x.com", "right", user_agent="new")

        stored = users.raw(uid)
        assert [e["userAgent"] for e in stored["loginHistory"]] == ["old-1", "old-2", "new"]
        assert stored["workspaceId"] == "ws_test"

    async def test_store_failure_surfaces_and_leaves_no_session(self, authority, provider, users):
        provider.add_account("a@x.com", "right", verified=True)
        users.fail = True
        with pytest.raises(StoreError):
            await authority.sign_in("a@x.com", "right")
        assert not authority.is_session_valid()
        assert provider.current_identity is None


class TestSignInScenario:
    async def test_full_walkthrough(self, provider, users, clock):
        access = AccessSettings(allowed_emails="a@x.com")
        authority = SessionAuthority(provider, users, access, clock=clock)
        await authority.start()
        provider.add_account("a@x.com", "right", verified=False)

        with pytest.raises(NotAuthorizedError):
            await authority.sign_in("b@x.com", "anything")
        with pytest.raises(InvalidCredentialsError):
            await authority.sign_in("a@x.com", "wrong")
        with pytest.raises(EmailVerificationRequiredError):
            await authority.sign_in("a@x.com", "right")
        assert len(provider.verification_emails) == 1

        provider.verify("a@x.com")
        expiry = await authority.sign_in("a@x.com", "right")
        assert expiry == clock.now + access.session_duration_ms
        assert authority.is_session_valid()
        await authority.close()


# ── signOut ───────────────────────────────────────────────────────────────────


class TestSignOut:
    async def test_clears_session_and_records_logout(self, authority, provider, users):
        uid = provider.add_account("a@x.com", "right", verified=True)
        await authority.sign_in("a@x.com", "right")

        await authority.sign_out()

        assert not authority.is_session_valid()
        assert authority.identity is None
        assert provider.current_identity is None
        assert users.raw(uid)["sessionExpiry"] is None
        assert isinstance(users.raw(uid)["lastLogout"], datetime)

    async def test_twice_is_harmless(self, authority, provider):
        provider.add_account("a@x.com", "right", verified=True)
        await authority.sign_in("a@x.com", "right")

        await authority.sign_out()
        assert not authority.is_session_valid()
        await authority.sign_out()
        assert not authority.is_session_valid()

    async def test_without_session_touches_nothing(self, authority, users):
        await authority.sign_out()
        assert "merge" not in users.calls
        assert not authority.is_session_valid()

    async def test_store_failure_still_clears_local_state(self, authority, provider, users):
        provider.add_account("a@x.com", "right", verified=True)
        await authority.sign_in("a@x.com", "right")
        users.fail = True
        with pytest.raises(StoreError):
            await authority.sign_out()
        assert not authority.is_session_valid()
        assert authority.identity is None
        assert provider.current_identity is None

    async def test_stops_expiry_watcher(self, authority, provider):
        provider.add_account("a@x.com", "right", verified=True)
        await authority.sign_in("a@x.com", "right")
        assert authority._watcher.running
        await authority.sign_out()
        await asyncio.sleep(0)
        assert not authority._watcher.running


# ── Auth-state observation ────────────────────────────────────────────────────


class TestAuthStateReconciliation:
    async def test_adopts_stored_live_session(self, authority, provider, users, clock):
        uid = provider.add_account("a@x.com", "right", verified=True)
        users.add(UserDoc(_id=uid, email="a@x.com", session_expiry=clock.now + 1000))

        await provider.restore("a@x.com")

        assert authority.session_expiry == clock.now + 1000
        assert authority.is_session_valid()
        assert "merge" not in users.calls

    async def test_mints_new_session_when_stored_one_expired(self, authority, provider, users, clock):
        uid = provider.add_account("a@x.com", "right", verified=True)
        users.add(UserDoc(_id=uid, email="a@x.com", session_expiry=clock.now - 1))

        await provider.restore("a@x.com")

        assert authority.session_expiry == clock.now + HOUR
        assert users.raw(uid)["sessionExpiry"] == clock.now + HOUR

    async def test_mints_when_record_missing(self, authority, provider, users, clock):
        uid = provider.add_account("a@x.com", "right", verified=True)
        await provider.restore("a@x.com")
        assert authority.is_session_valid()
        assert users.raw(uid)["email"] == "a@x.com"

    async def test_signs_out_unverified_identity(self, authority, provider):
        provider.add_account("a@x.com", "right", verified=False)
        await provider.restore("a@x.com")
        assert provider.current_identity is None
        assert not authority.is_session_valid()

    async def test_reconciliation_is_idempotent(self, authority, provider, users, clock):
        provider.add_account("a@x.com", "right", verified=True)
        await provider.restore("a@x.com")
        first = authority.session_expiry
        await authority.start()
        await authority.start()
        assert authority.session_expiry == first

    async def test_store_failure_fails_closed(self, authority, provider, users):
        provider.add_account("a@x.com", "right", verified=True)
        users.fail = True
        await provider.restore("a@x.com")
        assert not authority.is_session_valid()

    async def test_start_picks_up_existing_identity(self, provider, users, access, clock):
        provider.add_account("a@x.com", "right", verified=True)
        await provider.restore("a@x.com")  # before anyone listens

        authority = SessionAuthority(provider, users, access, clock=clock)
        assert authority.loading is True
        await authority.start()
        assert authority.loading is False
        assert authority.is_session_valid()
        await authority.close()

    async def test_upstream_sign_out_clears_session(self, authority, provider):
        provider.add_account("a@x.com", "right", verified=True)
        await authority.sign_in("a@x.com", "right")
        await provider.set_current(None)
        assert not authority.is_session_valid()


class TestSessionListeners:
    async def test_notified_on_start_and_end(self, authority, provider):
        seen = []

        async def listener(identity):
            seen.append(identity.email if identity else None)

        authority.on_session_change(listener)
        provider.add_account("a@x.com", "right", verified=True)
        await authority.sign_in("a@x.com", "right")
        await authority.sign_out()
        await authority.sign_out()

        assert seen == ["a@x.com", None]

    async def test_not_notified_for_failed_sign_in(self, authority, provider):
        seen = []

        async def listener(identity):
            seen.append(identity)

        authority.on_session_change(listener)
        provider.add_account("a@x.com", "right", verified=False)
        with pytest.raises(EmailVerificationRequiredError):
            await authority.sign_in("a@x.com", "right")
        assert seen == []


# ── Expiry enforcement ────────────────────────────────────────────────────────


class TestExpiryEnforcement:
    async def test_background_sign_out_on_expiry(self, provider, users, clock):
        access = AccessSettings(allowed_emails="a@x.com", session_check_interval_seconds=0.01)
        authority = SessionAuthority(provider, users, access, clock=clock)
        await authority.start()
        uid = provider.add_account("a@x.com", "right", verified=True)
        await authority.sign_in("a@x.com", "right")

        clock.advance(access.session_duration_ms)
        for _ in range(50):
            await asyncio.sleep(0.01)
            if authority.identity is None:
                break

        assert authority.identity is None
        assert provider.current_identity is None
        assert users.raw(uid)["sessionExpiry"] is None
        await authority.close()

    async def test_live_session_left_alone(self, provider, users, clock):
        access = AccessSettings(allowed_emails="a@x.com", session_check_interval_seconds=0.01)
        authority = SessionAuthority(provider, users, access, clock=clock)
        await authority.start()
        provider.add_account("a@x.com", "right", verified=True)
        await authority.sign_in("a@x.com", "right")

        await asyncio.sleep(0.05)
        assert authority.is_session_valid()
        await authority.close()


class TestVerifyEmailLink:
    async def test_delegates_to_login_links(self, provider, users, access, clock):
        links = AsyncMock()
        authority = SessionAuthority(provider, users, access, login_links=links, clock=clock)
        await authority.verify_email_link("uid-1", "tok")
        links.verify.assert_awaited_once_with("uid-1", "tok")

    async def test_requires_login_links(self, authority):
        with pytest.raises(RuntimeError):
            await authority.verify_email_link("uid-1", "tok")

import asyncio

import pytest
from conftest import FakeDirectory

from platform_access.errors import ConfigurationError, DirectoryError, SignInBlockedError
from platform_access.signin.decision import (
    CONFIGURATION_ERROR_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    MFA_REQUIRED_MESSAGE,
    SETUP_INCOMPLETE_MESSAGE,
    AccountStatus,
    DecisionReason,
    decide,
)
from platform_access.signin.gate import SignInEvent, StepUpMfaGate

REALM = "tenant-realm"


@pytest.mark.parametrize(
    ("is_admin", "status", "mfa_count", "allow", "reason"),
    [
        (False, AccountStatus.FORCE_CHANGE_PASSWORD, 0, True, DecisionReason.NOT_ADMIN),
        (False, AccountStatus.CONFIRMED, 0, True, DecisionReason.NOT_ADMIN),
        (True, AccountStatus.FORCE_CHANGE_PASSWORD, 2, False, DecisionReason.SETUP_INCOMPLETE),
        (True, AccountStatus.CONFIRMED, 0, False, DecisionReason.MFA_REQUIRED),
        (True, AccountStatus.CONFIRMED, 1, True, DecisionReason.ADMIN_SECURED),
        (True, AccountStatus.DISABLED, 1, True, DecisionReason.ADMIN_SECURED),
    ],
)
def test_decide(is_admin, status, mfa_count, allow, reason):
    decision = decide(is_admin, status, mfa_count)

    assert decision.allow is allow
    assert decision.reason is reason


def test_decide_messages():
    assert decide(True, "FORCE_CHANGE_PASSWORD", 0).message == SETUP_INCOMPLETE_MESSAGE
    assert decide(True, "CONFIRMED", 0).message == MFA_REQUIRED_MESSAGE
    assert decide(True, "CONFIRMED", 1).message is None


@pytest.fixture
def gate(directory, metrics) -> StepUpMfaGate:
    return StepUpMfaGate(directory, admin_group="PLATFORM_ADMIN", metrics=metrics)


def _event(account_id: str = "user-1") -> SignInEvent:
    return SignInEvent(realmId=REALM, accountId=account_id)


async def _blocked_message(gate: StepUpMfaGate, event: SignInEvent) -> str:
    with pytest.raises(SignInBlockedError) as exc_info:
        await gate.evaluate(event)
    return exc_info.value.message


@pytest.mark.asyncio
async def test_non_admin_is_allowed_without_mfa(gate, directory):
    directory.add("user-1", groups=["DISPATCH"])

    event = _event()
    assert await gate.evaluate(event) is event


@pytest.mark.asyncio
async def test_admin_with_mfa_is_allowed(gate, directory):
    directory.add("user-1", mfa=frozenset({"otp"}), groups=["PLATFORM_ADMIN"])

    assert await gate.evaluate(_event()) is not None


@pytest.mark.asyncio
async def test_admin_with_incomplete_setup_is_blocked(gate, directory):
    directory.add(
        "user-1",
        status=AccountStatus.FORCE_CHANGE_PASSWORD,
        mfa=frozenset({"otp"}),
        groups=["PLATFORM_ADMIN"],
    )

    assert await _blocked_message(gate, _event()) == SETUP_INCOMPLETE_MESSAGE


@pytest.mark.asyncio
async def test_admin_without_mfa_is_blocked(gate, directory):
    directory.add("user-1", groups=["PLATFORM_ADMIN"])

    assert await _blocked_message(gate, _event()) == MFA_REQUIRED_MESSAGE


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "event", [SignInEvent(), SignInEvent(realmId=REALM), SignInEvent(accountId="u")]
)
async def test_incomplete_event_is_a_configuration_error(gate, directory, event):
    assert await _blocked_message(gate, event) == CONFIGURATION_ERROR_MESSAGE
    assert directory.calls == []


@pytest.mark.asyncio
async def test_directory_failure_blocks_with_generic_message(gate, directory):
    # Unknown account makes the directory raise DirectoryError.
    assert await _blocked_message(gate, _event("ghost")) == GENERIC_FAILURE_MESSAGE


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [DirectoryError("timeout"), ConfigurationError("missing")])
async def test_admin_status_lookup_failure_blocks(metrics, error):
    class _StateUnavailable(FakeDirectory):
        async def get_security_state(self, realm_id, account_id):
            self.calls.append(("state", realm_id, account_id))
            raise error

    directory = _StateUnavailable()
    directory.add("admin-1", mfa=frozenset({"totp"}), groups=["PLATFORM_ADMIN"])
    gate = StepUpMfaGate(directory, admin_group="PLATFORM_ADMIN", metrics=metrics)

    assert await _blocked_message(gate, _event("admin-1")) == GENERIC_FAILURE_MESSAGE
    assert ("groups", REALM, "admin-1") in directory.calls


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [ConfigurationError("missing"), KeyError("boom")])
async def test_any_dependency_error_fails_closed(gate, directory, error):
    directory.add("user-1", groups=["DISPATCH"])
    directory.error = error

    assert await _blocked_message(gate, _event()) == GENERIC_FAILURE_MESSAGE


@pytest.mark.asyncio
async def test_lookups_run_concurrently(metrics):
    started: list[str] = []
    both_started = asyncio.Event()

    class _BarrierDirectory(FakeDirectory):
        async def _wait(self, name: str) -> None:
            started.append(name)
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=1)

        async def get_security_state(self, realm_id, account_id):
            await self._wait("state")
            return await super().get_security_state(realm_id, account_id)

        async def list_groups(self, realm_id, account_id):
            await self._wait("groups")
            return await super().list_groups(realm_id, account_id)

    directory = _BarrierDirectory()
    directory.add("user-1", mfa=frozenset({"webauthn"}), groups=["PLATFORM_ADMIN"])
    gate = StepUpMfaGate(directory, admin_group="PLATFORM_ADMIN", metrics=metrics)

    await gate.evaluate(_event())

    assert sorted(started) == ["groups", "state"]


@pytest.mark.asyncio
async def test_decisions_are_counted(gate, directory, metrics):
    directory.add("admin", groups=["PLATFORM_ADMIN"])
    directory.add("user", groups=[])

    await gate.evaluate(_event("user"))
    await _blocked_message(gate, _event("admin"))

    assert metrics.snapshot()["signin_decision_total"] == {
        ("allow", "not_admin"): 1,
        ("block", "mfa_required"): 1,
    }

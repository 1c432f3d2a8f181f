"""Allow/block rule applied at the start of every sign-in attempt."""

from dataclasses import dataclass
from enum import Enum


class AccountStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    FORCE_CHANGE_PASSWORD = "FORCE_CHANGE_PASSWORD"
    DISABLED = "DISABLED"


class DecisionReason(str, Enum):
    NOT_ADMIN = "not_admin"
    ADMIN_SECURED = "admin_secured"
    SETUP_INCOMPLETE = "setup_incomplete"
    MFA_REQUIRED = "mfa_required"
    CONFIGURATION_ERROR = "configuration_error"
    DEPENDENCY_FAILURE = "dependency_failure"


SETUP_INCOMPLETE_MESSAGE = (
    "Your administrator account setup is incomplete. "
    "Please contact your system administrator to complete onboarding."
)
MFA_REQUIRED_MESSAGE = (
    "MFA enrollment is required for platform administrator accounts. "
    "Enroll an authenticator app to complete setup, or contact your administrator."
)
CONFIGURATION_ERROR_MESSAGE = "Authentication configuration error. Please contact support."
GENERIC_FAILURE_MESSAGE = "Authentication check failed. Please try again or contact support."


@dataclass(frozen=True)
class Decision:
    allow: bool
    reason: DecisionReason
    message: str | None = None


def decide(is_admin: bool, account_status: AccountStatus | str, mfa_count: int) -> Decision:
    """Decide whether a sign-in attempt may proceed.

    Only platform administrators are gated. An administrator who has not finished
    onboarding, or who has no MFA method enrolled, is blocked with a message that tells
    them what to do next.
    """
    if not is_admin:
        return Decision(allow=True, reason=DecisionReason.NOT_ADMIN)

    if AccountStatus(account_status) is AccountStatus.FORCE_CHANGE_PASSWORD:
        return Decision(
            allow=False,
            reason=DecisionReason.SETUP_INCOMPLETE,
            message=SETUP_INCOMPLETE_MESSAGE,
        )

    if mfa_count <= 0:
        return Decision(
            allow=False,
            reason=DecisionReason.MFA_REQUIRED,
            message=MFA_REQUIRED_MESSAGE,
        )

    return Decision(allow=True, reason=DecisionReason.ADMIN_SECURED)

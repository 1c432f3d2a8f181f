"""Step-up MFA gate run by the identity provider before every authentication."""

import asyncio

from pydantic import BaseModel, ConfigDict, Field

from platform_access.errors import ConfigurationError, DirectoryError, SignInBlockedError
from platform_access.logger import get_logger
from platform_access.observability.access_metrics import AccessMetrics
from platform_access.signin.decision import (
    CONFIGURATION_ERROR_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    DecisionReason,
    decide,
)
from platform_access.signin.directory import AccountDirectory

logger = get_logger(__name__)


class SignInEvent(BaseModel):
    """Pre-authentication event delivered by the identity provider."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    realm_id: str = Field(default="", alias="realmId")
    account_id: str = Field(default="", alias="accountId")


class StepUpMfaGate:
    """Blocks platform administrators who have not secured their account.

    Fails closed: if the directory cannot answer, the attempt is blocked with a
    generic message and the cause is logged.
    """

    def __init__(
        self,
        directory: AccountDirectory,
        *,
        admin_group: str,
        metrics: AccessMetrics | None = None,
    ) -> None:
        self._directory = directory
        self._admin_group = admin_group
        self._metrics = metrics

    async def evaluate(self, event: SignInEvent) -> SignInEvent:
        """Return the event unchanged to allow, or raise `SignInBlockedError` to block."""
        if not event.realm_id or not event.account_id:
            logger.error("signin_event_incomplete", realm_id=event.realm_id or None)
            raise self._blocked(DecisionReason.CONFIGURATION_ERROR, CONFIGURATION_ERROR_MESSAGE)

        try:
            state, groups = await asyncio.gather(
                self._directory.get_security_state(event.realm_id, event.account_id),
                self._directory.list_groups(event.realm_id, event.account_id),
            )
            decision = decide(
                self._admin_group in groups,
                state.account_status,
                len(state.enrolled_mfa_methods),
            )
        except (ConfigurationError, DirectoryError) as exc:
            logger.error(
                "signin_dependency_failed",
                account_id=event.account_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise self._blocked(DecisionReason.DEPENDENCY_FAILURE, GENERIC_FAILURE_MESSAGE) from exc
        except Exception as exc:
            logger.exception(
                "signin_check_failed",
                account_id=event.account_id,
                error_type=type(exc).__name__,
            )
            raise self._blocked(DecisionReason.DEPENDENCY_FAILURE, GENERIC_FAILURE_MESSAGE) from exc

        if not decision.allow:
            logger.warning(
                "signin_blocked", account_id=event.account_id, reason=decision.reason.value
            )
            raise self._blocked(decision.reason, decision.message or GENERIC_FAILURE_MESSAGE)

        self._record("allow", decision.reason)
        logger.info("signin_allowed", account_id=event.account_id, reason=decision.reason.value)
        return event

    def _blocked(self, reason: DecisionReason, message: str) -> SignInBlockedError:
        self._record("block", reason)
        return SignInBlockedError(message)

    def _record(self, outcome: str, reason: DecisionReason) -> None:
        if self._metrics is not None:
            self._metrics.inc_signin_decision(outcome=outcome, reason=reason.value)

# SPDX-License-Identifier: MIT
"""Failure classification and retry decisions for pending actions."""

from .constants import BACKOFF_BASE_MILLIS, BACKOFF_MAX_MILLIS, MAX_RETRIES
from .enums import FailureKind, OutcomeKind, RetryDecision
from .models import PendingAction, RequestOutcome


_FAILURE_KINDS: dict[OutcomeKind, FailureKind] = {
    OutcomeKind.NETWORK_ERROR: FailureKind.NETWORK,
    OutcomeKind.SERVER_ERROR: FailureKind.SERVER,
    OutcomeKind.CLIENT_ERROR: FailureKind.CLIENT,
}


class RetryPolicy:
    """Decides whether a failed action stays queued.

    Network failures and 5xx responses consume one retry and wait for the
    next sync pass. 4xx responses are terminal whatever the retry count,
    since resending the same payload cannot change the answer.
    """

    RETRYABLE = frozenset({FailureKind.NETWORK, FailureKind.SERVER})

    def __init__(self, max_retries: int = MAX_RETRIES):
        self.max_retries = max_retries

    @staticmethod
    def classify(outcome: RequestOutcome) -> FailureKind | None:
        """Map an outcome to its failure kind; None for success."""
        return _FAILURE_KINDS.get(outcome.kind)

    def is_retryable(self, outcome: RequestOutcome) -> bool:
        return self.classify(outcome) in self.RETRYABLE

    def is_exhausted(self, retry_count: int) -> bool:
        return retry_count >= self.max_retries

    def decide(self, action: PendingAction, outcome: RequestOutcome) -> RetryDecision:
        """Decide the fate of an action after one attempt.

        Args:
            action: The action as it was before the attempt
            outcome: Classified result of the attempt

        Returns:
            The decision; for retryable failures this accounts for the retry
            the attempt consumes
        """
        failure = self.classify(outcome)
        if failure is None:
            return RetryDecision.CONFIRMED
        if failure not in self.RETRYABLE:
            return RetryDecision.DROP_TERMINAL
        if self.is_exhausted(action.retry_count + 1):
            return RetryDecision.DROP_EXHAUSTED
        return RetryDecision.RETRY_LATER

    @staticmethod
    def backoff_delay(attempt: int) -> float:
        """In-request retry delay in milliseconds: min(1000 * 2**attempt, 30000)."""
        return float(min(BACKOFF_BASE_MILLIS * 2**attempt, BACKOFF_MAX_MILLIS))

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from clipscribe.core.reference import VideoRef
from clipscribe.schemas.transcript import AttemptOutcome, ChainResult


log = logging.getLogger(__name__)

NO_CAPTIONS_MESSAGE = "No captions found for this video."


class SupportsAttempt(Protocol):
    name: str

    def attempt(self, ref: VideoRef) -> AttemptOutcome: ...


class StrategyChain:
    """Run strategies in order and stop at the first success.

    A pending outcome (job accepted upstream, not finished) does not stop the
    chain; it is returned only if no later strategy succeeds.
    """

    def __init__(self, strategies: Sequence[SupportsAttempt]) -> None:
        self.strategies: List[SupportsAttempt] = list(strategies)

    @property
    def names(self) -> List[str]:
        return [s.name for s in self.strategies]

    def _attempt(self, strategy: SupportsAttempt, ref: VideoRef) -> AttemptOutcome:
        try:
            return strategy.attempt(ref)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Strategy %s raised instead of reporting an outcome", strategy.name)
            return AttemptOutcome.failed(strategy.name, f"internal error: {exc}")

    def run(self, ref: VideoRef) -> ChainResult:
        attempts: List[AttemptOutcome] = []
        pending: Optional[AttemptOutcome] = None

        for strategy in self.strategies:
            outcome = self._attempt(strategy, ref)
            attempts.append(outcome)
            if outcome.success:
                log.info(
                    "%s: transcript from %s (%d segments)",
                    ref.url,
                    strategy.name,
                    outcome.data.total_segments if outcome.data else 0,
                )
                return ChainResult(outcome=outcome, attempts=attempts)
            if outcome.pending:
                log.info("%s: %s deferred as job %s", ref.url, strategy.name, outcome.job_id)
                pending = pending or outcome
                continue
            log.info("%s: %s failed: %s", ref.url, strategy.name, outcome.error)

        if pending is not None:
            return ChainResult(outcome=pending, attempts=attempts)

        log.warning("%s: all %d strategies failed", ref.url, len(attempts))
        terminal = AttemptOutcome.failed(
            "none",
            NO_CAPTIONS_MESSAGE,
            no_captions=any(a.no_captions for a in attempts),
        )
        return ChainResult(outcome=terminal, attempts=attempts)

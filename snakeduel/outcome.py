"""Match verdicts from both players' final scores."""

from .models import Outcome


def resolve(local_score: int, local_terminated: bool,
            remote_score: int, remote_terminated: bool) -> Outcome:
    """Verdict from the local player's point of view.

    Pending until both runs have ended; then the higher score wins. Dying
    first is not a loss by itself.
    """
    if not (local_terminated and remote_terminated):
        return Outcome.PENDING
    if local_score > remote_score:
        return Outcome.WIN
    if local_score < remote_score:
        return Outcome.LOSE
    return Outcome.TIE


def invert(outcome: Outcome) -> Outcome:
    """The same verdict seen from the other side."""
    if outcome is Outcome.WIN:
        return Outcome.LOSE
    if outcome is Outcome.LOSE:
        return Outcome.WIN
    return outcome


class OutcomeResolver:
    """Re-evaluated on every termination signal; keeps the first final verdict."""

    def __init__(self):
        self.verdict = Outcome.PENDING

    @property
    def finished(self) -> bool:
        return self.verdict is not Outcome.PENDING

    def observe(self, local_score: int, local_terminated: bool,
                remote_score: int, remote_terminated: bool) -> Outcome:
        if not self.finished:
            self.verdict = resolve(local_score, local_terminated, remote_score, remote_terminated)
        return self.verdict

from dataclasses import dataclass


@dataclass(frozen=True)
class ResolutionToken:
    generation: int
    query: str


class RequestLifecycleGuard:
    """Tracks which resolution attempt is allowed to update visible state.

    Every ``begin`` supersedes all earlier tokens. Completion order does not
    matter: an outcome is applied only if its token is still the latest one.
    """

    def __init__(self) -> None:
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def begin(self, query: str) -> ResolutionToken:
        self._latest += 1
        return ResolutionToken(generation=self._latest, query=query)

    def is_current(self, token: ResolutionToken) -> bool:
        return token.generation == self._latest

    def invalidate(self) -> None:
        self._latest += 1

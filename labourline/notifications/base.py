"""Abstract base class for outbound match notifications."""

from abc import ABC, abstractmethod

from labourline.models.call import Language
from labourline.models.match import MatchCandidate, Side


class Notifier(ABC):
    """Sends a caller their match results.

    Implementations never raise for delivery problems; they log and
    return False so the caller can record the failure and carry on.
    """

    @abstractmethod
    async def send(
        self,
        destination: str,
        candidates: list[MatchCandidate],
        language: Language,
        side: Side,
    ) -> bool:
        """Render and send the match message. Returns True on success."""

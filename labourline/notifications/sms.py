"""SMS delivery of match results via the Twilio REST API."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Optional

from twilio.rest import Client

from labourline.models.call import Language
from labourline.models.match import MatchCandidate, Side
from labourline.session import redact_pii

from .base import Notifier
from .messages import format_matches

log = logging.getLogger("labourline.sms")


class TwilioSmsNotifier(Notifier):
    """Sends one SMS per finalized call from the configured Twilio number."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        max_matches: int = 2,
        client: Optional[Client] = None,
    ) -> None:
        if not client and not (account_sid and auth_token):
            raise ValueError("Twilio credentials not configured")
        self._client = client or Client(account_sid, auth_token)
        self._from_number = from_number
        self._max_matches = max_matches

    async def send(
        self,
        destination: str,
        candidates: list[MatchCandidate],
        language: Language,
        side: Side,
    ) -> bool:
        body = format_matches(candidates, language, side, self._max_matches)
        to = destination if destination.startswith("+") else f"+{destination}"

        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                None,
                lambda: self._client.messages.create(
                    body=body, from_=self._from_number, to=to
                ),
            )
        except Exception as e:
            log.error("Failed to send SMS to %s: %s", redact_pii(to), e)
            return False

        log.info("SMS sent to %s: SID=%s", redact_pii(to), result.sid)
        return True


class LogOnlyNotifier(Notifier):
    """Logs the rendered message instead of sending it (no Twilio credentials).

    The last ``history`` messages are kept in ``sent`` for inspection.
    """

    def __init__(self, max_matches: int = 2, history: int = 100) -> None:
        self._max_matches = max_matches
        self.sent: deque[tuple[str, str]] = deque(maxlen=history)

    async def send(
        self,
        destination: str,
        candidates: list[MatchCandidate],
        language: Language,
        side: Side,
    ) -> bool:
        body = format_matches(candidates, language, side, self._max_matches)
        self.sent.append((destination, body))
        log.info("SMS (not sent) to %s:\n%s", redact_pii(destination), body)
        return True

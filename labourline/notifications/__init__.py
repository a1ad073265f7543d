from .base import Notifier
from .messages import format_matches, no_match_message
from .sms import LogOnlyNotifier, TwilioSmsNotifier

__all__ = [
    "LogOnlyNotifier",
    "Notifier",
    "TwilioSmsNotifier",
    "format_matches",
    "no_match_message",
]

"""Compact, per-language SMS bodies for match results.

One SMS segment is precious on a feature phone, so each candidate is a
single line: ``1. Electrician(Bangalore) ₹600 Ph:+91...``.
"""

from __future__ import annotations

from labourline.models.call import Language
from labourline.models.match import MatchCandidate, Side

GREETINGS = {
    Language.ENGLISH: "Hello!",
    Language.HINDI: "नमस्ते!",
    Language.KANNADA: "ನಮಸ್ಕಾರ!",
}

_FOUND = {
    Language.ENGLISH: {Side.JOBS: "{n} jobs found:", Side.WORKERS: "{n} workers found:"},
    Language.HINDI: {Side.JOBS: "{n} नौकरियां मिले:", Side.WORKERS: "{n} कामगार मिले:"},
    Language.KANNADA: {Side.JOBS: "{n} ಉದ್ಯೋಗಗಳು ಸಿಕ್ಕಿತು:", Side.WORKERS: "{n} ಕಾರ್ಮಿಕರು ಸಿಕ್ಕಿತು:"},
}

_NO_MATCH = {
    Language.ENGLISH: {
        Side.JOBS: "Sorry, no jobs found. Try again later.",
        Side.WORKERS: "Sorry, no workers found. Try again later.",
    },
    Language.HINDI: {
        Side.JOBS: "क्षमा करें, कोई नौकरी नहीं मिली। बाद में पुनः प्रयास करें।",
        Side.WORKERS: "क्षमा करें, कोई कामगार नहीं मिली। बाद में पुनः प्रयास करें।",
    },
    Language.KANNADA: {
        Side.JOBS: "ಕ್ಷಮಿಸಿ, ಉದ್ಯೋಗ ಸಿಗಲಿಲ್ಲ। ನಂತರ ಪ್ರಯತ್ನಿಸಿ.",
        Side.WORKERS: "ಕ್ಷಮಿಸಿ, ಕಾರ್ಮಿಕರು ಸಿಗಲಿಲ್ಲ। ನಂತರ ಪ್ರಯತ್ನಿಸಿ.",
    },
}


def no_match_message(language: Language, side: Side) -> str:
    return _NO_MATCH.get(language, _NO_MATCH[Language.ENGLISH])[side]


def _job_line(i: int, c: MatchCandidate) -> str:
    line = f"{i}. {c.skill or ''}"
    if c.location:
        line += f"({c.location})"
    if c.wage is not None:
        line += f" ₹{c.wage}"
    return line + f" Ph:{c.contact_address}"


def _worker_line(i: int, c: MatchCandidate) -> str:
    line = f"{i}. {c.name or 'Worker'}"
    if c.skill:
        line += f"-{c.skill}"
    if c.location:
        line += f"({c.location})"
    return line + f" Ph:{c.contact_address}"


def format_matches(
    candidates: list[MatchCandidate],
    language: Language,
    side: Side,
    max_matches: int = 2,
) -> str:
    """Render the SMS body for ``candidates``, or the no-match text if empty.

    ``side`` is the population that was searched: JOBS for a job seeker,
    WORKERS for an employer.
    """
    if not candidates:
        return no_match_message(language, side)

    shown = candidates[:max_matches]
    found = _FOUND.get(language, _FOUND[Language.ENGLISH])[side]
    lines = [f"{GREETINGS.get(language, GREETINGS[Language.ENGLISH])} {found.format(n=len(shown))}"]

    render = _job_line if side is Side.JOBS else _worker_line
    lines.extend(render(i, c) for i, c in enumerate(shown, start=1))
    return "\n".join(lines)

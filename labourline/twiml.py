"""TwiML documents returned to Twilio from the IVR webhooks.

Prompts are pre-recorded per language and served from
``{base_url}/Audio/{language}/{key}.mp3``; the only synthesized speech
is the session-expired message, which has no session to pick audio for.
"""

from __future__ import annotations

from xml.etree.ElementTree import Element, SubElement, tostring

from labourline.models.call import Language

# Twilio <Say> language codes for the expired-session message
_SAY_LANGUAGE = {
    Language.ENGLISH: "en-IN",
    Language.HINDI: "hi-IN",
    Language.KANNADA: "kn-IN",
}


def audio_url(base_url: str, key: str, language: Language | str) -> str:
    """URL of the pre-recorded prompt ``key`` in ``language``."""
    lang = language.value if isinstance(language, Language) else language
    return f"{base_url.rstrip('/')}/Audio/{lang}/{key}.mp3"


def _render(response_el: Element) -> str:
    return tostring(response_el, encoding="unicode", xml_declaration=True)


def gather_digit(prompt_url: str, action: str, timeout: int) -> str:
    """Play a menu prompt and collect one keypad digit.

    The trailing <Redirect> fires only when the caller presses nothing,
    posting to the same action without Digits so the menu default applies.
    """
    response_el = Element("Response")
    gather_el = SubElement(response_el, "Gather")
    gather_el.set("numDigits", "1")
    gather_el.set("timeout", str(timeout))
    gather_el.set("action", action)
    gather_el.set("method", "POST")
    play_el = SubElement(gather_el, "Play")
    play_el.text = prompt_url

    redirect_el = SubElement(response_el, "Redirect")
    redirect_el.set("method", "POST")
    redirect_el.text = action
    return _render(response_el)


def record_answer(
    prompt_url: str,
    action: str,
    max_length: int,
    timeout: int,
    status_callback: str = "",
) -> str:
    """Play a question prompt and record the spoken answer.

    Twilio skips the action when nothing was recorded, so the <Redirect>
    posts to it without a RecordingUrl and the flow moves on.
    """
    response_el = Element("Response")
    play_el = SubElement(response_el, "Play")
    play_el.text = prompt_url

    record_el = SubElement(response_el, "Record")
    record_el.set("maxLength", str(max_length))
    record_el.set("timeout", str(timeout))
    record_el.set("action", action)
    record_el.set("method", "POST")
    if status_callback:
        record_el.set("recordingStatusCallback", status_callback)

    redirect_el = SubElement(response_el, "Redirect")
    redirect_el.set("method", "POST")
    redirect_el.text = action
    return _render(response_el)


def play_and_hangup(prompt_url: str) -> str:
    response_el = Element("Response")
    play_el = SubElement(response_el, "Play")
    play_el.text = prompt_url
    SubElement(response_el, "Hangup")
    return _render(response_el)


def say_and_hangup(message: str, language: Language = Language.ENGLISH) -> str:
    response_el = Element("Response")
    say_el = SubElement(response_el, "Say")
    say_el.set("language", _SAY_LANGUAGE.get(language, "en-IN"))
    say_el.text = message
    SubElement(response_el, "Hangup")
    return _render(response_el)

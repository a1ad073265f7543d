"""Pydantic models for the IVR registration flow definition.

The flow is fixed per purpose: a language menu, a purpose menu, then an
ordered list of spoken fields to record. Prompt keys name pre-recorded
audio files (see labourline.twiml.audio_url).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from labourline.models.call import Language, Purpose


class FieldStepDef(BaseModel):
    """One recorded answer within a purpose's sequence."""

    name: str
    prompt_key: str


class PurposeFlowDef(BaseModel):
    """The ordered fields collected for one caller purpose."""

    purpose: Purpose
    fields: list[FieldStepDef] = []
    completion_key: str = ""

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


class RegistrationFlowDef(BaseModel):
    """A complete registration flow definition."""

    id: str
    welcome_key: str = "welcome"
    purpose_prompt_key: str = "purpose_selection"
    default_language: Language = Language.ENGLISH
    language_digits: dict[str, Language] = {}
    default_purpose: Purpose = Purpose.JOB_SEEKER
    purpose_digits: dict[str, Purpose] = {}
    purposes: dict[Purpose, PurposeFlowDef] = {}
    expired_messages: dict[Language, str] = {}

    # ── Menu lookups ──────────────────────────────────────────

    def language_for(self, digits: Optional[str]) -> Language:
        """Map a keypad digit to a language; anything unmapped is the default."""
        return self.language_digits.get((digits or "").strip(), self.default_language)

    def purpose_for(self, digits: Optional[str]) -> Purpose:
        """Map a keypad digit to a purpose; anything unmapped is the default."""
        return self.purpose_digits.get((digits or "").strip(), self.default_purpose)

    # ── Field sequence ────────────────────────────────────────

    def first_field(self, purpose: Purpose) -> FieldStepDef:
        return self.purposes[purpose].fields[0]

    def get_field(self, purpose: Purpose, name: str) -> Optional[FieldStepDef]:
        for step in self.purposes[purpose].fields:
            if step.name == name:
                return step
        return None

    def next_field(self, purpose: Purpose, name: str) -> Optional[FieldStepDef]:
        """The field after ``name``, or None when ``name`` is the last one."""
        fields = self.purposes[purpose].fields
        for i, step in enumerate(fields):
            if step.name == name:
                return fields[i + 1] if i + 1 < len(fields) else None
        return None

    def expired_message(self, language: Optional[Language] = None) -> str:
        language = language or self.default_language
        return self.expired_messages.get(
            language, self.expired_messages.get(self.default_language, "Session expired. Please call again.")
        )

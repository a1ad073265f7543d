"""Job seeker / employer registration flow.

The canonical definition lives in registration.jsonl next to this module.
"""

from __future__ import annotations

from pathlib import Path

from labourline.workflows.loader import load_flow_jsonl
from labourline.workflows.schema import RegistrationFlowDef

_JSONL_PATH = Path(__file__).resolve().parent / "registration.jsonl"

REGISTRATION_FLOW: RegistrationFlowDef = load_flow_jsonl(_JSONL_PATH)

"""Load JSONL flow definitions into RegistrationFlowDef objects."""

from __future__ import annotations

import json
from pathlib import Path

from labourline.workflows.schema import PurposeFlowDef, RegistrationFlowDef


def load_flow_jsonl(path: str | Path) -> RegistrationFlowDef:
    """Load a single flow from a JSONL file.

    The JSONL file contains exactly one JSON object (the flow).
    Per-purpose field lists are nested inside the top-level ``purposes`` dict.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8").strip()

    # JSONL: one JSON object per line; take the first non-empty line
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        data = json.loads(line)
        return _parse_flow(data)

    raise ValueError(f"No flow found in {path}")


def _parse_flow(data: dict) -> RegistrationFlowDef:
    """Parse a raw dict into a RegistrationFlowDef."""
    raw_purposes = data.get("purposes", {})
    purposes: dict[str, PurposeFlowDef] = {}
    for purpose_id, purpose_data in raw_purposes.items():
        if isinstance(purpose_data, dict):
            # Ensure purpose is set
            purpose_data.setdefault("purpose", purpose_id)
            purposes[purpose_id] = PurposeFlowDef(**purpose_data)
        else:
            purposes[purpose_id] = purpose_data

    data["purposes"] = purposes
    flow = RegistrationFlowDef(**data)

    for purpose, purpose_flow in flow.purposes.items():
        if not purpose_flow.fields:
            raise ValueError(f"Flow {flow.id}: purpose {purpose.value} has no fields")
    return flow

"""IVR flow definitions."""

from .registration import REGISTRATION_FLOW
from .schema import FieldStepDef, PurposeFlowDef, RegistrationFlowDef

__all__ = ["FieldStepDef", "PurposeFlowDef", "REGISTRATION_FLOW", "RegistrationFlowDef"]

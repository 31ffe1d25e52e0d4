"""Public interface for the Microsoft Graph adapter."""

from __future__ import annotations

from .client import GraphDirectory, classify_delete_response, odata_literal
from .schema import AutopilotDeviceIdentity, EntraDevice, ManagedDevice, ODataPage
from .translator import translate_record

__all__ = [
    "AutopilotDeviceIdentity",
    "EntraDevice",
    "GraphDirectory",
    "ManagedDevice",
    "ODataPage",
    "classify_delete_response",
    "odata_literal",
    "translate_record",
]

"""Translate Graph payload models into adapter-neutral records."""

from __future__ import annotations

from typing import TYPE_CHECKING

from devretire.domain.model import RawRecord, ServiceKind

from .schema import AutopilotDeviceIdentity, EntraDevice, ManagedDevice

if TYPE_CHECKING:
    from .schema import GraphBaseModel


def translate_entra_device(device: EntraDevice) -> RawRecord:
    return RawRecord(
        service_kind=ServiceKind.IDENTITY,
        record_id=device.id,
        display_name=device.display_name,
        attributes=tuple(device.physical_ids),
    )


def translate_managed_device(device: ManagedDevice) -> RawRecord:
    return RawRecord(
        service_kind=ServiceKind.DEVICE_MANAGEMENT,
        record_id=device.id,
        display_name=device.device_name,
        raw_serial=device.serial_number,
    )


def translate_autopilot_identity(identity: AutopilotDeviceIdentity) -> RawRecord:
    return RawRecord(
        service_kind=ServiceKind.PROVISIONING,
        record_id=identity.id,
        display_name=identity.display_name,
        raw_serial=identity.serial_number,
    )


def translate_record(kind: ServiceKind, payload: GraphBaseModel) -> RawRecord:
    match kind, payload:
        case ServiceKind.IDENTITY, EntraDevice():
            return translate_entra_device(payload)
        case ServiceKind.DEVICE_MANAGEMENT, ManagedDevice():
            return translate_managed_device(payload)
        case ServiceKind.PROVISIONING, AutopilotDeviceIdentity():
            return translate_autopilot_identity(payload)
        case _:
            raise TypeError(f"Unexpected {type(payload).__name__} payload for {kind}")

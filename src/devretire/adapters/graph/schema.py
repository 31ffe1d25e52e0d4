"""Pydantic models describing the Microsoft Graph payloads we consume."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class GraphBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EntraDevice(GraphBaseModel):
    """Directory device object (``/devices``)."""

    id: str
    device_id: str | None = Field(default=None, alias="deviceId")
    display_name: str | None = Field(default=None, alias="displayName")
    operating_system: str | None = Field(default=None, alias="operatingSystem")
    physical_ids: list[str] = Field(default_factory=list, alias="physicalIds")

    _normalize_name = field_validator("display_name", mode="before")(_blank_to_none)


class ManagedDevice(GraphBaseModel):
    """Intune managed device (``/deviceManagement/managedDevices``)."""

    id: str
    device_name: str | None = Field(default=None, alias="deviceName")
    serial_number: str | None = Field(default=None, alias="serialNumber")
    azure_ad_device_id: str | None = Field(default=None, alias="azureADDeviceId")
    manufacturer: str | None = None
    model: str | None = None

    _normalize_fields = field_validator("device_name", "serial_number", mode="before")(
        _blank_to_none
    )


class AutopilotDeviceIdentity(GraphBaseModel):
    """Autopilot registration (``/deviceManagement/windowsAutopilotDeviceIdentities``)."""

    id: str
    serial_number: str | None = Field(default=None, alias="serialNumber")
    display_name: str | None = Field(default=None, alias="displayName")
    managed_device_id: str | None = Field(default=None, alias="managedDeviceId")
    azure_active_directory_device_id: str | None = Field(
        default=None, alias="azureActiveDirectoryDeviceId"
    )
    manufacturer: str | None = None
    model: str | None = None

    _normalize_fields = field_validator("serial_number", "display_name", mode="before")(
        _blank_to_none
    )


RecordT = TypeVar("RecordT", bound=GraphBaseModel)


class ODataPage(GraphBaseModel, Generic[RecordT]):
    value: list[RecordT] = Field(default_factory=list)
    next_link: str | None = Field(default=None, alias="@odata.nextLink")


class GraphErrorDetail(GraphBaseModel):
    code: str | None = None
    message: str | None = None


class GraphErrorResponse(GraphBaseModel):
    error: GraphErrorDetail = Field(default_factory=GraphErrorDetail)

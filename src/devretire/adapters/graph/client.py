"""Microsoft Graph client for the identity, management and provisioning services."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from devretire.adapters.http_resilience import ResilientClient
from devretire.domain.errors import (
    DeleteResult,
    DeleteStatus,
    ServiceAuthError,
    ServiceConnectionError,
    ServiceQueryError,
)
from devretire.domain.model import ServiceKind

from .schema import (
    AutopilotDeviceIdentity,
    EntraDevice,
    GraphBaseModel,
    GraphErrorResponse,
    ManagedDevice,
    ODataPage,
)
from .translator import translate_record

if TYPE_CHECKING:
    from collections.abc import Callable

    from devretire.config.graph import GraphConfig
    from devretire.config.http_resilience import ResilienceConfig
    from devretire.domain.model import RawRecord, RecordQuery

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Endpoint:
    path: str
    model: type[GraphBaseModel]
    name_field: str | None
    serial_field: str | None


ENDPOINTS: Final[dict[ServiceKind, _Endpoint]] = {
    ServiceKind.IDENTITY: _Endpoint(
        path="devices",
        model=EntraDevice,
        name_field="displayName",
        serial_field=None,
    ),
    ServiceKind.DEVICE_MANAGEMENT: _Endpoint(
        path="deviceManagement/managedDevices",
        model=ManagedDevice,
        name_field="deviceName",
        serial_field="serialNumber",
    ),
    # Autopilot has no exact name filter; serials support ``contains`` only.
    ServiceKind.PROVISIONING: _Endpoint(
        path="deviceManagement/windowsAutopilotDeviceIdentities",
        model=AutopilotDeviceIdentity,
        name_field=None,
        serial_field=None,
    ),
}

_IN_PROGRESS_PATTERN = re.compile(
    r"already\s+(?:in\s+progress|being\s+deleted|pending|scheduled)|deletion\s+(?:is\s+)?pending",
    re.IGNORECASE,
)
_TRANSIENT_STATUS_CODES = frozenset({408, 429})


def odata_literal(value: str) -> str:
    """Quote ``value`` as an OData string literal."""

    return "'" + value.replace("'", "''") + "'"


def classify_delete_response(response: httpx.Response) -> DeleteResult:
    """Map a delete response onto the shared delete taxonomy."""

    status = response.status_code
    if response.is_success:
        return DeleteResult(DeleteStatus.DELETED, status_code=status)

    detail = _error_detail(response)
    if status == httpx.codes.NOT_FOUND:
        return DeleteResult(DeleteStatus.NOT_FOUND, detail=detail, status_code=status)
    if status == httpx.codes.CONFLICT or (
        status == httpx.codes.BAD_REQUEST and _IN_PROGRESS_PATTERN.search(detail)
    ):
        return DeleteResult(DeleteStatus.ALREADY_IN_PROGRESS, detail=detail, status_code=status)
    if status in _TRANSIENT_STATUS_CODES or response.is_server_error:
        return DeleteResult(DeleteStatus.TRANSIENT, detail=detail, status_code=status)
    return DeleteResult(DeleteStatus.FATAL, detail=detail, status_code=status)


def _error_detail(response: httpx.Response) -> str:
    prefix = f"HTTP {response.status_code}"
    try:
        payload = GraphErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return prefix
    error = payload.error
    parts = [part for part in (error.code, error.message) if part]
    return f"{prefix}: {' - '.join(parts)}" if parts else prefix


def _matches_substring(value: str | None, needle: str) -> bool:
    return value is not None and needle.casefold() in value.casefold()


class GraphDirectory:
    """``ServiceDirectory`` implementation backed by Microsoft Graph.

    Every public call is synchronous; the async client runs to completion inside
    ``asyncio.run`` for each call. Each call opens its own client, so the rate
    limit paces the requests of one call (the pages of a listing, the fallback
    query), not the session as a whole; calls are issued one after another.
    """

    def __init__(
        self,
        *,
        config: GraphConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient

    def find(
        self,
        kind: ServiceKind,
        query: RecordQuery,
        *,
        quiet: bool = False,
    ) -> list[RawRecord]:
        return asyncio.run(self._find_async(kind, query, quiet=quiet))

    def delete(self, kind: ServiceKind, record_id: str) -> DeleteResult:
        return asyncio.run(self._delete_async(kind, record_id))

    async def _find_async(
        self,
        kind: ServiceKind,
        query: RecordQuery,
        *,
        quiet: bool,
    ) -> list[RawRecord]:
        level = logging.DEBUG if quiet else logging.INFO
        endpoint = ENDPOINTS[kind]
        async with self._client_factory(self._resilience) as client:
            if query.name is not None:
                if endpoint.name_field is not None:
                    flt = f"{endpoint.name_field} eq {odata_literal(query.name)}"
                    log.log(level, "%s: querying %s", kind, flt)
                    return await self._list(client, kind, filter_expr=flt)
                log.log(level, "%s: listing all records to match name %s", kind, query.name)
                records = await self._list(client, kind)
                return [r for r in records if _matches_substring(r.display_name, query.name)]

            serial = query.serial or ""
            if endpoint.serial_field is not None:
                flt = f"{endpoint.serial_field} eq {odata_literal(serial)}"
                log.log(level, "%s: querying %s", kind, flt)
                return await self._list(client, kind, filter_expr=flt)
            if kind is ServiceKind.PROVISIONING:
                return await self._find_provisioning_serial(client, serial, level=level)
            log.debug("%s: serial lookups are not supported", kind)
            return []

    async def _find_provisioning_serial(
        self,
        client: ResilientClient,
        serial: str,
        *,
        level: int,
    ) -> list[RawRecord]:
        kind = ServiceKind.PROVISIONING
        flt = f"contains(serialNumber,{odata_literal(serial)})"
        log.log(level, "%s: querying %s", kind, flt)
        try:
            return await self._list(client, kind, filter_expr=flt)
        except ServiceQueryError as exc:
            if exc.status_code != httpx.codes.BAD_REQUEST:
                raise
            log.log(level, "%s: filter rejected, matching serial client-side", kind)
        records = await self._list(client, kind)
        return [r for r in records if _matches_substring(r.raw_serial, serial)]

    async def _list(
        self,
        client: ResilientClient,
        kind: ServiceKind,
        *,
        filter_expr: str | None = None,
    ) -> list[RawRecord]:
        endpoint = ENDPOINTS[kind]
        page_model = ODataPage[endpoint.model]
        params: dict[str, str] | None = {"$filter": filter_expr} if filter_expr else None
        url: str | None = endpoint.path
        records: list[RawRecord] = []

        while url is not None:
            response = await self._perform_request(client, kind, url=url, params=params)
            if response is None:
                return records
            try:
                page = page_model.model_validate(response.json())
            except (ValueError, ValidationError) as exc:
                raise ServiceQueryError(
                    f"Unexpected {kind} response payload", service_kind=kind
                ) from exc
            records.extend(translate_record(kind, item) for item in page.value)
            # The continuation link already carries the query.
            url = page.next_link
            params = None

        return records

    async def _perform_request(
        self,
        client: ResilientClient,
        kind: ServiceKind,
        *,
        url: str,
        params: dict[str, str] | None,
    ) -> httpx.Response | None:
        try:
            response = await client.get(url, params=params)
        except httpx.TransportError as exc:
            raise ServiceConnectionError(
                f"{kind}: could not reach service: {exc}", service_kind=kind
            ) from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise ServiceAuthError(
                f"{kind}: credential rejected ({_error_detail(response)})",
                service_kind=kind,
                status_code=response.status_code,
            )
        if not response.is_success:
            raise ServiceQueryError(
                f"{kind}: query failed ({_error_detail(response)})",
                service_kind=kind,
                status_code=response.status_code,
            )
        return response

    async def _delete_async(self, kind: ServiceKind, record_id: str) -> DeleteResult:
        path = f"{ENDPOINTS[kind].path}/{quote(record_id, safe='')}"
        async with self._client_factory(self._resilience) as client:
            try:
                response = await client.delete(path)
            except httpx.TransportError as exc:
                return DeleteResult(DeleteStatus.TRANSIENT, detail=f"transport error: {exc}")
        return classify_delete_response(response)

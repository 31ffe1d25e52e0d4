"""Mock-transport wiring and payload builders for Graph adapter tests."""

from __future__ import annotations

from collections.abc import Callable

import httpx

from devretire.adapters.http_resilience import ResilienceConfig, ResilientClient

GRAPH_TEST_URL = "https://graph.test/v1.0"

Handler = Callable[[httpx.Request], httpx.Response]


def make_client_factory(handler: Handler) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=GRAPH_TEST_URL,
            transport=httpx.MockTransport(async_handler),
        )
        return client

    return factory


def graph_error(status: int, code: str, message: str) -> httpx.Response:
    return httpx.Response(status_code=status, json={"error": {"code": code, "message": message}})


def entra_payload(record_id: str, name: str, *physical_ids: str) -> dict[str, object]:
    return {
        "id": record_id,
        "deviceId": f"{record_id}-device",
        "displayName": name,
        "operatingSystem": "Windows",
        "physicalIds": list(physical_ids),
    }


def managed_payload(record_id: str, name: str, serial: str) -> dict[str, object]:
    return {
        "id": record_id,
        "deviceName": name,
        "serialNumber": serial,
        "manufacturer": "Contoso",
        "model": "Book 13",
    }


def autopilot_payload(record_id: str, serial: str, name: str = "") -> dict[str, object]:
    return {"id": record_id, "serialNumber": serial, "displayName": name}

"""HTTP client for the UAPF engine REST surface."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, cast
from urllib.parse import quote

import requests

from uapf_mcp.constants import DEFAULT_ENGINE_TIMEOUT_MS, DEFAULT_ENGINE_URL
from uapf_mcp.engine.types import ArtifactResponse, Package
from uapf_mcp.errors import ENGINE_REQUEST_FAILED, ENGINE_UNAVAILABLE, EngineClientError

_engine_log = logging.getLogger("uapf_mcp.engine")


def _error_body(response: requests.Response | None) -> dict[str, Any]:
    if response is None:
        return {}
    try:
        body = response.json()
    except ValueError:
        return {}
    if not isinstance(body, dict):
        return {}
    error = cast(dict[str, Any], body).get("error")
    return cast(dict[str, Any], error) if isinstance(error, dict) else {}


def _has_package_id(data: dict[str, Any]) -> bool:
    package_id = data.get("packageId")
    return isinstance(package_id, str) and bool(package_id)


def wrap_request_error(error: requests.RequestException) -> EngineClientError:
    """Translate a ``requests`` failure into an :class:`EngineClientError`.

    A structured ``{"error": {"code", "message"}}`` body wins; otherwise 5xx
    responses and timeouts map to ``engine_unavailable`` and everything else
    to ``engine_request_failed``.
    """
    response = error.response
    status = response.status_code if response is not None else None
    body = _error_body(response)

    body_code = body.get("code")
    if isinstance(body_code, str) and body_code:
        code = body_code
    elif (status is not None and status >= 500) or isinstance(error, requests.Timeout):
        code = ENGINE_UNAVAILABLE
    else:
        code = ENGINE_REQUEST_FAILED

    body_message = body.get("message")
    if isinstance(body_message, str) and body_message:
        message = body_message
    else:
        message = str(error) or "Unknown engine error"
    return EngineClientError(code, message, status)


class EngineClient:
    """Typed client for the UAPF engine.

    Every public method is a coroutine; the blocking ``requests`` call runs in
    a worker thread. Failures raise :class:`EngineClientError`.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_ENGINE_URL,
        timeout: float = DEFAULT_ENGINE_TIMEOUT_MS / 1000.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method, url, params=params, json=json_body, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as error:
            wrapped = wrap_request_error(error)
            _engine_log.warning(
                "engine_request_failed method=%s path=%s code=%s status=%s",
                method,
                path,
                wrapped.code,
                wrapped.status,
                extra={"method": method, "path": path, "code": wrapped.code},
            )
            raise wrapped from error
        return response

    def _request_json(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        response = self._request(method, path, json_body=json_body)
        try:
            return response.json()
        except ValueError as error:
            raise EngineClientError(
                ENGINE_REQUEST_FAILED,
                f"Engine returned invalid JSON for {path}",
                response.status_code,
            ) from error

    async def _call(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        # The requests timeout bounds each socket read, not the whole call.
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs), timeout=self.timeout
            )
        except asyncio.TimeoutError as error:
            _engine_log.warning(
                "engine_request_timeout timeout=%s", self.timeout, extra={"timeout": self.timeout}
            )
            raise EngineClientError(
                ENGINE_UNAVAILABLE, f"Engine did not respond within {self.timeout:g}s"
            ) from error

    async def get_meta(self) -> dict[str, Any]:
        """GET /_/meta."""
        data = await self._call(self._request_json, "GET", "/_/meta")
        return cast(dict[str, Any], data) if isinstance(data, dict) else {}

    async def list_packages(self) -> list[Package]:
        """GET /uapf/packages."""
        data = await self._call(self._request_json, "GET", "/uapf/packages")
        if not isinstance(data, list):
            raise EngineClientError(
                ENGINE_REQUEST_FAILED, "Engine returned a non-list package listing"
            )
        packages: list[Package] = []
        for item in cast(list[Any], data):
            if not isinstance(item, dict) or not _has_package_id(cast(dict[str, Any], item)):
                _engine_log.warning("engine_package_skipped reason=missing_package_id")
                continue
            packages.append(Package.from_dict(cast(dict[str, Any], item)))
        return packages

    async def get_package(self, package_id: str) -> Package:
        """GET /uapf/packages/{id}."""
        data = await self._call(
            self._request_json, "GET", f"/uapf/packages/{quote(package_id, safe='')}"
        )
        if not isinstance(data, dict) or not _has_package_id(cast(dict[str, Any], data)):
            raise EngineClientError(
                ENGINE_REQUEST_FAILED, f"Engine returned an invalid package for {package_id}"
            )
        return Package.from_dict(cast(dict[str, Any], data))

    async def get_artifact(
        self, package_id: str, kind: str, artifact_id: str | None = None
    ) -> ArtifactResponse:
        """GET /uapf/packages/{id}/artifacts/{kind}?id= (binary)."""
        path = f"/uapf/packages/{quote(package_id, safe='')}/artifacts/{quote(kind, safe='')}"
        params = {"id": artifact_id} if artifact_id else None
        response = await self._call(self._request, "GET", path, params=params)
        return ArtifactResponse(data=response.content, headers=dict(response.headers))

    async def resolve_resources(
        self,
        package_id: str,
        process_id: str | None = None,
        task_id: str | None = None,
    ) -> Any:
        """POST /uapf/resolve-resources."""
        body: dict[str, Any] = {"packageId": package_id}
        if process_id is not None:
            body["processId"] = process_id
        if task_id is not None:
            body["taskId"] = task_id
        return await self._call(
            self._request_json, "POST", "/uapf/resolve-resources", json_body=body
        )

    async def validate(self, package_id: str | None = None) -> Any:
        """POST /uapf/validate. Without a package id the whole workspace is validated."""
        body: dict[str, Any] = {}
        if package_id is not None:
            body["packageId"] = package_id
        return await self._call(self._request_json, "POST", "/uapf/validate", json_body=body)

    async def run_process(self, package_id: str, process_id: str, input: Any = None) -> Any:
        """POST /uapf/execute-process."""
        body = {"packageId": package_id, "processId": process_id, "input": input}
        return await self._call(
            self._request_json, "POST", "/uapf/execute-process", json_body=body
        )

    async def evaluate_decision(self, package_id: str, decision_id: str, input: Any = None) -> Any:
        """POST /uapf/evaluate-decision."""
        body = {"packageId": package_id, "decisionId": decision_id, "input": input}
        return await self._call(
            self._request_json, "POST", "/uapf/evaluate-decision", json_body=body
        )

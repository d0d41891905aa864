"""
functions/clients/upstream.py

WHAT THIS FILE IS FOR
---------------------
This module is the shared transport layer for every upstream platform
client (Vercel, GitHub, Supabase).

It exists to:
- Read endpoint templates from parameters/config.yaml
- Perform one async HTTP call per operation (httpx.AsyncClient)
- Add structured logging for observability
- Convert EVERY outcome into an `UpstreamResult` value

The boundary rule
-----------------
A client never raises past `_request()`. Network errors, timeouts, invalid
JSON and missing endpoint templates all come back as an UpstreamResult:

    status_code == 0    -> no HTTP response was received (error is set)
    200 <= status < 300 -> ok
    anything else       -> upstream answered with an error

Read helpers in the concrete clients turn non-ok results into sentinels
(None / [] / "unknown"). Write helpers return the UpstreamResult itself so
handlers can pass the upstream status code through to the caller.

No retries are performed anywhere in this layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import structlog
import yaml

logger = structlog.get_logger(__name__)

CONFIG_PATH = Path(__file__).resolve().parents[2] / "parameters" / "config.yaml"


@lru_cache(maxsize=1)
def load_upstream_config() -> Dict[str, Any]:
    if not CONFIG_PATH.exists():
        logger.warning("upstream_config_missing", path=str(CONFIG_PATH))
        return {}

    try:
        with CONFIG_PATH.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning("upstream_config_not_dict", path=str(CONFIG_PATH))
            return {}
        logger.info("upstream_config_loaded", path=str(CONFIG_PATH))
        return data
    except Exception as exc:  # noqa: BLE001
        logger.error("upstream_config_load_error", path=str(CONFIG_PATH), error=str(exc))
        return {}


@dataclass(frozen=True)
class UpstreamResult:
    status_code: int
    body: Any = None
    error: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def reached(self) -> bool:
        return self.status_code > 0

    def error_message(self, default: str) -> str:
        """
        Best human-readable message from an upstream error body.

        Vercel:  {"error": {"message": "..."}}
        GitHub:  {"message": "..."}
        PostgREST: {"message": "...", "code": "..."}
        """
        body = self.body
        if isinstance(body, dict):
            err = body.get("error")
            if isinstance(err, dict) and isinstance(err.get("message"), str):
                return err["message"]
            if isinstance(body.get("message"), str):
                return body["message"]
        return default


class UpstreamClient:
    """
    Base class for the platform clients.

    Subclasses set `config_section` (the parameters/config.yaml section)
    and provide `_headers()` with their credential.
    """

    config_section: str = ""
    service: str = "upstream"

    def __init__(
        self,
        *,
        base_url: str,
        timeout: Optional[float],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._config = load_upstream_config()

    def _headers(self) -> Dict[str, str]:
        return {}

    def _endpoint(self, key: str, **path_params: str) -> str:
        """
        Read an endpoint path template from the loaded config and fill it.

        Example:
            config_section="github", key="workflows", repo="acme/web"
            -> "/repos/acme/web/actions/workflows"
        """
        try:
            template = self._config[self.config_section]["endpoints"][key]
            if not isinstance(template, str) or not template.startswith("/"):
                raise TypeError("Endpoint template must be a string starting with '/'")
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "endpoint_template_missing_or_invalid",
                section=self.config_section,
                key=key,
                error=str(exc),
            )
            raise RuntimeError(f"Missing or invalid endpoint template for {self.config_section}.{key}") from exc
        return template.format(**path_params)

    async def _request(
        self,
        method: str,
        endpoint_key: str,
        *,
        path_params: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> UpstreamResult:
        ctx = context or {}
        url = ""
        try:
            url = self._base_url + self._endpoint(endpoint_key, **(path_params or {}))
            request_headers = {**self._headers(), **(headers or {})}

            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(
                    method,
                    url,
                    params={k: v for k, v in (params or {}).items() if v is not None},
                    json=json_body,
                    headers=request_headers,
                )

            body = _parse_body(resp)

            if resp.status_code >= 400:
                logger.warning(
                    "upstream_http_error",
                    service=self.service,
                    method=method,
                    url=url,
                    status_code=resp.status_code,
                    response_snippet=(resp.text or "")[:500],
                    **ctx,
                )
            else:
                logger.debug(
                    "upstream_request_success",
                    service=self.service,
                    method=method,
                    url=url,
                    status_code=resp.status_code,
                    **ctx,
                )

            return UpstreamResult(status_code=resp.status_code, body=body, headers=dict(resp.headers))

        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "upstream_request_failed",
                service=self.service,
                method=method,
                url=url,
                error=str(exc),
                error_type=type(exc).__name__,
                **ctx,
            )
            return UpstreamResult(status_code=0, error=str(exc) or type(exc).__name__)


def _parse_body(resp: httpx.Response) -> Any:
    if resp.status_code == 204 or not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text

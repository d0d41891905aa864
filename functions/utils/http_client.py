"""
functions/utils/http_client.py

WHAT THIS FILE IS FOR
---------------------
A minimal, synchronous HTTP client used by the terminal dashboard poller
(functions/poller/dashboard_poller.py) to pull the API's aggregate
endpoints.

It exists to:
- Centralize GET + JSON decoding behavior
- Standardize timeout handling
- Avoid scattering raw `requests.get(...)` calls across the poller

WHAT THIS FILE IS NOT FOR
-------------------------
This module is NOT responsible for:
- Retry logic (the polling protocol has none)
- Logging
- Interpreting payloads

RELATIONSHIP TO functions/clients/*
-----------------------------------
- http_client.py:
    * Synchronous (requests)
    * Generic, transport-only
    * Runs on poller worker threads

- functions/clients/upstream.py:
    * Asynchronous (httpx)
    * Platform-aware (Vercel / GitHub / Supabase)
    * Never raises, returns UpstreamResult values

They serve different callers.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Union

import requests

# Timeout can be:
# - single float -> applied to both connect + read
# - (connect_timeout, read_timeout)
TimeoutType = Union[float, Tuple[float, float]]


class HttpClient:
    """
    Thin wrapper over a `requests.Session` bound to one base URL.

    The Session is shared by every poller tick; only cookie-less GETs go
    through it.
    """

    def __init__(self, base_url: str, timeout_seconds: TimeoutType = 30.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def get_json(
        self,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        timeout_seconds: Optional[TimeoutType] = None,
    ) -> Any:
        """
        GET `base_url + path` and return the decoded JSON body.

        Raises:
            requests.RequestException:
                Network-level errors and non-2xx responses (via
                raise_for_status). ValueError when the body is not JSON.
                Callers decide how a failed endpoint degrades.
        """
        resp = self._session.get(
            self.base_url + path,
            headers=headers or {},
            timeout=timeout_seconds if timeout_seconds is not None else self.timeout_seconds,
        )
        resp.raise_for_status()
        return resp.json()

    def close(self) -> None:
        self._session.close()

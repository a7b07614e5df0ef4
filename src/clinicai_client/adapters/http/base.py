"""Shared plumbing for adapters talking to the Clinic-AI backend over aiohttp."""

from typing import Dict, Optional
from urllib.parse import quote

import aiohttp

from ...core.config import ApiSettings


class BaseHttpAdapter:
    """Holds the injected session and connection settings for one backend."""

    def __init__(self, session: aiohttp.ClientSession, settings: Optional[ApiSettings] = None) -> None:
        self._session = session
        self._settings = settings or ApiSettings()
        self._timeout = aiohttp.ClientTimeout(total=self._settings.timeout_seconds)

    @property
    def base_url(self) -> str:
        return self._settings.base_url

    def _url(self, path: str, *segments: str) -> str:
        """Join the base URL, a path template and percent-encoded path segments."""
        encoded = [quote(str(segment), safe="") for segment in segments]
        return f"{self._settings.base_url}{path.format(*encoded)}"

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._settings.doctor_id:
            headers["X-Doctor-ID"] = self._settings.doctor_id
        if extra:
            headers.update(extra)
        return headers

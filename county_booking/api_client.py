import logging
from typing import Any, Dict

import requests

from county_booking import config

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Session expired. Please login again."


class ApiError(Exception):
    """A backend call failed. status is 0 for transport errors and timeouts."""

    def __init__(self, message: str, status: int = 0, data: Any = None):
        super().__init__(message)
        self.status = status
        self.data = data


class ApiClient:
    """Thin JSON client for the election office backend."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or config.API_BASE_URL or "").rstrip("/")
        self.token = token if token is not None else config.API_TOKEN
        self.timeout = timeout or config.REQUEST_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def get(self, path: str, params: Dict | None = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, body: Dict | None = None) -> Any:
        return self._request("POST", path, json=body)

    def put(self, path: str, body: Any = None) -> Any:
        return self._request("PUT", path, json=body)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        if not self.base_url:
            raise ApiError("Backend base URL is not configured.")

        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise ApiError("Request timeout") from e
        except requests.exceptions.RequestException as e:
            raise ApiError(f"Request failed: {e}") from e

        data = _decode_body(response)
        if not response.ok:
            server_message = None
            if isinstance(data, dict):
                server_message = data.get("message") or data.get("error")
            if response.status_code in (401, 403):
                raise ApiError(server_message or SESSION_EXPIRED_MESSAGE, response.status_code, data)
            raise ApiError(server_message or f"HTTP {response.status_code}", response.status_code, data)
        return data


def _decode_body(response: requests.Response) -> Any:
    text = response.text
    if not text:
        return None
    try:
        return response.json()
    except ValueError:
        return text


def unwrap_envelope(payload: Any) -> Any:
    """Returns the data of a {"success": ..., "message": ..., "data": ...} response.

    Raises ApiError when the backend reports success = false.
    """
    if not isinstance(payload, dict) or "success" not in payload:
        return payload
    if not payload["success"]:
        raise ApiError(payload.get("message") or "Request was not successful", data=payload)
    return payload.get("data")

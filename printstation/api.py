"""Client for the remote print API.

All calls go to a single base URL; the operation is selected with the
`action` query parameter (pending, render, status, validate).
"""

import logging

import requests

from printstation.config import PrintStationConfig

logger = logging.getLogger(__name__)

# Request timeouts in seconds
PENDING_TIMEOUT = 10
RENDER_FETCH_TIMEOUT = 30
STATUS_TIMEOUT = 5
VALIDATE_TIMEOUT = 10

# Characters of a response body kept in error messages
ERROR_BODY_LIMIT = 200


class ApiError(Exception):
    """Error response or failure talking to the print API."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ApiConnectionError(ApiError):
    """The server could not be reached (refused, timeout, DNS)."""

    pass


class AuthenticationError(ApiError):
    """Credentials or token rejected by the server."""

    pass


def _truncate(text: str, limit: int = ERROR_BODY_LIMIT) -> str:
    text = (text or "").strip()
    if len(text) > limit:
        return text[:limit] + "..."
    return text


class ApiClient:
    """HTTP client for the print API."""

    def __init__(self, config: PrintStationConfig, session: requests.Session | None = None):
        """Initialize the client.

        Args:
            config: Agent configuration (URL, client id, token).
            session: Optional requests session.
        """
        self.config = config
        self.session = session or requests.Session()

    @property
    def _auth_headers(self) -> dict:
        """Get API request headers with bearer authentication."""
        return {"Authorization": f"Bearer {self.config.token}"}

    def _request(
        self, method: str, action: str, base_url: str | None = None, **kwargs
    ) -> requests.Response:
        """Send a request and raise on transport errors or non-2xx status.

        Raises:
            ApiConnectionError: If the server is unreachable.
            AuthenticationError: On HTTP 401.
            ApiError: On any other error status or request failure.
        """
        params = {"action": action, **kwargs.pop("params", {})}
        url = (base_url or self.config.api_url).rstrip("/")
        logger.debug(f"{method} {url} {params}")

        try:
            response = self.session.request(method, url, params=params, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as err:
            raise ApiConnectionError(f"Could not connect to server: {err}") from err
        except requests.RequestException as err:
            raise ApiError(f"Request failed: {err}") from err

        if response.status_code == 401:
            raise AuthenticationError(
                f"Unauthorized ({action}): token expired or invalid",
                status_code=401,
                body=_truncate(response.text),
            )
        if not 200 <= response.status_code < 300:
            body = _truncate(response.text)
            raise ApiError(
                f"HTTP {response.status_code} on {action}: {body}",
                status_code=response.status_code,
                body=body,
            )
        return response

    def fetch_pending(self) -> list[dict]:
        """Get pending print jobs from server.

        Returns:
            list[dict]: Pending job records.

        Raises:
            ApiError: On transport, HTTP or payload errors.
        """
        response = self._request(
            "GET",
            "pending",
            headers={"X-Client-Id": self.config.client_id},
            timeout=PENDING_TIMEOUT,
        )

        try:
            data = response.json()
        except ValueError as err:
            raise ApiError(
                f"Invalid JSON in pending response: {_truncate(response.text)}",
                status_code=response.status_code,
            ) from err

        if isinstance(data, list):
            return data
        if not isinstance(data, dict):
            raise ApiError(f"Unexpected pending response: {_truncate(str(data))}")

        # Older servers answer with 'pendientes'
        jobs = data.get("jobs")
        if jobs is None:
            jobs = data.get("pendientes")
        return jobs or []

    def fetch_html(self, job_id: str) -> str:
        """Download the HTML document for a job.

        Args:
            job_id: Job id.

        Returns:
            str: Raw HTML.

        Raises:
            ApiError: If the server returns an error status or is unreachable.
        """
        response = self._request(
            "GET",
            "render",
            params={"id": job_id},
            headers=self._auth_headers,
            timeout=RENDER_FETCH_TIMEOUT,
        )
        html = response.text
        logger.info(f"Received HTML for job {job_id}: {len(html)} characters")
        return html

    def notify_status(self, job_id: str, status: str, details: dict | None = None) -> bool:
        """Report a job status to the server.

        Best effort: failures are logged and never raised.

        Args:
            job_id: Job id.
            status: New status value.
            details: Extra details ({printer, timestamp} or {error, timestamp}).

        Returns:
            bool: True if the server accepted the update.
        """
        payload = {
            "job_id": job_id,
            "status": status,
            "client_id": self.config.client_id,
            "details": details or {},
        }

        try:
            self._request(
                "POST",
                "status",
                headers=self._auth_headers,
                json=payload,
                timeout=STATUS_TIMEOUT,
            )
        except ApiError as e:
            logger.error(f"Error notifying status '{status}' for job {job_id}: {e}")
            return False

        logger.debug(f"Server acknowledged status '{status}' for job {job_id}")
        return True

    def validate(self, client_id: str, api_key: str, api_url: str | None = None) -> dict:
        """Validate credentials and obtain a token.

        Args:
            client_id: Client identifier.
            api_key: API key.
            api_url: Server to validate against (default: configured URL).

        Returns:
            dict: Validate response (token plus printer mappings or printer list).

        Raises:
            AuthenticationError: If the server rejects the credentials.
            ApiError: On transport or HTTP errors.
        """
        response = self._request(
            "POST",
            "validate",
            base_url=api_url,
            json={"client_id": client_id, "api_key": api_key},
            timeout=VALIDATE_TIMEOUT,
        )

        try:
            data = response.json()
        except ValueError as err:
            body = _truncate(response.text)
            raise ApiError(f"Invalid JSON in validate response: {body}") from err

        if not isinstance(data, dict) or not data.get("success"):
            message = data.get("message") if isinstance(data, dict) else None
            raise AuthenticationError(message or "Invalid credentials")

        return data

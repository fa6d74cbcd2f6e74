"""REST client for the Nexus Repository Manager API."""

import logging
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3 import Retry

from backend import ProtocolError, RemoteError

logger = logging.getLogger(__name__)

ASSETS_PATH = "/service/rest/v1/assets"
REPOSITORIES_PATH = "/service/rest/v1/repositories"

# Everything but 403, which is final.
RETRY_STATUSES = frozenset(range(400, 600)) - {403}


def error_from_response(resp: requests.Response) -> RemoteError:
    """Parse a non 2xx response into a RemoteError."""
    try:
        body = resp.json()
    except ValueError:
        logger.debug("Couldn't decode error response from %s", resp.url)
        body = {}
    if not isinstance(body, dict):
        body = {}
    status = body.get("status") or resp.status_code
    code = body.get("code") or "unknown"
    message = body.get("message") or f"Unknown {resp.status_code} {resp.reason}"
    return RemoteError(status, code, message)


class NexusClient:
    """Thin wrapper over a requests session.

    Reads (GET and HEAD) that fail with anything but 403, or can't connect,
    are retried `retries` times by urllib3 with exponential backoff. Uploads
    are sent once, since the body stream can't be replayed.
    """

    def __init__(self, endpoint: str, username: str = "", password: str = "",
                 timeout: float = 30.0, retries: int = 3, backoff: float = 0.5,
                 session: requests.Session | None = None):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        retry = Retry(
            total=retries,
            backoff_factor=backoff,
            status_forcelist=RETRY_STATUSES,
            allowed_methods=frozenset(["GET", "HEAD"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        if username:
            self.session.auth = (username, password)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise RemoteError(0, "connection", str(e)) from e
        if not resp.ok:
            raise error_from_response(resp)
        return resp

    def _json(self, resp: requests.Response):
        try:
            return resp.json()
        except ValueError as e:
            raise ProtocolError(f"Invalid JSON from {resp.url}: {e}") from e

    def paged_query(self, repository: str, token: str | None = None) -> dict:
        """Fetch one page of the flat asset listing of a repository."""
        params = {"repository": repository}
        if token:
            params["continuationToken"] = token
        resp = self._request("GET", self.endpoint + ASSETS_PATH, params=params)
        return self._json(resp)

    def asset_detail(self, asset_id: str) -> dict:
        resp = self._request("GET", f"{self.endpoint}{ASSETS_PATH}/{quote(asset_id, safe='')}")
        return self._json(resp)

    def content_length(self, download_url: str) -> int:
        resp = self._request("HEAD", download_url, allow_redirects=True)
        try:
            return int(resp.headers.get("Content-Length", 0))
        except ValueError as e:
            raise ProtocolError(f"Bad Content-Length for {download_url}") from e

    def download(self, download_url: str) -> bytes:
        return self._request("GET", download_url).content

    def upload(self, repository: str, path: str, stream, size: int, content_type: str) -> None:
        url = f"{self.endpoint}/repository/{quote(repository, safe='')}/{quote(path)}"
        headers = {"Content-Type": content_type}
        if size is not None and size >= 0:
            headers["Content-Length"] = str(size)
        logger.info("Uploading %s/%s (%s bytes)", repository, path, size)
        self._request("PUT", url, data=stream, headers=headers)

    def repositories(self) -> list[str]:
        resp = self._request("GET", self.endpoint + REPOSITORIES_PATH)
        data = self._json(resp)
        if not isinstance(data, list):
            raise ProtocolError("Repository listing is not a list")
        return [r["name"] for r in data if isinstance(r, dict) and r.get("name")]

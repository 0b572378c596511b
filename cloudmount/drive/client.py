"""Module with a minimal client for the Drive v2 REST API."""

from typing import Any, Dict, Optional

import httpx

from cloudmount.constants import CHANGES_PAGE_SIZE, ROOT_ID
from cloudmount.drive.auth import Authenticator
from cloudmount.drive.common import ChangePage, map_file
from cloudmount.errors import AuthError, ObjectNotFound, TransportError
from cloudmount.logger import log, summarize
from cloudmount.store import RemoteObject

DRIVE_API_URL = "https://www.googleapis.com/drive/v2"


class DriveClient:
    """
    Client for the parts of the Drive API that are needed to mirror a drive.

    That is the change feed to keep the metadata cache up-to-date, the lookup of the
    root folder to bootstrap it, and ranged downloads to fill chunks.

    Every request is authorized with the current credential. If the API rejects it,
    the credential is refreshed once and the request is retried. Network failures and
    unexpected responses are raised as TransportError.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        http: Optional[httpx.Client] = None,
        base_url: str = DRIVE_API_URL,
    ):
        """Instantiate a client that authorizes its requests with the authenticator."""
        self._authenticator = authenticator
        self._http = http or httpx.Client(timeout=60.0, follow_redirects=True)
        self._base_url = base_url.rstrip("/")

    def close(self) -> None:
        """Close all connections."""
        self._http.close()

    def list_changes(self, start_change_id: int, page_token: str = "") -> ChangePage:
        """Retrieve one page of the change feed, starting at the given change id."""
        params: Dict[str, Any] = {
            "includeDeleted": "true",
            "maxResults": CHANGES_PAGE_SIZE,
        }

        if page_token:
            params["pageToken"] = page_token

        if start_change_id != 0:
            params["startChangeId"] = start_change_id

        try:
            response = self._request(
                "GET", f"{self._base_url}/changes", params=params
            )
        except ObjectNotFound as e:
            # The feed itself is never absent, so this is an API failure
            raise TransportError(f"change feed unavailable: {e}", 404)

        try:
            return ChangePage.from_json(response.json())
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"invalid change list response: {e}")

    def get_root(self) -> RemoteObject:
        """Retrieve the root folder directly from the API."""
        log.debug("getting root from API")

        response = self._request("GET", f"{self._base_url}/files/{ROOT_ID}")

        try:
            return map_file(response.json())
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"invalid root folder response: {e}")

    def download_range(self, download_ref: str, start: int, end: int) -> bytes:
        """Download the bytes of a file from start to end (both inclusive)."""
        if not download_ref:
            raise ObjectNotFound("object has no downloadable contents")

        response = self._request(
            "GET", download_ref, headers={"Range": f"bytes={start}-{end}"}
        )

        if response.status_code == 206:
            return response.content
        else:
            # Server ignored the range and returned the complete file
            return response.content[start : end + 1]

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Perform an authorized request, refreshing the credential once if needed."""
        headers = kwargs.pop("headers", {})

        credential = self._authenticator.credential()

        for attempt in range(2):
            authorization = f"{credential.token_type} {credential.access_token}"

            try:
                response = self._http.request(
                    method,
                    url,
                    headers={**headers, "Authorization": authorization},
                    **kwargs,
                )
            except httpx.HTTPError as e:
                raise TransportError(f"{method} {url} failed: {e}")

            if response.status_code == 401 and attempt == 0:
                log.debug(f"{method} {url} was unauthorized, refreshing credential")
                credential = self._authenticator.refresh(credential)
                continue

            break

        if response.status_code == 401:
            raise AuthError(f"{method} {url} was rejected")
        elif response.status_code == 404:
            raise ObjectNotFound(f"{url} not found")
        elif not 200 <= response.status_code < 300:
            raise TransportError(
                f"{method} {url} failed: {summarize(response.text)}",
                response.status_code,
            )

        return response

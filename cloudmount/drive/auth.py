"""
Module that obtains and refreshes OAuth credentials for the Drive API.

A new installation has no credential yet and goes through the OAuth device flow: the
user is shown a URL and a short code to enter there, while cloudmount polls until the
authorization has been granted. The resulting credential is persisted in the metadata
cache so that subsequent runs can start unattended. Access tokens expire after an hour
and are refreshed using the refresh token whenever needed, after which the refreshed
credential is persisted again.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional

import httpx

from cloudmount.errors import AuthError, ObjectNotFound, TransportError
from cloudmount.logger import log
from cloudmount.store import Credential, ObjectStore

DEVICE_CODE_URL = "https://oauth2.googleapis.com/device/code"
TOKEN_URL = "https://oauth2.googleapis.com/token"

DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.readonly"

DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"


class Authenticator:
    """Provider of a valid credential that is kept in sync with the metadata cache."""

    def __init__(
        self,
        store: ObjectStore,
        client_id: str,
        client_secret: str,
        http: Optional[httpx.Client] = None,
        prompt: Callable[[str], Any] = print,
    ):
        """Instantiate an authenticator for the given OAuth client."""
        self._store = store
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = http or httpx.Client(timeout=30.0)
        self._prompt = prompt

        self._lock = threading.Lock()
        self._credential: Optional[Credential] = None

    def authorize(self) -> Credential:
        """
        Load the stored credential or obtain a new one from the user.

        This should be called once during startup before any API requests are made.
        """
        with self._lock:
            try:
                self._credential = self._store.get_credential()
                log.debug("loaded credential from cache")
            except ObjectNotFound:
                log.info("no credential found, starting authorization")

                self._credential = self._device_flow()
                self._store.set_credential(self._credential)

            return self._credential

    def credential(self) -> Credential:
        """Return a credential that isn't known to be expired."""
        with self._lock:
            if self._credential is None:
                raise AuthError("not authorized")

            if self._credential.expired():
                self._refresh_locked()

            return self._credential

    def refresh(self, rejected: Optional[Credential] = None) -> Credential:
        """
        Refresh the access token and persist the new credential.

        If the rejected credential is given and another thread has already replaced it,
        then the newer credential is returned without refreshing it again.
        """
        with self._lock:
            if self._credential is None:
                raise AuthError("not authorized")

            if rejected is None or self._credential is rejected:
                self._refresh_locked()

            return self._credential

    def _refresh_locked(self) -> None:
        """Exchange the refresh token for a new access token."""
        assert self._credential is not None

        if not self._credential.refresh_token:
            raise AuthError("credential has expired and cannot be refreshed")

        log.debug("refreshing access token")

        data = self._token_request(
            {
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "refresh_token": self._credential.refresh_token,
                "grant_type": "refresh_token",
            }
        )

        if "error" in data:
            raise AuthError(f"failed to refresh access token: {data['error']}")

        self._credential = self._credential_from_token(
            data, self._credential.refresh_token
        )
        self._store.set_credential(self._credential)

    def _device_flow(self) -> Credential:
        """Obtain a credential by having the user authorize this device."""
        try:
            response = self._http.post(
                DEVICE_CODE_URL,
                data={"client_id": self._client_id, "scope": DRIVE_SCOPE},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"failed to request device code: {e}")

        if response.status_code != 200:
            raise AuthError(
                f"failed to request device code (HTTP {response.status_code})"
            )

        device = response.json()

        self._prompt(
            f"Go to {device['verification_url']} and enter the code "
            f"{device['user_code']} to authorize access to your drive"
        )

        interval = int(device.get("interval", 5))
        deadline = time.time() + int(device.get("expires_in", 1800))

        while time.time() < deadline:
            time.sleep(interval)

            data = self._token_request(
                {
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "device_code": device["device_code"],
                    "grant_type": DEVICE_GRANT_TYPE,
                }
            )

            error = data.get("error")

            if error is None:
                log.info("authorization granted")
                return self._credential_from_token(data)
            elif error == "authorization_pending":
                continue
            elif error == "slow_down":
                interval += 5
            else:
                raise AuthError(f"authorization failed: {error}")

        raise AuthError("authorization timed out")

    def _token_request(self, form: Dict[str, str]) -> Dict[str, Any]:
        """Post to the token endpoint and return the decoded response."""
        try:
            response = self._http.post(TOKEN_URL, data=form)
        except httpx.HTTPError as e:
            raise TransportError(f"failed to reach token endpoint: {e}")

        if response.status_code >= 500:
            raise TransportError("token endpoint failed", response.status_code)

        try:
            return response.json()
        except ValueError:
            raise TransportError("invalid token response", response.status_code)

    @staticmethod
    def _credential_from_token(
        data: Dict[str, Any], refresh_token: str = ""
    ) -> Credential:
        """Turn a token endpoint response into a credential."""
        expires_in = data.get("expires_in")

        return Credential(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", refresh_token),
            token_type=data.get("token_type", "Bearer"),
            expiry=time.time() + int(expires_in) if expires_in else 0.0,
        )

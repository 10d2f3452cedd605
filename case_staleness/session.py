"""Authenticated Graph session: token acquisition and paged collection reads."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from .config import AuthenticationMethod, Settings
from .errors import FetchError, GraphConnectionError

logger = logging.getLogger(__name__)

APP_SCOPE = "https://graph.microsoft.com/.default"
DELEGATED_SCOPE = "https://graph.microsoft.com/ServiceHealth.Read.All"
DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"


class GraphSession:
    """Holds an authenticated httpx client for the Graph API.

    Usage:
        session = GraphSession(settings)
        session.connect()
        try:
            issues = session.get_collection("admin/serviceAnnouncement/issues")
        finally:
            session.disconnect()
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        prompt: Callable[[str], None] = print,
    ):
        self.settings = settings
        self._transport = transport
        self._sleep = sleep
        self._prompt = prompt
        self._client: Optional[httpx.Client] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    def _token_url(self, endpoint: str = "token") -> str:
        authority = self.settings.authority.rstrip("/")
        return f"{authority}/{self.settings.tenant_id}/oauth2/v2.0/{endpoint}"

    def connect(self) -> None:
        """Acquires an access token and opens the Graph client.

        Raises:
            GraphConnectionError: token acquisition failed for any reason
        """
        method = self.settings.authentication_method
        logger.info(
            "Connecting to Graph for tenant %s using %s authentication",
            self.settings.tenant_id,
            method.value,
        )
        try:
            with httpx.Client(
                timeout=self.settings.timeout_seconds, transport=self._transport
            ) as auth_client:
                if method is AuthenticationMethod.INTERACTIVE:
                    token = self._device_code_token(auth_client)
                else:
                    token = self._client_credentials_token(auth_client)
        except httpx.HTTPError as exc:
            raise GraphConnectionError(f"Token request failed: {exc}") from exc

        self._client = httpx.Client(
            base_url=self.settings.graph_base_url.rstrip("/") + "/",
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            timeout=self.settings.timeout_seconds,
            transport=self._transport,
        )
        logger.info("Connected to Graph")

    def _client_credentials_token(self, client: httpx.Client) -> str:
        response = client.post(
            self._token_url(),
            data={
                "client_id": self.settings.client_id,
                "client_secret": self.settings.client_secret,
                "scope": APP_SCOPE,
                "grant_type": "client_credentials",
            },
        )
        return self._extract_token(response)

    def _device_code_token(self, client: httpx.Client) -> str:
        response = client.post(
            self._token_url("devicecode"),
            data={"client_id": self.settings.client_id, "scope": DELEGATED_SCOPE},
        )
        if response.status_code != 200:
            raise GraphConnectionError(
                f"Device code request failed ({response.status_code}): {response.text}"
            )
        flow = _json_or_empty(response)
        self._prompt(flow.get("message") or f"Enter code {flow.get('user_code')}")
        interval = float(flow.get("interval", 5))

        for _ in range(self.settings.device_code_poll_limit):
            self._sleep(interval)
            poll = client.post(
                self._token_url(),
                data={
                    "client_id": self.settings.client_id,
                    "grant_type": DEVICE_CODE_GRANT,
                    "device_code": flow.get("device_code"),
                },
            )
            if poll.status_code == 200:
                return self._extract_token(poll)
            error = _json_or_empty(poll).get("error")
            if error == "authorization_pending":
                continue
            if error == "slow_down":
                interval += 5
                continue
            raise GraphConnectionError(f"Interactive sign-in failed: {error or poll.text}")

        raise GraphConnectionError("Interactive sign-in timed out waiting for the user")

    @staticmethod
    def _extract_token(response: httpx.Response) -> str:
        payload = _json_or_empty(response)
        if response.status_code != 200 or "access_token" not in payload:
            detail = payload.get("error_description") or payload.get("error") or response.text
            raise GraphConnectionError(
                f"Token request rejected ({response.status_code}): {detail}"
            )
        return payload["access_token"]

    def get_collection(
        self, path: str, params: Optional[Dict[str, str]] = None
    ) -> List[Dict[str, Any]]:
        """Reads every page of a Graph collection.

        Raises:
            FetchError: network failure, timeout, HTTP error or malformed body
        """
        if self._client is None:
            raise FetchError("Session is not connected")

        items: List[Dict[str, Any]] = []
        url: Optional[str] = path.lstrip("/")
        request_params = params
        while url:
            try:
                response = self._client.get(url, params=request_params)
                response.raise_for_status()
                payload = response.json()
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                raise FetchError(f"Request to {path} failed: {exc}") from exc
            except ValueError as exc:
                raise FetchError(f"Response from {path} is not JSON") from exc

            if not isinstance(payload, dict) or not isinstance(payload.get("value"), list):
                raise FetchError(f"Response from {path} has no 'value' collection")

            items.extend(payload["value"])
            url = payload.get("@odata.nextLink")
            if url is not None and not isinstance(url, str):
                raise FetchError(f"Response from {path} has an invalid nextLink: {url!r}")
            # nextLink already carries the query string
            request_params = None

        logger.debug("Read %d item(s) from %s", len(items), path)
        return items

    def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Disconnected from Graph")


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}

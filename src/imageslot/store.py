"""
Remote Content Store

Async client for the GitHub contents API: reads the version token of the
image resource and writes new bytes with that token as an optimistic lock.
"""

import base64
import logging
import time
from typing import Optional

import httpx

from .config import Credential, parse_resource_path, settings
from .errors import AuthError, TransportError
from .models import RemoteImageVersion

logger = logging.getLogger(__name__)


def public_url(resource_path: str, filename: Optional[str] = None, template: Optional[str] = None) -> str:
    """
    Public URL of the resource, e.g. ``https://owner.github.io/repo/image1.jpg``.

    Used for display and copy only; the store is read through its API.
    """
    owner, repo = parse_resource_path(resource_path)
    template = template or settings.public_url_template
    return template.format(owner=owner, repo=repo, filename=filename or settings.resource_filename)


class ContentStore:
    """
    GitHub contents API client.

    Handles request auth, status mapping and response parsing. A 404 on
    read means the resource does not exist yet; 409/422 on write means the
    version token was stale.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        raw_url: Optional[str] = None,
        branch: Optional[str] = None,
        timeout: Optional[float] = None,
        public_url_template: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            api_url: API base URL (e.g., "https://api.github.com")
            raw_url: Raw content base URL for display
            branch: Branch the resource lives on
            timeout: Request timeout in seconds
            public_url_template: Template for the display URL
            client: Pre-built client (tests inject a MockTransport here)
        """
        self.api_url = (api_url or settings.github_api_url).rstrip("/")
        self.raw_url = (raw_url or settings.raw_content_url).rstrip("/")
        self.branch = branch or settings.branch
        self.public_url_template = public_url_template or settings.public_url_template
        self.client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.request_timeout
        )

    def _contents_url(self, resource_path: str, filename: str) -> str:
        owner, repo = parse_resource_path(resource_path)
        return f"{self.api_url}/repos/{owner}/{repo}/contents/{filename}"

    @staticmethod
    def _headers(token: str) -> dict:
        return {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github+json",
        }

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(data, dict) and data.get("message"):
            return data["message"]
        return response.reason_phrase

    def _raise_for_status(self, response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        message = self._error_message(response)
        if response.status_code in (401, 403):
            raise AuthError(f"{action} rejected by store: {message}")
        if response.status_code in (409, 422):
            logger.warning(f"{action} conflict ({response.status_code}): {message}")
        else:
            logger.error(f"{action} failed ({response.status_code}): {message}")
        raise TransportError(message, status_code=response.status_code)

    async def get_version(self, credential: Credential, filename: Optional[str] = None) -> Optional[RemoteImageVersion]:
        """
        Read the current version of the resource.

        Returns:
            RemoteImageVersion, or None if the resource does not exist

        Raises:
            AuthError: Token rejected
            TransportError: Network failure or unexpected status
        """
        filename = filename or settings.resource_filename
        url = self._contents_url(credential.resource_path, filename)

        try:
            response = await self.client.get(
                url, headers=self._headers(credential.token), params={"ref": self.branch}
            )
        except httpx.HTTPError as e:
            logger.error(f"Cannot reach store at {self.api_url}: {e}")
            raise TransportError(f"Network error: {e}") from e

        if response.status_code == 404:
            logger.debug(f"No existing {filename} in {credential.resource_path}")
            return None

        self._raise_for_status(response, "Read")

        owner, repo = parse_resource_path(credential.resource_path)
        try:
            data = response.json()
            return RemoteImageVersion(
                sha=data["sha"],
                size=data.get("size", 0),
                read_url=f"{self.raw_url}/{owner}/{repo}/{self.branch}/{filename}?t={int(time.time() * 1000)}",
                public_url=public_url(credential.resource_path, filename, self.public_url_template),
                resource_path=credential.resource_path,
                filename=filename,
            )
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.error(f"Unexpected read response for {filename}: {e}")
            raise TransportError(f"Unexpected response: {e}", status_code=response.status_code) from e

    async def put_content(
        self,
        credential: Credential,
        data: bytes,
        message: str,
        sha: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> Optional[str]:
        """
        Write new bytes to the resource.

        Args:
            credential: Token and resource path
            data: Raw bytes to store
            message: Commit message
            sha: Version token of the current resource, if one exists
            filename: Resource key (defaults to the configured filename)

        Returns:
            The new version token, if the store reported one

        Raises:
            AuthError: Token rejected
            TransportError: Network failure, conflict or other non-2xx status
        """
        filename = filename or settings.resource_filename
        url = self._contents_url(credential.resource_path, filename)

        body = {
            "message": message,
            "content": base64.b64encode(data).decode("ascii"),
            "branch": self.branch,
        }
        if sha:
            body["sha"] = sha

        try:
            response = await self.client.put(url, headers=self._headers(credential.token), json=body)
        except httpx.HTTPError as e:
            logger.error(f"Cannot reach store at {self.api_url}: {e}")
            raise TransportError(f"Network error: {e}") from e

        self._raise_for_status(response, "Write")

        try:
            content = response.json().get("content") or {}
        except (ValueError, AttributeError):
            return None
        return content.get("sha")

    async def aclose(self) -> None:
        await self.client.aclose()

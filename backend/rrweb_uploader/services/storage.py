"""Google Drive storage service for replay artifacts."""
import json
import time
import uuid
from typing import Any, Dict, List, Optional, Protocol

import httpx
import jwt

from rrweb_uploader.config import Settings, settings
from rrweb_uploader.constants import ARTIFACT_MIME_TYPE, DEFAULT_FILE_LIST_LIMIT
from rrweb_uploader.schemas.artifact import StoredArtifact, StoredFile
from rrweb_uploader.utils.exceptions import StorageUnavailable
from rrweb_uploader.utils.logger import logger


class ArtifactStore(Protocol):
    """What the recording service needs from a blob store."""

    @property
    def is_configured(self) -> bool: ...

    async def publish(self, name: str, content: bytes, folder_id: Optional[str] = None) -> StoredArtifact: ...

    async def fetch(self, file_id: str) -> bytes: ...

    async def describe(self, file_id: str) -> StoredFile: ...

    async def list_files(self, limit: int = DEFAULT_FILE_LIST_LIMIT) -> List[StoredFile]: ...


def load_service_account(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse service account credentials from their JSON text.

    Private keys pasted into environment variables usually carry literal
    "\\n" sequences, which are turned back into newlines.

    Returns:
        The credentials dict, or None if absent or invalid
    """
    if not raw:
        return None
    try:
        credentials = json.loads(raw)
    except ValueError:
        logger.error("Invalid GOOGLE_SERVICE_JSON: not valid JSON")
        return None
    if not isinstance(credentials, dict) or not credentials.get("client_email") or not credentials.get("private_key"):
        logger.error("Invalid GOOGLE_SERVICE_JSON: client_email and private_key are required")
        return None
    if isinstance(credentials["private_key"], str):
        credentials["private_key"] = credentials["private_key"].replace("\\n", "\n")
    return credentials


def _json_body(response: httpx.Response, operation: str) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as e:
        logger.error(f"{operation} returned a non-JSON body: {response.text[:200]}")
        raise StorageUnavailable(f"{operation} returned an invalid response") from e
    if not isinstance(data, dict):
        raise StorageUnavailable(f"{operation} returned an invalid response")
    return data


class DriveStorageService:
    """Publishes and fetches artifacts in a Drive folder using the REST API.

    Authorises with an OAuth refresh token when one is configured, otherwise
    with a service account (signed JWT assertion).
    """

    TOKEN_URL = "https://oauth2.googleapis.com/token"
    FILES_URL = "https://www.googleapis.com/drive/v3/files"
    UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
    DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.file"
    JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

    # Refresh the access token this many seconds before Google expires it
    TOKEN_EXPIRY_MARGIN = 60
    ASSERTION_LIFETIME = 3600

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        refresh_token: Optional[str] = None,
        folder_id: Optional[str] = None,
        service_account: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.folder_id = folder_id
        self.service_account = service_account
        self._transport = transport
        self._access_token: Optional[str] = None
        self._access_token_expires_at = 0.0

    @classmethod
    def from_settings(cls, config: Settings = settings, **kwargs) -> "DriveStorageService":
        service = cls(
            client_id=config.google_client_id,
            client_secret=config.google_client_secret,
            refresh_token=config.oauth_refresh_token,
            folder_id=config.drive_folder_id,
            service_account=load_service_account(config.google_service_json),
            **kwargs,
        )
        if service.has_oauth_credentials:
            logger.info("Using OAuth client (files owned by the authorising account)")
        elif service.service_account:
            logger.info("Using service account credentials")
        return service

    @property
    def has_oauth_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)

    @property
    def has_credentials(self) -> bool:
        return self.has_oauth_credentials or bool(self.service_account)

    @property
    def is_configured(self) -> bool:
        """True when credentials and a target folder are both available."""
        return self.has_credentials and bool(self.folder_id)

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _token_request(self) -> Dict[str, str]:
        if self.has_oauth_credentials:
            return {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": self.refresh_token,
                "grant_type": "refresh_token",
            }

        issued_at = int(time.time())
        claims = {
            "iss": self.service_account["client_email"],
            "scope": self.DRIVE_SCOPE,
            "aud": self.service_account.get("token_uri", self.TOKEN_URL),
            "iat": issued_at,
            "exp": issued_at + self.ASSERTION_LIFETIME,
        }
        headers = {}
        if self.service_account.get("private_key_id"):
            headers["kid"] = self.service_account["private_key_id"]
        try:
            assertion = jwt.encode(
                claims,
                self.service_account["private_key"],
                algorithm="RS256",
                headers=headers or None,
            )
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            logger.error(f"Failed to sign service account assertion: {e}", exc_info=True)
            raise StorageUnavailable("Service account key is invalid") from e
        return {"grant_type": self.JWT_BEARER_GRANT, "assertion": assertion}

    async def _get_access_token(self) -> str:
        """Obtain an access token, cached until shortly before it expires."""
        if not self.has_credentials:
            raise StorageUnavailable("Drive credentials are not configured")

        if self._access_token and time.monotonic() < self._access_token_expires_at:
            return self._access_token

        try:
            async with self._client(timeout=10.0) as client:
                response = await client.post(self.TOKEN_URL, data=self._token_request())
        except httpx.HTTPError as e:
            logger.error(f"Token request failed: {e}", exc_info=True)
            raise StorageUnavailable(f"Token refresh failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Token refresh failed: {response.status_code} - {response.text}")
            raise StorageUnavailable(f"Token refresh failed: {response.status_code}")

        payload = _json_body(response, "Token refresh")
        access_token = payload.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise StorageUnavailable("Token refresh returned no access token")

        try:
            expires_in = int(payload.get("expires_in", 3600))
        except (TypeError, ValueError):
            expires_in = 3600
        self._access_token = access_token
        self._access_token_expires_at = time.monotonic() + max(expires_in - self.TOKEN_EXPIRY_MARGIN, 0)
        return access_token

    async def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {await self._get_access_token()}"}

    async def publish(
        self,
        name: str,
        content: bytes,
        folder_id: Optional[str] = None,
    ) -> StoredArtifact:
        """
        Upload an artifact as a new Drive file.

        Args:
            name: File name
            content: Serialized artifact
            folder_id: Target folder (defaults to the configured folder)

        Returns:
            StoredArtifact with the Drive file id and name

        Raises:
            StorageUnavailable: If storage is misconfigured or the upload fails
        """
        target_folder = folder_id or self.folder_id
        if not target_folder:
            raise StorageUnavailable("Drive folder is not configured")

        headers = await self._auth_headers()
        boundary = f"rrweb-{uuid.uuid4().hex}"
        metadata = {"name": name, "parents": [target_folder], "mimeType": ARTIFACT_MIME_TYPE}
        body = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{boundary}\r\n"
            f"Content-Type: {ARTIFACT_MIME_TYPE}\r\n\r\n"
        ).encode("utf-8") + content + f"\r\n--{boundary}--\r\n".encode("utf-8")
        headers["Content-Type"] = f"multipart/related; boundary={boundary}"

        try:
            async with self._client(timeout=60.0) as client:
                logger.debug(f"Uploading {name} ({len(content)} bytes) to folder {target_folder}")
                response = await client.post(
                    self.UPLOAD_URL,
                    params={"uploadType": "multipart", "fields": "id,name"},
                    headers=headers,
                    content=body,
                )
        except httpx.HTTPError as e:
            logger.error(f"Upload of {name} failed: {e}", exc_info=True)
            raise StorageUnavailable(f"Upload failed: {e}") from e

        if response.status_code not in (200, 201):
            logger.error(f"Upload of {name} failed: {response.status_code} - {response.text}")
            raise StorageUnavailable(f"Upload failed: {response.status_code}")

        data = _json_body(response, "Upload")
        if not isinstance(data.get("id"), str) or not data["id"]:
            logger.error(f"Upload of {name} returned no file id: {data}")
            raise StorageUnavailable("Upload returned no file id")

        stored = StoredArtifact(id=data["id"], name=data.get("name") or name)
        logger.info(f"Uploaded artifact {stored.name} as {stored.id}")
        return stored

    async def fetch(self, file_id: str) -> bytes:
        """
        Download the raw content of a stored artifact.

        Raises:
            StorageUnavailable: If the file cannot be downloaded
        """
        headers = await self._auth_headers()
        try:
            async with self._client(timeout=60.0) as client:
                response = await client.get(
                    f"{self.FILES_URL}/{file_id}",
                    params={"alt": "media"},
                    headers=headers,
                )
        except httpx.HTTPError as e:
            logger.error(f"Download of {file_id} failed: {e}", exc_info=True)
            raise StorageUnavailable(f"Download failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Download of {file_id} failed: {response.status_code} - {response.text}")
            raise StorageUnavailable(f"Download failed: {response.status_code}")
        return response.content

    async def describe(self, file_id: str) -> StoredFile:
        """Fetch the metadata (name, mime type) of a stored file."""
        headers = await self._auth_headers()
        try:
            async with self._client(timeout=10.0) as client:
                response = await client.get(
                    f"{self.FILES_URL}/{file_id}",
                    params={"fields": "id,name,mimeType"},
                    headers=headers,
                )
        except httpx.HTTPError as e:
            logger.error(f"Metadata lookup of {file_id} failed: {e}", exc_info=True)
            raise StorageUnavailable(f"Metadata lookup failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Metadata lookup of {file_id} failed: {response.status_code} - {response.text}")
            raise StorageUnavailable(f"Metadata lookup failed: {response.status_code}")

        data = _json_body(response, "Metadata lookup")
        return StoredFile(
            id=file_id,
            name=data.get("name") if isinstance(data.get("name"), str) else None,
            mimeType=data.get("mimeType") if isinstance(data.get("mimeType"), str) else None,
        )

    async def list_files(self, limit: int = DEFAULT_FILE_LIST_LIMIT) -> List[StoredFile]:
        """List the most recently modified files in the artifact folder."""
        if not self.folder_id:
            raise StorageUnavailable("Drive folder is not configured")

        headers = await self._auth_headers()
        try:
            async with self._client(timeout=10.0) as client:
                response = await client.get(
                    self.FILES_URL,
                    params={
                        "q": f"'{self.folder_id}' in parents and trashed = false",
                        "orderBy": "modifiedTime desc",
                        "pageSize": limit,
                        "fields": "files(id,name,modifiedTime,size,mimeType)",
                    },
                    headers=headers,
                )
        except httpx.HTTPError as e:
            logger.error(f"Listing folder {self.folder_id} failed: {e}", exc_info=True)
            raise StorageUnavailable(f"Listing failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Listing folder {self.folder_id} failed: {response.status_code} - {response.text}")
            raise StorageUnavailable(f"Listing failed: {response.status_code}")

        files = _json_body(response, "Listing").get("files", [])
        try:
            return [StoredFile(**item) for item in files]
        except (TypeError, ValueError) as e:
            logger.error(f"Listing folder {self.folder_id} returned malformed entries: {e}")
            raise StorageUnavailable("Listing returned an invalid response") from e

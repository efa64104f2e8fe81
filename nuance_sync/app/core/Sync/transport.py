# nuance_sync/app/core/Sync/transport.py
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from .blob_schemas import BlobSummary, RemoteBlobDocument, RemoteIdentity
from .exceptions import AuthError, RemoteServiceError, TransportError
from .models import AnalysisRecord, now_ms

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
BLOB_FILENAME = "nuance-history.json"
BLOB_DESCRIPTION = "Nuance English Learning - Analysis History"
FORMAT_VERSION = "1.0.0"


class BlobTransport(ABC):
    """Abstract base class for the remote blob protocol."""

    @abstractmethod
    def find_owned_blob(self, token: str) -> Optional[str]:
        """
        Resolves the token's identity and looks for a blob it owns that carries the well-known file.

        Returns:
            The blob id, or None if the owner has no such blob.

        Raises:
            AuthError: If the identity lookup rejects the token.
            TransportError: If listing fails.
        """
        pass

    @abstractmethod
    def create_blob(self, token: str, records: List[AnalysisRecord]) -> str:
        """Creates a new private blob holding a snapshot of `records` and returns its id."""
        pass

    @abstractmethod
    def update_blob(self, token: str, blob_id: str, records: List[AnalysisRecord]) -> None:
        """Overwrites the blob's content with a fresh snapshot of `records`."""
        pass

    @abstractmethod
    def read_blob(self, token: str, blob_id: str) -> List[AnalysisRecord]:
        """
        Reads the records held by the blob.

        A missing blob or an unparseable document reads as an empty history.
        """
        pass

    @abstractmethod
    def validate_token(self, token: str) -> bool:
        pass

    @abstractmethod
    def get_raw_url(self, token: str, blob_id: str) -> Optional[str]:
        pass


class GistBlobTransport(BlobTransport):
    """Blob transport against a Gist-style hosting API over HTTP."""

    def __init__(self,
                 base_url: str = DEFAULT_API_URL,
                 blob_filename: str = BLOB_FILENAME,
                 blob_description: str = BLOB_DESCRIPTION,
                 format_version: str = FORMAT_VERSION,
                 timeout: float = 30,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.blob_filename = blob_filename
        self.blob_description = blob_description
        self.format_version = format_version
        self.timeout = timeout
        self.session = session or requests.Session()
        logger.info(f"Gist blob transport initialized for URL: {self.base_url}")

    def _get_headers(self, token: str, with_body: bool = False) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github.v3+json",
        }
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _request(self, method: str, path: str, token: str, payload: Optional[Dict[str, Any]] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            return self.session.request(
                method,
                url,
                headers=self._get_headers(token, with_body=payload is not None),
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"HTTP request failed: {method} {url}: {e}")
            raise TransportError(f"Request to {path} failed: {e}") from e

    @staticmethod
    def _json_body(response: requests.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON response received for {what}: {e}") from e

    def _snapshot_payload(self, records: List[AnalysisRecord]) -> Dict[str, Any]:
        document = RemoteBlobDocument(
            version=self.format_version,
            lastSync=now_ms(),
            data=[r.to_dict() for r in records],
        )
        return {self.blob_filename: {"content": json.dumps(document.model_dump(), indent=2)}}

    def _get_identity(self, token: str) -> RemoteIdentity:
        response = self._request("GET", "/user", token)
        if not response.ok:
            logger.warning(f"Identity lookup rejected token: HTTP {response.status_code}")
            raise AuthError(f"Identity lookup failed with HTTP {response.status_code}")
        try:
            return RemoteIdentity.model_validate(self._json_body(response, "identity lookup"))
        except ValidationError as e:
            raise TransportError(f"Unexpected identity response: {e}") from e

    def validate_token(self, token: str) -> bool:
        try:
            self._get_identity(token)
            return True
        except TransportError:
            return False

    def find_owned_blob(self, token: str) -> Optional[str]:
        identity = self._get_identity(token)
        response = self._request("GET", f"/users/{identity.login}/gists", token)
        if not response.ok:
            raise RemoteServiceError("Failed to list blobs", status_code=response.status_code, detail=response.text)

        listing = self._json_body(response, "blob listing")
        if not isinstance(listing, list):
            raise TransportError(f"Invalid blob listing: expected list, got {type(listing).__name__}")

        for entry in listing:
            try:
                summary = BlobSummary.model_validate(entry)
            except ValidationError:
                logger.debug("Skipping unparseable blob summary in listing.")
                continue
            if self.blob_filename in summary.files:
                logger.info(f"Found existing blob {summary.id} owned by {identity.login}.")
                return summary.id

        logger.info(f"No existing blob found for {identity.login}.")
        return None

    def create_blob(self, token: str, records: List[AnalysisRecord]) -> str:
        payload = {
            "description": self.blob_description,
            "public": False,
            "files": self._snapshot_payload(records),
        }
        response = self._request("POST", "/gists", token, payload)
        if not response.ok:
            raise RemoteServiceError("Failed to create blob", status_code=response.status_code, detail=response.text)
        body = self._json_body(response, "blob creation")
        blob_id = body.get("id") if isinstance(body, dict) else None
        if not isinstance(blob_id, str) or not blob_id:
            raise TransportError("Blob creation response did not include an id")
        logger.info(f"Created blob {blob_id} with {len(records)} records.")
        return blob_id

    def update_blob(self, token: str, blob_id: str, records: List[AnalysisRecord]) -> None:
        payload = {"files": self._snapshot_payload(records)}
        response = self._request("PATCH", f"/gists/{blob_id}", token, payload)
        if not response.ok:
            raise RemoteServiceError("Failed to update blob", status_code=response.status_code, detail=response.text)
        logger.info(f"Updated blob {blob_id} with {len(records)} records.")

    def _fetch_blob(self, token: str, blob_id: str) -> Optional[BlobSummary]:
        """Returns the parsed blob, or None if it does not exist."""
        response = self._request("GET", f"/gists/{blob_id}", token)
        if response.status_code == 404:
            return None
        if not response.ok:
            raise RemoteServiceError("Failed to fetch blob", status_code=response.status_code, detail=response.text)
        try:
            return BlobSummary.model_validate(self._json_body(response, "blob fetch"))
        except ValidationError as e:
            raise TransportError(f"Unexpected blob response: {e}") from e

    def read_blob(self, token: str, blob_id: str) -> List[AnalysisRecord]:
        blob = self._fetch_blob(token, blob_id)
        if blob is None:
            logger.warning(f"Blob {blob_id} not found; treating as empty history.")
            return []

        blob_file = blob.files.get(self.blob_filename)
        if blob_file is None or not blob_file.content:
            logger.warning(f"Blob {blob_id} has no '{self.blob_filename}' content; treating as empty history.")
            return []

        try:
            document = RemoteBlobDocument.model_validate_json(blob_file.content)
        except ValidationError as e:
            # Hand-edited or partially written blobs degrade to an empty history
            logger.warning(f"Could not parse blob {blob_id} document: {e.error_count()} error(s); treating as empty history.")
            return []

        records = []
        for entry in document.data:
            try:
                records.append(AnalysisRecord.from_dict(entry))
            except ValueError as e:
                logger.warning(f"Skipping malformed record in blob {blob_id}: {e}")
        logger.info(f"Read {len(records)} records from blob {blob_id}.")
        return records

    def get_raw_url(self, token: str, blob_id: str) -> Optional[str]:
        try:
            blob = self._fetch_blob(token, blob_id)
        except TransportError as e:
            logger.warning(f"Could not fetch raw url for blob {blob_id}: {e}")
            return None
        if blob is None:
            return None
        blob_file = blob.files.get(self.blob_filename)
        return blob_file.raw_url if blob_file else None

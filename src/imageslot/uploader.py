"""
Upload Coordinator

Optimistic-concurrency write of the image resource:
read current version -> write with that version -> hand off a pending
placeholder for reconciliation.
"""

import base64
import logging
from typing import Optional

from .config import Credential, settings
from .estimator import estimate_payload_size, format_file_size
from .models import PendingUpload, RawBytes, UploadPayload, UploadReceipt, utcnow
from .reconciler import ReconciliationScheduler
from .recent import RecentUploadStore
from .store import ContentStore

logger = logging.getLogger(__name__)


class UploadCoordinator:
    """
    Writes bytes to the resource slot.

    Conflicts are not retried; the store's rejection surfaces as a
    TransportError and the user starts the upload again.
    """

    def __init__(
        self,
        store: ContentStore,
        scheduler: Optional[ReconciliationScheduler] = None,
        recent: Optional[RecentUploadStore] = None,
        filename: Optional[str] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.recent = recent
        self.filename = filename or settings.resource_filename

    def _commit_message(self) -> str:
        timestamp = utcnow().isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return f"Update {self.filename} - {timestamp}"

    async def upload(self, payload: UploadPayload, credential: Credential) -> UploadReceipt:
        """
        Upload a transcoded preview or reused raw bytes.

        Args:
            payload: TranscodeResult from the transcoder, or RawBytes from a
                recent upload (reused bytes get the shorter confirmation delay)
            credential: Token and ``owner/repo`` resource path

        Returns:
            UploadReceipt with previous/new version tokens and the pending
            placeholder

        Raises:
            AuthError: Missing or rejected token
            ConfigError: Missing or malformed resource path
            TransportError: Network failure, conflict or other store error
        """
        credential.require()
        reused = isinstance(payload, RawBytes)

        previous = await self.store.get_version(credential, self.filename)
        previous_sha = previous.sha if previous else None
        logger.info(
            f"Uploading {self.filename} to {credential.resource_path} "
            f"(previous version: {previous_sha[:8] if previous_sha else 'none'})"
        )

        message = self._commit_message()
        new_sha = await self.store.put_content(
            credential, payload.data, message, sha=previous_sha, filename=self.filename
        )

        size = estimate_payload_size(len(base64.b64encode(payload.data)))
        pending = PendingUpload(data=payload.data, mime=payload.mime, reused=reused)
        logger.info(f"Upload accepted ({format_file_size(size)}), waiting for read path")

        if self.scheduler is not None:
            self.scheduler.begin_pending(pending)

        self._record_recent(payload, size)

        return UploadReceipt(
            resource_path=credential.resource_path,
            filename=self.filename,
            previous_sha=previous_sha,
            sha=new_sha,
            size=size,
            message=message,
            pending=pending,
        )

    def _record_recent(self, payload: UploadPayload, size: int) -> None:
        """Best-effort: a failure here never fails the upload."""
        if self.recent is None:
            return
        try:
            self.recent.append(payload.data, size, payload.mime)
        except Exception as e:
            logger.warning(f"Failed to save recent upload: {e}")

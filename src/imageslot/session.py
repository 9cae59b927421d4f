"""
Session Context

Holds the state of one operator session: the compression policy, the single
pending preview, the in-flight upload flag and the reconciliation state of
the resource slot. The HTTP API and the CLI both drive uploads through it.
"""

import logging
from typing import Optional, Union

from .config import Credential, Settings, settings
from .errors import ConfigError, DecodeError, NoPreviewError, UploadInProgressError
from .estimator import format_file_size, quality
from .models import (
    LosslessPolicy,
    ManualPolicy,
    PresetPolicy,
    RemoteImageVersion,
    TranscodeResult,
    UploadPayload,
    UploadReceipt,
    policy_to_dict,
)
from .preferences import PreferenceStore
from .recent import RecentUploadStore
from .reconciler import ReconciliationScheduler
from .store import ContentStore, public_url
from .transcoder import load_source_image, transcode
from .uploader import UploadCoordinator

logger = logging.getLogger(__name__)

Policy = Union[LosslessPolicy, PresetPolicy, ManualPolicy]


class ImageSlotSession:
    """Process-level session for the single image slot."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        store: Optional[ContentStore] = None,
        recent: Optional[RecentUploadStore] = None,
        preferences: Optional[PreferenceStore] = None,
    ):
        self.config = config or settings
        self.store = store or ContentStore(
            api_url=self.config.github_api_url,
            raw_url=self.config.raw_content_url,
            branch=self.config.branch,
            timeout=self.config.request_timeout,
            public_url_template=self.config.public_url_template,
        )
        self.recent = recent or RecentUploadStore(
            self.config.storage_path / "recent.json", limit=self.config.recent_limit
        )
        self.preferences = preferences or PreferenceStore(config=self.config)

        self.policy: Policy = self.preferences.load()
        self.preview: Optional[TranscodeResult] = None
        self.uploading = False

        self.scheduler = ReconciliationScheduler(
            self._fetch_current,
            upload_delay=self.config.upload_confirm_delay,
            reuse_delay=self.config.reuse_confirm_delay,
        )
        self.uploader = UploadCoordinator(
            self.store,
            scheduler=self.scheduler,
            recent=self.recent,
            filename=self.config.resource_filename,
        )

    def credential(self) -> Credential:
        return self.config.credential()

    async def _fetch_current(self) -> Optional[RemoteImageVersion]:
        return await self.store.get_version(self.credential().require(), self.config.resource_filename)

    # --- Preview ---

    def load_candidate(self, data: bytes, mime: Optional[str]) -> TranscodeResult:
        """
        Validate and transcode a new candidate; it replaces any pending preview.

        On error the previous preview is left untouched.
        """
        source = load_source_image(data, mime, limit=self.config.max_upload_bytes)
        result = transcode(source, self.policy, max_dimension=self.config.max_dimension)
        self.preview = result
        return result

    def set_policy(self, policy: Policy) -> Optional[TranscodeResult]:
        """Change the policy, persist it and recompute the pending preview."""
        self.policy = policy
        try:
            self.preferences.save(policy)
        except OSError as e:
            logger.warning(f"Failed to save compression preference: {e}")

        if self.preview is not None:
            self.preview = transcode(self.preview.source, policy, max_dimension=self.config.max_dimension)
        return self.preview

    def cancel_preview(self) -> None:
        self.preview = None

    # --- Upload ---

    async def confirm_upload(self) -> UploadReceipt:
        """
        Upload the pending preview.

        The preview is discarded only on success so a failed upload can be
        retried without selecting the file again. A candidate loaded while
        the upload was in flight stays as the new preview.
        """
        preview = self.preview
        if preview is None:
            raise NoPreviewError("No image ready for upload")
        receipt = await self._upload(preview)
        if self.preview is preview:
            self.preview = None
        return receipt

    async def reuse(self, record_id: str) -> UploadReceipt:
        """Upload the bytes of a recent upload as they are."""
        record = self.recent.get(record_id)
        try:
            payload = record.to_payload()
        except ValueError as e:
            raise DecodeError(f"Recent upload {record_id} is unreadable: {e}") from e
        return await self._upload(payload)

    async def _upload(self, payload: UploadPayload) -> UploadReceipt:
        if self.uploading:
            raise UploadInProgressError("An upload is already in progress")
        self.uploading = True
        try:
            return await self.uploader.upload(payload, self.credential())
        finally:
            self.uploading = False

    async def refresh(self) -> Optional[RemoteImageVersion]:
        return await self.scheduler.refresh()

    # --- State ---

    def public_url(self) -> Optional[str]:
        try:
            return public_url(
                self.config.repo_path,
                self.config.resource_filename,
                self.config.public_url_template,
            )
        except ConfigError:
            return None

    def snapshot(self) -> dict:
        """JSON-ready view of the session state."""
        current = self.scheduler.current
        pending = self.scheduler.pending
        return {
            "state": self.scheduler.state.value,
            "uploading": self.uploading,
            "policy": policy_to_dict(self.policy),
            "quality": quality(self.policy),
            "public_url": self.public_url(),
            "current": describe_version(current) if current else None,
            "pending": {
                "data_url": pending.data_url,
                "written_at": pending.written_at.isoformat(),
                "reused": pending.reused,
            } if pending else None,
            "preview": describe_preview(self.preview) if self.preview else None,
            "last_error": self.scheduler.last_error,
        }

    async def aclose(self) -> None:
        await self.scheduler.aclose()
        await self.store.aclose()


def describe_version(version: RemoteImageVersion) -> dict:
    return {
        "sha": version.sha,
        "size": version.size,
        "size_display": format_file_size(version.size),
        "read_url": version.read_url,
        "public_url": version.public_url,
        "resource_path": version.resource_path,
    }


def describe_preview(result: TranscodeResult, include_data: bool = True) -> dict:
    described = {
        "original_width": result.original_width,
        "original_height": result.original_height,
        "original_format": result.original_format,
        "original_size": result.original_size,
        "width": result.width,
        "height": result.height,
        "output_format": result.output_format,
        "quality": result.quality,
        "estimated_size": result.estimated_size,
        "estimated_size_display": format_file_size(result.estimated_size),
    }
    if include_data:
        described["data_url"] = result.data_url
    return described

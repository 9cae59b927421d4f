"""
imageslot Data Models
Pydantic models for compression policies, images, remote versions and uploads.
"""

import base64
import binascii
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def encode_data_url(data: bytes, mime: str) -> str:
    """Encode bytes as a ``data:`` URI."""
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(data_url: str) -> Tuple[bytes, str]:
    """
    Decode a base64 ``data:`` URI.

    Returns:
        (raw bytes, mime type)

    Raises:
        ValueError: If the string is not a base64 data URI
    """
    if not data_url.startswith("data:") or "," not in data_url:
        raise ValueError("Not a data URL")
    header, payload = data_url[5:].split(",", 1)
    if not header.endswith(";base64"):
        raise ValueError("Only base64 data URLs are supported")
    mime = header[: -len(";base64")] or "application/octet-stream"
    try:
        return base64.b64decode(payload, validate=True), mime
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


# --- Compression Policy ---


class PresetTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class LosslessPolicy(BaseModel):
    """No recompression requested (quality factor 1.0)."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["none"] = "none"


class PresetPolicy(BaseModel):
    """Named quality bucket. Unknown tiers fall back to medium."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["preset"] = "preset"
    tier: str = PresetTier.MEDIUM.value


class ManualPolicy(BaseModel):
    """Explicit quality factor chosen by the user."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["manual"] = "manual"
    factor: float = Field(ge=0.10, le=1.0)


CompressionPolicy = Annotated[
    Union[LosslessPolicy, PresetPolicy, ManualPolicy],
    Field(discriminator="mode"),
]

_policy_adapter = TypeAdapter(CompressionPolicy)


def parse_policy(data: Any) -> Union[LosslessPolicy, PresetPolicy, ManualPolicy]:
    """Validate a dict (e.g. from JSON) into one of the policy variants."""
    return _policy_adapter.validate_python(data)


def policy_to_dict(policy: Union[LosslessPolicy, PresetPolicy, ManualPolicy]) -> dict:
    return policy.model_dump(mode="json")


# --- Images ---


class SourceImage(BaseModel):
    """Raw candidate image as selected, pasted or dropped by the user."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    mime: str
    disposition: Literal["jpeg", "png", "other"]
    byte_length: int
    width: int
    height: int


class TranscodeResult(BaseModel):
    """
    Encoded output of the transcoder, held as the pending preview.

    Keeps the source image so the preview can be recomputed when the
    compression policy changes.
    """

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    mime: str = "image/jpeg"
    width: int
    height: int
    original_width: int
    original_height: int
    estimated_size: int
    output_format: Literal["jpeg"] = "jpeg"
    original_format: Literal["jpeg", "png", "other"]
    quality: float
    source: SourceImage = Field(repr=False)

    @property
    def data_url(self) -> str:
        return encode_data_url(self.data, self.mime)

    @property
    def original_size(self) -> int:
        return self.source.byte_length


class RawBytes(BaseModel):
    """Already-encoded bytes uploaded as-is (reuse of a recent upload)."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    mime: str = "image/jpeg"

    @property
    def data_url(self) -> str:
        return encode_data_url(self.data, self.mime)


UploadPayload = Union[TranscodeResult, RawBytes]


# --- Remote State ---


class RemoteImageVersion(BaseModel):
    """The resource as last read from the remote store."""

    model_config = ConfigDict(frozen=True)

    sha: str = Field(description="Version token used for optimistic writes")
    size: int
    read_url: str = Field(description="Cache-busted raw content URL")
    public_url: str
    resource_path: str
    filename: str
    fetched_at: datetime = Field(default_factory=utcnow)


class PendingUpload(BaseModel):
    """Bytes just written, shown until the read path catches up."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    mime: str = "image/jpeg"
    written_at: datetime = Field(default_factory=utcnow)
    reused: bool = False

    @property
    def data_url(self) -> str:
        return encode_data_url(self.data, self.mime)


class UploadReceipt(BaseModel):
    """Outcome of a successful write."""

    resource_path: str
    filename: str
    previous_sha: Optional[str] = None
    sha: Optional[str] = None  # new version token, if the store returned one
    size: int
    message: str
    committed_at: datetime = Field(default_factory=utcnow)
    pending: PendingUpload


class SlotState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


# --- Recent Uploads ---


class RecentUploadRecord(BaseModel):
    """A previously uploaded image kept for reuse."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    data_url: str
    size: int
    timestamp: datetime = Field(default_factory=utcnow)

    def to_payload(self) -> RawBytes:
        """Decode the stored data URI into an upload payload."""
        data, mime = decode_data_url(self.data_url)
        return RawBytes(data=data, mime=mime)

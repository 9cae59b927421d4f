"""
Size Estimator

Maps a compression policy to a quality factor and estimates payload sizes
without a second encode.
"""

from typing import Union

from .models import LosslessPolicy, ManualPolicy, PresetPolicy, PresetTier

PRESET_QUALITY = {
    PresetTier.HIGH.value: 0.90,
    PresetTier.MEDIUM.value: 0.70,
    PresetTier.LOW.value: 0.50,
}

MIN_QUALITY = 0.10
MAX_QUALITY = 1.0


def quality(policy: Union[LosslessPolicy, PresetPolicy, ManualPolicy]) -> float:
    """
    Quality factor in (0, 1] for a compression policy.

    - Lossless: 1.0 (the output is still re-encoded)
    - Preset: fixed table, unknown tiers fall back to medium
    - Manual: the stored factor, clamped to [0.10, 1.0]
    """
    if isinstance(policy, LosslessPolicy):
        return 1.0
    if isinstance(policy, ManualPolicy):
        return min(MAX_QUALITY, max(MIN_QUALITY, policy.factor))
    if isinstance(policy, PresetPolicy):
        return PRESET_QUALITY.get(policy.tier, PRESET_QUALITY[PresetTier.MEDIUM.value])
    return PRESET_QUALITY[PresetTier.MEDIUM.value]


def estimate_payload_size(encoded_length: int) -> int:
    """Byte length of a base64 payload of ``encoded_length`` characters."""
    return round(encoded_length * 0.75)


def format_file_size(size: int) -> str:
    """Human-readable size: B, KB or MB with one decimal."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"

"""
Compression preference persistence.

The selected policy survives restarts in a small JSON file; settings
provide the default when nothing was saved yet.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from .config import Settings, settings
from .models import LosslessPolicy, ManualPolicy, PresetPolicy, parse_policy, policy_to_dict

logger = logging.getLogger(__name__)

Policy = Union[LosslessPolicy, PresetPolicy, ManualPolicy]


def default_policy(config: Optional[Settings] = None) -> Policy:
    """Policy described by the compression_* settings."""
    config = config or settings
    if config.compression_mode == "none":
        return LosslessPolicy()
    if config.compression_mode == "manual":
        return ManualPolicy(factor=config.compression_quality / 100)
    return PresetPolicy(tier=config.compression_preset)


class PreferenceStore:
    """Loads and saves the compression policy."""

    def __init__(self, state_file: Optional[Path] = None, config: Optional[Settings] = None):
        self.config = config or settings
        self.state_file = state_file or (self.config.storage_path / "preferences.json")

    def load(self) -> Policy:
        if not self.state_file.exists():
            return default_policy(self.config)
        try:
            data = json.loads(self.state_file.read_text(encoding="utf-8"))
            return parse_policy(data.get("compression", {}))
        except (ValueError, AttributeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable preferences in {self.state_file}: {e}")
            return default_policy(self.config)

    def save(self, policy: Policy) -> None:
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        self.state_file.write_text(
            json.dumps({"compression": policy_to_dict(policy)}, indent=2),
            encoding="utf-8",
        )

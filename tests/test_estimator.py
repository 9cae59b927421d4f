"""
imageslot Tests - Size Estimator
"""

import pytest

from imageslot.estimator import estimate_payload_size, format_file_size, quality
from imageslot.models import LosslessPolicy, ManualPolicy, PresetPolicy


class TestQuality:
    def test_lossless_is_full_quality(self):
        assert quality(LosslessPolicy()) == 1.0

    @pytest.mark.parametrize("tier,expected", [("high", 0.90), ("medium", 0.70), ("low", 0.50)])
    def test_preset_table(self, tier, expected):
        assert quality(PresetPolicy(tier=tier)) == expected

    def test_unknown_tier_falls_back_to_medium(self):
        assert quality(PresetPolicy(tier="unknown-tier")) == 0.70

    def test_manual_factor_returned_as_given(self):
        assert quality(ManualPolicy(factor=0.5)) == 0.5

    def test_manual_factor_clamped_when_unvalidated(self):
        assert quality(ManualPolicy.model_construct(factor=3.0)) == 1.0
        assert quality(ManualPolicy.model_construct(factor=0.0)) == 0.10

    def test_manual_factor_validated_on_creation(self):
        with pytest.raises(ValueError):
            ManualPolicy(factor=0.05)


class TestPayloadSize:
    def test_three_quarters_of_encoded_length(self):
        assert estimate_payload_size(4) == 3
        assert estimate_payload_size(1000) == 750

    def test_zero(self):
        assert estimate_payload_size(0) == 0


class TestFormatFileSize:
    def test_bytes(self):
        assert format_file_size(512) == "512 B"

    def test_kilobytes(self):
        assert format_file_size(1536) == "1.5 KB"

    def test_megabytes(self):
        assert format_file_size(20 * 1024 * 1024) == "20.0 MB"

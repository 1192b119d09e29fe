#!/usr/bin/env python3
"""
Unit tests for directional (knowledge-of-results) feedback.

Tests cover:
- Dead zone (< 1 mm → all off)
- Distance → coarse level (2..10, saturating at max distance)
- Direction → actuator for all 8 sectors and sector boundaries
- Cue → ActuatorFrame conversion
"""

import pytest

from myohaptics.config import FeedbackConfig
from myohaptics.feedback import (
    DirectionalFeedbackEncoder, actuator_for_angle, level_for_distance, VALID_LEVELS
)


@pytest.fixture
def encoder():
    return DirectionalFeedbackEncoder(FeedbackConfig(max_distance=0.5))


class TestDistance:
    """Test distance → level mapping."""

    def test_dead_zone_is_off(self, encoder):
        """Test that offsets under 1 mm turn everything off."""
        cue = encoder.encode(0.0005, 0.0)

        assert cue.is_off
        assert cue.actuator == 0
        assert cue.to_frame().intensities == (0,) * 9

    def test_smallest_offset_gets_level_2(self):
        """Test that just outside the dead zone gives the lowest level."""
        assert level_for_distance(0.0011, 0.5) == 2

    def test_levels(self):
        """Test each fifth of the range."""
        assert level_for_distance(0.05, 0.5) == 2
        assert level_for_distance(0.15, 0.5) == 4
        assert level_for_distance(0.25, 0.5) == 6
        assert level_for_distance(0.35, 0.5) == 8
        assert level_for_distance(0.45, 0.5) == 10

    def test_beyond_max_distance_saturates(self):
        """Test that distance >= max gives level 10."""
        assert level_for_distance(0.5, 0.5) == 10
        assert level_for_distance(3.0, 0.5) == 10

    def test_levels_are_even(self, encoder):
        """Test that every non-off cue has a valid even level."""
        for i in range(1, 60):
            cue = encoder.encode(i * 0.01, 0.0)
            assert cue.level in VALID_LEVELS
            assert cue.level >= 2


class TestDirection:
    """Test direction → actuator mapping."""

    @pytest.mark.parametrize("dx,dz,expected", [
        (0.1, 0.0, 6),     # E
        (0.1, 0.1, 3),     # NE
        (0.0, 0.1, 2),     # N
        (-0.1, 0.1, 1),    # NW
        (-0.1, 0.0, 4),    # W
        (-0.1, -0.1, 7),   # SW
        (0.0, -0.1, 8),    # S
        (0.1, -0.1, 9),    # SE
    ])
    def test_eight_sectors(self, encoder, dx, dz, expected):
        """Test one offset in the middle of every sector."""
        assert encoder.encode(dx, dz).actuator == expected

    def test_sector_boundaries(self):
        """Test that boundaries belong to the counter-clockwise sector."""
        assert actuator_for_angle(22.4) == 6
        assert actuator_for_angle(22.5) == 3
        assert actuator_for_angle(337.4) == 9
        assert actuator_for_angle(337.5) == 6
        assert actuator_for_angle(0.0) == 6
        assert actuator_for_angle(360.0) == 6

    def test_negative_angles_wrap(self):
        """Test that -45° is treated as 315°."""
        assert actuator_for_angle(-45.0) == 9


class TestCue:
    """Test full cues."""

    def test_worked_cue(self, encoder):
        """Test 10 cm east → actuator 6 at level 2."""
        cue = encoder.encode(0.1, 0.0)

        assert cue.actuator == 6
        assert cue.level == 2
        assert cue.distance == pytest.approx(0.1)

    def test_to_frame_uses_coarse_scale(self, encoder):
        """Test that cues become single-actuator frames on the 0-10 scale."""
        frame = encoder.encode(0.0, 0.25).to_frame()

        assert frame.scale == 10
        assert frame.intensity(2) == 6
        assert frame.active_actuators() == [2]

    def test_encode_positions_uses_xz_plane(self, encoder):
        """Test that Y differences are ignored."""
        cue = encoder.encode_positions([0.0, 0.0, 0.0], [-0.3, 5.0, 0.0])

        assert cue.actuator == 4
        assert cue.distance == pytest.approx(0.3)

    def test_non_finite_offset_is_off(self, encoder):
        """Test that NaN offsets give an off cue."""
        assert encoder.encode(float('nan'), 0.1).is_off

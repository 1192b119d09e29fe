"""
End-to-end tests for the control loop.

Tests cover:
- Stage order within one tick and a single shared joint snapshot
- Calibration modes do not move the arm
- Missing / disconnected sample source
- Unavailable kinematic base (pose None, feedback still sent)
- Directional cues only while frozen with a target
- Disabled feedback, manual control, shutdown all-off
- Quickstart demo
"""

import numpy as np
import pytest

from myohaptics import demo
from myohaptics.config import ConfigError, ControllerConfig
from myohaptics.controller import ArmFeedbackController, FeedbackMode
from myohaptics.core.schemas import ToMbedPacket
from myohaptics.dynamics import ControlMode
from myohaptics.emg import ProcessingMode
from myohaptics.feedback import GridFeedbackEncoder
from myohaptics.hardware import MockTransport
from myohaptics.sources import ReplaySampleSource, SimulatedSampleSource

DT = 0.1
BEND_SHOULDER = np.array([[0.8, 0.0, 0.0, 0.0]] * 4)
REST = np.zeros((4, 4))


def make_config():
    """Direct integration, short windows: 0.8 on channel 1 → 80% → 72 deg/s."""
    return ControllerConfig.from_dict({
        'signal': {'rms_window': 4, 'smooth_window': 1},
        'dynamics': {'mode': 'direct'},
    })


@pytest.fixture
def transport():
    return MockTransport()


@pytest.fixture
def controller(transport):
    ctrl = ArmFeedbackController(make_config(), transport=transport)
    ctrl.processor.load_calibration(max_rms=(1.0,) * 4, threshold_rms=(0.0,) * 4)
    return ctrl


def _decode(packet):
    return ToMbedPacket.from_bytes(packet)


class TestTick:
    """Test one full tick."""

    def test_bend_moves_joint1(self, controller):
        result = controller.tick(DT, samples=BEND_SHOULDER)

        assert result.ratios[0] == pytest.approx(80.0)
        assert result.arm.joint1.angle == pytest.approx(7.2)
        assert result.arm.joint2.angle == 0.0
        assert result.tick_index == 1

    def test_stages_share_one_snapshot(self, controller):
        """Test that pose and grid are derived from the same joint angles."""
        for _ in range(5):
            result = controller.tick(DT, samples=BEND_SHOULDER)

        expected_pose = controller.kinematics.solve_angles(*result.arm.angles)
        expected_grid = GridFeedbackEncoder(controller.config.feedback).encode(*result.arm.angles)

        np.testing.assert_allclose(result.pose.end_effector.position,
                                   expected_pose.end_effector.position)
        assert result.grid == expected_grid

    def test_record_matches_grid(self, controller, transport):
        result = controller.tick(DT, samples=BEND_SHOULDER)

        assert result.sent is True
        assert transport.last_packet() == result.frame
        decoded = _decode(result.frame)
        assert decoded.check_count == 1
        assert list(decoded.vibration) == list(result.grid.normalized())

    def test_check_count_per_tick(self, controller, transport):
        for _ in range(3):
            controller.tick(DT, samples=REST)

        counts = [_decode(p).check_count for p in transport.get_tx_buffer()]
        assert counts == [1, 2, 3]

    def test_joint_limits_hold(self, controller):
        for _ in range(50):
            result = controller.tick(DT, samples=BEND_SHOULDER)

        assert result.arm.joint1.angle == 80.0

    def test_malformed_samples_are_discarded(self, controller):
        result = controller.tick(DT, samples=np.zeros((4, 3)))
        assert result.ratios == (0.0, 0.0, 0.0, 0.0)


class TestCalibration:
    """Test calibration-mode ticks."""

    def test_calibration_does_not_move_arm(self, transport):
        ctrl = ArmFeedbackController(make_config(), transport=transport,
                                     processing_mode=ProcessingMode.MAX_CALIBRATION)
        for _ in range(5):
            result = ctrl.tick(DT, samples=BEND_SHOULDER)

        assert result.arm.angles == (0.0, 0.0)
        assert ctrl.processor.get_calibration().max_rms[0] == pytest.approx(0.8)

    def test_reset_calibration(self, controller):
        controller.reset_calibration()
        result = controller.tick(DT, samples=BEND_SHOULDER)

        assert result.ratios == (0.0, 0.0, 0.0, 0.0)
        assert result.arm.angles == (0.0, 0.0)


class TestSources:
    """Test sample source handling."""

    def test_missing_source_skips_conditioning(self, controller):
        result = controller.tick(DT)

        assert result.ratios == (0.0, 0.0, 0.0, 0.0)
        assert result.sent is True

    def test_disconnected_source(self, controller):
        source = SimulatedSampleSource(seed=0, activation=(0.8, 0.0, 0.0, 0.0))
        source.disconnect()
        controller.set_source(source)

        assert controller.tick(DT).arm.angles == (0.0, 0.0)
        assert controller.processor.sample_count == 0

    def test_pulls_samples_per_tick(self, transport):
        ctrl = ArmFeedbackController(make_config(), source=SimulatedSampleSource(seed=1),
                                     transport=transport, samples_per_tick=10)
        ctrl.tick(DT)

        assert ctrl.processor.sample_count == 10

    def test_replay_source(self, controller):
        controller.set_source(ReplaySampleSource(np.vstack([BEND_SHOULDER] * 2)))
        controller.samples_per_tick = 4

        first = controller.tick(DT)
        second = controller.tick(DT)

        assert first.arm.joint1.angle == pytest.approx(7.2)
        assert second.arm.joint1.angle == pytest.approx(14.4)


class TestKinematicBase:
    """Test the kinematic base reference."""

    def test_unavailable_base(self, controller):
        controller.set_base(None, None)
        result = controller.tick(DT, samples=BEND_SHOULDER)

        assert result.pose is None
        assert result.sent is True

    def test_base_offset(self, controller):
        controller.set_base((1.0, 0.0, 0.0), (1.0, 0.0, 0.0, 0.0))
        result = controller.tick(DT, samples=REST)

        np.testing.assert_allclose(result.pose.end_effector.position, [1.0, 1.0, 0.0],
                                   atol=1e-9)


class TestDirectionalFeedback:
    """Test knowledge-of-results cues."""

    @pytest.fixture
    def directional(self, transport):
        ctrl = ArmFeedbackController(make_config(), transport=transport,
                                     feedback_mode=FeedbackMode.DIRECTIONAL)
        ctrl.set_target((0.15, 1.0, 0.0))
        return ctrl

    def test_no_cue_while_moving(self, directional, transport):
        result = directional.tick(DT)

        assert result.sent is False
        assert result.frame is None
        assert transport.packets_sent == 0

    def test_cue_while_frozen(self, directional, transport):
        directional.freeze()
        result = directional.tick(DT)

        assert result.sent is True
        assert result.grid.active_actuators() == [6]
        assert directional.last_cue.level == 4
        assert _decode(transport.last_packet()).vibration[5] == pytest.approx(0.4)

    def test_no_cue_without_target(self, directional, transport):
        directional.set_target(None)
        directional.freeze()

        assert directional.tick(DT).sent is False
        assert transport.packets_sent == 0

    def test_unfreeze_turns_cue_off(self, directional, transport):
        directional.freeze()
        directional.tick(DT)
        directional.unfreeze()
        result = directional.tick(DT)

        assert result.sent is True
        assert result.frame == transport.last_packet()
        assert result.grid.active_actuators() == []

        assert transport.packets_sent == 2
        assert all(v == 0.0 for v in _decode(transport.last_packet()).vibration)
        assert directional.last_cue is None

    def test_switch_mode_sends_all_off(self, controller, transport):
        controller.tick(DT, samples=REST)
        controller.set_feedback_mode(FeedbackMode.DIRECTIONAL)

        assert transport.packets_sent == 2
        assert all(v == 0.0 for v in _decode(transport.last_packet()).vibration)


class TestControl:
    """Test external control and lifecycle."""

    def test_freeze_holds_angles(self, controller):
        controller.tick(DT, samples=BEND_SHOULDER)
        controller.freeze()
        result = controller.tick(DT, samples=BEND_SHOULDER)

        assert result.arm.frozen is True
        assert result.arm.joint1.angle == pytest.approx(7.2)

        controller.unfreeze()
        assert controller.tick(DT, samples=BEND_SHOULDER).arm.joint1.angle == pytest.approx(14.4)

    def test_manual_angles(self, controller):
        assert controller.set_manual_angles(10.0, 10.0) is False

        controller.set_control_mode(ControlMode.MANUAL)
        assert controller.set_manual_angles(120.0, 90.0) is True

        result = controller.tick(DT, samples=BEND_SHOULDER)
        assert result.arm.angles == (80.0, 90.0)

    def test_reset(self, controller):
        controller.tick(DT, samples=BEND_SHOULDER)
        controller.reset()

        assert controller.arm.snapshot().angles == (0.0, 0.0)
        assert controller.processor.get_calibration().max_rms == (1.0,) * 4

    def test_invalid_signal_config_raises(self, transport):
        config = ControllerConfig.from_dict({'signal': {'rms_window': 0}})
        with pytest.raises(ConfigError):
            ArmFeedbackController(config, transport=transport)

    def test_invalid_feedback_config_disables_feedback(self, transport):
        config = ControllerConfig.from_dict({'feedback': {'max_intensity': 300}})
        ctrl = ArmFeedbackController(config, transport=transport)
        result = ctrl.tick(DT)

        assert ctrl.feedback_enabled is False
        assert result.frame is None
        assert result.grid.intensities == (0,) * 9
        ctrl.close()
        assert transport.packets_sent == 0

    def test_switch_mode_with_feedback_disabled_sends_nothing(self, transport):
        config = ControllerConfig.from_dict({'feedback': {'max_intensity': 300}})
        ctrl = ArmFeedbackController(config, transport=transport)
        ctrl.set_feedback_mode(FeedbackMode.DIRECTIONAL)

        assert ctrl.feedback_mode == FeedbackMode.DIRECTIONAL
        assert transport.packets_sent == 0

    def test_unknown_transport_mutes_output(self):
        config = ControllerConfig.from_dict({'network': {'transport': 'carrier-pigeon'}})
        ctrl = ArmFeedbackController(config)
        result = ctrl.tick(DT)

        assert result.sent is False
        assert ctrl.driver.transport.enabled is False

    def test_oversized_auxiliary_values_do_not_break_tick(self, controller, transport):
        controller.driver.encoder.set_auxiliary(channels=(1e40, float('nan'), 0.0, 0.0))
        result = controller.tick(DT, samples=REST)

        assert result.sent is True
        decoded = _decode(result.frame)
        assert decoded.channels[1] == 0.0
        assert np.isfinite(decoded.channels[0])

    def test_close_sends_all_off(self, transport):
        with ArmFeedbackController(make_config(), transport=transport) as ctrl:
            ctrl.tick(DT, samples=REST)

        assert transport.enabled is False
        assert all(v == 0.0 for v in _decode(transport.last_packet()).vibration)

    def test_stats(self, controller):
        controller.run(3, DT)
        stats = controller.get_stats()

        assert stats['tick_index'] == 3
        assert stats['driver']['frames_sent'] == 3
        assert stats['feedback_mode'] == 'continuous'


class TestQuickstart:
    """Test the bundled demo."""

    def test_demo_runs(self):
        transport = MockTransport()
        stats = demo(duration=0.5, rate_hz=20.0, transport=transport, render_output=False)

        assert stats['tick_index'] > 0
        assert stats['driver']['frames_sent'] == stats['tick_index']
        assert transport.enabled is False

    def test_demo_calibrates(self):
        stats = demo(duration=0.5, rate_hz=20.0, transport=MockTransport(),
                     render_output=False)

        assert all(m > t for m, t in zip(stats['signal']['max_rms'],
                                         stats['signal']['threshold_rms']))

"""
myohaptics.quickstart - Convenience functions for getting started quickly
"""

from typing import Optional
import argparse
import logging

from .config import ControllerConfig, load_config
from .controller import ArmFeedbackController
from .emg import ProcessingMode
from .hardware import MockTransport, Transport, create_transport
from .sources import SimulatedSampleSource


# (pattern, seconds) script for the measurement phase
DEMO_SCRIPT = (
    ('bend_shoulder', 1.0),
    ('bend_elbow', 1.5),
    ('rest', 0.5),
    ('extend_elbow', 1.0),
    ('co_contraction', 0.5),
)

EMG_SAMPLE_RATE_HZ = 1000


def demo(
    duration: float = 5.0,
    rate_hz: float = 60.0,
    config: Optional[ControllerConfig] = None,
    transport: Optional[Transport] = None,
    seed: int = 0,
    render_output: bool = True
) -> dict:
    """
    Run a quick demo of the control loop on simulated EMG.

    Calibrates on scripted contractions, then drives the arm through a short
    bend/extend sequence and prints the joint angles and active actuators.

    Args:
        duration: Seconds of measurement (the script is stretched to fit)
        rate_hz: Control loop rate
        config: Controller configuration (defaults if None)
        transport: Record transport (in-memory mock if None)
        seed: Seed for the simulated source
        render_output: Whether to print output to console

    Returns:
        Controller statistics after the run

    Example:
        >>> import myohaptics
        >>> myohaptics.demo(duration=2.0)
    """
    dt = 1.0 / rate_hz
    samples_per_tick = max(1, int(round(EMG_SAMPLE_RATE_HZ * dt)))
    source = SimulatedSampleSource(seed=seed)
    transport = transport or MockTransport()

    if render_output:
        print("=" * 60)
        print("  MYOHAPTICS Control Loop Demo")
        print("=" * 60)
        print()

    with ArmFeedbackController(config, source=source, transport=transport,
                               samples_per_tick=samples_per_tick) as ctrl:
        # === Calibration ===
        calibration_ticks = int(rate_hz)

        ctrl.set_processing_mode(ProcessingMode.MAX_CALIBRATION)
        source.set_activation((0.8, 0.8, 0.8, 0.8))
        ctrl.run(calibration_ticks, dt)

        # Drop contraction samples still in the RMS window
        ctrl.processor.reset()
        ctrl.set_processing_mode(ProcessingMode.THRESHOLD_CALIBRATION)
        source.set_pattern('rest')
        ctrl.run(calibration_ticks, dt)

        calibration = ctrl.processor.get_calibration()
        if render_output:
            print("✓ Calibration complete")
            print(f"  max_rms:       {[round(v, 3) for v in calibration.max_rms]}")
            print(f"  threshold_rms: {[round(v, 3) for v in calibration.threshold_rms]}")
            print()

        # === Measurement ===
        ctrl.set_processing_mode(ProcessingMode.MEASUREMENT)
        script_length = sum(seconds for _, seconds in DEMO_SCRIPT)
        scale = duration / script_length

        for pattern, seconds in DEMO_SCRIPT:
            source.set_pattern(pattern)
            ticks = max(1, int(seconds * scale * rate_hz))
            results = ctrl.run(ticks, dt)
            last = results[-1]

            if render_output:
                a1, a2 = last.arm.angles
                print(f"  {pattern:<16} joint1={a1:6.1f}°  joint2={a2:6.1f}°  "
                      f"actuators={last.grid.active_actuators()}")

        stats = ctrl.get_stats()

    if render_output:
        driver_stats = stats['driver']
        print()
        print("=" * 60)
        print("  Demo Complete!")
        print("=" * 60)
        print(f"  Ticks: {stats['tick_index']}")
        print(f"  Frames sent: {driver_stats['frames_sent']}")
        print(f"  Last check_count: {driver_stats['check_count']}")
        print()
        print("✓ Demo finished successfully")

    return stats


def main(argv=None):
    """Console entry point (myohaptics-demo)."""
    parser = argparse.ArgumentParser(
        description="MYOHAPTICS demo - simulated EMG driving the tactile grid"
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to controller YAML config (default: built-in defaults)'
    )
    parser.add_argument(
        '--duration',
        type=float,
        default=5.0,
        help='Measurement duration in seconds (default: 5.0)'
    )
    parser.add_argument(
        '--rate',
        type=float,
        default=60.0,
        help='Control loop rate in Hz (default: 60)'
    )
    parser.add_argument(
        '--udp',
        action='store_true',
        help='Send records over UDP to the configured address instead of the mock transport'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=0,
        help='Seed for the simulated EMG source (default: 0)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s'
    )

    config = load_config(args.config) if args.config else ControllerConfig()
    if args.udp:
        config.network.transport = "udp"
        transport = create_transport(config.network)
    else:
        transport = MockTransport()

    demo(
        duration=args.duration,
        rate_hz=args.rate,
        config=config,
        transport=transport,
        seed=args.seed,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

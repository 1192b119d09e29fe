#!/usr/bin/env python3
"""
EMG Signal Conditioning: RMS → Threshold Cut → Normalization → Smoothing.

Converts raw per-channel EMG samples into a smoothed 0-100% activation ratio.

Modes:
    MAX_CALIBRATION:       track running max RMS per channel (strong contraction)
    THRESHOLD_CALIBRATION: track running max RMS as the noise cut (relaxed muscle)
    MEASUREMENT:           apply calibration and produce activation ratios

Calibration values only ever grow while their mode is active and are kept
across mode switches until reset_calibration() is called.

Usage:
    processor = SignalProcessor(SignalConfig(rms_window=100, smooth_window=10))
    processor.set_mode(ProcessingMode.MAX_CALIBRATION)
    for sample in flex_recording:
        processor.process_sample(sample)
    processor.set_mode(ProcessingMode.MEASUREMENT)
    ratios = processor.process_sample(live_sample)   # (4,) array in [0, 100]
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence
import logging
import math

import numpy as np

from myohaptics.config import SignalConfig

logger = logging.getLogger(__name__)


class ProcessingMode(str, Enum):
    MAX_CALIBRATION = "max_calibration"
    THRESHOLD_CALIBRATION = "threshold_calibration"
    MEASUREMENT = "measurement"


def compute_rms(window: Sequence[float]) -> float:
    """Root mean square of a window (0.0 for an empty window)."""
    if len(window) == 0:
        return 0.0
    values = np.asarray(window, dtype=np.float64)
    return float(np.sqrt(np.mean(values * values)))


def threshold_cut(rms: float, threshold: float) -> float:
    """Values at or below the threshold are cut to zero."""
    return 0.0 if rms <= threshold else rms


def normalize(thresholded: float, threshold: float, maximum: float) -> float:
    """
    Map a thresholded RMS value onto 0-100%.

    Degenerate calibration (max <= threshold) or a cut value yields 0.
    """
    if maximum <= threshold or thresholded <= 0.0:
        return 0.0
    ratio = (thresholded - threshold) / (maximum - threshold)
    if not math.isfinite(ratio):
        return 0.0
    return min(1.0, max(0.0, ratio)) * 100.0


class ChannelState:
    """
    Per-channel buffers and calibration.

    Attributes:
        index: 1-based channel number
        raw_buffer: Most recent raw samples (RMS window)
        smooth_buffer: Most recent normalized values (smoothing window)
        max_rms: Calibrated maximum RMS
        threshold_rms: Calibrated noise threshold RMS
    """

    def __init__(self, index: int, rms_window: int, smooth_window: int):
        self.index = index
        self.raw_buffer: deque = deque(maxlen=rms_window)
        self.smooth_buffer: deque = deque(maxlen=smooth_window)

        self.max_rms = 0.0
        self.threshold_rms = 0.0

        # Latest outputs
        self.raw = 0.0
        self.rms = 0.0
        self.thresholded = 0.0
        self.normalized = 0.0
        self.smoothed = 0.0

    def push_raw(self, value: float) -> float:
        """Append a raw sample and return the updated RMS."""
        if not math.isfinite(value):
            # Drop corrupt samples, keep last RMS
            logger.debug(f"Ch{self.index}: dropping non-finite sample {value}")
            return self.rms
        self.raw = value
        self.raw_buffer.append(value)
        self.rms = compute_rms(self.raw_buffer)
        return self.rms

    def push_normalized(self, value: float) -> float:
        """Append a normalized value and return the moving average."""
        self.smooth_buffer.append(value)
        self.smoothed = float(np.mean(self.smooth_buffer))
        return self.smoothed

    def reset_buffers(self):
        self.raw_buffer.clear()
        self.smooth_buffer.clear()
        self.raw = self.rms = self.thresholded = self.normalized = self.smoothed = 0.0


@dataclass(frozen=True)
class CalibrationSnapshot:
    """Copy of per-channel calibration values (index 0 = channel 1)."""
    max_rms: tuple
    threshold_rms: tuple

    def to_dict(self) -> Dict[str, list]:
        return {'max_rms': list(self.max_rms), 'threshold_rms': list(self.threshold_rms)}


class SignalProcessor:
    """
    Multi-channel EMG conditioning pipeline.

    Owns the calibration tables for its channels; callers access them through
    this instance only.
    """

    def __init__(self, config: Optional[SignalConfig] = None,
                 mode: ProcessingMode = ProcessingMode.MEASUREMENT):
        """
        Initialize processor.

        Args:
            config: Window sizes and channel count (defaults: 100 / 10 / 4)
            mode: Initial processing mode
        """
        self.config = config or SignalConfig()
        self.num_channels = int(self.config.num_channels)
        self.channels: List[ChannelState] = [
            ChannelState(i + 1, int(self.config.rms_window), int(self.config.smooth_window))
            for i in range(self.num_channels)
        ]
        self.mode = ProcessingMode(mode)
        self.sample_count = 0

        logger.info(f"SignalProcessor started in {self.mode.value} mode "
                    f"(rms_window={self.config.rms_window}, "
                    f"smooth_window={self.config.smooth_window})")

    # ------------------------------------------------------------------
    # Mode / calibration control
    # ------------------------------------------------------------------

    def set_mode(self, mode: ProcessingMode):
        """Switch processing mode. Calibration values are kept."""
        mode = ProcessingMode(mode)
        if mode != self.mode:
            logger.info(f"SignalProcessor mode: {self.mode.value} → {mode.value}")
        self.mode = mode

    def reset_calibration(self):
        """Set max and threshold RMS to 0 for every channel."""
        for channel in self.channels:
            channel.max_rms = 0.0
            channel.threshold_rms = 0.0
        logger.info("Calibration values reset")

    def get_calibration(self) -> CalibrationSnapshot:
        return CalibrationSnapshot(
            max_rms=tuple(c.max_rms for c in self.channels),
            threshold_rms=tuple(c.threshold_rms for c in self.channels),
        )

    def load_calibration(self, max_rms: Sequence[float], threshold_rms: Sequence[float]):
        """
        Restore previously captured calibration values.

        Raises:
            ValueError: If the lengths do not match the channel count
        """
        if len(max_rms) != self.num_channels or len(threshold_rms) != self.num_channels:
            raise ValueError(
                f"Expected {self.num_channels} calibration values per table, "
                f"got {len(max_rms)} / {len(threshold_rms)}"
            )
        for channel, mx, th in zip(self.channels, max_rms, threshold_rms):
            channel.max_rms = float(mx)
            channel.threshold_rms = float(th)
        logger.info(f"Calibration loaded: max={list(max_rms)}, threshold={list(threshold_rms)}")

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_sample(self, sample: Sequence[float]) -> np.ndarray:
        """
        Process one raw sample per channel.

        Args:
            sample: Raw values, one per channel (channel 1 first)

        Returns:
            Smoothed activation ratios (num_channels,) in [0, 100]
        """
        values = np.asarray(sample, dtype=np.float64).reshape(-1)
        if values.shape[0] != self.num_channels:
            raise ValueError(f"Expected {self.num_channels} channel values, got {values.shape[0]}")

        for channel, raw in zip(self.channels, values):
            self._process_channel(channel, float(raw))

        self.sample_count += 1
        return self.smoothed_values()

    def process_chunk(self, samples: np.ndarray) -> np.ndarray:
        """
        Process a block of samples in arrival order.

        Args:
            samples: Array of shape (n, num_channels)

        Returns:
            Smoothed ratios after the last sample
        """
        block = np.asarray(samples, dtype=np.float64)
        if block.ndim == 1:
            block = block.reshape(1, -1)
        for row in block:
            self.process_sample(row)
        return self.smoothed_values()

    def _process_channel(self, channel: ChannelState, raw: float):
        rms = channel.push_raw(raw)

        if self.mode == ProcessingMode.MAX_CALIBRATION:
            if rms > channel.max_rms:
                channel.max_rms = rms
                logger.debug(f"[MaxCalibration] Ch{channel.index}: new max_rms = {rms:.4f}")

        elif self.mode == ProcessingMode.THRESHOLD_CALIBRATION:
            if rms > channel.threshold_rms:
                channel.threshold_rms = rms
                logger.debug(f"[ThresholdCalibration] Ch{channel.index}: "
                             f"new threshold_rms = {rms:.4f}")

        else:
            channel.thresholded = threshold_cut(rms, channel.threshold_rms)
            channel.normalized = normalize(channel.thresholded, channel.threshold_rms,
                                           channel.max_rms)
            channel.push_normalized(channel.normalized)

    # ------------------------------------------------------------------
    # Accessors (1-based channel numbers; out-of-range → 0.0)
    # ------------------------------------------------------------------

    def _channel(self, channel: int) -> Optional[ChannelState]:
        if 1 <= channel <= self.num_channels:
            return self.channels[channel - 1]
        return None

    def get_smoothed_value(self, channel: int) -> float:
        state = self._channel(channel)
        return state.smoothed if state else 0.0

    def get_normalized_value(self, channel: int) -> float:
        state = self._channel(channel)
        return state.normalized if state else 0.0

    def get_rms_value(self, channel: int) -> float:
        state = self._channel(channel)
        return state.rms if state else 0.0

    def smoothed_values(self) -> np.ndarray:
        return np.array([c.smoothed for c in self.channels], dtype=np.float64)

    def rms_values(self) -> np.ndarray:
        return np.array([c.rms for c in self.channels], dtype=np.float64)

    def reset(self):
        """Clear sample buffers (calibration is kept)."""
        for channel in self.channels:
            channel.reset_buffers()
        self.sample_count = 0

    def get_stats(self) -> dict:
        calibration = self.get_calibration()
        return {
            'mode': self.mode.value,
            'sample_count': self.sample_count,
            'rms': [c.rms for c in self.channels],
            'smoothed': [c.smoothed for c in self.channels],
            'max_rms': list(calibration.max_rms),
            'threshold_rms': list(calibration.threshold_rms),
        }

    def __repr__(self) -> str:
        return f"SignalProcessor(mode={self.mode.value}, channels={self.num_channels})"

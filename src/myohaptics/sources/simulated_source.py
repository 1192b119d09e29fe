"""
Simulated and Replayed Sample Sources

SimulatedSampleSource generates zero-mean EMG-like noise whose RMS follows
a per-channel activation envelope, so bend/extend contractions can be
scripted without hardware. ReplaySampleSource plays back a recording.
"""

from typing import Optional, Sequence
import numpy as np

from .base_source import SampleSource


# Named activation patterns (channel 1..4 RMS levels)
ACTIVATION_PATTERNS = {
    'rest': (0.02, 0.02, 0.02, 0.02),
    'bend_shoulder': (0.8, 0.05, 0.02, 0.02),
    'extend_shoulder': (0.05, 0.8, 0.02, 0.02),
    'bend_elbow': (0.02, 0.02, 0.8, 0.05),
    'extend_elbow': (0.02, 0.02, 0.05, 0.8),
    'co_contraction': (0.6, 0.6, 0.6, 0.6),
}


class SimulatedSampleSource(SampleSource):
    """
    Seeded EMG-like signal generator.

    Each sample is `activation * N(0, 1) + N(0, noise_std)` per channel, so
    the windowed RMS of a channel settles near its activation level.
    """

    def __init__(
        self,
        num_channels: int = 4,
        seed: Optional[int] = None,
        noise_std: float = 0.01,
        activation: Optional[Sequence[float]] = None
    ):
        super().__init__(num_channels)
        self.noise_std = noise_std
        self.rng = np.random.default_rng(seed)
        self.activation = np.zeros(num_channels)
        self.sample_count = 0
        self.connected = True
        if activation is not None:
            self.set_activation(activation)
        self.start_stream()

    def set_activation(self, levels: Sequence[float]):
        """Set per-channel activation (RMS) levels."""
        levels = np.asarray(levels, dtype=np.float64)
        if levels.shape != (self.num_channels,):
            raise ValueError(f"Expected {self.num_channels} activation levels, got {levels.shape}")
        self.activation = np.clip(levels, 0.0, None)

    def set_pattern(self, name: str) -> bool:
        """
        Switch to a named activation pattern.

        Returns:
            True if the pattern exists
        """
        pattern = ACTIVATION_PATTERNS.get(name)
        if pattern is None or len(pattern) != self.num_channels:
            return False
        self.set_activation(pattern)
        return True

    def get_sample(self) -> Optional[np.ndarray]:
        if not (self.is_active and self.connected):
            return None
        sample = self.activation * self.rng.standard_normal(self.num_channels)
        if self.noise_std > 0:
            sample += self.rng.normal(0.0, self.noise_std, self.num_channels)
        self.sample_count += 1
        return sample

    def is_connected(self) -> bool:
        return self.connected

    def disconnect(self):
        self.connected = False

    def reconnect(self):
        self.connected = True


class ReplaySampleSource(SampleSource):
    """
    Plays back a recorded (n, num_channels) array, one row per sample.

    Returns None once exhausted unless `loop` is set.
    """

    def __init__(self, samples: np.ndarray, loop: bool = False):
        samples = np.asarray(samples, dtype=np.float64)
        if samples.ndim != 2:
            raise ValueError(f"Expected a 2-D (n, channels) array, got shape {samples.shape}")
        super().__init__(samples.shape[1])
        self.samples = samples
        self.loop = loop
        self.position = 0
        self.start_stream()

    def get_sample(self) -> Optional[np.ndarray]:
        if not self.is_active or len(self.samples) == 0:
            return None
        if self.position >= len(self.samples):
            if not self.loop:
                return None
            self.position = 0
        sample = self.samples[self.position].copy()
        self.position += 1
        return sample

    def is_connected(self) -> bool:
        return self.is_active and (self.loop or self.position < len(self.samples))

    @property
    def remaining(self) -> int:
        return max(0, len(self.samples) - self.position)

    def rewind(self):
        self.position = 0

"""
Abstract Base Class for Biosignal Sample Sources

The control loop only needs raw per-channel samples. Where they come from
(a live amplifier stream, a simulation or a recording) is hidden behind
this interface, so conditioning and dynamics behave identically for all of
them.

HARDWARE INTEGRATION:
Subclass SampleSource and implement get_sample() and is_connected().
Override get_batch() if the device delivers chunks natively.
"""

from abc import ABC, abstractmethod
from typing import Optional
import numpy as np


class SampleSource(ABC):
    """
    Interface for raw biosignal samples.

    Each sample is a numpy array of shape (num_channels,). Channel 1 is at
    index 0.
    """

    def __init__(self, num_channels: int = 4):
        self.num_channels = num_channels
        self.is_active = False

    @abstractmethod
    def get_sample(self) -> Optional[np.ndarray]:
        """
        Get one sample from all channels.

        Returns:
            Array of shape (num_channels,), or None if no data is available
        """

    @abstractmethod
    def is_connected(self) -> bool:
        """True while the source can deliver samples."""

    def get_batch(self, batch_size: int) -> Optional[np.ndarray]:
        """
        Get up to `batch_size` samples.

        Returns:
            Array of shape (n, num_channels) with n <= batch_size, or None
        """
        samples = []
        for _ in range(batch_size):
            sample = self.get_sample()
            if sample is None:
                break
            samples.append(sample)
        return np.array(samples) if samples else None

    def start_stream(self) -> bool:
        self.is_active = True
        return True

    def stop_stream(self) -> None:
        self.is_active = False

    def validate_sample(self, sample: Optional[np.ndarray]) -> bool:
        """Shape and finiteness check."""
        if sample is None:
            return False
        if sample.shape != (self.num_channels,):
            return False
        if not np.isfinite(sample).all():
            return False
        return True

    def get_source_info(self) -> dict:
        return {
            'source_type': self.__class__.__name__,
            'num_channels': self.num_channels,
            'is_connected': self.is_connected(),
            'is_active': self.is_active
        }

"""Raw biosignal sample sources."""

from .base_source import SampleSource
from .simulated_source import SimulatedSampleSource, ReplaySampleSource, ACTIVATION_PATTERNS

__all__ = [
    'SampleSource',
    'SimulatedSampleSource',
    'ReplaySampleSource',
    'ACTIVATION_PATTERNS'
]

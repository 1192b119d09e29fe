"""EMG signal conditioning."""

from .conditioning import (
    SignalProcessor,
    ProcessingMode,
    ChannelState,
    CalibrationSnapshot,
    compute_rms,
    threshold_cut,
    normalize
)

__all__ = [
    'SignalProcessor',
    'ProcessingMode',
    'ChannelState',
    'CalibrationSnapshot',
    'compute_rms',
    'threshold_cut',
    'normalize'
]

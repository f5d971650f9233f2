"""
Cross-device numerical verification of kernel outputs.
"""

import logging
from typing import Dict, Hashable, Optional

import numpy as np

from .metrics import VerificationStatus

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-2
SMALL_OUTPUT_ELEMENTS = 1024
SAMPLE_STRIDE = 1000


class CrossDeviceVerifier:
    """Compare each device's output against the first successful device.

    The first output recorded for a key becomes the reference and is never
    replaced. Later outputs are sampled at a fixed stride and compared with
    an absolute tolerance. Sampling catches gross disagreement between
    backends; it is not an exhaustive equivalence check.
    """

    def __init__(
        self,
        tolerance: float = DEFAULT_TOLERANCE,
        stride: int = SAMPLE_STRIDE,
        small_output: int = SMALL_OUTPUT_ELEMENTS,
    ):
        self.tolerance = tolerance
        self.stride = stride
        self.small_output = small_output
        self._references: Dict[Hashable, np.ndarray] = {}
        self._owners: Dict[Hashable, str] = {}

    def has_reference(self, key: Hashable) -> bool:
        return key in self._references

    def reference_device(self, key: Hashable) -> Optional[str]:
        return self._owners.get(key)

    def verify(
        self, key: Hashable, candidate: np.ndarray, device: str = ""
    ) -> VerificationStatus:
        """Record or check an output.

        Args:
            key: (test kind, size) identifying comparable outputs
            candidate: Raw output downloaded from the device
            device: Device name, for log messages

        Returns:
            REFERENCE for the first output under ``key``, else PASSED/FAILED
        """
        output = np.asarray(candidate).ravel()

        if key not in self._references:
            self._references[key] = output.copy()
            self._owners[key] = device
            logger.debug("Reference output for %s from %s", key, device or "device")
            return VerificationStatus.REFERENCE

        if self.matches(self._references[key], output):
            return VerificationStatus.PASSED

        logger.warning(
            "Verification failed for %s on %s (reference: %s)",
            key,
            device or "device",
            self._owners[key] or "device",
        )
        return VerificationStatus.FAILED

    def matches(self, reference: np.ndarray, candidate: np.ndarray) -> bool:
        """Sampled absolute-tolerance comparison of two flat outputs."""
        if reference.shape != candidate.shape:
            return False

        step = 1 if reference.size <= self.small_output else self.stride
        expected = reference[::step].astype(np.float64)
        actual = candidate[::step].astype(np.float64)
        # NaN compares false, so it never passes
        return bool(np.all(np.abs(expected - actual) <= self.tolerance))

    def clear(self) -> None:
        self._references.clear()
        self._owners.clear()

"""Abstract interface for keyboard geometry.

The geometry collaborator decomposes a touch point into a probability over
nearby keys. The gesture mixer only needs the probabilities, the character
on each key, and the keyboard size for coordinate normalization.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np


class KeyboardGeometry(ABC):
    """Abstract base for keyboard layouts."""

    @property
    @abstractmethod
    def width(self) -> int:
        """Keyboard width in touch-coordinate units."""

    @property
    @abstractmethod
    def height(self) -> int:
        """Keyboard height in touch-coordinate units."""

    @property
    @abstractmethod
    def key_count(self) -> int:
        """Number of keys; the length of every probability vector."""

    @abstractmethod
    def key_probabilities(self, x: int, y: int) -> np.ndarray:
        """Probability that a touch at (*x*, *y*) meant each key, in key order."""

    @abstractmethod
    def key_char(self, index: int) -> str:
        """The character produced by key *index*."""

"""Fixed-grid QWERTY layout with a Gaussian touch model.

Four rows of equal-width keys: three letter rows (the second and third
indented by half and one and a half keys) and a bottom row of punctuation
keys. A touch's probability over keys falls off with the squared distance
to each key centre, measured in key widths.
"""

from __future__ import annotations

import numpy as np

from xlm_keyboard.gesture.base import KeyboardGeometry

_ROWS: tuple[tuple[str, float], ...] = (
    ("qwertyuiop", 0.0),
    ("asdfghjkl", 0.5),
    ("zxcvbnm", 1.5),
    (",. '", 3.0),
)


class QwertyKeyboard(KeyboardGeometry):
    """QWERTY geometry over a ``width`` x ``height`` touch surface.

    Args:
        width: Surface width; ten keys span it.
        height: Surface height; four rows span it.
        spread: Gaussian standard deviation in key widths.
    """

    def __init__(self, width: int = 1080, height: int = 640, spread: float = 0.45) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("Keyboard dimensions must be positive")
        self._width = width
        self._height = height
        self._spread = spread
        self._key_w = width / 10.0
        self._key_h = height / float(len(_ROWS))

        chars: list[str] = []
        centers: list[tuple[float, float]] = []
        for row, (keys, indent) in enumerate(_ROWS):
            for col, char in enumerate(keys):
                chars.append(char)
                centers.append(
                    ((indent + col + 0.5) * self._key_w, (row + 0.5) * self._key_h)
                )
        self._chars = tuple(chars)
        self._centers = np.array(centers, dtype=np.float64)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def key_count(self) -> int:
        return len(self._chars)

    def key_probabilities(self, x: int, y: int) -> np.ndarray:
        """Normalized Gaussian weights of each key for a touch at (*x*, *y*)."""
        dx = (self._centers[:, 0] - x) / self._key_w
        dy = (self._centers[:, 1] - y) / self._key_h
        weights = np.exp(-(dx * dx + dy * dy) / (2.0 * self._spread**2))
        total = np.sum(weights)
        if total == 0.0:
            # Far outside the surface: attribute the touch to the nearest key.
            weights = np.zeros(self.key_count)
            weights[int(np.argmin(dx * dx + dy * dy))] = 1.0
            return weights
        result: np.ndarray = weights / total
        return result

    def key_char(self, index: int) -> str:
        return self._chars[index]

    def key_center(self, char: str) -> tuple[int, int]:
        """Integer touch coordinates of the centre of the key producing *char*."""
        cx, cy = self._centers[self._chars.index(char)]
        return int(round(cx)), int(round(cy))

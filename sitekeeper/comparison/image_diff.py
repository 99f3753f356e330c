"""Pixel diff engine: counts visually different pixels between two bitmaps.

Colour distance is measured in YIQ space after blending each sample's alpha
against white, with the pixelmatch constants and its anti-aliasing detection:
a changed pixel that is only an anti-aliased edge of the same shape is not
counted. ``tolerance`` is a fraction of the full-scale YIQ delta: 0 flags any
colour change, 1 flags nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image

from sitekeeper.errors import MaintenanceError

DEFAULT_TOLERANCE = 0.1
MAX_YIQ_DELTA = 35215.0
DIFF_COLOR = (255, 0, 0, 255)
# Pixels per band processed at once by diff()
BAND_PIXELS = 1 << 18


@dataclass(frozen=True)
class Bitmap:
    """RGBA bitmap, row-major, 4 bytes per pixel."""

    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Invalid bitmap size {self.width}x{self.height}")
        expected = self.width * self.height * 4
        if len(self.data) != expected:
            raise ValueError(
                f"Bitmap data has {len(self.data)} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGBA"
            )

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def total_pixels(self) -> int:
        return self.width * self.height

    @classmethod
    def filled(cls, width: int, height: int, rgba: tuple[int, int, int, int]) -> "Bitmap":
        return cls(width, height, bytes(rgba) * (width * height))

    @classmethod
    def from_image(cls, image: Image.Image) -> "Bitmap":
        rgba = image.convert("RGBA")
        return cls(rgba.width, rgba.height, rgba.tobytes())

    @classmethod
    def load(cls, path: Path) -> "Bitmap":
        with Image.open(path) as image:
            return cls.from_image(image)

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), self.data)

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_image().save(path, format="PNG")

    def as_array(self) -> np.ndarray:
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)


class DimensionMismatch(MaintenanceError):
    """The two bitmaps cannot be compared because their sizes differ."""

    def __init__(self, before_size: tuple[int, int], after_size: tuple[int, int]):
        self.before_size = before_size
        self.after_size = after_size
        super().__init__(
            f"Different sizes: {before_size[0]}x{before_size[1]} "
            f"vs {after_size[0]}x{after_size[1]}"
        )


@dataclass(frozen=True)
class PixelDiffResult:
    diff: Bitmap
    num_diff_pixels: int

    @property
    def diff_ratio(self) -> float:
        """Fraction of differing pixels, 0.0 for an empty bitmap."""
        total = self.diff.total_pixels
        return self.num_diff_pixels / total if total else 0.0


def _blend(pixels: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    rgba = pixels.astype(np.float64)
    alpha = rgba[..., 3] / 255.0
    r = 255.0 + (rgba[..., 0] - 255.0) * alpha
    g = 255.0 + (rgba[..., 1] - 255.0) * alpha
    b = 255.0 + (rgba[..., 2] - 255.0) * alpha
    return r, g, b


def _luma(r: np.ndarray, g: np.ndarray, b: np.ndarray) -> np.ndarray:
    return r * 0.29889531 + g * 0.58662247 + b * 0.11448223


def _blend_to_yiq(pixels: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    r, g, b = _blend(pixels)
    y = _luma(r, g, b)
    i = r * 0.59597799 - g * 0.27417610 - b * 0.32180189
    q = r * 0.21147017 - g * 0.52261711 + b * 0.31114694
    return y, i, q


def color_delta(before: np.ndarray, after: np.ndarray) -> np.ndarray:
    """Squared YIQ distance per pixel for two (..., 4) uint8 arrays."""
    y1, i1, q1 = _blend_to_yiq(before)
    y2, i2, q2 = _blend_to_yiq(after)
    y, i, q = y1 - y2, i1 - i2, q1 - q2
    return 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q


# 8-neighbourhood, x-major so ties resolve to the same neighbour as pixelmatch
_NEIGHBOURS = [(dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if dx or dy]


def _on_border(xs: np.ndarray, ys: np.ndarray, width: int, height: int) -> np.ndarray:
    return (xs == 0) | (xs == width - 1) | (ys == 0) | (ys == height - 1)


def _neighbour(img: np.ndarray, xs: np.ndarray, ys: np.ndarray, dx: int, dy: int):
    """Neighbour pixels at (x+dx, y+dy) plus a mask of those inside the image."""
    height, width = img.shape[:2]
    nx, ny = xs + dx, ys + dy
    inside = (nx >= 0) & (nx < width) & (ny >= 0) & (ny < height)
    pixels = img[np.clip(ny, 0, height - 1), np.clip(nx, 0, width - 1)]
    return nx, ny, inside, pixels


def _has_many_siblings(img: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """True where a pixel has at least 3 identical neighbours (image edges count as one)."""
    height, width = img.shape[:2]
    center = img[ys, xs]
    zeroes = _on_border(xs, ys, width, height).astype(np.int64)
    for dx, dy in _NEIGHBOURS:
        _, _, inside, pixels = _neighbour(img, xs, ys, dx, dy)
        zeroes += inside & np.all(pixels == center, axis=-1)
    return zeroes > 2


def _antialiased(img: np.ndarray, other: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Detect anti-aliasing pixels of ``img`` at the given coordinates.

    A pixel is anti-aliasing when it has at most 2 identical neighbours, sits
    between a darker and a brighter neighbour, and one of those two extremes
    is part of a flat region in both images.
    """
    height, width = img.shape[:2]
    center = _luma(*_blend(img[ys, xs]))
    zeroes = _on_border(xs, ys, width, height).astype(np.int64)
    lowest = np.zeros(len(xs))
    highest = np.zeros(len(xs))
    low_x, low_y = xs.copy(), ys.copy()
    high_x, high_y = xs.copy(), ys.copy()

    for dx, dy in _NEIGHBOURS:
        nx, ny, inside, pixels = _neighbour(img, xs, ys, dx, dy)
        delta = center - _luma(*_blend(pixels))
        zeroes += inside & (delta == 0)

        lower = inside & (delta < lowest)
        lowest = np.where(lower, delta, lowest)
        low_x, low_y = np.where(lower, nx, low_x), np.where(lower, ny, low_y)

        higher = inside & (delta > highest)
        highest = np.where(higher, delta, highest)
        high_x, high_y = np.where(higher, nx, high_x), np.where(higher, ny, high_y)

    result = (zeroes <= 2) & (lowest != 0) & (highest != 0)
    idx = np.flatnonzero(result)
    if len(idx):
        lx, ly, hx, hy = low_x[idx], low_y[idx], high_x[idx], high_y[idx]
        result[idx] = (
            (_has_many_siblings(img, lx, ly) & _has_many_siblings(other, lx, ly))
            | (_has_many_siblings(img, hx, hy) & _has_many_siblings(other, hx, hy))
        )
    return result


def diff(
    before: Bitmap,
    after: Bitmap,
    tolerance: float = DEFAULT_TOLERANCE,
    include_aa: bool = False,
) -> PixelDiffResult:
    """Compare two equally sized bitmaps pixel by pixel.

    Raises DimensionMismatch when the sizes differ. Differing pixels are painted
    opaque red in the returned diff bitmap; matching pixels stay transparent.
    Anti-aliasing pixels are not counted unless ``include_aa`` is set.

    Work is done in horizontal bands and the colour math only touches pixels
    whose bytes differ, so memory stays bounded for full-page captures.
    """
    if not 0.0 <= tolerance <= 1.0:
        raise ValueError(f"tolerance must be within [0, 1], got {tolerance}")
    if before.size != after.size:
        raise DimensionMismatch(before.size, after.size)

    a = before.as_array()
    b = after.as_array()
    max_delta = MAX_YIQ_DELTA * tolerance * tolerance
    out = np.zeros((before.height, before.width, 4), dtype=np.uint8)
    num_diff = 0

    band_rows = max(1, BAND_PIXELS // max(before.width, 1))
    for top in range(0, before.height, band_rows):
        rows = slice(top, top + band_rows)
        ys, xs = np.nonzero(np.any(a[rows] != b[rows], axis=2))
        if not len(ys):
            continue
        ys = ys + top

        over = color_delta(a[ys, xs], b[ys, xs]) > max_delta
        ys, xs = ys[over], xs[over]
        if not include_aa and len(ys):
            real = ~(_antialiased(a, b, xs, ys) | _antialiased(b, a, xs, ys))
            ys, xs = ys[real], xs[real]

        out[ys, xs] = DIFF_COLOR
        num_diff += len(ys)

    return PixelDiffResult(
        diff=Bitmap(before.width, before.height, out.tobytes()),
        num_diff_pixels=num_diff,
    )

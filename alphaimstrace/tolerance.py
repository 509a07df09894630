"""m/z tolerance with an absolute and a relative (ppm) component.

The effective tolerance at a given m/z is the larger of the two components,
so narrow absolute tolerances dominate at low m/z and the ppm component
dominates at high m/z.

Examples
--------
>>> tol = MZTolerance(absolute=0.001, ppm=5.0)
>>> tol.tolerance_at(100.0)    # 5 ppm of 100 = 0.0005 < 0.001
0.001
>>> tol.tolerance_at(1000.0)   # 5 ppm of 1000 = 0.005
0.005
>>> tol.window(1000.0)
(999.995, 1000.005)
"""

from dataclasses import dataclass
from typing import Tuple

from numba import njit

from .constants import DEFAULT_MZ_TOLERANCE_ABS, DEFAULT_MZ_TOLERANCE_PPM


@njit
def tolerance_at(mz: float, absolute: float, ppm: float) -> float:
    """Absolute ± tolerance (Da) at the given m/z."""
    relative = mz * ppm / 1e6
    if relative > absolute:
        return relative
    return absolute


@njit
def tolerance_window(mz: float, absolute: float, ppm: float) -> Tuple[float, float]:
    """Closed tolerance window [mz - tol, mz + tol] (Numba-compatible).

    Parameters
    ----------
    mz : float
        Center m/z
    absolute : float
        Absolute tolerance component (Da)
    ppm : float
        Relative tolerance component (ppm)

    Returns
    -------
    lower : float
        mz - tol
    upper : float
        mz + tol
    """
    tol = tolerance_at(mz, absolute, ppm)
    return mz - tol, mz + tol


@njit
def within_tolerance(reference_mz: float, mz: float, absolute: float, ppm: float) -> bool:
    """True if mz lies inside the closed window around reference_mz."""
    lower, upper = tolerance_window(reference_mz, absolute, ppm)
    return lower <= mz <= upper


@dataclass(frozen=True)
class MZTolerance:
    """m/z tolerance resolved to an absolute ± value per m/z.

    Attributes
    ----------
    absolute : float
        Absolute component in Da (default: 0.001)
    ppm : float
        Relative component in ppm (default: 5.0)
    """

    absolute: float = DEFAULT_MZ_TOLERANCE_ABS
    ppm: float = DEFAULT_MZ_TOLERANCE_PPM

    def __post_init__(self):
        if self.absolute < 0 or self.ppm < 0:
            raise ValueError(
                f"m/z tolerance components must be non-negative "
                f"(absolute={self.absolute}, ppm={self.ppm})"
            )
        if self.absolute == 0 and self.ppm == 0:
            raise ValueError("m/z tolerance must have a positive absolute or ppm component")

    @classmethod
    def from_ppm(cls, ppm: float) -> 'MZTolerance':
        """Purely relative tolerance."""
        return cls(absolute=0.0, ppm=ppm)

    @classmethod
    def from_absolute(cls, absolute: float) -> 'MZTolerance':
        """Purely absolute tolerance."""
        return cls(absolute=absolute, ppm=0.0)

    def tolerance_at(self, mz: float) -> float:
        return tolerance_at(float(mz), self.absolute, self.ppm)

    def window(self, mz: float) -> Tuple[float, float]:
        return tolerance_window(float(mz), self.absolute, self.ppm)

    def check_within(self, reference_mz: float, mz: float) -> bool:
        return within_tolerance(float(reference_mz), float(mz), self.absolute, self.ppm)

    def __str__(self) -> str:
        return f"{self.absolute} m/z or {self.ppm} ppm"

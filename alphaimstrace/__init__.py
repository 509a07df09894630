"""alphaimstrace - Ion mobility trace and mobilogram building.

Groups retention time and ion mobility resolved mass spectrometry signal into
traces: sets of points that represent the same species across consecutive
frames within an m/z tolerance. Per-frame mobility profiles (mobilograms) can
be built alongside or on their own.

Hot loops are Numba-compiled; the public API works on numpy structured arrays
and small dataclasses.
"""

__version__ = "0.1.0"

# Import main submodules for convenient access
from alphaimstrace import data
from alphaimstrace import traces
from alphaimstrace import mobilograms
from alphaimstrace import features
from alphaimstrace import tasks

from alphaimstrace.tolerance import MZTolerance

__all__ = [
    "data",
    "traces",
    "mobilograms",
    "features",
    "tasks",
    "MZTolerance",
]

"""Feature table hand-off for downstream feature-list builders.

Converts accepted traces (and per-frame mobilograms) into flat pandas
DataFrames, one row per trace with a 1-based row id in ascending m/z order.
"""

from typing import Dict, List

import numpy as np

from ..mobilograms.mobilogram import Mobilogram
from ..traces.finalizer import IonMobilityTrace


FEATURE_TABLE_COLUMNS = [
    'row_id', 'raw_data_file', 'mz', 'rt', 'mobility', 'height',
    'mz_min', 'mz_max', 'rt_min', 'rt_max', 'mobility_min', 'mobility_max',
    'intensity_min', 'n_points', 'n_scans', 'n_frames',
]


def traces_to_feature_table(traces: List[IonMobilityTrace], raw_data_file_name: str = ""):
    """One row per trace, ordered by representative m/z.

    Parameters
    ----------
    traces : list of IonMobilityTrace
        Accepted traces
    raw_data_file_name : str
        Value of the raw_data_file column

    Returns
    -------
    pd.DataFrame
        Columns FEATURE_TABLE_COLUMNS; missing mobility values are NaN

    Examples
    --------
    >>> table = traces_to_feature_table(task.result.traces, "sample_01.d")
    >>> table.to_csv("sample_01_iontraces.tsv", sep="\\t", index=False)
    """
    import pandas as pd

    rows = []
    for row_id, trace in enumerate(sorted(traces, key=lambda t: t.mz), start=1):
        mobility_min, mobility_max = trace.mobility_range or (np.nan, np.nan)
        rows.append({
            'row_id': row_id,
            'raw_data_file': raw_data_file_name,
            'mz': trace.mz,
            'rt': trace.retention_time,
            'mobility': np.nan if trace.mobility is None else trace.mobility,
            'height': trace.maximum_intensity,
            'mz_min': trace.mz_range[0],
            'mz_max': trace.mz_range[1],
            'rt_min': trace.retention_time_range[0],
            'rt_max': trace.retention_time_range[1],
            'mobility_min': mobility_min,
            'mobility_max': mobility_max,
            'intensity_min': trace.intensity_range[0],
            'n_points': trace.n_points,
            'n_scans': len(trace.scan_numbers),
            'n_frames': len(trace.frame_numbers),
        })

    return pd.DataFrame(rows, columns=FEATURE_TABLE_COLUMNS)


def mobilograms_to_table(mobilograms_by_frame: Dict[int, List[Mobilogram]]):
    """Long-format table: one row per mobilogram data point.

    Columns: frame_id, mobilogram_index, mobilogram_mz, scan_number, mz,
    intensity, mobility, synthetic.
    """
    import pandas as pd

    frames = []
    for frame_id, mobilograms in sorted(mobilograms_by_frame.items()):
        for index, mobilogram in enumerate(mobilograms):
            df = pd.DataFrame(mobilogram.data_points)
            df.insert(0, 'mobilogram_mz', mobilogram.mz)
            df.insert(0, 'mobilogram_index', index)
            df.insert(0, 'frame_id', frame_id)
            frames.append(df)

    columns = [
        'frame_id', 'mobilogram_index', 'mobilogram_mz',
        'mz', 'intensity', 'mobility', 'scan_number', 'synthetic',
    ]
    if not frames:
        return pd.DataFrame(columns=columns)
    return pd.concat(frames, ignore_index=True)[columns]

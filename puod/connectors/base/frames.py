from typing import List

import pandas as pd

from puod.connectors.base.results import Row


def frame_to_rows(frame: pd.DataFrame) -> List[Row]:
    """DataFrame rows as plain dicts, with NaN/NaT turned into None."""
    if frame.empty:
        return []
    frame = frame.astype(object).where(frame.notna(), None)
    return frame.to_dict(orient="records")

"""
IO helpers for simulation outputs.
"""
import json
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd


def save_json(obj: Any, file_path: str, indent: int = 2):
    """Save object as JSON."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w') as f:
        json.dump(obj, f, indent=indent)


def save_csv(rows: List[Dict[str, Any]], file_path: str, columns: List[str] = None) -> pd.DataFrame:
    """Save a list of flat records as CSV and return the frame written."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    frame = pd.DataFrame(rows, columns=columns)
    frame.to_csv(path, index=False)
    return frame

"""
Utilities for managing output: silencing noisy libraries and rendering
result tables.
"""

import io
import logging
import warnings
from contextlib import contextmanager, redirect_stderr, redirect_stdout
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from rich.table import Table


@contextmanager
def suppress_output():
    """
    Context manager to suppress stdout, stderr, warnings, and logging.

    Usage:
        with suppress_output():
            noisy_function()
    """
    old_level = logging.getLogger().level
    logging.getLogger().setLevel(logging.ERROR)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        stdout_buffer = io.StringIO()
        stderr_buffer = io.StringIO()

        try:
            with redirect_stdout(stdout_buffer), redirect_stderr(stderr_buffer):
                yield
        finally:
            logging.getLogger().setLevel(old_level)


def dataframe_to_table(
    df: pd.DataFrame,
    title: Optional[str] = None,
    precision: int = 4,
    index_name: str = "spot",
) -> Table:
    """Render a numeric DataFrame as a rich Table."""
    table = Table(title=title, title_justify="left")
    table.add_column(index_name, style="bold")
    for column in df.columns:
        table.add_column(str(column), justify="right")

    for index, row in df.iterrows():
        cells = []
        for value in row:
            if value is None or (isinstance(value, float) and np.isnan(value)):
                cells.append("NaN")
            elif isinstance(value, (float, np.floating)):
                cells.append(f"{value:.{precision}f}")
            else:
                cells.append(str(value))
        table.add_row(str(index), *cells)
    return table


def mapping_to_table(
    mapping: Dict[str, Any], title: Optional[str] = None, key_name: str = "key"
) -> Table:
    """Render a flat mapping as a two-column rich Table."""
    table = Table(title=title, title_justify="left")
    table.add_column(key_name, style="bold")
    table.add_column("value")
    for key, value in mapping.items():
        table.add_row(str(key), str(value))
    return table

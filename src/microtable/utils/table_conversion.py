# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import Union

# Third-Party Imports
import pandas as pd
from biom import Table

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("microtable")

# ================================ TABLE CONVERSION ================================== #

def table_to_df(table: Union[dict, Table, pd.DataFrame]) -> pd.DataFrame:
    """Convert various table formats to a features × samples DataFrame.

    Handles:
    - Pandas DataFrame (returns unchanged)
    - BIOM Table (already features × samples)
    - Dictionary of {sample: {feature: count}} (converted to DataFrame)

    Args:
        table: Input table in various formats.

    Returns:
        DataFrame in features × samples orientation.

    Raises:
        TypeError: For unsupported input types
    """
    if isinstance(table, pd.DataFrame):  # features × samples
        return table
    if isinstance(table, Table):         # features × samples
        return table.to_dataframe(dense=True)
    if isinstance(table, dict):          # {sample: {feature: count}}
        return pd.DataFrame(table).fillna(0)
    raise TypeError("Input must be BIOM Table, dict, or DataFrame.")


def to_biom(table: Union[dict, Table, pd.DataFrame]) -> Table:
    """Convert various table formats to BIOM Table with features × samples
    orientation.

    Args:
        table: Input table in various formats.

    Returns:
        BIOM Table object.
    """
    if isinstance(table, Table):
        return table
    df = table_to_df(table)
    return Table(
        data=df.values,
        observation_ids=df.index.astype(str).tolist(),
        sample_ids=df.columns.astype(str).tolist(),
        type="OTU table"
    )

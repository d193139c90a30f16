# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from numbers import Integral
from typing import Dict, List, Optional, Sequence, Tuple, Union

# Third-Party Imports
import numpy as np
import pandas as pd

# ================================== LOCAL IMPORTS =================================== #

from microtable import constants
from microtable.errors import (
    EmptyTaxonomyError, InvalidColumnError, MissingSplitColumnError, ValidationError
)
from microtable.utils.progress import get_progress_bar, _format_task_desc

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("microtable")

SplitColumns = Union[None, str, Sequence[str], Sequence[Sequence[str]]]

# =============================== GROUPING PRIMITIVES ================================ #

def build_display_keys(
    tax: pd.DataFrame,
    merge_by: str = constants.DEFAULT_MERGE_BY
) -> List[str]:
    """Join each row's taxonomic labels into one display key.

    Missing labels contribute an empty string so that the number of
    separators always equals the number of levels minus one.
    """
    labels = tax.astype(object).where(tax.notna(), "")
    return [merge_by.join(map(str, row)) for row in labels.itertuples(index=False)]


def group_sum(
    keys: Sequence,
    values: np.ndarray
) -> Tuple[List, np.ndarray, np.ndarray]:
    """Sum the rows of `values` that share a key.

    Args:
        keys:   One key per row of `values`.
        values: 2-D array of abundances.

    Returns:
        Tuple of (unique keys in first-seen order, summed array with one row
        per unique key, group code of every input row).
    """
    codes, uniques = pd.factorize(pd.Index(keys, dtype=object), sort=False)
    summed = np.zeros((len(uniques), values.shape[1]), dtype=float)
    np.add.at(summed, codes, values)
    return list(uniques), summed, codes


def order_by_mean(df: pd.DataFrame) -> pd.DataFrame:
    """Order rows by descending mean, ties keeping their current order."""
    order = np.argsort(-df.mean(axis=1).to_numpy(), kind="stable")
    return df.iloc[order]


def to_relative(values: np.ndarray) -> np.ndarray:
    """Divide every column by its total; all-zero columns stay 0."""
    totals = values.sum(axis=0)
    return np.divide(
        values, totals, out=np.zeros_like(values, dtype=float), where=totals > 0
    )

# ================================== LEVEL HANDLING ================================== #

def resolve_levels(
    tax_table: pd.DataFrame,
    select_cols: Optional[Sequence[Union[str, int]]] = None
) -> List[str]:
    """Resolve level names or 0-based positions to taxonomy column names.

    Raises:
        InvalidColumnError: For unknown names or out-of-range positions.
    """
    columns = tax_table.columns.tolist()
    if select_cols is None:
        return columns
    if isinstance(select_cols, (str, Integral)):
        select_cols = [select_cols]

    levels = []
    for col in select_cols:
        if isinstance(col, Integral) and not isinstance(col, bool):
            if not 0 <= col < len(columns):
                raise InvalidColumnError(
                    f"Column position {col} is out of range for a tax_table with "
                    f"{len(columns)} columns"
                )
            levels.append(columns[col])
        elif col in columns:
            levels.append(col)
        else:
            raise InvalidColumnError(
                f"Part of input names of select_cols are not in the tax_table: "
                f"'{col}'. Expected one of {columns}"
            )
    return levels


def resolve_split_columns(
    split_column: SplitColumns,
    levels: List[str],
    tax_columns: List[str]
) -> List[List[str]]:
    """Expand `split_column` to one list of split columns per level.

    Raises:
        MissingSplitColumnError: If no split column is given.
        ValidationError:         If per-level lists do not match the levels.
        InvalidColumnError:      If a split column is not in the tax_table.
    """
    if split_column is None or len(split_column) == 0:
        raise MissingSplitColumnError(
            "Spliting rows by one or more columns require split_column parameter! "
            "Please set split_column and try again!"
        )
    if isinstance(split_column, str):
        per_level = [[split_column]] * len(levels)
    elif all(isinstance(c, str) for c in split_column):
        per_level = [list(split_column)] * len(levels)
    else:
        if len(split_column) != len(levels):
            raise ValidationError(
                f"split_column has {len(split_column)} entries but "
                f"{len(levels)} levels are selected"
            )
        per_level = [[c] if isinstance(c, str) else list(c) for c in split_column]

    unknown = {c for cols in per_level for c in cols if c not in tax_columns}
    if unknown:
        raise InvalidColumnError(f"split_column not found in tax_table: {sorted(unknown)}")
    return per_level


def split_rows(
    tax: pd.DataFrame,
    values: np.ndarray,
    split_columns: List[str],
    split_by: str = constants.DEFAULT_SPLIT_BY
) -> Tuple[pd.DataFrame, np.ndarray]:
    """Expand rows whose split columns hold several `split_by`-delimited values.

    Each produced row carries the full abundance row of its source feature.
    When several split columns are given they are expanded in parallel.

    Returns:
        Tuple of (expanded taxonomy, matching abundance rows).
    """
    split_columns = [c for c in split_columns if c in tax.columns]
    if not split_columns:
        return tax, values

    pieces = tax.astype(object).where(tax.notna(), "")
    for col in split_columns:
        pieces[col] = pieces[col].astype(str).str.split(split_by, regex=False)
    pieces = pieces.reset_index(drop=True)
    try:
        exploded = pieces.explode(split_columns)
    except ValueError as e:
        raise ValidationError(
            f"Columns {split_columns} split into different numbers of values: {e}"
        ) from e
    rows = exploded.index.to_numpy()
    return exploded.reset_index(drop=True), values[rows]

# ================================ ABUNDANCE TABLES ================================== #

def transform_data_proportion(
    otu_table: pd.DataFrame,
    tax_table: pd.DataFrame,
    sample_names: List[str],
    columns: List[str],
    rel: bool = True,
    merge_by: str = constants.DEFAULT_MERGE_BY,
    split_group: bool = False,
    split_by: str = constants.DEFAULT_SPLIT_BY,
    split_column: Optional[List[str]] = None
) -> pd.DataFrame:
    """Aggregate feature abundances into one row per taxonomic path.

    Args:
        otu_table:    Feature × sample abundance table.
        tax_table:    Taxonomy indexed like `otu_table`.
        sample_names: Output column order.
        columns:      Taxonomy columns forming the display key.
        rel:          Convert sums to within-sample proportions.
        merge_by:     Separator between level labels.
        split_group:  Expand multi-valued rows before keying.
        split_by:     Separator of multi-valued labels.
        split_column: Columns to expand when `split_group` is set.

    Returns:
        Taxon × sample DataFrame ordered by descending mean abundance.
    """
    tax = tax_table.loc[otu_table.index, columns]
    values = otu_table.loc[:, sample_names].to_numpy(dtype=float)
    if split_group and split_column:
        tax, values = split_rows(tax, values, split_column, split_by)

    keys, summed, _ = group_sum(build_display_keys(tax, merge_by), values)
    if rel:
        summed = to_relative(summed)
    abund = pd.DataFrame(summed, index=pd.Index(keys, name=None), columns=sample_names)
    return order_by_mean(abund)


def cal_abund(
    otu_table: pd.DataFrame,
    tax_table: pd.DataFrame,
    sample_names: List[str],
    select_cols: Optional[Sequence[Union[str, int]]] = None,
    rel: bool = True,
    merge_by: str = constants.DEFAULT_MERGE_BY,
    split_group: bool = False,
    split_by: str = constants.DEFAULT_SPLIT_BY,
    split_column: SplitColumns = None
) -> Dict[str, pd.DataFrame]:
    """Calculate taxonomic abundance for each selected level.

    The table for the i-th selected level is keyed by the labels of the
    first to the i-th selected levels.

    Returns:
        Level name -> taxon × sample DataFrame, in selection order.

    Raises:
        EmptyTaxonomyError:      If the taxonomy table has no rows.
        InvalidColumnError:      If a level cannot be resolved.
        MissingSplitColumnError: If `split_group` is set without columns.
    """
    if tax_table.shape[0] == 0:
        raise EmptyTaxonomyError("0 rows in tax_table! Please check your data!")
    levels = resolve_levels(tax_table, select_cols)
    per_level_split = [None] * len(levels)
    if split_group:
        per_level_split = resolve_split_columns(
            split_column, levels, tax_table.columns.tolist()
        )

    taxa_abund: Dict[str, pd.DataFrame] = {}
    with get_progress_bar() as progress:
        task_desc = "Calculating taxa abundance"
        task = progress.add_task(_format_task_desc(task_desc), total=len(levels))
        for i, level in enumerate(levels):
            progress.update(task, description=_format_task_desc(f"{task_desc} ({level})"))
            taxa_abund[level] = transform_data_proportion(
                otu_table,
                tax_table,
                sample_names,
                columns=levels[:i + 1],
                rel=rel,
                merge_by=merge_by,
                split_group=split_group,
                split_by=split_by,
                split_column=per_level_split[i]
            )
            logger.debug(f"{level}: {taxa_abund[level].shape[0]} taxa")
            progress.update(task, advance=1)
    return taxa_abund

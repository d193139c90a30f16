# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import List, Tuple

# Third-Party Imports
import numpy as np
import pandas as pd

# ================================== LOCAL IMPORTS =================================== #

from microtable import constants
from microtable.core.abundance import build_display_keys, group_sum, order_by_mean
from microtable.errors import InvalidColumnError, ValidationError

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("microtable")

# ==================================== FUNCTIONS ===================================== #

def _as_counts(merged: pd.DataFrame, source: pd.DataFrame) -> pd.DataFrame:
    """Keep integer dtype when the source table held whole counts."""
    values = source.to_numpy(dtype=float)
    if np.array_equal(values, np.round(values)):
        return merged.round().astype(np.int64)
    return merged


def merge_samples(
    otu_table: pd.DataFrame,
    sample_table: pd.DataFrame,
    use_group: str
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Sum the samples of each group into a single column.

    Groups appear in the order their first sample appears in `sample_table`.
    Samples without a group label are left out.

    Args:
        otu_table:    Feature × sample abundance table.
        sample_table: Sample metadata indexed by sample ID.
        use_group:    Metadata column holding the group labels.

    Returns:
        Tuple of (feature × group table, group metadata table).

    Raises:
        InvalidColumnError: If `use_group` is not a sample_table column.
    """
    if use_group not in sample_table.columns:
        raise InvalidColumnError(
            f"Column '{use_group}' not found in sample_table. "
            f"Expected one of {sample_table.columns.tolist()}"
        )
    samples = [s for s in sample_table.index if s in otu_table.columns]
    labels = sample_table.loc[samples, use_group]
    if labels.isna().any():
        logger.info(
            f"{int(labels.isna().sum())} samples without '{use_group}' label are "
            "not merged ..."
        )
        labels = labels.dropna()
        samples = labels.index.tolist()
    if len(samples) == 0:
        raise ValidationError(f"No sample has a '{use_group}' label to merge by!")

    group_names, summed, _ = group_sum(
        labels.astype(str).tolist(), otu_table.loc[:, samples].to_numpy(dtype=float).T
    )
    merged = _as_counts(
        pd.DataFrame(summed.T, index=otu_table.index, columns=group_names), otu_table
    )
    new_sample_table = pd.DataFrame(
        {constants.DEFAULT_SAMPLE_ID_COLUMN: group_names, use_group: group_names},
        index=group_names
    )
    # SampleID may already be the grouping column
    new_sample_table = new_sample_table.loc[:, ~new_sample_table.columns.duplicated()]
    return merged, new_sample_table


def _representatives(
    codes: np.ndarray,
    totals: np.ndarray,
    feature_names: List[str]
) -> List[str]:
    """Pick the most abundant feature of every group; ties go to the first one."""
    best = {}
    for i, code in enumerate(codes):
        if code not in best or totals[i] > totals[best[code]]:
            best[code] = i
    return [feature_names[best[code]] for code in range(len(best))]


def merge_taxa(
    otu_table: pd.DataFrame,
    tax_table: pd.DataFrame,
    sample_names: List[str],
    taxa: str = constants.DEFAULT_MERGE_RANK,
    merge_by: str = constants.DEFAULT_MERGE_BY
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Sum the features that share a taxonomic path up to rank `taxa`.

    Each merged row is named after its most abundant source feature, which
    keeps feature IDs short and usable as taxonomy row names.

    Args:
        otu_table:    Feature × sample abundance table.
        tax_table:    Taxonomy indexed by feature ID.
        sample_names: Output column order.
        taxa:         Rank (taxonomy column) to merge at.
        merge_by:     Separator used to build the taxonomic path.

    Returns:
        Tuple of (merged abundance table, taxonomy truncated at `taxa`).

    Raises:
        InvalidColumnError: If `taxa` is not a tax_table column.
    """
    columns = tax_table.columns.tolist()
    if taxa not in columns:
        raise InvalidColumnError(
            f"Rank '{taxa}' not found in tax_table. Expected one of {columns}"
        )
    tax = tax_table.loc[:, columns[:columns.index(taxa) + 1]]
    feature_names = [f for f in otu_table.index if f in tax.index]
    abund = otu_table.loc[feature_names, sample_names]

    keys = build_display_keys(tax.loc[feature_names], merge_by)
    paths, summed, codes = group_sum(keys, abund.to_numpy(dtype=float))
    representatives = _representatives(
        codes, abund.sum(axis=1).to_numpy(), feature_names
    )
    merged = _as_counts(
        pd.DataFrame(summed, index=representatives, columns=sample_names), abund
    )
    merged = order_by_mean(merged)
    logger.info(f"{len(feature_names)} features merged into {len(paths)} {taxa} taxa")
    return merged, tax.loc[merged.index]

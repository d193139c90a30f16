# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

# Third-Party Imports
import pandas as pd
from skbio import TreeNode

# ================================== LOCAL IMPORTS =================================== #

from microtable.errors import MissingSequenceError, NoOverlapError, ValidationError
from microtable.utils.tree import drop_tips, tip_names

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("microtable")

# ================================= DATA CONTAINERS ================================== #

@dataclass
class TrimmedTables:
    """The linked tables of a dataset after trimming to common identifiers."""
    otu_table: pd.DataFrame
    sample_table: pd.DataFrame
    tax_table: Optional[pd.DataFrame] = None
    phylo_tree: Optional[TreeNode] = None
    rep_fasta: Optional[Dict[str, Any]] = None

    @property
    def sample_names(self) -> List[str]:
        return self.sample_table.index.tolist()

    @property
    def feature_names(self) -> List[str]:
        return self.otu_table.index.tolist()

# ==================================== FUNCTIONS ===================================== #

def drop_zero_rows(otu_table: pd.DataFrame) -> pd.DataFrame:
    row_sums = otu_table.sum(axis=1)
    if (row_sums == 0).any():
        logger.info(
            f"{int((row_sums == 0).sum())} taxa are removed from the otu_table, "
            "as the abundance is 0 ..."
        )
        otu_table = otu_table.loc[row_sums > 0]
    return otu_table


def drop_zero_columns(otu_table: pd.DataFrame) -> pd.DataFrame:
    col_sums = otu_table.sum(axis=0)
    if (col_sums == 0).any():
        logger.info(
            f"{int((col_sums == 0).sum())} samples are removed from the otu_table, "
            "as the abundance is 0 ..."
        )
        otu_table = otu_table.loc[:, col_sums > 0]
    return otu_table


def check_abund_table(otu_table: pd.DataFrame) -> pd.DataFrame:
    """Remove features and samples whose total abundance is 0.

    Args:
        otu_table: Feature × sample abundance table.

    Returns:
        The table without all-zero rows and columns.

    Raises:
        ValidationError: If no sample or no feature has any abundance.
    """
    otu_table = drop_zero_columns(drop_zero_rows(otu_table))
    if otu_table.shape[1] == 0:
        raise ValidationError("No sample have abundance! Please check you data!")
    if otu_table.shape[0] == 0:
        raise ValidationError("No taxon have abundance! Please check you data!")
    return otu_table


def _ordered_intersection(first: List[str], *others: List[str]) -> List[str]:
    """Intersection of identifier lists in the order of `first`."""
    members = set(first)
    for other in others:
        members &= set(other)
    return [name for name in first if name in members]


def trim_tables(
    otu_table: pd.DataFrame,
    sample_table: pd.DataFrame,
    tax_table: Optional[pd.DataFrame] = None,
    phylo_tree: Optional[TreeNode] = None,
    rep_fasta: Optional[Mapping[str, Any]] = None
) -> TrimmedTables:
    """Slice every linked table to the identifiers they all share.

    Samples follow the order of `sample_table`; features follow the order of
    `otu_table`. None of the inputs is modified.

    Args:
        otu_table:    Feature × sample abundance table.
        sample_table: Sample metadata indexed by sample ID.
        tax_table:    Optional taxonomy indexed by feature ID.
        phylo_tree:   Optional tree whose tips are feature IDs.
        rep_fasta:    Optional mapping of feature ID to sequence.

    Returns:
        TrimmedTables holding the consistent tables.

    Raises:
        NoOverlapError:       If no sample or no feature is shared.
        MissingSequenceError: If a retained feature has no sequence.
    """
    otu_table = check_abund_table(otu_table)

    sample_names = _ordered_intersection(
        sample_table.index.tolist(), otu_table.columns.tolist()
    )
    if len(sample_names) == 0:
        raise NoOverlapError(
            "No same sample name found between rownames of sample_table and "
            "colnames of otu_table! Please check whether the rownames of "
            "sample_table are sample names!"
        )
    otu_table = drop_zero_rows(otu_table.loc[:, sample_names])

    feature_lists = [otu_table.index.tolist()]
    if tax_table is not None:
        feature_lists.append(tax_table.index.tolist())
    if phylo_tree is not None:
        feature_lists.append(tip_names(phylo_tree))
    feature_names = _ordered_intersection(*feature_lists)
    if len(feature_names) == 0:
        if phylo_tree is None:
            raise NoOverlapError(
                "No same feature names found between rownames of otu_table and "
                "rownames of tax_table! Please check rownames of those tables!"
            )
        raise NoOverlapError(
            "No same feature name found among otu_table, tax_table and "
            "phylo_tree! Please check feature names in those objects!"
        )

    # Samples whose abundance sat only on dropped features become empty
    otu_table = drop_zero_columns(otu_table.loc[feature_names])
    sample_names = otu_table.columns.tolist()

    if tax_table is not None:
        tax_table = tax_table.loc[feature_names]
    if phylo_tree is not None:
        phylo_tree = drop_tips(phylo_tree, feature_names)
    if rep_fasta is not None:
        missing = [name for name in feature_names if name not in rep_fasta]
        if missing:
            raise MissingSequenceError(missing)
        rep_fasta = {name: rep_fasta[name] for name in feature_names}

    return TrimmedTables(
        otu_table=otu_table,
        sample_table=sample_table.loc[sample_names],
        tax_table=tax_table,
        phylo_tree=phylo_tree,
        rep_fasta=rep_fasta
    )


def trim_derived(
    sample_names: List[str],
    taxa_abund: Optional[Dict[str, pd.DataFrame]] = None,
    alpha_diversity: Optional[pd.DataFrame] = None,
    beta_diversity: Optional[Dict[str, pd.DataFrame]] = None
) -> Tuple[
    Optional[Dict[str, pd.DataFrame]],
    Optional[pd.DataFrame],
    Optional[Dict[str, pd.DataFrame]]
]:
    """Re-slice derived results to the current sample set without recomputing.

    Args:
        sample_names:    Retained samples in canonical order.
        taxa_abund:      Level name -> taxon × sample table.
        alpha_diversity: Sample × measure table.
        beta_diversity:  Metric name -> sample × sample matrix.

    Returns:
        Tuple of (taxa_abund, alpha_diversity, beta_diversity).
    """
    if taxa_abund is not None:
        taxa_abund = {
            level: df.loc[:, [s for s in sample_names if s in df.columns]]
            for level, df in taxa_abund.items()
        }
    if alpha_diversity is not None:
        alpha_diversity = alpha_diversity.loc[
            [s for s in sample_names if s in alpha_diversity.index]
        ]
    if beta_diversity is not None:
        trimmed = {}
        for metric, df in beta_diversity.items():
            keep = [s for s in sample_names if s in df.index]
            trimmed[metric] = df.loc[keep, keep]
        beta_diversity = trimmed
    return taxa_abund, alpha_diversity, beta_diversity

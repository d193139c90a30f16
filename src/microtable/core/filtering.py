# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import List, Sequence, Union

# Third-Party Imports
import pandas as pd

# ================================== LOCAL IMPORTS =================================== #

from microtable import constants
from microtable.errors import AllFilteredError, ValidationError

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("microtable")

# ==================================== FUNCTIONS ===================================== #

def filter_pollution(
    tax_table: pd.DataFrame,
    taxa: Union[str, Sequence[str]] = constants.DEFAULT_POLLUTION_TAXA
) -> pd.DataFrame:
    """Remove taxonomy rows in which any level matches any of `taxa`.

    Matching is a case-insensitive regular expression search, so partial
    names such as 'chloroplast' also hit 'c__Chloroplast'.
    """
    if isinstance(taxa, str):
        taxa = [taxa]
    pattern = "|".join(taxa)
    labels = tax_table.astype(object).where(tax_table.notna(), "").astype(str)
    hits = labels.apply(
        lambda col: col.str.contains(pattern, case=False, regex=True)
    ).any(axis=1)
    logger.info(f"Total {int(hits.sum())} taxa are removed from tax_table ...")
    return tax_table.loc[~hits]


def _below(values: pd.Series, threshold: float, include_lowest: bool) -> pd.Series:
    """Mask of values to drop: `< threshold`, or `<= threshold` when the
    threshold value itself is excluded."""
    return values < threshold if include_lowest else values <= threshold


def filter_taxa(
    otu_table: pd.DataFrame,
    rel_abund: float = constants.DEFAULT_REL_ABUND,
    freq: float = constants.DEFAULT_FREQ,
    include_lowest: bool = constants.DEFAULT_INCLUDE_LOWEST
) -> pd.DataFrame:
    """Remove features with low relative abundance and/or low occurrence.

    Args:
        otu_table:      Feature × sample abundance table.
        rel_abund:      Relative abundance threshold on the feature's share
                        of the grand total; 0 disables it.
        freq:           Occurrence threshold on the number of samples in which
                        the feature is present; values below 1 are a fraction
                        of the sample number; 0 disables it.
        include_lowest: Keep features exactly at a threshold.

    Returns:
        Filtered abundance table.

    Raises:
        ValidationError: If `rel_abund` is not smaller than 1.
        AllFilteredError: If no feature would remain.
    """
    n_features = otu_table.shape[0]

    abund_names: List[str] = []
    if rel_abund != 0:
        if rel_abund >= 1:
            raise ValidationError("rel_abund must be smaller than 1!")
        taxa_sums = otu_table.sum(axis=1)
        taxa_rel_abund = taxa_sums / taxa_sums.sum()
        abund_names = taxa_rel_abund.index[
            _below(taxa_rel_abund, rel_abund, include_lowest)
        ].tolist()
        if len(abund_names) == n_features:
            raise AllFilteredError(
                "No feature remained! Please check the rel_abund parameter!"
            )
        logger.info(f"{len(abund_names)} features filtered based on the abundance ...")

    freq_names: List[str] = []
    if freq != 0:
        if freq < 1:
            logger.info("freq smaller than 1; first convert it to an integer ...")
            freq = round(otu_table.shape[1] * freq)
            logger.info(f"Use converted freq integer: {freq} for the following filtering ...")
        occurrence = (otu_table != 0).sum(axis=1)
        freq_names = occurrence.index[_below(occurrence, freq, include_lowest)].tolist()
        if len(freq_names) == n_features:
            raise AllFilteredError(
                "No feature remained! Please check the freq parameter!"
            )
        logger.info(f"{len(freq_names)} features filtered based on the occurrence ...")

    filter_names = set(abund_names) | set(freq_names)
    if len(filter_names) == n_features:
        raise AllFilteredError("All features are filtered! Please adjust the parameters")
    return otu_table.loc[~otu_table.index.isin(filter_names)]

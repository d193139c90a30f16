# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import Callable, Dict, List, Optional, Sequence

# Third-Party Imports
import numpy as np
import pandas as pd
from skbio import TreeNode
from skbio.diversity import alpha, beta_diversity

# ================================== LOCAL IMPORTS =================================== #

from microtable import constants
from microtable.errors import NoTreeError, ValidationError

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("microtable")

# ================================= ALPHA DIVERSITY ================================== #

# Canonical measure name -> function of one sample's count vector
ALPHA_FUNCTIONS: Dict[str, Callable[[np.ndarray], float]] = {
    'Observed': alpha.observed_features,
    'Coverage': alpha.goods_coverage,
    'Chao1': lambda counts: alpha.chao1(counts, bias_corrected=True),
    'ACE': alpha.ace,
    'Shannon': lambda counts: alpha.shannon(counts, base=np.e),
    'Simpson': alpha.simpson,
    'InvSimpson': alpha.inv_simpson,
    'Fisher': alpha.fisher_alpha,
}


def resolve_alpha_measures(measures: Optional[Sequence[str]] = None) -> List[str]:
    """Map requested measure names onto canonical names.

    Legacy estimator names (e.g. 'S.chao1') are translated through
    `ALPHA_MEASURE_RENAMES`; unsupported names are dropped with a warning.

    Raises:
        ValidationError: If none of the measures is supported.
    """
    if measures is None:
        return list(constants.DEFAULT_ALPHA_MEASURES)
    if isinstance(measures, str):
        measures = [measures]
    resolved = []
    for measure in measures:
        name = constants.ALPHA_MEASURE_RENAMES.get(measure, measure)
        if name in ALPHA_FUNCTIONS:
            if name not in resolved:
                resolved.append(name)
        elif name != 'PD':
            logger.warning(f"Unsupported alpha diversity measure '{measure}' skipped")
    if not resolved and 'PD' not in measures:
        raise ValidationError(
            "None of the `measures` you provided are supported. Try default `None` instead."
        )
    return resolved


def cal_alphadiv(
    otu_table: pd.DataFrame,
    measures: Optional[Sequence[str]] = None,
    faith_pd: bool = False,
    tree: Optional[TreeNode] = None
) -> pd.DataFrame:
    """Calculate alpha diversity for every sample.

    Args:
        otu_table: Feature × sample abundance table.
        measures:  Measures to compute; all supported ones if None.
        faith_pd:  Also compute Faith's phylogenetic diversity.
        tree:      Phylogenetic tree, required when `faith_pd` is set.

    Returns:
        Sample × measure DataFrame.

    Raises:
        NoTreeError:     If `faith_pd` is set and no tree is given.
        ValidationError: If no requested measure is supported.
    """
    if measures is not None and 'PD' in measures:
        faith_pd = True
    use_measures = resolve_alpha_measures(measures)
    if faith_pd and tree is None:
        raise NoTreeError("Please provide phylogenetic tree for PD calculation!")

    values = otu_table.to_numpy(dtype=float)
    integral = np.array_equal(values, np.round(values))
    counts = np.round(values).astype(np.int64) if integral else values

    results = pd.DataFrame(index=pd.Index(otu_table.columns, name=None))
    for measure in use_measures:
        if measure in constants.ALPHA_COUNT_MEASURES and not integral:
            logger.warning(
                f"Non-integer values detected for {measure}. "
                "Requires integer counts. Returning NaN."
            )
            results[measure] = np.nan
            continue
        func = ALPHA_FUNCTIONS[measure]
        column = []
        for j in range(counts.shape[1]):
            try:
                column.append(func(counts[:, j]))
            except ValueError as e:
                logger.warning(f"{measure} undefined for sample {otu_table.columns[j]}: {e}")
                column.append(np.nan)
        results[measure] = column

    if faith_pd:
        presence = (values > 0).astype(np.int64)
        feature_ids = otu_table.index.tolist()
        results['PD'] = [
            alpha.faith_pd(presence[:, j], taxa=feature_ids, tree=tree)
            for j in range(presence.shape[1])
        ]
    return results

# ================================== BETA DIVERSITY ================================== #

def _distance_frame(
    metric: str,
    data: np.ndarray,
    sample_ids: List[str],
    **kwargs
) -> pd.DataFrame:
    integral = np.array_equal(data, np.round(data))
    if integral:
        data = np.round(data).astype(np.int64)
    dm = beta_diversity(metric, data, ids=sample_ids, validate=integral, **kwargs)
    return dm.to_data_frame()


def cal_betadiv(
    otu_table: pd.DataFrame,
    method: Optional[Sequence[str]] = None,
    unifrac: bool = False,
    binary: bool = False,
    tree: Optional[TreeNode] = None
) -> Dict[str, pd.DataFrame]:
    """Calculate pairwise sample dissimilarities.

    Args:
        otu_table: Feature × sample abundance table.
        method:    Distance names; 'bray' and 'jaccard' if None.
        unifrac:   Also compute weighted and unweighted UniFrac.
        binary:    Use presence/absence for all methods ('jaccard' always is).
        tree:      Phylogenetic tree, required when `unifrac` is set.

    Returns:
        Method name -> sample × sample DataFrame.

    Raises:
        NoTreeError: If `unifrac` is set and no tree is given.
    """
    if unifrac and tree is None:
        raise NoTreeError(
            "No phylogenetic tree provided, please change the parameter unifrac to False"
        )
    if method is None:
        method = constants.DEFAULT_BETA_METHODS
    elif isinstance(method, str):
        method = [method]

    sample_ids = otu_table.columns.astype(str).tolist()
    values = otu_table.to_numpy(dtype=float).T  # samples × features
    presence = (values > 0).astype(np.int64)

    res: Dict[str, pd.DataFrame] = {}
    for name in method:
        metric = constants.BETA_METRIC_MAPPING.get(name, name)
        use_binary = binary or name in constants.BETA_BINARY_METHODS
        res[name] = _distance_frame(metric, presence if use_binary else values, sample_ids)

    if unifrac:
        feature_ids = otu_table.index.tolist()
        res[constants.WEIGHTED_UNIFRAC_NAME] = _distance_frame(
            'weighted_unifrac', values, sample_ids,
            taxa=feature_ids, tree=tree, normalized=True
        )
        res[constants.UNWEIGHTED_UNIFRAC_NAME] = _distance_frame(
            'unweighted_unifrac', values, sample_ids, taxa=feature_ids, tree=tree
        )
    return res

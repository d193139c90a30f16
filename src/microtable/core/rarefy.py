# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from numbers import Integral, Real
from typing import Any, Optional

# Third-Party Imports
import numpy as np
import pandas as pd

# ================================== LOCAL IMPORTS =================================== #

from microtable import constants
from microtable.errors import InvalidDepthError, ValidationError
from microtable.utils.progress import get_progress_bar, _format_task_desc

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("microtable")

# ==================================== FUNCTIONS ===================================== #

def rarefaction_subsample(
    x: np.ndarray,
    sample_size: int,
    rng: np.random.Generator,
    replace: bool = False
) -> np.ndarray:
    """Randomly subsample one count vector down to `sample_size` reads.

    With replacement, `sample_size` independent draws are taken from the
    categorical distribution proportional to `x`. Without replacement, reads
    are drawn uniformly from the multiset of observations, which is the
    multivariate hypergeometric distribution and avoids expanding every read.
    Samples too large for that sampler draw distinct read positions instead.

    Args:
        x:           Non-negative integer counts of one sample.
        sample_size: Number of reads to keep.
        rng:         Seeded random generator.
        replace:     Whether reads are drawn with replacement.

    Returns:
        Integer vector of the same length as `x` summing to `sample_size`.
    """
    x = np.asarray(x, dtype=np.int64)
    total = x.sum()
    if total <= 0:
        return np.zeros(len(x), dtype=np.int64)
    if replace:
        return rng.multinomial(sample_size, x / total).astype(np.int64)
    if total >= constants.MAX_HYPERGEOMETRIC_TOTAL:
        # Pick read positions directly and map them back to their features
        positions = rng.choice(total, size=sample_size, replace=False)
        owners = np.searchsorted(np.cumsum(x), positions, side='right')
        return np.bincount(owners, minlength=len(x)).astype(np.int64)
    return rng.multivariate_hypergeometric(x, sample_size).astype(np.int64)


def resolve_depth(sample_size: Any, sample_sums: pd.Series) -> int:
    """Validate the rarefaction depth, defaulting to the smallest sample.

    Raises:
        InvalidDepthError: If the depth is multi-valued, non-integer,
                           non-positive or above every sample total.
    """
    if sample_size is None:
        sample_size = sample_sums.min()
        logger.info(f"Use the minimum number across samples: {sample_size}")

    if np.ndim(sample_size) > 0:
        values = np.ravel(sample_size)
        if len(values) != 1:
            raise InvalidDepthError("`sample_size` had more than one value!")
        sample_size = values[0]
    if isinstance(sample_size, (bool, np.bool_)) or not isinstance(sample_size, Real):
        raise InvalidDepthError(f"`sample_size` must be numeric, got {sample_size!r}")
    if not isinstance(sample_size, Integral) and not float(sample_size).is_integer():
        raise InvalidDepthError(f"`sample_size` must be an integer, got {sample_size}")
    sample_size = int(sample_size)

    if sample_size <= 0:
        raise InvalidDepthError(
            "sample_size less than or equal to zero. Need positive sample size to work!"
        )
    if sample_sums.max() < sample_size:
        raise InvalidDepthError(
            f"sample_size ({sample_size}) is larger than the maximum of sample "
            f"sums ({sample_sums.max()}), please check input sample_size!"
        )
    return sample_size


def rarefy_table(
    otu_table: pd.DataFrame,
    sample_size: int,
    seed: Optional[int] = None,
    replace: bool = True
) -> pd.DataFrame:
    """Rarefy every sample (column) of `otu_table` to `sample_size` reads.

    Samples are processed in column order from one generator seeded with
    `seed`, so identical inputs and seeds give identical tables.

    Raises:
        ValidationError: If the table holds non-integer counts.
    """
    values = otu_table.to_numpy(dtype=float)
    if not np.allclose(values, np.round(values)):
        raise ValidationError("Rarefaction requires integer counts in otu_table!")
    values = np.round(values).astype(np.int64)

    rng = np.random.default_rng(seed)
    rarefied = np.zeros_like(values)
    with get_progress_bar() as progress:
        task = progress.add_task(
            _format_task_desc(f"Rarefying samples to {sample_size} reads"),
            total=values.shape[1]
        )
        for j in range(values.shape[1]):
            rarefied[:, j] = rarefaction_subsample(
                values[:, j], sample_size, rng, replace=replace
            )
            progress.update(task, advance=1)

    return pd.DataFrame(rarefied, index=otu_table.index, columns=otu_table.columns)

# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

# Third-Party Imports
import pandas as pd
from pandas.api.types import is_numeric_dtype
from skbio import TreeNode

# ================================== LOCAL IMPORTS =================================== #

from microtable import constants
from microtable import diversity
from microtable import io
from microtable.core import abundance, filtering, merge, rarefy, trim
from microtable.errors import EmptyTaxonomyError, NoTaxonomyError, ValidationError
from microtable.utils.tree import prepare_tree, rename_tips, tip_names

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("microtable")

# ================================== HELPER FUNCTIONS ================================ #

def _validate_otu_table(otu_table: pd.DataFrame) -> pd.DataFrame:
    """Check that `otu_table` is a numeric, non-negative table with unique IDs.

    Raises:
        ValidationError: For non-numeric columns, negative values or
                         duplicated feature/sample IDs.
    """
    if not isinstance(otu_table, pd.DataFrame):
        raise ValidationError(
            f"otu_table must be a pandas DataFrame, got {type(otu_table).__name__}"
        )
    if otu_table.index.duplicated().any():
        raise ValidationError("Feature names (rownames of otu_table) must be unique!")
    if otu_table.columns.duplicated().any():
        raise ValidationError("Sample names (colnames of otu_table) must be unique!")
    non_numeric = [col for col, dtype in otu_table.dtypes.items() if not is_numeric_dtype(dtype)]
    if non_numeric:
        raise ValidationError(
            f"Some columns in otu_table are not numeric: {non_numeric[:5]}. "
            "Please check the otu_table!"
        )
    if otu_table.isna().to_numpy().any():
        raise ValidationError("otu_table contains missing values!")
    if (otu_table.to_numpy() < 0).any():
        raise ValidationError("otu_table contains negative abundances!")
    return otu_table.copy()


def _default_sample_table(sample_names: List[str]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            constants.DEFAULT_SAMPLE_ID_COLUMN: sample_names,
            constants.DEFAULT_GROUP_COLUMN: sample_names
        },
        index=sample_names
    )

# ================================= MICROTABLE CLASS ================================= #

class MicroTable:
    """
    Linked feature table, sample metadata, taxonomy, tree and sequences that
    are kept consistent with each other.

    Attributes:
        otu_table (pd.DataFrame):       Feature × sample abundances.
        sample_table (pd.DataFrame):    Sample metadata indexed by sample ID.
        tax_table (pd.DataFrame):       Taxonomy indexed by feature ID.
        phylo_tree (TreeNode):          Tree with feature IDs as tip names.
        rep_fasta (dict):               Feature ID -> representative sequence.
        taxa_abund (dict):              Level -> taxon × sample abundances.
        alpha_diversity (pd.DataFrame): Sample × measure alpha diversity.
        beta_diversity (dict):          Method -> sample × sample distances.
        auto_tidy (bool):               Trim after every filtering call.
    """

    def __init__(
        self,
        otu_table: pd.DataFrame,
        sample_table: Optional[pd.DataFrame] = None,
        tax_table: Optional[pd.DataFrame] = None,
        phylo_tree: Optional[TreeNode] = None,
        rep_fasta: Optional[Mapping[str, Any]] = None,
        auto_tidy: bool = False
    ):
        """
        Args:
            otu_table:    Feature × sample abundance table.
            sample_table: Sample metadata indexed by sample ID; generated from
                          the otu_table columns when not provided.
            tax_table:    Taxonomy indexed by feature ID, one column per level.
            phylo_tree:   Phylogenetic tree with feature IDs as tips.
            rep_fasta:    Feature ID -> representative sequence.
            auto_tidy:    Trim all tables after construction and filtering.
        """
        self.otu_table: pd.DataFrame = trim.check_abund_table(_validate_otu_table(otu_table))
        if sample_table is None:
            logger.info(
                "No sample_table provided, automatically use colnames in otu_table "
                "to create one ..."
            )
            sample_table = _default_sample_table(self.otu_table.columns.tolist())
        self.sample_table: pd.DataFrame = sample_table.copy()
        self.tax_table: Optional[pd.DataFrame] = (
            tax_table.copy() if tax_table is not None else None
        )
        self.phylo_tree: Optional[TreeNode] = (
            prepare_tree(phylo_tree) if phylo_tree is not None else None
        )
        self.rep_fasta: Optional[Dict[str, Any]] = (
            dict(rep_fasta) if rep_fasta is not None else None
        )
        self.taxa_abund: Optional[Dict[str, pd.DataFrame]] = None
        self.alpha_diversity: Optional[pd.DataFrame] = None
        self.beta_diversity: Optional[Dict[str, pd.DataFrame]] = None
        self.auto_tidy = auto_tidy
        if self.auto_tidy:
            self.tidy_dataset()

    # ------------------------------------------------------------------------------ #
    # Consistency
    # ------------------------------------------------------------------------------ #

    def tidy_dataset(self, main_data: bool = False) -> None:
        """Trim all tables to the features and samples they share.

        Args:
            main_data: Only trim the basic tables; otherwise also re-slice
                       taxa_abund, alpha_diversity and beta_diversity.
        """
        trimmed = trim.trim_tables(
            self.otu_table,
            self.sample_table,
            tax_table=self.tax_table,
            phylo_tree=self.phylo_tree,
            rep_fasta=self.rep_fasta
        )
        if not main_data:
            taxa_abund, alpha_div, beta_div = trim.trim_derived(
                trimmed.sample_names,
                taxa_abund=self.taxa_abund,
                alpha_diversity=self.alpha_diversity,
                beta_diversity=self.beta_diversity
            )
            self.taxa_abund = taxa_abund
            self.alpha_diversity = alpha_div
            self.beta_diversity = beta_div
        self._commit(trimmed)

    def _commit(self, trimmed: trim.TrimmedTables) -> None:
        self.otu_table = trimmed.otu_table
        self.sample_table = trimmed.sample_table
        self.tax_table = trimmed.tax_table
        self.phylo_tree = trimmed.phylo_tree
        self.rep_fasta = trimmed.rep_fasta

    def _require_tax_table(self) -> pd.DataFrame:
        if self.tax_table is None:
            raise NoTaxonomyError(
                "The tax_table in the microtable object is None! Please check it!"
            )
        return self.tax_table

    # ------------------------------------------------------------------------------ #
    # Filtering, rarefaction and renaming
    # ------------------------------------------------------------------------------ #

    def filter_pollution(
        self,
        taxa: Union[str, Sequence[str]] = constants.DEFAULT_POLLUTION_TAXA
    ) -> None:
        """Remove features whose taxonomy mentions any of `taxa` (e.g.
        mitochondria and chloroplast), ignoring case."""
        self.tax_table = filtering.filter_pollution(self._require_tax_table(), taxa)
        if self.auto_tidy:
            self.tidy_dataset()

    def filter_taxa(
        self,
        rel_abund: float = constants.DEFAULT_REL_ABUND,
        freq: float = constants.DEFAULT_FREQ,
        include_lowest: bool = constants.DEFAULT_INCLUDE_LOWEST
    ) -> None:
        """Remove features with low abundance and/or low occurrence frequency.

        Args:
            rel_abund:      Relative abundance threshold, such as 0.0001.
            freq:           Occurrence threshold; 2 removes features found in
                            fewer than 2 samples, 0.1 removes features found in
                            less than 10% of samples.
            include_lowest: Keep features exactly at the threshold.
        """
        new_table = filtering.filter_taxa(self.otu_table, rel_abund, freq, include_lowest)
        trimmed = trim.trim_tables(
            new_table, self.sample_table, self.tax_table, self.phylo_tree, self.rep_fasta
        )
        self._commit(trimmed)
        self.tidy_dataset()
        logger.debug(f"{len(trimmed.feature_names)} features kept after filtering")

    def rarefy_samples(
        self,
        sample_size: Optional[int] = None,
        seed: Optional[int] = constants.DEFAULT_RNGSEED,
        replace: bool = constants.DEFAULT_REPLACE
    ) -> None:
        """Rarefy all samples to the same number of reads.

        The dataset is trimmed first. Samples with fewer reads than
        `sample_size` are removed, and features absent from every rarefied
        sample are dropped.

        Args:
            sample_size: Reads per sample; the smallest sample total if None.
            seed:        Random seed; the same seed reproduces the same table.
            replace:     Draw reads with replacement.

        Raises:
            InvalidDepthError: If `sample_size` cannot be reached.
        """
        self.tidy_dataset()
        sample_sums = self.sample_sums()
        sample_size = rarefy.resolve_depth(sample_size, sample_sums)

        trimmed = trim.TrimmedTables(
            self.otu_table, self.sample_table, self.tax_table, self.phylo_tree,
            self.rep_fasta
        )
        if sample_sums.min() < sample_size:
            rmsamples = sample_sums.index[sample_sums < sample_size]
            logger.info(
                f"{len(rmsamples)} samples removed, because they contained fewer "
                "reads than `sample_size`."
            )
            trimmed = trim.trim_tables(
                trimmed.otu_table,
                trimmed.sample_table.drop(index=rmsamples),
                trimmed.tax_table,
                trimmed.phylo_tree,
                trimmed.rep_fasta
            )

        new_table = rarefy.rarefy_table(trimmed.otu_table, sample_size, seed, replace)
        rmtaxa = new_table.index[new_table.sum(axis=1) == 0]
        if len(rmtaxa) > 0:
            logger.info(
                f"{len(rmtaxa)} OTUs were removed because they are no longer present "
                "in any sample after random subsampling ..."
            )
        trimmed = trim.trim_tables(
            new_table, trimmed.sample_table, trimmed.tax_table, trimmed.phylo_tree,
            trimmed.rep_fasta
        )
        self._commit(trimmed)
        self.tidy_dataset()

    def rename_taxa(self, newname_prefix: str = constants.DEFAULT_RENAME_PREFIX) -> None:
        """Rename features to `newname_prefix` + 1..n in otu_table row order,
        in every table, the tree tips and the sequences."""
        self.tidy_dataset()
        old_names = self.otu_table.index.tolist()
        new_names = [f"{newname_prefix}{i}" for i in range(1, len(old_names) + 1)]
        mapping = dict(zip(old_names, new_names))

        self.otu_table = self.otu_table.set_axis(new_names, axis=0)
        if self.tax_table is not None:
            self.tax_table = self.tax_table.rename(index=mapping)
        if self.phylo_tree is not None:
            self.phylo_tree = rename_tips(self.phylo_tree, mapping)
        if self.rep_fasta is not None:
            self.rep_fasta = {mapping[name]: seq for name, seq in self.rep_fasta.items()}

    def add_rownames2taxonomy(self, use_name: str = constants.DEFAULT_ROWNAMES_LEVEL) -> None:
        """Append the feature IDs as the last taxonomy column `use_name`."""
        tax_table = self._require_tax_table()
        if use_name in tax_table.columns:
            raise ValidationError(
                f"The input use_name: {use_name} has been used in the raw tax_table! "
                "Please check it!"
            )
        tax_table = tax_table.copy()
        tax_table[use_name] = tax_table.index.astype(str)
        self.tax_table = tax_table

    # ------------------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------------------ #

    def sample_sums(self) -> pd.Series:
        return self.otu_table.sum(axis=0)

    def taxa_sums(self) -> pd.Series:
        return self.otu_table.sum(axis=1)

    def sample_names(self) -> List[str]:
        return self.sample_table.index.tolist()

    def taxa_names(self) -> List[str]:
        return self.otu_table.index.tolist()

    def copy(self) -> "MicroTable":
        return copy.deepcopy(self)

    # ------------------------------------------------------------------------------ #
    # Merging
    # ------------------------------------------------------------------------------ #

    def merge_samples(self, use_group: str) -> "MicroTable":
        """Merge samples of the same `use_group` label into a new MicroTable."""
        otu_table, sample_table = merge.merge_samples(
            self.otu_table, self.sample_table, use_group
        )
        return MicroTable(
            otu_table=otu_table,
            sample_table=sample_table,
            tax_table=self.tax_table,
            phylo_tree=self.phylo_tree,
            rep_fasta=self.rep_fasta,
            auto_tidy=self.auto_tidy
        )

    def merge_taxa(self, taxa: str = constants.DEFAULT_MERGE_RANK) -> "MicroTable":
        """Merge features of the same taxonomy up to rank `taxa` into a new
        MicroTable without tree and sequences. The dataset itself is not
        trimmed."""
        tax_table = self._check_tax_table()
        trimmed = trim.trim_tables(self.otu_table, self.sample_table, tax_table)
        otu_table, tax_table = merge.merge_taxa(
            trimmed.otu_table, trimmed.tax_table, trimmed.sample_names, taxa
        )
        return MicroTable(
            otu_table=otu_table,
            sample_table=trimmed.sample_table,
            tax_table=tax_table,
            auto_tidy=self.auto_tidy
        )

    # ------------------------------------------------------------------------------ #
    # Taxonomic abundance
    # ------------------------------------------------------------------------------ #

    def _check_tax_table(self) -> pd.DataFrame:
        tax_table = self._require_tax_table()
        if tax_table.shape[0] == 0:
            raise EmptyTaxonomyError("0 rows in tax_table! Please check your data!")
        return tax_table

    def _sync_for_taxonomy(self) -> None:
        tax_table = self._check_tax_table()
        if tax_table.index.tolist() != self.otu_table.index.tolist():
            logger.info("The rownames of tax_table are not the same as those of otu_table ...")
            logger.info("Automatically applying tidy_dataset() function to trim the data ...")
            self.tidy_dataset()
        if self.sample_table.index.tolist() != self.otu_table.columns.tolist():
            logger.info(
                "The rownames of sample_table are not the same as the colnames of "
                "otu_table ..."
            )
            logger.info("Automatically applying tidy_dataset() function to trim the data ...")
            self.tidy_dataset()

    def cal_abund(
        self,
        select_cols: Optional[Sequence[Union[str, int]]] = None,
        rel: bool = True,
        merge_by: str = constants.DEFAULT_MERGE_BY,
        split_group: bool = False,
        split_by: str = constants.DEFAULT_SPLIT_BY,
        split_column: abundance.SplitColumns = None
    ) -> None:
        """Calculate taxonomic abundance for each or the selected levels.

        Args:
            select_cols:  Taxonomy column names or 0-based positions, merged in
                          order as hierarchical levels; all columns if None.
            rel:          Relative abundance if True; summed raw values if False.
            merge_by:     Separator joining the names of different levels.
            split_group:  Split rows with multiple `split_by`-separated values.
            split_by:     Separator of collapsed values.
            split_column: Columns to split; a list of names for every level or
                          one list per selected level.
        """
        self._sync_for_taxonomy()
        self.taxa_abund = abundance.cal_abund(
            self.otu_table,
            self.tax_table,
            self.sample_names(),
            select_cols=select_cols,
            rel=rel,
            merge_by=merge_by,
            split_group=split_group,
            split_by=split_by,
            split_column=split_column
        )
        logger.info("The result is stored in object.taxa_abund ...")

    def save_abund(
        self,
        dirpath: Union[str, Path] = constants.DEFAULT_TAXA_ABUND_DIR,
        merge_all: bool = False,
        rm_un: bool = False,
        rm_pattern: str = constants.DEFAULT_RM_PATTERN,
        sep: str = constants.DEFAULT_SEP
    ) -> List[Path]:
        if self.taxa_abund is None:
            raise ValidationError("taxa_abund is empty! Please first run cal_abund()!")
        return io.write_taxa_abund(self.taxa_abund, dirpath, merge_all, rm_un, rm_pattern, sep)

    # ------------------------------------------------------------------------------ #
    # Diversity
    # ------------------------------------------------------------------------------ #

    def cal_alphadiv(
        self,
        measures: Optional[Sequence[str]] = None,
        faith_pd: bool = False
    ) -> None:
        """Calculate alpha diversity; Faith's PD needs the phylogenetic tree."""
        self.alpha_diversity = diversity.cal_alphadiv(
            self.otu_table, measures=measures, faith_pd=faith_pd, tree=self.phylo_tree
        )
        logger.info("The result is stored in object.alpha_diversity ...")

    def save_alphadiv(self, dirpath: Union[str, Path] = constants.DEFAULT_ALPHA_DIR) -> Path:
        if self.alpha_diversity is None:
            raise ValidationError("alpha_diversity is empty! Please first run cal_alphadiv()!")
        return io.write_alpha_diversity(self.alpha_diversity, dirpath)

    def cal_betadiv(
        self,
        method: Optional[Sequence[str]] = None,
        unifrac: bool = False,
        binary: bool = False
    ) -> None:
        """Calculate beta diversity ('bray' and 'jaccard' by default), and
        weighted/unweighted UniFrac when `unifrac` is set."""
        self.beta_diversity = diversity.cal_betadiv(
            self.otu_table, method=method, unifrac=unifrac, binary=binary,
            tree=self.phylo_tree
        )
        logger.info("The result is stored in object.beta_diversity ...")

    def save_betadiv(self, dirpath: Union[str, Path] = constants.DEFAULT_BETA_DIR) -> List[Path]:
        if self.beta_diversity is None:
            raise ValidationError("beta_diversity is empty! Please first run cal_betadiv()!")
        return io.write_beta_diversity(self.beta_diversity, dirpath)

    # ------------------------------------------------------------------------------ #
    # Summary
    # ------------------------------------------------------------------------------ #

    def summary(self) -> str:
        lines = ["microtable-class object:"]
        lines.append(
            f"sample_table have {self.sample_table.shape[0]} rows and "
            f"{self.sample_table.shape[1]} columns"
        )
        lines.append(
            f"otu_table have {self.otu_table.shape[0]} rows and "
            f"{self.otu_table.shape[1]} columns"
        )
        if self.tax_table is not None:
            lines.append(
                f"tax_table have {self.tax_table.shape[0]} rows and "
                f"{self.tax_table.shape[1]} columns"
            )
        if self.phylo_tree is not None:
            lines.append(f"phylo_tree have {len(tip_names(self.phylo_tree))} tips")
        if self.rep_fasta is not None:
            lines.append(f"rep_fasta have {len(self.rep_fasta)} sequences")
        if self.taxa_abund is not None:
            lines.append(f"Taxa abundance: calculated for {','.join(self.taxa_abund)}")
        if self.alpha_diversity is not None:
            lines.append(
                f"Alpha diversity: calculated for {','.join(self.alpha_diversity.columns)}"
            )
        if self.beta_diversity is not None:
            lines.append(f"Beta diversity: calculated for {','.join(self.beta_diversity)}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return (
            f"MicroTable(features={self.otu_table.shape[0]}, "
            f"samples={self.otu_table.shape[1]}, auto_tidy={self.auto_tidy})"
        )

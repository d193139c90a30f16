"""
Microbial Community Table Pipeline
----------------------------------------------------------------------------------------
Loads a feature table with its sample metadata, taxonomy, tree and sequences,
cleans and rarefies it, and writes taxonomic abundance and diversity tables.
Every step is switched on or off from the YAML configuration.
"""
# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from pathlib import Path
from typing import Dict, Optional, Union

# Third-Party Imports
import pandas as pd

# Local Imports
from microtable import constants
from microtable import io
from microtable.config import get_config, is_enabled
from microtable.dataset import MicroTable
from microtable.logger import setup_logging

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("microtable")

# ==================================== FUNCTIONS ===================================== #

def _load_otu_table(path: Union[str, Path]) -> pd.DataFrame:
    path = Path(path)
    if path.suffix == '.biom':
        return io.import_table_biom(path)
    sep = ',' if path.suffix == '.csv' else '\t'
    return io.import_table_tsv(path, sep=sep)


def load_dataset(input_config: Dict, auto_tidy: bool = False) -> MicroTable:
    """Build a MicroTable from the file paths of the `input` config section.

    Args:
        input_config: Mapping with 'otu_table' and the optional 'sample_table',
                      'tax_table', 'phylo_tree' and 'rep_fasta' paths.
        auto_tidy:    Passed to MicroTable.

    Returns:
        The loaded dataset.
    """
    otu_table = _load_otu_table(input_config["otu_table"])
    optional = {
        'sample_table': io.import_metadata_tsv,
        'tax_table': io.import_taxonomy_tsv,
        'phylo_tree': io.import_tree,
        'rep_fasta': io.import_fasta,
    }
    loaded = {}
    for key, loader in optional.items():
        path = input_config.get(key)
        loaded[key] = loader(path) if path else None
        if path:
            logger.debug(f"Loaded {key} from {path}")
    return MicroTable(otu_table=otu_table, auto_tidy=auto_tidy, **loaded)


def run_pipeline(
    config: Dict,
    dataset: Optional[MicroTable] = None
) -> MicroTable:
    """Run every enabled processing step on a dataset.

    Args:
        config:  Parsed configuration (see references/config.yaml).
        dataset: Dataset to process; loaded from `config['input']` if None.

    Returns:
        The processed dataset.
    """
    output_dir = Path(config.get("output_dir", "results"))
    if dataset is None:
        dataset = load_dataset(config["input"], config.get("auto_tidy", False))
    dataset.tidy_dataset()
    logger.info(str(dataset))

    pollution_cfg = config.get("filter_pollution", {})
    if is_enabled(pollution_cfg) and dataset.tax_table is not None:
        dataset.filter_pollution(
            taxa=pollution_cfg.get("taxa", constants.DEFAULT_POLLUTION_TAXA)
        )
        dataset.tidy_dataset()

    filter_cfg = config.get("filter_taxa", {})
    if is_enabled(filter_cfg):
        dataset.filter_taxa(
            rel_abund=filter_cfg.get("rel_abund", constants.DEFAULT_REL_ABUND),
            freq=filter_cfg.get("freq", constants.DEFAULT_FREQ),
            include_lowest=filter_cfg.get("include_lowest", constants.DEFAULT_INCLUDE_LOWEST)
        )

    rarefy_cfg = config.get("rarefy", {})
    if is_enabled(rarefy_cfg):
        dataset.rarefy_samples(
            sample_size=rarefy_cfg.get("sample_size"),
            seed=rarefy_cfg.get("seed", constants.DEFAULT_RNGSEED),
            replace=rarefy_cfg.get("replace", constants.DEFAULT_REPLACE)
        )

    rename_cfg = config.get("rename_taxa", {})
    if is_enabled(rename_cfg):
        dataset.rename_taxa(rename_cfg.get("prefix", constants.DEFAULT_RENAME_PREFIX))

    abund_cfg = config.get("taxa_abund", {})
    if is_enabled(abund_cfg) and dataset.tax_table is not None:
        dataset.cal_abund(
            select_cols=abund_cfg.get("select_cols"),
            rel=abund_cfg.get("rel", True),
            merge_by=abund_cfg.get("merge_by", constants.DEFAULT_MERGE_BY),
            split_group=abund_cfg.get("split_group", False),
            split_by=abund_cfg.get("split_by", constants.DEFAULT_SPLIT_BY),
            split_column=abund_cfg.get("split_column")
        )
        save_cfg = abund_cfg.get("save", {})
        dataset.save_abund(
            output_dir / constants.DEFAULT_TAXA_ABUND_DIR,
            merge_all=save_cfg.get("merge_all", False),
            rm_un=save_cfg.get("rm_un", False),
            rm_pattern=save_cfg.get("rm_pattern", constants.DEFAULT_RM_PATTERN),
            sep=save_cfg.get("sep", constants.DEFAULT_SEP)
        )

    alpha_cfg = config.get("alpha_diversity", {})
    if is_enabled(alpha_cfg):
        dataset.cal_alphadiv(
            measures=alpha_cfg.get("measures"),
            faith_pd=alpha_cfg.get("faith_pd", False)
        )
        dataset.save_alphadiv(output_dir / constants.DEFAULT_ALPHA_DIR)

    beta_cfg = config.get("beta_diversity", {})
    if is_enabled(beta_cfg):
        dataset.cal_betadiv(
            method=beta_cfg.get("method"),
            unifrac=beta_cfg.get("unifrac", False),
            binary=beta_cfg.get("binary", False)
        )
        dataset.save_betadiv(output_dir / constants.DEFAULT_BETA_DIR)

    logger.info(str(dataset))
    return dataset


def main(config_path: Union[str, Path] = constants.DEFAULT_CONFIG) -> MicroTable:
    config = get_config(config_path)
    setup_logging(config.get("log_dir", "logs"))
    return run_pipeline(config)

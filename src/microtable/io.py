# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
import re
from pathlib import Path
from typing import Dict, List, Union

# Third-Party Imports
import h5py
import pandas as pd
from Bio import SeqIO
from biom import load_table
from biom.table import Table
from skbio import TreeNode

# Local Imports
from microtable import constants
from microtable.utils.table_conversion import table_to_df, to_biom

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger('microtable')

# ===================================== IMPORT ======================================= #

def import_table_biom(biom_path: Union[str, Path]) -> pd.DataFrame:
    """Load a BIOM table (HDF5, falling back to JSON/TSV) as a feature ×
    sample DataFrame.

    Args:
        biom_path: Path to .biom file.
    """
    try:
        with h5py.File(biom_path, 'r') as f:
            table = Table.from_hdf5(f)
    except OSError:
        table = load_table(str(biom_path))
    return table_to_df(table)


def import_table_tsv(
    tsv_path: Union[str, Path],
    sep: str = '\t'
) -> pd.DataFrame:
    """Load a delimited feature × sample table; the first column holds the
    feature IDs."""
    df = pd.read_csv(tsv_path, sep=sep, index_col=0)
    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)
    return df


def import_metadata_tsv(
    tsv_path: Union[str, Path],
    sep: str = '\t'
) -> pd.DataFrame:
    """
    Load a sample metadata table indexed by its first column.

    Args:
        tsv_path: Path to metadata TSV file.
        sep:      Field separator.

    Returns:
        Metadata DataFrame indexed by sample ID.

    Raises:
        FileNotFoundError: If specified path doesn't exist.
    """
    tsv_path = Path(tsv_path)
    if not tsv_path.exists():
        raise FileNotFoundError(f"Metadata file not found: {tsv_path}")
    df = pd.read_csv(tsv_path, sep=sep)
    df[df.columns[0]] = df[df.columns[0]].astype(str)
    # QIIME 2 metadata may carry a '#q2:types' directive row
    if len(df) and str(df.iloc[0, 0]).startswith('#q2:'):
        df = df.iloc[1:]
    return df.set_index(df.columns[0], drop=False).rename_axis(None)


def _parse_taxon(taxon: str, levels: List[str]) -> Dict[str, str]:
    """Split one 'd__X; p__Y; ...' string into level -> label."""
    parsed: Dict[str, str] = {}
    if not isinstance(taxon, str) or taxon in ('Unassigned', 'Unclassified'):
        return parsed
    parts = [part.strip() for part in taxon.split(';') if part.strip()]
    for i, part in enumerate(parts):
        match = re.match(r'^([a-z])__', part)
        if match and match.group(1) in constants.TAXONOMIC_PREFIXES:
            parsed[constants.TAXONOMIC_PREFIXES[match.group(1)]] = part
        elif i < len(levels):
            parsed[levels[i]] = part
    return parsed


def import_taxonomy_tsv(
    tsv_path: Union[str, Path],
    levels: List[str] = constants.TAXONOMIC_LEVELS
) -> pd.DataFrame:
    """
    Parse a QIIME 2 taxonomy TSV into one column per taxonomic level.

    Labels keep their rank prefix ('p__Firmicutes'); unassigned levels are
    filled with the bare prefix ('g__'), so unclassified paths end in '__'.

    Args:
        tsv_path: Path to taxonomy TSV with 'Feature ID' and 'Taxon' columns.
        levels:   Level names, Domain to Species.

    Returns:
        Taxonomy DataFrame indexed by feature ID.
    """
    df = pd.read_csv(tsv_path, sep='\t', dtype=str)
    df = df.rename(columns={'Feature ID': 'id', 'Taxon': 'taxonomy'}).set_index('id')
    prefixes: Dict[str, str] = {}
    for prefix, level in constants.TAXONOMIC_PREFIXES.items():
        prefixes.setdefault(level, f"{prefix}__")
    records = []
    for taxon in df['taxonomy']:
        parsed = _parse_taxon(taxon, levels)
        records.append([parsed.get(level, prefixes.get(level, '')) for level in levels])
    tax = pd.DataFrame(records, index=df.index.rename(None), columns=levels)
    logger.debug(f"Loaded taxonomy for {tax.shape[0]} features from {tsv_path}")
    return tax


def import_fasta(fasta_path: Union[str, Path]) -> Dict[str, str]:
    """
    Load sequences from FASTA file into a dictionary.

    Args:
        fasta_path: Path to FASTA file.

    Returns:
        Dictionary mapping sequence IDs to sequences.
    """
    return {rec.id: str(rec.seq) for rec in SeqIO.parse(str(fasta_path), "fasta")}


def import_tree(tree_path: Union[str, Path]) -> TreeNode:
    """Load a Newick tree whose tip names are feature IDs."""
    return TreeNode.read(str(tree_path), format='newick')

# ===================================== EXPORT ======================================= #

def export_table_biom(
    table: pd.DataFrame,
    output_path: Union[str, Path]
) -> None:
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with h5py.File(output_path, 'w') as f:
        to_biom(table).to_hdf5(f, generated_by="microtable")


def _suffix(sep: str) -> str:
    return constants.SEP_SUFFIXES.get(sep, 'txt')


def write_taxa_abund(
    taxa_abund: Dict[str, pd.DataFrame],
    dirpath: Union[str, Path] = constants.DEFAULT_TAXA_ABUND_DIR,
    merge_all: bool = False,
    rm_un: bool = False,
    rm_pattern: str = constants.DEFAULT_RM_PATTERN,
    sep: str = constants.DEFAULT_SEP
) -> List[Path]:
    """Save taxonomic abundance tables as delimited text.

    Args:
        taxa_abund: Level name -> taxon × sample table.
        dirpath:    Output directory, created when missing.
        merge_all:  Stack all levels into one 'mpa_abund' file.
        rm_un:      Drop taxa whose name matches `rm_pattern`.
        rm_pattern: Regular expression of unclassified taxa names.
        sep:        Field separator; also picks the file suffix.

    Returns:
        Paths of the written files.
    """
    dirpath = Path(dirpath)
    dirpath.mkdir(parents=True, exist_ok=True)
    suffix = _suffix(sep)

    def _prepare(df: pd.DataFrame) -> pd.DataFrame:
        if rm_un:
            df = df.loc[~df.index.to_series().astype(str).str.contains(rm_pattern, regex=True)]
        return df.rename_axis('Taxa').reset_index()

    written = []
    if merge_all:
        merged = pd.concat([taxa_abund[level] for level in taxa_abund], axis=0)
        save_path = dirpath / f"mpa_abund.{suffix}"
        _prepare(merged).to_csv(save_path, sep=sep, index=False)
        logger.info(f"Save abundance to {save_path} ...")
        written.append(save_path)
    else:
        for level, df in taxa_abund.items():
            save_path = dirpath / f"{level}_abund.{suffix}"
            _prepare(df).to_csv(save_path, sep=sep, index=False)
            written.append(save_path)
    return written


def write_alpha_diversity(
    alpha_diversity: pd.DataFrame,
    dirpath: Union[str, Path] = constants.DEFAULT_ALPHA_DIR
) -> Path:
    dirpath = Path(dirpath)
    dirpath.mkdir(parents=True, exist_ok=True)
    save_path = dirpath / "alpha_diversity.csv"
    alpha_diversity.to_csv(save_path, index=True)
    return save_path


def write_beta_diversity(
    beta_diversity: Dict[str, pd.DataFrame],
    dirpath: Union[str, Path] = constants.DEFAULT_BETA_DIR
) -> List[Path]:
    dirpath = Path(dirpath)
    dirpath.mkdir(parents=True, exist_ok=True)
    written = []
    for metric, df in beta_diversity.items():
        save_path = dirpath / f"{metric}.csv"
        df.to_csv(save_path, index=True)
        written.append(save_path)
    return written

from pathlib import Path

# ==================================================================================== #
# PROGRESS BAR
# ==================================================================================== #
# See supported colors at: https://www.w3schools.com/colors/colors_x11.asp

# Total character width of the progress bar text
DEFAULT_PROGRESS_TEXT_N: int = 65
DEFAULT_N: int = 65
# Color of the progress bar description text
DEFAULT_DESCRIPTION_STYLE: str = "white"
# Width of the progress bar
DEFAULT_BAR_WIDTH: int = 40
# Color of the filled/complete portion of the progress bar
DEFAULT_BAR_COLUMN_COMPLETE_STYLE: str = "honeydew2"
# Color used when the progress bar is finished
DEFAULT_FINISHED_STYLE: str = "dark_cyan"
# Color of the percentage complete text (e.g., "85%")
DEFAULT_PROGRESS_PERCENTAGE_STYLE: str = "honeydew2"
# Color of the "X of Y complete" text (e.g., "42 of 65")
DEFAULT_M_OF_N_COMPLETE_STYLE: str = "honeydew2"
# Color of the time elapsed display (e.g., "E: 00:01:25")
DEFAULT_TIME_ELAPSED_STYLE: str = "light_sky_blue1"

# ==================================================================================== #
# SETTINGS
# ==================================================================================== #
# Go up two levels
DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "references" / "config.yaml"
DEFAULT_LOGGER_NAME = "microtable"

# ==================================================================================== #
# SAMPLE TABLE
# ==================================================================================== #
DEFAULT_SAMPLE_ID_COLUMN = 'SampleID'
DEFAULT_GROUP_COLUMN = 'Group'

# ==================================================================================== #
# TAXONOMY
# ==================================================================================== #
TAXONOMIC_LEVELS = [
    'Domain', 'Phylum', 'Class', 'Order', 'Family', 'Genus', 'Species'
]
TAXONOMIC_PREFIXES = {
    'd': 'Domain', 'k': 'Domain', 'p': 'Phylum', 'c': 'Class',
    'o': 'Order', 'f': 'Family', 'g': 'Genus', 's': 'Species'
}
DEFAULT_MERGE_RANK = 'Genus'
DEFAULT_MERGE_BY = '|'
DEFAULT_SPLIT_BY = '&&'
DEFAULT_ROWNAMES_LEVEL = 'OTU'
DEFAULT_RENAME_PREFIX = 'ASV_'
DEFAULT_POLLUTION_TAXA = ['mitochondria', 'chloroplast']

# ==================================================================================== #
# FILTERING & RAREFACTION
# ==================================================================================== #
DEFAULT_REL_ABUND = 0
DEFAULT_FREQ = 1
DEFAULT_INCLUDE_LOWEST = True
DEFAULT_RNGSEED = 123
DEFAULT_REPLACE = True
# numpy's multivariate hypergeometric sampler rejects larger sample totals
MAX_HYPERGEOMETRIC_TOTAL = 10 ** 9

# ==================================================================================== #
# DIVERSITY
# ==================================================================================== #
DEFAULT_ALPHA_MEASURES = [
    'Observed', 'Coverage', 'Chao1', 'ACE', 'Shannon', 'Simpson', 'InvSimpson',
    'Fisher'
]
# Legacy (estimator output) names -> canonical measure names
ALPHA_MEASURE_RENAMES = {
    'S.obs': 'Observed',
    'coverage': 'Coverage',
    'S.chao1': 'Chao1',
    'S.ACE': 'ACE',
    'shannon': 'Shannon',
    'simpson': 'Simpson',
    'invsimpson': 'InvSimpson',
    'fisher': 'Fisher',
}
# Measures that are only defined for integer counts
ALPHA_COUNT_MEASURES = ['Chao1', 'ACE', 'Fisher', 'Coverage']

DEFAULT_BETA_METHODS = ['bray', 'jaccard']
# Ecological distance names -> scikit-bio / scipy metric names
BETA_METRIC_MAPPING = {
    'bray': 'braycurtis',
    'jaccard': 'jaccard',
    'euclidean': 'euclidean',
    'manhattan': 'cityblock',
    'canberra': 'canberra',
    'chebyshev': 'chebyshev',
}
BETA_BINARY_METHODS = ['jaccard']
WEIGHTED_UNIFRAC_NAME = 'wei_unifrac'
UNWEIGHTED_UNIFRAC_NAME = 'unwei_unifrac'

# ==================================================================================== #
# OUTPUT
# ==================================================================================== #
DEFAULT_TAXA_ABUND_DIR = 'taxa_abund'
DEFAULT_ALPHA_DIR = 'alpha_diversity'
DEFAULT_BETA_DIR = 'beta_diversity'
DEFAULT_RM_PATTERN = '__$'
DEFAULT_SEP = ','
SEP_SUFFIXES = {',': 'csv', '\t': 'tsv'}

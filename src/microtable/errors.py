# ===================================== IMPORTS ====================================== #

# Standard Library Imports
from typing import List

# ================================== ERROR CLASSES =================================== #

class MicroTableError(Exception):
    """Base class for all dataset consistency and processing errors."""


class ValidationError(MicroTableError, ValueError):
    """Malformed input tables or arguments."""


class NoOverlapError(MicroTableError):
    """Linked tables share no sample or feature identifiers."""


class MissingSequenceError(MicroTableError, KeyError):
    """Retained features are absent from the representative sequences."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        preview = ", ".join(map(str, self.missing[:5]))
        super().__init__(
            f"{len(self.missing)} feature(s) not found in the representative "
            f"sequences (e.g. {preview}). Provide a complete FASTA or check the "
            "feature names."
        )

    def __str__(self) -> str:
        return self.args[0]


class InvalidDepthError(MicroTableError, ValueError):
    """Rarefaction depth is not a single reachable positive integer."""


class MissingSplitColumnError(MicroTableError, ValueError):
    """Row splitting requested without naming the columns to split on."""


class AllFilteredError(MicroTableError, ValueError):
    """A filtering step would remove every feature."""


class NoTaxonomyError(MicroTableError):
    """The operation needs a taxonomy table but the dataset has none."""


class EmptyTaxonomyError(MicroTableError):
    """The taxonomy table has no rows."""


class InvalidColumnError(ValidationError):
    """A requested taxonomic level or metadata column does not exist."""


class NoTreeError(MicroTableError):
    """The operation needs a phylogenetic tree but the dataset has none."""

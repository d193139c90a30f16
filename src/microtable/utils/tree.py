# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import Dict, Iterable, List

# Third-Party Imports
from skbio import TreeNode

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger("microtable")

# ==================================== FUNCTIONS ===================================== #

def tip_names(tree: TreeNode) -> List[str]:
    return [tip.name for tip in tree.tips()]


def is_rooted(tree: TreeNode) -> bool:
    """A tree counts as rooted when its root has exactly two children."""
    return len(tree.children) == 2


def prepare_tree(tree: TreeNode) -> TreeNode:
    """Return a copy of `tree` with polytomies resolved when it is unrooted."""
    tree = tree.copy()
    if not is_rooted(tree):
        logger.info("Phylogenetic tree is not rooted; resolving polytomies ...")
        tree.bifurcate()
    return tree


def drop_tips(tree: TreeNode, keep: Iterable[str]) -> TreeNode:
    """Keep only the tips named in `keep`, collapsing single-child nodes.

    The input tree is never modified.
    """
    keep = set(keep)
    if set(tip_names(tree)) == keep:
        return tree
    return tree.shear(keep)


def rename_tips(tree: TreeNode, mapping: Dict[str, str]) -> TreeNode:
    """Return a copy of `tree` with tips renamed according to `mapping`."""
    tree = tree.copy()
    for tip in tree.tips():
        if tip.name in mapping:
            tip.name = mapping[tip.name]
    tree.clear_caches()
    return tree

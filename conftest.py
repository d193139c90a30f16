from io import StringIO

import numpy as np
import pandas as pd
import pytest
from skbio import TreeNode

from microtable.dataset import MicroTable


@pytest.fixture
def otu_table():
    return pd.DataFrame(
        {
            'S1': [10, 0, 5, 3, 2],
            'S2': [0, 10, 5, 0, 4],
            'S3': [4, 4, 0, 2, 6],
        },
        index=['F1', 'F2', 'F3', 'F4', 'F5']
    )


@pytest.fixture
def sample_table():
    return pd.DataFrame(
        {
            'SampleID': ['S1', 'S2', 'S3'],
            'Group': ['G1', 'G1', 'G2'],
        },
        index=['S1', 'S2', 'S3']
    )


@pytest.fixture
def tax_table():
    return pd.DataFrame(
        {
            'Domain': ['d__Bacteria'] * 5,
            'Phylum': ['p__Firmicutes', 'p__Firmicutes', 'p__Proteobacteria',
                       'p__Proteobacteria', 'p__Firmicutes'],
            'Genus': ['g__Bacillus', 'g__Bacillus', 'g__Vibrio', 'g__', 'g__Clostridium'],
        },
        index=['F1', 'F2', 'F3', 'F4', 'F5']
    )


@pytest.fixture
def tree():
    return TreeNode.read(
        StringIO("(((F1:1,F2:1):1,F3:2):1,(F4:1,F5:1):2);"), format='newick'
    )


@pytest.fixture
def rep_fasta():
    return {f"F{i}": "ACGT" * i for i in range(1, 6)}


@pytest.fixture
def dataset(otu_table, sample_table, tax_table, tree, rep_fasta):
    return MicroTable(
        otu_table=otu_table,
        sample_table=sample_table,
        tax_table=tax_table,
        phylo_tree=tree,
        rep_fasta=rep_fasta
    )


def tip_set(tree):
    return {tip.name for tip in tree.tips()}


def assert_consistent(dataset):
    """All linked tables refer to the same features and samples."""
    features = dataset.otu_table.index.tolist()
    assert dataset.sample_table.index.tolist() == dataset.otu_table.columns.tolist()
    if dataset.tax_table is not None:
        assert dataset.tax_table.index.tolist() == features
    if dataset.phylo_tree is not None:
        assert tip_set(dataset.phylo_tree) == set(features)
    if dataset.rep_fasta is not None:
        assert list(dataset.rep_fasta) == features
    assert (dataset.otu_table.sum(axis=1) > 0).all()
    assert (dataset.otu_table.sum(axis=0) > 0).all()
    assert np.isfinite(dataset.otu_table.to_numpy(dtype=float)).all()


@pytest.fixture
def check_consistent():
    return assert_consistent

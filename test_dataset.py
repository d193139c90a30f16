import numpy as np
import pandas as pd
import pytest

from microtable.dataset import MicroTable
from microtable.errors import NoTaxonomyError, ValidationError
from microtable.utils.tree import rename_tips


# =================================== CONSTRUCTION =================================== #

def test_default_sample_table(otu_table):
    dataset = MicroTable(otu_table)
    assert dataset.sample_table.index.tolist() == ['S1', 'S2', 'S3']
    assert dataset.sample_table['SampleID'].tolist() == ['S1', 'S2', 'S3']
    assert dataset.sample_table['Group'].tolist() == ['S1', 'S2', 'S3']


def test_input_tables_are_copied(otu_table, sample_table):
    dataset = MicroTable(otu_table, sample_table=sample_table)
    dataset.otu_table.iloc[0, 0] = 999
    dataset.sample_table.iloc[0, 1] = 'changed'
    assert otu_table.iloc[0, 0] == 10
    assert sample_table.iloc[0, 1] == 'G1'


def test_not_a_dataframe():
    with pytest.raises(ValidationError):
        MicroTable([[1, 2], [3, 4]])


@pytest.mark.parametrize("mutate", [
    lambda df: df.assign(S4=['a', 'b', 'c', 'd', 'e']),
    lambda df: df.set_axis(['F1', 'F1', 'F3', 'F4', 'F5'], axis=0),
    lambda df: df.set_axis(['S1', 'S1', 'S3'], axis=1),
    lambda df: df.astype(float).mask(df == 5),
    lambda df: df - 3,
])
def test_invalid_otu_table(otu_table, mutate):
    with pytest.raises(ValidationError):
        MicroTable(mutate(otu_table))


def test_all_zero_otu_table(otu_table):
    with pytest.raises(ValidationError):
        MicroTable(otu_table * 0)


def test_zero_rows_removed_on_construction(otu_table):
    otu_table.loc['F6'] = [0, 0, 0]
    dataset = MicroTable(otu_table)
    assert 'F6' not in dataset.taxa_names()


def test_auto_tidy_on_construction(otu_table, sample_table, check_consistent):
    dataset = MicroTable(
        otu_table, sample_table=sample_table.loc[['S1', 'S2']], auto_tidy=True
    )
    assert dataset.otu_table.columns.tolist() == ['S1', 'S2']
    check_consistent(dataset)


def test_no_tidy_without_auto_tidy(otu_table, sample_table):
    dataset = MicroTable(otu_table, sample_table=sample_table.loc[['S1', 'S2']])
    assert dataset.otu_table.columns.tolist() == ['S1', 'S2', 'S3']


def test_tidy_follows_taxonomy(dataset, check_consistent):
    dataset.tax_table = dataset.tax_table.drop(index='F2')
    dataset.tidy_dataset()
    assert dataset.taxa_names() == ['F1', 'F3', 'F4', 'F5']
    check_consistent(dataset)

# ===================================== RENAMING ===================================== #

def test_rename_taxa(dataset, check_consistent):
    dataset.rename_taxa()
    assert dataset.taxa_names() == ['ASV_1', 'ASV_2', 'ASV_3', 'ASV_4', 'ASV_5']
    assert dataset.tax_table.loc['ASV_3', 'Genus'] == 'g__Vibrio'
    assert dataset.rep_fasta['ASV_2'] == 'ACGTACGT'
    check_consistent(dataset)


def test_rename_taxa_custom_prefix(dataset):
    dataset.rename_taxa('OTU')
    assert dataset.taxa_names()[0] == 'OTU1'


def test_renamed_tree_can_be_trimmed(dataset, check_consistent):
    dataset.rename_taxa()
    dataset.tax_table = dataset.tax_table.drop(index='ASV_1')
    dataset.tidy_dataset()
    check_consistent(dataset)


def test_add_rownames2taxonomy(dataset):
    dataset.add_rownames2taxonomy()
    assert dataset.tax_table.columns[-1] == 'OTU'
    assert dataset.tax_table['OTU'].tolist() == dataset.taxa_names()


def test_add_rownames2taxonomy_name_clash(dataset):
    with pytest.raises(ValidationError):
        dataset.add_rownames2taxonomy('Genus')


def test_add_rownames2taxonomy_without_taxonomy(otu_table):
    with pytest.raises(NoTaxonomyError):
        MicroTable(otu_table).add_rownames2taxonomy()

# ===================================== ACCESSORS ==================================== #

def test_sums(dataset):
    assert dataset.sample_sums().tolist() == [20, 19, 16]
    assert dataset.taxa_sums().tolist() == [14, 14, 10, 5, 12]


def test_copy_is_independent(dataset, otu_table):
    duplicate = dataset.copy()
    duplicate.filter_taxa(rel_abund=0.1, freq=0)
    assert dataset.otu_table.equals(otu_table)
    assert len(dataset.rep_fasta) == 5
    assert len(duplicate.rep_fasta) == 4


def test_save_before_calculation(dataset, tmp_path):
    with pytest.raises(ValidationError):
        dataset.save_abund(tmp_path)
    with pytest.raises(ValidationError):
        dataset.save_alphadiv(tmp_path)
    with pytest.raises(ValidationError):
        dataset.save_betadiv(tmp_path)


def test_summary(dataset):
    dataset.cal_alphadiv(measures=['Observed'])
    summary = dataset.summary()
    assert 'otu_table have 5 rows and 3 columns' in summary
    assert 'tax_table have 5 rows and 3 columns' in summary
    assert 'phylo_tree have 5 tips' in summary
    assert 'rep_fasta have 5 sequences' in summary
    assert 'Alpha diversity: calculated for Observed' in summary
    assert str(dataset) == summary


def test_repr(dataset):
    assert repr(dataset) == 'MicroTable(features=5, samples=3, auto_tidy=False)'


def test_tidy_keeps_derived_results_aligned(dataset):
    dataset.cal_alphadiv(measures=['Observed'])
    dataset.cal_betadiv(method=['bray'])
    dataset.sample_table = dataset.sample_table.drop(index='S3')
    dataset.tidy_dataset()
    assert dataset.alpha_diversity.index.tolist() == ['S1', 'S2']
    assert dataset.beta_diversity['bray'].shape == (2, 2)
    assert np.all(np.isfinite(dataset.alpha_diversity.to_numpy()))


@pytest.mark.filterwarnings("error::DeprecationWarning:microtable.*")
def test_renamed_tips_are_found(tree):
    renamed = rename_tips(tree, {'F1': 'ASV_1'})
    assert renamed.find('ASV_1').name == 'ASV_1'
    assert tree.find('F1').name == 'F1'

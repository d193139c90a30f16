import numpy as np
import pandas as pd
import pytest

from microtable.core.abundance import (
    build_display_keys, group_sum, order_by_mean, resolve_levels, split_rows,
    transform_data_proportion
)
from microtable.dataset import MicroTable
from microtable.errors import (
    EmptyTaxonomyError, InvalidColumnError, MissingSplitColumnError, NoTaxonomyError
)


def test_shared_genus_is_summed():
    otu = pd.DataFrame({'S1': [3, 4], 'S2': [1, 6]}, index=['F1', 'F2'])
    tax = pd.DataFrame({'Genus': ['X', 'X']}, index=['F1', 'F2'])
    dataset = MicroTable(otu, tax_table=tax)
    dataset.cal_abund(select_cols=['Genus'], rel=False)
    genus = dataset.taxa_abund['Genus']
    assert genus.index.tolist() == ['X']
    assert genus.loc['X'].tolist() == [7, 7]


def test_levels_are_cumulative(dataset):
    dataset.cal_abund(rel=False)
    assert list(dataset.taxa_abund) == ['Domain', 'Phylum', 'Genus']
    assert dataset.taxa_abund['Domain'].index.tolist() == ['d__Bacteria']
    assert 'd__Bacteria|p__Firmicutes|g__Bacillus' in dataset.taxa_abund['Genus'].index


@pytest.mark.parametrize("level", ['Domain', 'Phylum', 'Genus'])
def test_absolute_totals_conserved(dataset, level):
    dataset.cal_abund(rel=False)
    assert dataset.taxa_abund[level].to_numpy().sum() == dataset.otu_table.to_numpy().sum()
    np.testing.assert_allclose(
        dataset.taxa_abund[level].sum(axis=0).to_numpy(),
        dataset.sample_sums().to_numpy()
    )


def test_relative_columns_sum_to_one(dataset):
    dataset.cal_abund(rel=True)
    for table in dataset.taxa_abund.values():
        np.testing.assert_allclose(table.sum(axis=0).to_numpy(), 1.0)


def test_relative_all_zero_column_stays_zero():
    tax = pd.DataFrame({'Genus': ['A', 'B']}, index=['F1', 'F2'])
    otu = pd.DataFrame({'S1': [2, 2], 'S2': [0, 0]}, index=['F1', 'F2'])
    result = transform_data_proportion(otu, tax, ['S1', 'S2'], ['Genus'], rel=True)
    assert result['S1'].sum() == pytest.approx(1.0)
    assert result['S2'].sum() == 0


def test_rows_ordered_by_descending_mean():
    tax = pd.DataFrame({'Genus': ['A', 'B', 'C', 'D']}, index=['F1', 'F2', 'F3', 'F4'])
    otu = pd.DataFrame(
        {'S1': [1, 5, 3, 3], 'S2': [1, 5, 3, 3]},
        index=['F1', 'F2', 'F3', 'F4']
    )
    result = transform_data_proportion(otu, tax, ['S1', 'S2'], ['Genus'], rel=False)
    # C and D tie; C was seen first
    assert result.index.tolist() == ['B', 'C', 'D', 'A']


def test_select_cols_by_position(dataset):
    dataset.cal_abund(select_cols=[1, 2], rel=False)
    assert list(dataset.taxa_abund) == ['Phylum', 'Genus']
    assert 'p__Firmicutes|g__Bacillus' in dataset.taxa_abund['Genus'].index


def test_unknown_level(dataset):
    with pytest.raises(InvalidColumnError):
        dataset.cal_abund(select_cols=['Kingdom'])
    with pytest.raises(InvalidColumnError):
        resolve_levels(dataset.tax_table, [7])


def test_no_taxonomy(otu_table):
    with pytest.raises(NoTaxonomyError):
        MicroTable(otu_table).cal_abund()


def test_empty_taxonomy(otu_table, tax_table):
    dataset = MicroTable(otu_table, tax_table=tax_table.iloc[0:0])
    with pytest.raises(EmptyTaxonomyError):
        dataset.cal_abund()


def test_mismatched_tables_trimmed_first(dataset):
    dataset.tax_table = dataset.tax_table.drop(index='F5')
    dataset.cal_abund(rel=False)
    assert 'F5' not in dataset.otu_table.index
    assert dataset.taxa_abund['Genus'].to_numpy().sum() == dataset.otu_table.to_numpy().sum()


def test_missing_labels_become_empty():
    tax = pd.DataFrame({'Phylum': ['P1', 'P1'], 'Genus': ['G1', np.nan]}, index=['F1', 'F2'])
    assert build_display_keys(tax) == ['P1|G1', 'P1|']


def test_custom_merge_token(dataset):
    dataset.cal_abund(select_cols=['Phylum', 'Genus'], merge_by=';', rel=False)
    assert 'p__Firmicutes;g__Bacillus' in dataset.taxa_abund['Genus'].index


@pytest.fixture
def gene_dataset():
    otu = pd.DataFrame({'S1': [4, 2], 'S2': [1, 3]}, index=['F1', 'F2'])
    tax = pd.DataFrame(
        {'Phylum': ['P1', 'P2'], 'Gene': ['geneA&&geneB', 'geneA']},
        index=['F1', 'F2']
    )
    return MicroTable(otu, tax_table=tax)


def test_split_rows_duplicates_counts(gene_dataset):
    gene_dataset.cal_abund(
        select_cols=['Gene'], rel=False, split_group=True, split_column=['Gene']
    )
    gene = gene_dataset.taxa_abund['Gene']
    assert gene.loc['geneA'].tolist() == [6, 4]
    assert gene.loc['geneB'].tolist() == [4, 1]


def test_split_requires_columns(gene_dataset):
    with pytest.raises(MissingSplitColumnError):
        gene_dataset.cal_abund(split_group=True)


def test_split_column_per_level(gene_dataset):
    gene_dataset.cal_abund(
        rel=False, split_group=True, split_column=[[], ['Gene']]
    )
    assert gene_dataset.taxa_abund['Phylum'].index.tolist() == ['P1', 'P2']
    assert sorted(gene_dataset.taxa_abund['Gene'].index) == [
        'P1|geneA', 'P1|geneB', 'P2|geneA'
    ]


def test_unknown_split_column(gene_dataset):
    with pytest.raises(InvalidColumnError):
        gene_dataset.cal_abund(split_group=True, split_column=['Pathway'])


def test_split_rows_parallel_columns():
    tax = pd.DataFrame({'A': ['x&&y'], 'B': ['1&&2']}, index=['F1'])
    values = np.array([[5.0, 1.0]])
    new_tax, new_values = split_rows(tax, values, ['A', 'B'])
    assert new_tax['A'].tolist() == ['x', 'y']
    assert new_tax['B'].tolist() == ['1', '2']
    assert new_values.tolist() == [[5.0, 1.0], [5.0, 1.0]]


def test_group_sum_first_seen_order():
    keys, summed, codes = group_sum(['b', 'a', 'b'], np.array([[1.0], [2.0], [3.0]]))
    assert keys == ['b', 'a']
    assert summed[:, 0].tolist() == [4.0, 2.0]
    assert codes.tolist() == [0, 1, 0]


def test_order_by_mean_is_stable():
    df = pd.DataFrame({'S1': [1, 2, 2]}, index=['a', 'b', 'c'])
    assert order_by_mean(df).index.tolist() == ['b', 'c', 'a']


def test_mismatched_sample_ids_trimmed_first(otu_table, tax_table):
    sample_table = pd.DataFrame({'Group': ['G1', 'G1', 'G2']}, index=['S1', 'S2', 'S4'])
    dataset = MicroTable(otu_table, sample_table=sample_table, tax_table=tax_table)
    dataset.cal_abund(rel=False)
    assert dataset.otu_table.columns.tolist() == ['S1', 'S2']
    assert dataset.taxa_abund['Genus'].columns.tolist() == ['S1', 'S2']

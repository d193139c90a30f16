import numpy as np
import pandas as pd
import pytest

from microtable import constants
from microtable.dataset import MicroTable
from microtable.diversity import cal_alphadiv, cal_betadiv, resolve_alpha_measures
from microtable.errors import NoTreeError, ValidationError


# ================================== ALPHA DIVERSITY ================================= #

def test_observed(dataset):
    dataset.cal_alphadiv(measures=['Observed'])
    assert dataset.alpha_diversity['Observed'].tolist() == [4, 3, 4]
    assert dataset.alpha_diversity.index.tolist() == ['S1', 'S2', 'S3']


def test_even_community():
    otu = pd.DataFrame({'S1': [1, 1]}, index=['F1', 'F2'])
    result = cal_alphadiv(otu, measures=['Shannon', 'Simpson', 'InvSimpson'])
    assert result.loc['S1', 'Shannon'] == pytest.approx(np.log(2))
    assert result.loc['S1', 'Simpson'] == pytest.approx(0.5)
    assert result.loc['S1', 'InvSimpson'] == pytest.approx(2.0)


def test_default_measures(dataset):
    dataset.cal_alphadiv()
    assert dataset.alpha_diversity.columns.tolist() == constants.DEFAULT_ALPHA_MEASURES


def test_legacy_measure_names():
    assert resolve_alpha_measures(['S.obs', 'shannon', 'S.chao1']) == [
        'Observed', 'Shannon', 'Chao1'
    ]


def test_unsupported_measures_skipped():
    assert resolve_alpha_measures(['Observed', 'Berger']) == ['Observed']


def test_no_supported_measure():
    with pytest.raises(ValidationError):
        resolve_alpha_measures(['Berger', 'Menhinick'])


def test_count_measures_need_integers(otu_table):
    result = cal_alphadiv(otu_table / 3, measures=['Chao1', 'Shannon'])
    assert result['Chao1'].isna().all()
    assert result['Shannon'].notna().all()


def test_faith_pd(dataset):
    dataset.cal_alphadiv(measures=['Observed'], faith_pd=True)
    # S1 holds F1, F3, F4 and F5
    assert dataset.alpha_diversity.loc['S1', 'PD'] == pytest.approx(9.0)


def test_faith_pd_requires_tree(otu_table):
    with pytest.raises(NoTreeError):
        MicroTable(otu_table).cal_alphadiv(faith_pd=True)


def test_pd_in_measures_requires_tree(otu_table):
    with pytest.raises(NoTreeError):
        cal_alphadiv(otu_table, measures=['PD'])

# ================================== BETA DIVERSITY ================================== #

def test_bray_curtis(dataset):
    dataset.cal_betadiv(method=['bray'])
    bray = dataset.beta_diversity['bray']
    assert bray.index.tolist() == ['S1', 'S2', 'S3']
    assert bray.loc['S1', 'S2'] == pytest.approx(25 / 39)
    np.testing.assert_allclose(bray.to_numpy(), bray.to_numpy().T)
    np.testing.assert_allclose(np.diag(bray.to_numpy()), 0)


def test_jaccard_uses_presence(dataset):
    dataset.cal_betadiv(method=['jaccard'])
    assert dataset.beta_diversity['jaccard'].loc['S1', 'S2'] == pytest.approx(0.6)


def test_default_methods(dataset):
    dataset.cal_betadiv()
    assert list(dataset.beta_diversity) == ['bray', 'jaccard']


def test_binary_bray(otu_table):
    result = cal_betadiv(otu_table, method='bray', binary=True)
    # 2 shared features out of 4 + 3 present ones
    assert result['bray'].loc['S1', 'S2'] == pytest.approx(1 - 2 * 2 / 7)


def test_unifrac_requires_tree(otu_table):
    with pytest.raises(NoTreeError):
        MicroTable(otu_table).cal_betadiv(unifrac=True)


def test_unifrac(dataset):
    dataset.cal_betadiv(method=['bray'], unifrac=True)
    assert list(dataset.beta_diversity) == ['bray', 'wei_unifrac', 'unwei_unifrac']
    for name in ('wei_unifrac', 'unwei_unifrac'):
        distances = dataset.beta_diversity[name].to_numpy()
        np.testing.assert_allclose(distances, distances.T)
        np.testing.assert_allclose(np.diag(distances), 0)
        assert ((distances >= 0) & (distances <= 1)).all()
    # S1 alone holds F1 and F4, S2 alone holds F2: 3 of 10 branch units
    assert dataset.beta_diversity['unwei_unifrac'].loc['S1', 'S2'] == pytest.approx(0.3)

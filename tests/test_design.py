"""Tests for design and contrast matrices."""

import numpy as np
import pytest

from rnaseq_workshop.dgelist import make_groups
from rnaseq_workshop.design import make_contrasts, make_design, parse_contrast


class TestMakeDesign:

    def test_one_column_per_group(self, sample_info):
        design = make_design(make_groups(sample_info), index=sample_info.index)

        assert design.shape == (12, 6)
        assert list(design.columns)[:2] == ['basal.lactate', 'basal.pregnant']
        assert (design.sum(axis=1) == 1).all()
        assert (design.sum(axis=0) == 2).all()
        assert design.loc['MCL1.DG', 'basal.virgin'] == 1

    def test_full_rank(self, sample_info):
        design = make_design(make_groups(sample_info))
        assert np.linalg.matrix_rank(design.to_numpy()) == 6

    def test_plain_labels(self):
        design = make_design(['b', 'a', 'b'])

        assert list(design.columns) == ['a', 'b']
        assert design['b'].tolist() == [1, 0, 1]


class TestContrasts:

    levels = ['basal.lactate', 'basal.pregnant', 'luminal.lactate', 'luminal.pregnant']

    def test_simple_difference(self):
        weights = parse_contrast('basal.pregnant - basal.lactate', self.levels)
        assert weights.tolist() == [-1.0, 1.0, 0.0, 0.0]

    def test_coefficients(self):
        weights = parse_contrast(
            '0.5*basal.pregnant + 0.5*luminal.pregnant - 0.5*basal.lactate - 0.5*luminal.lactate',
            self.levels
        )
        assert weights.tolist() == [-0.5, 0.5, -0.5, 0.5]

    def test_leading_sign(self):
        weights = parse_contrast('-basal.lactate + luminal.lactate', self.levels)
        assert weights.tolist() == [-1.0, 0.0, 1.0, 0.0]

    @pytest.mark.parametrize('expression, message', [
        ('basal.pregnant - basal.virgin', 'Unknown level'),
        ('basal.pregnant basal.lactate', 'Missing operator'),
        ('   ', 'Empty'),
        ('basal.pregnant - ', 'Cannot parse'),
    ])
    def test_invalid(self, expression, message):
        with pytest.raises(ValueError, match=message):
            parse_contrast(expression, self.levels)

    def test_matrix(self, sample_info):
        design = make_design(make_groups(sample_info))
        contrasts = make_contrasts(design, **{
            'B.PregVsLac': 'basal.pregnant - basal.lactate',
            'L.PregVsLac': 'luminal.pregnant - luminal.lactate',
        })

        assert contrasts.index.name == 'Levels'
        assert list(contrasts.index) == list(design.columns)
        assert list(contrasts.columns) == ['B.PregVsLac', 'L.PregVsLac']
        assert contrasts.loc['basal.pregnant', 'B.PregVsLac'] == 1
        assert contrasts.loc['basal.lactate', 'B.PregVsLac'] == -1
        assert (contrasts.sum(axis=0) == 0).all()

    def test_no_contrasts(self, sample_info):
        with pytest.raises(ValueError):
            make_contrasts(make_design(make_groups(sample_info)))

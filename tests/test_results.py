"""Tests for result formatting and export."""

import numpy as np
import pandas as pd
import pytest

from rnaseq_workshop.results import export_results, format_top_table, summarize_decide_tests


@pytest.fixture
def top_table():
    return pd.DataFrame({
        'logFC': [2.5, -3.0, 0.2, 1.5],
        'AveExpr': [5.0, 6.0, 7.0, 3.0],
        't': [8.0, -9.0, 0.5, 2.0],
        'P.Value': [1e-6, 1e-8, 0.6, 0.01],
        'adj.P.Val': [2e-6, 4e-8, 0.6, 0.02],
        'B': [5.0, 7.0, -6.0, -1.0],
    }, index=[100001, 100002, 100003, 100004])


@pytest.fixture
def genes():
    return pd.DataFrame({
        'ENTREZID': ['100001', '100002', '100003', '100004'],
        'SYMBOL': ['Csn1s2b', 'Krt5', 'Actb', 'Wap'],
        'GENENAME': ['casein alpha s2-like B', 'keratin 5', 'actin, beta', 'whey acidic protein'],
    }, index=['100001', '100002', '100003', '100004'])


class TestFormatTopTable:

    def test_sorted_by_p_value(self, top_table):
        res = format_top_table(top_table)

        assert res['gene'].tolist() == ['100002', '100001', '100004', '100003']
        assert res.columns[0] == 'gene'

    def test_annotation_joined(self, top_table, genes):
        res = format_top_table(top_table, annotation=genes)

        assert list(res.columns[:3]) == ['gene', 'SYMBOL', 'GENENAME']
        assert res.loc['100004', 'SYMBOL'] == 'Wap'
        assert 'ENTREZID' not in res.columns

    def test_direction(self, top_table):
        res = format_top_table(top_table, fdr_threshold=0.05)

        assert res.loc['100001', 'direction'] == 'up'
        assert res.loc['100002', 'direction'] == 'down'
        assert res.loc['100003', 'direction'] == 'not_sig'
        assert res['significant'].sum() == 3

    def test_fold_change_cutoff(self, top_table):
        res = format_top_table(top_table, fdr_threshold=0.05, lfc_threshold=2.0)

        assert res.loc['100004', 'direction'] == 'not_sig'
        assert res['significant'].sum() == 2

    def test_missing_columns(self, top_table):
        with pytest.raises(ValueError, match='adj.P.Val'):
            format_top_table(top_table.drop(columns='adj.P.Val'))


class TestSummaries:

    def test_decide_tests_summary(self):
        decisions = pd.DataFrame({
            'B.PregVsLac': [1, -1, 0, 0],
            'L.PregVsLac': [1, 1, 1, 0],
        })
        summary = summarize_decide_tests(decisions)

        assert list(summary.index) == ['Down', 'NotSig', 'Up']
        assert summary['B.PregVsLac'].tolist() == [1, 2, 1]
        assert summary['L.PregVsLac'].tolist() == [0, 1, 3]


class TestExport:

    def test_csv(self, tmp_path, top_table, genes):
        res = format_top_table(top_table, annotation=genes)
        path = export_results(res, tmp_path / "out" / "limma-voom_B.PregVsLac.csv")

        back = pd.read_csv(path, dtype={'gene': str})
        assert back['gene'].tolist() == res['gene'].tolist()
        assert 'GENENAME' in back.columns
        np.testing.assert_allclose(back['logFC'], res['logFC'])

    def test_tab_delimited(self, tmp_path, top_table):
        path = export_results(format_top_table(top_table), tmp_path / "res.tsv")

        assert '\t' in path.read_text().splitlines()[0]

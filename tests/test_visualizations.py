"""Tests for the interactive plotly figures."""

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest

from rnaseq_workshop.qc import clustered_heatmap_data, mds_coordinates
from rnaseq_workshop.results import format_top_table
from rnaseq_workshop.visualizations import (
    create_heatmap,
    create_library_size_plot,
    create_md_plot,
    create_mds_plot,
    create_pca_plot,
    create_strip_plot,
    create_volcano_plot,
    save_html,
)


@pytest.fixture
def results():
    rng = np.random.default_rng(1)
    n = 200
    logfc = rng.normal(0, 1.5, n)
    pvals = np.clip(np.exp(-np.abs(logfc) * 4) * rng.uniform(0.01, 1, n), 1e-12, 1)
    table = pd.DataFrame({
        'logFC': logfc,
        'AveExpr': rng.uniform(0, 12, n),
        't': logfc * 3,
        'P.Value': pvals,
        'adj.P.Val': np.minimum(pvals * 20, 1),
        'B': rng.normal(size=n),
    }, index=[str(200000 + i) for i in range(n)])
    genes = pd.DataFrame({'SYMBOL': [f'Sym{i}' for i in range(n)]}, index=table.index)
    return format_top_table(table, annotation=genes)


@pytest.fixture
def log_cpm(dge):
    return dge.cpm(log=True)


class TestVolcanoPlot:

    def test_three_categories(self, results):
        fig = create_volcano_plot(results, fdr_threshold=0.05, lfc_threshold=1.0)

        assert isinstance(fig, go.Figure)
        assert [t.name for t in fig.data] == ['Up', 'Down', 'Not Sig']
        assert sum(len(t.x) for t in fig.data) == len(results)

    def test_y_is_neg_log10_p(self, results):
        fig = create_volcano_plot(results, top_n_labels=0)

        y = np.concatenate([np.asarray(t.y, dtype=float) for t in fig.data])
        expected = -np.log10(results['P.Value'].to_numpy())
        np.testing.assert_allclose(np.sort(y), np.sort(expected))

    def test_labels_limited(self, results):
        fig = create_volcano_plot(results, top_n_labels=3)
        assert len(fig.layout.annotations) <= 6

    def test_highlight_by_symbol(self, results):
        fig = create_volcano_plot(results, top_n_labels=0, highlight_genes=['Sym7'])

        assert [a.text for a in fig.layout.annotations] == ['Sym7']


class TestOtherPlots:

    def test_md_plot(self, results):
        fig = create_md_plot(results)

        total = sum(len(t.x) for t in fig.data)
        assert total == len(results)
        assert fig.layout.xaxis.title.text == 'Average log-expression'

    def test_mds_plot(self, log_cpm, sample_info):
        mds = mds_coordinates(log_cpm)
        fig = create_mds_plot(mds, sample_info)

        assert sum(len(t.x) for t in fig.data) == 12
        assert fig.layout.xaxis.title.text.startswith('Leading logFC dim 1')

    def test_heatmap(self, log_cpm, annotation):
        data = clustered_heatmap_data(log_cpm, n=20)
        labels = annotation.drop_duplicates('ENTREZID').set_index('ENTREZID')['SYMBOL']

        fig = create_heatmap(data, labels=labels)

        assert np.asarray(fig.data[0].z).shape == (20, 12)
        assert list(fig.data[0].x) == list(data.columns)

    def test_library_sizes(self, dge):
        fig = create_library_size_plot(dge.lib_sizes / 1e6, group=dge.group)
        assert sum(len(t.x) for t in fig.data) == 12

    def test_strip_plot(self, log_cpm, dge):
        fig = create_strip_plot(log_cpm, dge.group, '100000', label='Gene0')

        assert fig.layout.title.text == 'Gene0'
        assert sum(len(t.y) for t in fig.data) == 12

    def test_strip_plot_unknown_gene(self, log_cpm, dge):
        with pytest.raises(KeyError):
            create_strip_plot(log_cpm, dge.group, 'nope')

    def test_pca_plot(self, log_cpm, sample_info):
        fig = create_pca_plot(log_cpm, sample_info, top=100)

        assert sum(len(t.x) for t in fig.data) == 12
        assert fig.layout.xaxis.title.text.startswith('PC1 (')
        assert '100 most variable genes' in fig.layout.title.text
        # One trace per CellType and Status combination
        assert len(fig.data) == 6

    def test_pca_plot_needs_three_samples(self, log_cpm, sample_info):
        with pytest.raises(ValueError, match='3 samples'):
            create_pca_plot(log_cpm.iloc[:, :2], sample_info)

    def test_figure_size(self, log_cpm, sample_info, dge, results):
        mds = mds_coordinates(log_cpm)
        figures = [
            create_md_plot(results, width=640, height=480),
            create_volcano_plot(results, width=640, height=480),
            create_mds_plot(mds, sample_info, width=640, height=480),
            create_pca_plot(log_cpm, sample_info, width=640, height=480),
            create_library_size_plot(dge.lib_sizes / 1e6, width=640, height=480),
            create_strip_plot(log_cpm, dge.group, '100000', width=640, height=480),
        ]

        assert [(f.layout.width, f.layout.height) for f in figures] == [(640, 480)] * 6


def test_save_html(tmp_path, results):
    path = save_html(create_md_plot(results), tmp_path / "html" / "MD-Plot.html")

    text = path.read_text()
    assert text.lstrip().startswith('<html')
    assert 'plotly' in text

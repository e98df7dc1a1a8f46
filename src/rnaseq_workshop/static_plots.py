"""
Static figures for the workshop report.

Each method draws one matplotlib figure, saves it under ``output_dir``
and returns it. Callers close figures they no longer need.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.lines import Line2D
import seaborn as sns

from .qc import MDSResult


logger = logging.getLogger(__name__)


class StaticPlotter:
    """Saves QC and results figures as image files."""

    def __init__(self, output_dir: Union[str, Path] = "figures", dpi: int = 150, fmt: str = "png"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.dpi = dpi
        self.fmt = fmt

        self.colors = {
            'up': '#E74C3C',      # Red
            'down': '#3498DB',    # Blue
            'ns': '#95A5A6',      # Gray
            'highlight': '#F39C12'
        }

    def _save(self, fig: plt.Figure, name: str) -> Path:
        filepath = self.output_dir / f"{name}.{self.fmt}"
        fig.savefig(filepath, dpi=self.dpi, bbox_inches='tight')
        logger.info(f"Saved: {filepath}")
        return filepath

    def _palette(self, values: Sequence) -> Dict[str, tuple]:
        levels = list(pd.unique(pd.Series(values).astype(str)))
        return dict(zip(levels, sns.color_palette("Set2", len(levels))))

    def plot_cpm_threshold(
        self,
        table: pd.DataFrame,
        threshold: float = 0.5,
        sample: str = "",
        max_count: float = 50,
        figsize: Tuple[int, int] = (7, 6)
    ) -> plt.Figure:
        """Raw count vs CPM for one sample, zoomed on the filtering threshold."""
        fig, ax = plt.subplots(figsize=figsize)
        ax.scatter(table['cpm'], table['count'], s=6, alpha=0.5, c=self.colors['ns'])
        ax.set_xlim(0, 3)
        ax.set_ylim(0, max_count)
        ax.axvline(threshold, color='#1f77b4', linestyle='--')
        ax.set_xlabel('CPM')
        ax.set_ylabel('Raw count')
        ax.set_title(f'CPM threshold {threshold} in {sample}'.strip())
        plt.tight_layout()
        self._save(fig, f"cpm_threshold_{sample}" if sample else "cpm_threshold")
        return fig

    def plot_library_sizes(
        self,
        lib_sizes: pd.Series,
        group: Optional[Sequence] = None,
        figsize: Tuple[int, int] = (10, 5)
    ) -> plt.Figure:
        """Barplot of library sizes in millions."""
        fig, ax = plt.subplots(figsize=figsize)
        colors = None
        if group is not None:
            palette = self._palette(group)
            colors = [palette[str(g)] for g in group]
        ax.bar(lib_sizes.index.astype(str), lib_sizes.to_numpy(), color=colors)
        ax.set_ylabel('Library size (millions)')
        ax.set_title('Barplot of library sizes')
        ax.tick_params(axis='x', rotation=90)
        plt.tight_layout()
        self._save(fig, "library_sizes")
        return fig

    def plot_log_cpm_boxplot(
        self,
        log_cpm: pd.DataFrame,
        title: str = 'Boxplots of logCPMs (unnormalised)',
        name: str = "logcpm_boxplot",
        figsize: Tuple[int, int] = (10, 5)
    ) -> plt.Figure:
        """Per-sample boxplots with a line at the overall median."""
        fig, ax = plt.subplots(figsize=figsize)
        ax.boxplot([log_cpm[c].to_numpy() for c in log_cpm.columns], showfliers=False)
        ax.set_xticks(range(1, log_cpm.shape[1] + 1))
        ax.set_xticklabels(log_cpm.columns.astype(str), rotation=90)
        ax.axhline(float(np.median(log_cpm.to_numpy())), color='blue')
        ax.set_ylabel('Log2 counts per million')
        ax.set_title(title)
        plt.tight_layout()
        self._save(fig, name)
        return fig

    def plot_mds(
        self,
        mds: MDSResult,
        sample_info: pd.DataFrame,
        color_by: str = "CellType",
        marker_by: Optional[str] = "Status",
        figsize: Tuple[int, int] = (8, 7)
    ) -> plt.Figure:
        """MDS plot coloured by one attribute and marked by another."""
        fig, ax = plt.subplots(figsize=figsize)
        coords = mds.coordinates
        info = sample_info.reindex(coords.index)

        palette = self._palette(info[color_by])
        markers = ['o', 's', '^', 'D', 'v', 'P', 'X']
        marker_levels = list(pd.unique(info[marker_by].astype(str))) if marker_by else ['']

        for sample, row in coords.iterrows():
            colour = palette[str(info.loc[sample, color_by])]
            level = str(info.loc[sample, marker_by]) if marker_by else ''
            marker = markers[marker_levels.index(level) % len(markers)]
            ax.scatter(row['dim1'], row['dim2'], c=[colour], marker=marker, s=80, edgecolors='black')
            ax.annotate(sample, (row['dim1'], row['dim2']), xytext=(4, 4),
                        textcoords='offset points', fontsize=7)

        handles = [Line2D([], [], color=c, marker='o', linestyle='', label=level)
                   for level, c in palette.items()]
        if marker_by:
            handles += [Line2D([], [], color='black', marker=markers[i % len(markers)],
                               linestyle='', fillstyle='none', label=level)
                        for i, level in enumerate(marker_levels)]
        ax.legend(handles=handles, loc='best', fontsize=8)

        ax.set_xlabel(mds.axis_label(1))
        ax.set_ylabel(mds.axis_label(2))
        ax.set_title(f'MDS: {color_by}' + (f' / {marker_by}' if marker_by else ''))
        plt.tight_layout()
        self._save(fig, "mds")
        return fig

    def plot_heatmap(
        self,
        scaled: pd.DataFrame,
        group: Optional[pd.Series] = None,
        method: str = "complete",
        metric: str = "euclidean",
        title: str = "Most variable genes across samples",
        figsize: Tuple[int, int] = (8, 10)
    ) -> plt.Figure:
        """Clustered heatmap of row-scaled expression."""
        col_colors = None
        if group is not None:
            palette = self._palette(group)
            col_colors = pd.Series([palette[str(g)] for g in group], index=scaled.columns)

        g = sns.clustermap(
            scaled,
            cmap='RdYlBu_r',
            center=0,
            method=method,
            metric=metric,
            col_colors=col_colors,
            figsize=figsize,
            xticklabels=True,
            yticklabels=False,
            dendrogram_ratio=(0.15, 0.1),
            cbar_pos=(0.02, 0.8, 0.03, 0.15)
        )
        g.fig.suptitle(title, y=1.02)
        g.ax_heatmap.set_xticklabels(g.ax_heatmap.get_xticklabels(), fontsize=8, rotation=90)
        self._save(g.fig, "heatmap")
        return g.fig

    def plot_sample_md(
        self,
        log_cpm: pd.DataFrame,
        sample: str,
        name: Optional[str] = None,
        figsize: Tuple[int, int] = (7, 6)
    ) -> plt.Figure:
        """
        Mean-difference plot of one sample against the average of the others.

        Drawn before and after TMM normalization to show the shift removed by
        the normalization factors.
        """
        if sample not in log_cpm.columns:
            raise KeyError(f"Unknown sample '{sample}'")
        others = log_cpm.drop(columns=[sample]).mean(axis=1)
        diff = log_cpm[sample] - others
        mean = (log_cpm[sample] + others) / 2

        fig, ax = plt.subplots(figsize=figsize)
        ax.scatter(mean, diff, s=3, alpha=0.4, c='black')
        ax.axhline(0, color='grey')
        ax.axhline(float(np.median(diff)), color='red', linestyle='--')
        ax.set_xlabel('Average log-expression')
        ax.set_ylabel('log-ratio (this sample vs others)')
        ax.set_title(sample)
        plt.tight_layout()
        self._save(fig, name or f"md_{sample}")
        return fig

    def plot_voom_trend(
        self,
        trend_points: pd.DataFrame,
        trend_line: pd.DataFrame,
        figsize: Tuple[int, int] = (7, 6)
    ) -> plt.Figure:
        """voom mean-variance trend."""
        fig, ax = plt.subplots(figsize=figsize)
        ax.scatter(trend_points['sx'], trend_points['sy'], s=3, alpha=0.4, c='black')
        ax.plot(trend_line['x'], trend_line['y'], color='red')
        ax.set_xlabel('log2( count size + 0.5 )')
        ax.set_ylabel('Sqrt( standard deviation )')
        ax.set_title('voom: Mean-variance trend')
        plt.tight_layout()
        self._save(fig, "voom_trend")
        return fig

    def plot_md(
        self,
        results: pd.DataFrame,
        contrast: str,
        figsize: Tuple[int, int] = (8, 6)
    ) -> plt.Figure:
        """MD plot of a contrast, coloured by ``direction``."""
        fig, ax = plt.subplots(figsize=figsize)
        for reg, color in [('not_sig', self.colors['ns']), ('up', self.colors['up']),
                           ('down', self.colors['down'])]:
            data = results[results['direction'] == reg]
            ax.scatter(data['AveExpr'], data['logFC'], c=color, s=6, alpha=0.6,
                       label=f'{reg.replace("_", " ").title()} ({len(data)})')
        ax.axhline(0, color='black', alpha=0.3)
        ax.set_xlabel('Average log-expression')
        ax.set_ylabel('log-fold-change')
        ax.set_title(contrast)
        ax.legend(loc='upper right')
        plt.tight_layout()
        self._save(fig, f"md_plot_{contrast}")
        return fig

    def plot_volcano(
        self,
        results: pd.DataFrame,
        contrast: str,
        highlight: int = 100,
        figsize: Tuple[int, int] = (8, 7)
    ) -> plt.Figure:
        """
        Volcano plot of -log10 p-value against logFC.

        The ``highlight`` genes with the smallest p-values are labelled by
        symbol when one is available.
        """
        df = results.copy()
        df['neg_log10_p'] = -np.log10(df['P.Value'].clip(lower=1e-300))

        fig, ax = plt.subplots(figsize=figsize)
        ax.scatter(df['logFC'], df['neg_log10_p'], c='black', s=4, alpha=0.5)

        if highlight > 0:
            label_col = 'SYMBOL' if 'SYMBOL' in df.columns else 'gene'
            top = df.nsmallest(highlight, 'P.Value')
            ax.scatter(top['logFC'], top['neg_log10_p'], c=self.colors['highlight'], s=8)
            for _, row in top.iterrows():
                label = row[label_col] if pd.notna(row[label_col]) else row['gene']
                ax.annotate(str(label), (row['logFC'], row['neg_log10_p']), fontsize=5, alpha=0.8)

        ax.set_xlabel('Log2 Fold Change')
        ax.set_ylabel('-log10 (p-value)')
        ax.set_title(contrast)
        plt.tight_layout()
        self._save(fig, f"volcano_{contrast}")
        return fig

    def plot_stripchart(
        self,
        log_cpm: pd.DataFrame,
        group: Union[pd.Series, pd.Categorical],
        gene: str,
        label: Optional[str] = None,
        figsize: Tuple[int, int] = (8, 5)
    ) -> plt.Figure:
        """Normalised log-CPM of one gene per group."""
        if gene not in log_cpm.index:
            raise KeyError(f"Gene '{gene}' not in expression matrix")

        group = pd.Categorical(group)
        plot_df = pd.DataFrame({
            'group': np.asarray(group).astype(str),
            'logCPM': log_cpm.loc[gene].to_numpy(dtype=float),
        })

        fig, ax = plt.subplots(figsize=figsize)
        sns.stripplot(data=plot_df, x='group', y='logCPM', hue='group',
                      order=[str(c) for c in group.categories], size=8,
                      jitter=0.1, legend=False, ax=ax)
        ax.set_ylabel('Normalised log-CPM')
        ax.set_xlabel('')
        ax.set_title(label or gene)
        ax.tick_params(axis='x', rotation=30)
        plt.tight_layout()
        self._save(fig, f"stripchart_{gene}")
        return fig

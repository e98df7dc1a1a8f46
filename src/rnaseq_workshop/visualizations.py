"""Interactive plotly figures for QC and differential expression results."""

from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import plotly.express as px

from .qc import MDSResult, most_variable_genes


COLOR_MAP = {
    'up': '#E74C3C',      # Red
    'down': '#3498DB',    # Blue
    'not_sig': '#95A5A6'  # Gray
}


def _style_sample_scatter(fig: go.Figure, width: int, height: int):
    fig.update_traces(
        marker=dict(size=12, line=dict(width=1, color='white')),
        textposition='top center'
    )
    fig.update_layout(
        template='plotly_white',
        width=width,
        height=height,
        showlegend=True
    )


def _label_column(results: pd.DataFrame) -> str:
    return 'SYMBOL' if 'SYMBOL' in results.columns else 'gene'


def _hover_labels(results: pd.DataFrame) -> pd.Series:
    label_col = _label_column(results)
    return results[label_col].fillna(results['gene']).astype(str)


def create_volcano_plot(
    results: pd.DataFrame,
    fdr_threshold: float = 0.05,
    lfc_threshold: float = 1.0,
    top_n_labels: int = 10,
    highlight_genes: Optional[List[str]] = None,
    title: str = "Volcano Plot",
    width: int = 900,
    height: int = 600
) -> go.Figure:
    """
    Create interactive volcano plot.

    Args:
        results: Formatted top table (see ``results.format_top_table``)
        fdr_threshold: Adjusted p-value cutoff for colouring
        lfc_threshold: logFC threshold lines
        top_n_labels: Number of top genes per direction to label
        highlight_genes: Gene IDs or symbols to always label
        title: Plot title

    Returns:
        Plotly Figure object
    """
    plot_data = results.dropna(subset=['P.Value', 'logFC']).copy()
    plot_data['-log10p'] = -np.log10(plot_data['P.Value'].clip(lower=1e-300))
    plot_data['label'] = _hover_labels(plot_data)

    plot_data['color'] = np.select(
        [
            (plot_data['adj.P.Val'] < fdr_threshold) & (plot_data['logFC'] > lfc_threshold),
            (plot_data['adj.P.Val'] < fdr_threshold) & (plot_data['logFC'] < -lfc_threshold),
        ],
        ['up', 'down'],
        default='not_sig'
    )

    fig = go.Figure()

    for category, color in COLOR_MAP.items():
        data_subset = plot_data[plot_data['color'] == category]

        fig.add_trace(go.Scatter(
            x=data_subset['logFC'],
            y=data_subset['-log10p'],
            mode='markers',
            name=category.replace('_', ' ').title(),
            marker=dict(
                color=color,
                size=5,
                opacity=0.6 if category == 'not_sig' else 0.8,
                line=dict(width=0)
            ),
            text=data_subset['label'],
            customdata=data_subset[['gene', 'logFC', 'adj.P.Val']],
            hovertemplate=(
                '<b>%{text}</b> (%{customdata[0]})<br>' +
                'logFC: %{x:.2f}<br>' +
                '-log10(p): %{y:.2f}<br>' +
                'adj.P.Val: %{customdata[2]:.2e}<br>' +
                '<extra></extra>'
            )
        ))

    fig.add_vline(x=lfc_threshold, line_dash="dash", line_color="gray")
    fig.add_vline(x=-lfc_threshold, line_dash="dash", line_color="gray")

    labelled = plot_data.iloc[0:0]
    if top_n_labels > 0:
        sig_genes = plot_data[plot_data['color'] != 'not_sig'].sort_values('-log10p', ascending=False)
        up_genes = sig_genes[sig_genes['color'] == 'up'].head(top_n_labels)
        down_genes = sig_genes[sig_genes['color'] == 'down'].head(top_n_labels)
        labelled = pd.concat([up_genes, down_genes])

    if highlight_genes:
        wanted = set(highlight_genes)
        extra = plot_data[plot_data['gene'].isin(wanted) | plot_data['label'].isin(wanted)]
        labelled = pd.concat([labelled, extra]).drop_duplicates(subset='gene')

    for _, gene in labelled.iterrows():
        fig.add_annotation(
            x=gene['logFC'],
            y=gene['-log10p'],
            text=gene['label'],
            showarrow=True,
            arrowhead=2,
            arrowsize=1,
            arrowwidth=1,
            arrowcolor='black',
            ax=20 if gene['logFC'] > 0 else -20,
            ay=-20,
            font=dict(size=9),
            bgcolor='rgba(255, 255, 255, 0.8)',
            borderpad=2
        )

    fig.update_layout(
        title=title,
        xaxis_title="log<sub>2</sub> Fold Change",
        yaxis_title="-log<sub>10</sub> (p-value)",
        hovermode='closest',
        template='plotly_white',
        width=width,
        height=height,
        showlegend=True,
        legend=dict(
            x=0.02,
            y=0.98,
            bgcolor='rgba(255, 255, 255, 0.8)',
            bordercolor='black',
            borderwidth=1
        )
    )

    return fig


def create_md_plot(
    results: pd.DataFrame,
    fdr_threshold: float = 0.05,
    lfc_threshold: float = 0.0,
    title: str = "MD Plot",
    width: int = 900,
    height: int = 600
) -> go.Figure:
    """
    Create mean-difference plot (average log-CPM vs logFC).

    Args:
        results: Formatted top table with ``AveExpr`` and ``direction``
        fdr_threshold: Adjusted p-value cutoff for colouring
        lfc_threshold: logFC cutoff for colouring
        title: Plot title

    Returns:
        Plotly Figure object
    """
    plot_data = results.dropna(subset=['AveExpr', 'logFC']).copy()
    plot_data['label'] = _hover_labels(plot_data)

    sig = plot_data['adj.P.Val'] < fdr_threshold
    plot_data['color'] = np.select(
        [
            sig & (plot_data['logFC'] > lfc_threshold),
            sig & (plot_data['logFC'] < -lfc_threshold),
        ],
        ['up', 'down'],
        default='not_sig'
    )

    fig = go.Figure()

    for category, color in COLOR_MAP.items():
        data_subset = plot_data[plot_data['color'] == category]

        fig.add_trace(go.Scatter(
            x=data_subset['AveExpr'],
            y=data_subset['logFC'],
            mode='markers',
            name=category.replace('_', ' ').title(),
            marker=dict(
                color=color,
                size=4,
                opacity=0.5 if category == 'not_sig' else 0.7,
                line=dict(width=0)
            ),
            text=data_subset['label'],
            customdata=data_subset[['gene', 'adj.P.Val']],
            hovertemplate=(
                '<b>%{text}</b> (%{customdata[0]})<br>' +
                'AveExpr: %{x:.2f}<br>' +
                'logFC: %{y:.2f}<br>' +
                'adj.P.Val: %{customdata[1]:.2e}<br>' +
                '<extra></extra>'
            )
        ))

    fig.add_hline(y=0, line_color="black", line_width=1)
    if lfc_threshold > 0:
        fig.add_hline(y=lfc_threshold, line_dash="dash", line_color="gray")
        fig.add_hline(y=-lfc_threshold, line_dash="dash", line_color="gray")

    fig.update_layout(
        title=title,
        xaxis_title="Average log-expression",
        yaxis_title="log<sub>2</sub> Fold Change",
        hovermode='closest',
        template='plotly_white',
        width=width,
        height=height,
        showlegend=True
    )

    return fig


def create_mds_plot(
    mds: MDSResult,
    sample_info: pd.DataFrame,
    color_by: str = "CellType",
    symbol_by: Optional[str] = "Status",
    title: str = "MDS Plot",
    width: int = 800,
    height: int = 600
) -> go.Figure:
    """
    Create MDS plot of samples.

    Args:
        mds: Result of ``qc.mds_coordinates``
        sample_info: Sample information indexed like the MDS coordinates
        color_by: Column used for marker colour
        symbol_by: Column used for marker symbol
        title: Plot title

    Returns:
        Plotly Figure object
    """
    plot_df = mds.coordinates.join(sample_info, how='left')
    plot_df['sample'] = plot_df.index

    fig = px.scatter(
        plot_df,
        x='dim1',
        y='dim2',
        color=color_by,
        symbol=symbol_by,
        text='sample',
        hover_data=[c for c in sample_info.columns if c in plot_df.columns],
        title=title,
        labels={
            'dim1': mds.axis_label(1),
            'dim2': mds.axis_label(2)
        }
    )
    _style_sample_scatter(fig, width, height)
    return fig


def create_heatmap(
    heatmap_data: pd.DataFrame,
    labels: Optional[pd.Series] = None,
    title: str = "Most variable genes",
    width: int = 800,
    height: Optional[int] = None
) -> go.Figure:
    """
    Create expression heatmap.

    Args:
        heatmap_data: Row-scaled values already in display order
            (see ``qc.clustered_heatmap_data``)
        labels: Optional row labels (e.g. gene symbols) indexed by gene ID
        title: Plot title

    Returns:
        Plotly Figure object
    """
    y = heatmap_data.index
    if labels is not None:
        y = labels.reindex(heatmap_data.index).fillna(pd.Series(heatmap_data.index, index=heatmap_data.index))

    fig = go.Figure(data=go.Heatmap(
        z=heatmap_data.values,
        x=list(heatmap_data.columns),
        y=list(y),
        colorscale='RdBu_r',
        zmid=0,
        colorbar=dict(title="Z-score"),
        hovertemplate='Gene: %{y}<br>Sample: %{x}<br>Z-score: %{z:.2f}<extra></extra>'
    ))

    fig.update_layout(
        title=title,
        xaxis_title="Samples",
        yaxis_title="Genes",
        template='plotly_white',
        width=width,
        height=height or max(400, min(len(heatmap_data) * 10, 2000)),
        xaxis=dict(tickangle=-45),
        yaxis=dict(tickfont=dict(size=8), showticklabels=len(heatmap_data) <= 100)
    )

    return fig


def create_library_size_plot(
    lib_sizes: pd.Series,
    group: Optional[pd.Series] = None,
    title: str = "Library sizes",
    width: int = 900,
    height: int = 600
) -> go.Figure:
    """Bar chart of library sizes (in millions), optionally coloured by group."""
    plot_df = pd.DataFrame({'sample': lib_sizes.index, 'lib_size': lib_sizes.to_numpy()})
    color = None
    if group is not None:
        plot_df['group'] = np.asarray(group)
        color = 'group'

    fig = px.bar(plot_df, x='sample', y='lib_size', color=color, title=title)
    fig.update_layout(
        template='plotly_white',
        xaxis_title="Sample",
        yaxis_title="Library size (millions)",
        xaxis=dict(tickangle=-45),
        width=width,
        height=height
    )
    return fig


def create_strip_plot(
    log_cpm: pd.DataFrame,
    group: Union[pd.Series, pd.Categorical],
    gene: str,
    label: Optional[str] = None,
    width: int = 700,
    height: int = 500
) -> go.Figure:
    """
    Strip chart of one gene's log-CPM per group.

    Args:
        log_cpm: Normalised log-CPM (genes x samples)
        group: Group label per sample, in column order
        gene: Gene ID
        label: Display name (defaults to the gene ID)

    Returns:
        Plotly Figure object
    """
    if gene not in log_cpm.index:
        raise KeyError(f"Gene '{gene}' not in expression matrix")

    group = pd.Categorical(group)
    plot_df = pd.DataFrame({
        'sample': log_cpm.columns,
        'group': np.asarray(group).astype(str),
        'logCPM': log_cpm.loc[gene].to_numpy(dtype=float),
    })

    fig = px.strip(
        plot_df,
        x='group',
        y='logCPM',
        color='group',
        hover_data=['sample'],
        category_orders={'group': [str(c) for c in group.categories]},
        title=label or gene
    )
    fig.update_traces(marker=dict(size=10))
    fig.update_layout(
        template='plotly_white',
        xaxis_title="Group",
        yaxis_title="Normalised log-CPM",
        showlegend=False,
        width=width,
        height=height
    )
    return fig


def create_pca_plot(
    log_cpm: pd.DataFrame,
    sample_info: pd.DataFrame,
    color_by: str = "CellType",
    symbol_by: Optional[str] = "Status",
    top: int = 500,
    title: str = "PCA Plot",
    width: int = 800,
    height: int = 600
) -> go.Figure:
    """
    PCA of samples on the ``top`` most variable genes.

    Unlike the MDS plot, which picks the leading genes separately for each
    pair of samples, every sample is projected on one shared gene set.

    Args:
        log_cpm: Log-CPM matrix (genes x samples)
        sample_info: Sample information indexed like the columns of ``log_cpm``
        color_by: Column used for marker colour
        symbol_by: Column used for marker symbol
        top: Number of most variable genes
        title: Plot title

    Returns:
        Plotly Figure object
    """
    from sklearn.decomposition import PCA

    if log_cpm.shape[1] < 3:
        raise ValueError("PCA plot needs at least 3 samples")

    genes = most_variable_genes(log_cpm, top)
    data = log_cpm.loc[genes].T
    pca = PCA(n_components=2)
    scores = pca.fit_transform(data.to_numpy(dtype=float))
    var_exp = pca.explained_variance_ratio_ * 100

    plot_df = pd.DataFrame(scores, index=data.index, columns=['PC1', 'PC2'])
    plot_df = plot_df.join(sample_info, how='left')
    plot_df['sample'] = plot_df.index

    fig = px.scatter(
        plot_df,
        x='PC1',
        y='PC2',
        color=color_by,
        symbol=symbol_by,
        text='sample',
        title=f"{title} ({len(genes)} most variable genes)",
        labels={
            'PC1': f'PC1 ({var_exp[0]:.1f}%)',
            'PC2': f'PC2 ({var_exp[1]:.1f}%)'
        }
    )
    _style_sample_scatter(fig, width, height)
    return fig


def save_html(fig: go.Figure, filepath: Union[str, Path]) -> Path:
    """Write a self-contained HTML file (plotly.js embedded)."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    fig.write_html(str(filepath), include_plotlyjs=True, full_html=True)
    return filepath

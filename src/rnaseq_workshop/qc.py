"""Quality-control summaries: library sizes, log-CPM distributions, MDS, clustering."""

import logging
from dataclasses import dataclass
from typing import List

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import linkage, dendrogram

from .dgelist import DGEList


logger = logging.getLogger(__name__)


@dataclass
class MDSResult:
    """Sample coordinates from multidimensional scaling."""

    coordinates: pd.DataFrame
    distances: pd.DataFrame
    variance_explained: np.ndarray
    top: int

    def axis_label(self, dim: int) -> str:
        pct = self.variance_explained[dim - 1] * 100
        return f"Leading logFC dim {dim} ({pct:.0f}%)"


def library_sizes(dge: DGEList, scale: float = 1e6) -> pd.Series:
    """Library sizes, in millions of reads by default."""
    sizes = dge.lib_sizes / scale
    sizes.name = "lib_size"
    return sizes


def log_cpm_summary(log_cpm: pd.DataFrame) -> pd.DataFrame:
    """
    Per-sample five-number summary of log-CPM values.

    The ``overall_median`` column repeats the median of all values, which is
    the horizontal reference line drawn across the boxplot.
    """
    summary = log_cpm.quantile([0.0, 0.25, 0.5, 0.75, 1.0]).T
    summary.columns = ["min", "q1", "median", "q3", "max"]
    summary["overall_median"] = float(np.median(log_cpm.to_numpy()))
    return summary


def mds_coordinates(log_cpm: pd.DataFrame, top: int = 500, ndim: int = 2) -> MDSResult:
    """
    Multidimensional scaling of samples by leading log-fold-changes.

    The distance between two samples is the root-mean-square of the ``top``
    largest absolute log2 fold changes between them, so each pair is judged
    on the genes that separate it most. Classical scaling of the distance
    matrix gives the coordinates.

    Args:
        log_cpm: Log-CPM matrix (genes x samples)
        top: Number of genes used for each pairwise distance
        ndim: Number of dimensions to return

    Returns:
        MDSResult with coordinates (samples x dims) and the distance matrix
    """
    n_genes, n_samples = log_cpm.shape
    if n_samples < 3:
        raise ValueError("MDS needs at least 3 samples")
    if ndim >= n_samples:
        raise ValueError(f"ndim={ndim} must be less than the number of samples ({n_samples})")
    if n_genes < 2:
        raise ValueError("MDS needs at least 2 genes")

    top = min(top, n_genes)
    x = log_cpm.to_numpy(dtype=float)
    dist = np.zeros((n_samples, n_samples))
    for i in range(1, n_samples):
        for j in range(i):
            sq = (x[:, i] - x[:, j]) ** 2
            largest = np.partition(sq, n_genes - top)[n_genes - top:]
            dist[i, j] = dist[j, i] = np.sqrt(largest.mean())

    # Classical (Torgerson) scaling
    centering = np.eye(n_samples) - np.ones((n_samples, n_samples)) / n_samples
    b = -0.5 * centering @ (dist ** 2) @ centering
    eigvals, eigvecs = np.linalg.eigh(b)
    order = np.argsort(eigvals)[::-1]
    eigvals = eigvals[order]
    eigvecs = eigvecs[:, order]

    coords = eigvecs[:, :ndim] * np.sqrt(np.clip(eigvals[:ndim], 0, None))
    positive = eigvals[eigvals > 0]
    variance_explained = eigvals[:ndim] / positive.sum() if positive.size else np.zeros(ndim)

    samples = log_cpm.columns
    return MDSResult(
        coordinates=pd.DataFrame(
            coords, index=samples, columns=[f"dim{k + 1}" for k in range(ndim)]
        ),
        distances=pd.DataFrame(dist, index=samples, columns=samples),
        variance_explained=variance_explained,
        top=top
    )


def most_variable_genes(log_cpm: pd.DataFrame, n: int = 500) -> List[str]:
    """Gene IDs ordered by decreasing variance across samples."""
    variances = log_cpm.var(axis=1)
    return variances.sort_values(ascending=False, kind="mergesort").head(n).index.tolist()


def row_zscores(matrix: pd.DataFrame) -> pd.DataFrame:
    """Centre and scale each row; constant rows become 0."""
    std = matrix.std(axis=1).replace(0, np.nan)
    scaled = matrix.sub(matrix.mean(axis=1), axis=0).div(std, axis=0)
    return scaled.fillna(0.0)


def cluster_order(
    matrix: pd.DataFrame,
    method: str = "complete",
    metric: str = "euclidean"
) -> List[int]:
    """Leaf order of a hierarchical clustering of the rows of ``matrix``."""
    if matrix.shape[0] < 2:
        return list(range(matrix.shape[0]))
    tree = linkage(matrix.to_numpy(dtype=float), method=method, metric=metric)
    return dendrogram(tree, no_plot=True)["leaves"]


def clustered_heatmap_data(
    log_cpm: pd.DataFrame,
    n: int = 500,
    method: str = "complete",
    metric: str = "euclidean"
) -> pd.DataFrame:
    """
    Row-scaled log-CPM of the ``n`` most variable genes, with rows and
    columns in hierarchical-clustering order.
    """
    genes = most_variable_genes(log_cpm, n)
    data = row_zscores(log_cpm.loc[genes])
    gene_order = cluster_order(data, method=method, metric=metric)
    sample_order = cluster_order(data.T, method=method, metric=metric)
    logger.info(f"Clustered {len(genes)} most variable genes across {data.shape[1]} samples")
    return data.iloc[gene_order, sample_order]

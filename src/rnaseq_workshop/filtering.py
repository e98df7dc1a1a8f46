"""Low-expression gene filtering."""

import logging
from typing import Tuple

import pandas as pd

from .dgelist import DGEList


logger = logging.getLogger(__name__)


def filter_by_cpm(
    dge: DGEList,
    threshold: float = 0.5,
    min_samples: int = 2
) -> Tuple[DGEList, pd.Series]:
    """
    Drop genes that are not expressed in enough samples.

    A gene is kept when its CPM is strictly greater than ``threshold`` in at
    least ``min_samples`` samples. With the workshop's ~20-25 million reads
    per library, 0.5 CPM corresponds to 10-15 reads.

    Args:
        dge: Unfiltered counts
        threshold: CPM cutoff
        min_samples: Number of samples that must pass the cutoff; the
            smallest group size is the usual choice

    Returns:
        Tuple of (filtered DGEList with recomputed library sizes, keep mask)
    """
    if min_samples > dge.n_samples:
        raise ValueError(
            f"min_samples={min_samples} exceeds the number of samples ({dge.n_samples})"
        )

    cpm = dge.cpm(normalized=False)
    keep = (cpm > threshold).sum(axis=1) >= min_samples
    keep.name = "keep"

    n_kept = int(keep.sum())
    logger.info(
        f"Keeping {n_kept} of {dge.n_genes} genes with CPM > {threshold} "
        f"in at least {min_samples} samples"
    )

    return dge.subset_genes(keep.to_numpy()), keep


def cpm_threshold_table(dge: DGEList, sample: str) -> pd.DataFrame:
    """Raw counts next to CPM for one sample."""
    if sample not in dge.counts.columns:
        raise KeyError(f"Unknown sample '{sample}'")
    cpm = dge.cpm(normalized=False)
    return pd.DataFrame({
        "count": dge.counts[sample],
        "cpm": cpm[sample],
    })


def counts_at_threshold(dge: DGEList, sample: str, threshold: float = 0.5) -> float:
    """Raw count corresponding to ``threshold`` CPM in ``sample``."""
    return float(threshold * dge.lib_sizes[sample] / 1e6)


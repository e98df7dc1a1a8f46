"""Post-processing and export of differential expression results."""

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)


def format_top_table(
    table: pd.DataFrame,
    annotation: Optional[pd.DataFrame] = None,
    fdr_threshold: float = 0.05,
    lfc_threshold: float = 0.0
) -> pd.DataFrame:
    """
    Tidy a limma top table for plotting and export.

    Adds a ``gene`` column from the index, joins gene symbols and names,
    sorts by p-value and flags significant genes with their direction.

    Args:
        table: Top table indexed by gene ID
        annotation: Optional annotation indexed by gene ID
        fdr_threshold: Adjusted p-value cutoff
        lfc_threshold: Absolute logFC cutoff

    Returns:
        DataFrame with ``gene``, annotation columns, limma statistics,
        ``significant`` and ``direction``
    """
    missing = [c for c in ['logFC', 'P.Value', 'adj.P.Val'] if c not in table.columns]
    if missing:
        raise ValueError(f"Top table is missing columns: {', '.join(missing)}")

    res_df = table.copy()
    res_df.index = res_df.index.astype(str)
    res_df.insert(0, 'gene', res_df.index)

    if annotation is not None:
        ann = annotation.copy()
        ann.index = ann.index.astype(str)
        ann_cols = [c for c in ['SYMBOL', 'GENENAME'] if c in ann.columns]
        res_df = res_df.join(ann[ann_cols], how='left')
        res_df = res_df[['gene'] + ann_cols + [c for c in res_df.columns if c not in ann_cols and c != 'gene']]

    res_df = res_df.sort_values('P.Value', kind='mergesort', na_position='last')

    significant = res_df['adj.P.Val'] < fdr_threshold
    res_df['significant'] = significant & (res_df['logFC'].abs() > lfc_threshold)

    res_df['direction'] = np.select(
        [
            res_df['significant'] & (res_df['logFC'] > 0),
            res_df['significant'] & (res_df['logFC'] < 0),
        ],
        ['up', 'down'],
        default='not_sig'
    )

    n_up = int((res_df['direction'] == 'up').sum())
    n_down = int((res_df['direction'] == 'down').sum())
    logger.info(f"Found {n_up} up-regulated and {n_down} down-regulated genes")

    return res_df


def summarize_decide_tests(decisions: pd.DataFrame) -> pd.DataFrame:
    """Number of Down / NotSig / Up genes per contrast."""
    summary = pd.DataFrame({
        'Down': (decisions == -1).sum(axis=0),
        'NotSig': (decisions == 0).sum(axis=0),
        'Up': (decisions == 1).sum(axis=0),
    }).T
    return summary.astype(int)


def export_results(table: pd.DataFrame, filepath: Union[str, Path]) -> Path:
    """
    Write a results table.

    ``.tsv`` and ``.txt`` files are tab-delimited; everything else is CSV.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    sep = '\t' if filepath.suffix.lower() in ['.tsv', '.txt'] else ','
    table.to_csv(filepath, sep=sep, index=False)
    logger.info(f"Wrote {len(table)} rows to {filepath}")
    return filepath

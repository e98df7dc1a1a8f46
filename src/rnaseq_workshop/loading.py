"""Readers for the workshop's count table and sample information files."""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd

from .validation import ValidationError


logger = logging.getLogger(__name__)


def _detect_delimiter(filepath: Path) -> Optional[str]:
    with open(filepath, 'r') as f:
        first_line = f.readline()
    if '\t' in first_line:
        return '\t'
    elif ',' in first_line:
        return ','
    return None


def _read_table(filepath: Path, delimiter: Optional[str]) -> pd.DataFrame:
    suffix = filepath.suffix.lower()
    if suffix == '.xlsx':
        return pd.read_excel(filepath)
    if suffix == '.xls':
        raise ValidationError(f"Legacy Excel files are not supported; save {filepath.name} as .xlsx")
    if delimiter is None:
        delimiter = _detect_delimiter(filepath)
    if delimiter is None:
        return pd.read_csv(filepath, sep=None, engine='python')
    return pd.read_csv(filepath, sep=delimiter)


def read_count_table(
    filepath: Union[str, Path],
    id_column: str = "EntrezGeneID",
    drop_columns: Sequence[str] = ("Length",),
    name_length: Optional[int] = 7,
    delimiter: Optional[str] = None
) -> pd.DataFrame:
    """
    Read a genewise count table.

    The GSE60450 table has an ``EntrezGeneID`` column, a ``Length`` column
    and one column per sample named after its FASTQ file, e.g.
    ``MCL1.DG_BC2CTUACXX_ACTTGA_L002_R1``. Only the first seven characters
    identify the sample.

    Args:
        filepath: Path to the count table
        id_column: Column holding gene identifiers
        drop_columns: Non-count columns to discard when present
        name_length: Truncate sample names to this many characters
            (``None`` keeps them)
        delimiter: Column delimiter (auto-detected if None)

    Returns:
        DataFrame with gene IDs as the index and samples as columns
    """
    filepath = Path(filepath)
    df = _read_table(filepath, delimiter)
    df.columns = df.columns.astype(str).str.strip()

    if id_column not in df.columns:
        raise ValidationError(f"Count table has no '{id_column}' column")

    df = df.set_index(id_column)
    df.index = df.index.astype(str).str.strip()
    df.index.name = id_column

    to_drop = [c for c in drop_columns if c in df.columns]
    df = df.drop(columns=to_drop)

    if name_length is not None:
        short = df.columns.str.slice(0, name_length)
        if short.duplicated().any():
            clashes = sorted(set(short[short.duplicated()]))
            raise ValidationError(
                f"Truncating sample names to {name_length} characters is ambiguous: "
                f"{', '.join(clashes)}"
            )
        df.columns = short

    logger.info(f"Read {df.shape[0]} genes x {df.shape[1]} samples from {filepath.name}")
    return df


def read_sample_info(
    filepath: Union[str, Path],
    sample_column: str = "SampleName",
    delimiter: Optional[str] = None
) -> pd.DataFrame:
    """
    Read the sample information table.

    Args:
        filepath: Path to the sample information file
        sample_column: Column whose values match the count table's columns.
            In the workshop file ``SampleName`` holds the short IDs
            (``MCL1.DG``) and ``FileName`` the FASTQ-derived names.
        delimiter: Column delimiter (auto-detected if None)

    Returns:
        DataFrame indexed by sample ID
    """
    filepath = Path(filepath)
    df = _read_table(filepath, delimiter)
    df.columns = df.columns.astype(str).str.strip()

    if sample_column not in df.columns:
        raise ValidationError(f"Sample information has no '{sample_column}' column")

    df[sample_column] = df[sample_column].astype(str).str.strip()
    df = df.set_index(sample_column, drop=False)
    df.index.name = None

    # Categorical columns in the workshop files carry stray whitespace
    for column in df.columns:
        if pd.api.types.is_string_dtype(df[column]):
            df[column] = df[column].str.strip()

    logger.info(f"Read sample information for {len(df)} samples from {filepath.name}")
    return df

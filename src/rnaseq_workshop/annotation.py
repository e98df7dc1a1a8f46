"""Gene annotation: map gene identifiers to symbols and names."""

import logging
from pathlib import Path
from typing import Iterable, List, Tuple, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field

from .validation import ValidationError


logger = logging.getLogger(__name__)

ANNOTATION_COLUMNS = ["ENTREZID", "SYMBOL", "GENENAME"]


class AnnotationReport(BaseModel):
    """Outcome of joining annotation rows onto gene IDs."""
    n_genes: int
    n_annotated: int
    multi_mapped: List[str] = Field(default_factory=list)
    unmapped: List[str] = Field(default_factory=list)

    @property
    def one_to_one(self) -> bool:
        return not self.multi_mapped


def _normalise_columns(df: pd.DataFrame) -> pd.DataFrame:
    rename = {}
    for column in df.columns:
        key = str(column).strip().upper()
        if key in ANNOTATION_COLUMNS:
            rename[column] = key
    df = df.rename(columns=rename)

    missing = [c for c in ANNOTATION_COLUMNS if c not in df.columns]
    if missing:
        raise ValidationError(f"Annotation table is missing columns: {', '.join(missing)}")

    df = df[ANNOTATION_COLUMNS].copy()
    df["ENTREZID"] = df["ENTREZID"].astype(str).str.strip()
    return df


def read_annotation_table(filepath: Union[str, Path]) -> pd.DataFrame:
    """
    Read a local gene annotation table.

    The file needs ``ENTREZID``, ``SYMBOL`` and ``GENENAME`` columns (header
    case is ignored). Tab- and comma-delimited files are both accepted.
    """
    filepath = Path(filepath)
    sep = "," if filepath.suffix.lower() == ".csv" else "\t"
    df = pd.read_csv(filepath, sep=sep, dtype=str)
    df = _normalise_columns(df)
    logger.info(f"Read {len(df)} annotation rows from {filepath.name}")
    return df


def query_mygene(gene_ids: Iterable[str], species: str = "mouse") -> pd.DataFrame:
    """
    Look up Entrez gene IDs on mygene.info.

    Args:
        gene_ids: Entrez gene IDs
        species: Species name understood by mygene.info

    Returns:
        Annotation DataFrame with one row per hit; IDs without a hit get
        a row of missing values
    """
    import mygene

    gene_ids = [str(g) for g in gene_ids]
    logger.info(f"Querying mygene.info for {len(gene_ids)} {species} genes")

    mg = mygene.MyGeneInfo()
    hits = mg.querymany(
        gene_ids,
        scopes="entrezgene",
        fields="symbol,name",
        species=species,
        verbose=False
    )

    rows = []
    for hit in hits:
        if hit.get("notfound"):
            rows.append({"ENTREZID": str(hit["query"]), "SYMBOL": np.nan, "GENENAME": np.nan})
        else:
            rows.append({
                "ENTREZID": str(hit["query"]),
                "SYMBOL": hit.get("symbol", np.nan),
                "GENENAME": hit.get("name", np.nan),
            })

    return pd.DataFrame(rows, columns=ANNOTATION_COLUMNS)


def annotate_genes(
    gene_ids: Iterable[str],
    annotation: pd.DataFrame
) -> Tuple[pd.DataFrame, AnnotationReport]:
    """
    Join annotation rows onto gene IDs.

    An ID can map to several annotation rows. Those IDs are listed in the
    report and only their first row is kept, so the returned table has
    exactly one row per input ID, in input order.

    Args:
        gene_ids: Gene IDs (usually ``counts.index``)
        annotation: Table with ENTREZID, SYMBOL and GENENAME columns

    Returns:
        Tuple of (annotation indexed by gene ID, AnnotationReport)
    """
    gene_ids = [str(g) for g in gene_ids]
    annotation = _normalise_columns(annotation)

    relevant = annotation[annotation["ENTREZID"].isin(set(gene_ids))]
    per_id = relevant["ENTREZID"].value_counts()
    multi_mapped = sorted(per_id[per_id > 1].index.tolist())
    if multi_mapped:
        logger.warning(
            f"{len(multi_mapped)} gene IDs map to more than one annotation row; keeping the first"
        )

    first = relevant.drop_duplicates(subset="ENTREZID", keep="first").set_index("ENTREZID")
    annotated = first.reindex(gene_ids)
    annotated.index.name = None
    annotated.insert(0, "ENTREZID", gene_ids)

    unmapped = [g for g in gene_ids if g not in first.index]
    if unmapped:
        logger.info(f"{len(unmapped)} gene IDs have no annotation")

    report = AnnotationReport(
        n_genes=len(gene_ids),
        n_annotated=len(gene_ids) - len(unmapped),
        multi_mapped=multi_mapped,
        unmapped=unmapped
    )
    return annotated, report

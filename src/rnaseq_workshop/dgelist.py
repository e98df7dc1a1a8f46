"""Count container carrying per-sample library sizes and normalization factors."""

from dataclasses import dataclass, field, replace
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd


def make_groups(
    sample_info: pd.DataFrame,
    columns: Sequence[str] = ("CellType", "Status"),
    sep: str = "."
) -> pd.Categorical:
    """
    Combine sample attributes into experimental group labels.

    ``CellType = basal`` and ``Status = pregnant`` give ``basal.pregnant``.
    Levels are sorted, as R orders factor levels.
    """
    labels = sample_info[list(columns)].astype(str).agg(sep.join, axis=1)
    return pd.Categorical(labels, categories=sorted(labels.unique()))


@dataclass
class DGEList:
    """Genes x samples counts with sample-level normalization metadata.

    ``samples`` is indexed by sample ID and holds ``group``, ``lib_size``
    and ``norm_factors``. ``genes`` is an optional annotation table indexed
    like ``counts``.
    """

    counts: pd.DataFrame
    samples: pd.DataFrame
    genes: Optional[pd.DataFrame] = field(default=None)

    @classmethod
    def from_counts(
        cls,
        counts: pd.DataFrame,
        group: Optional[Union[Sequence, pd.Categorical]] = None,
        genes: Optional[pd.DataFrame] = None
    ) -> "DGEList":
        counts = counts.copy()
        counts.columns = counts.columns.astype(str)
        if group is None:
            group = pd.Categorical(["1"] * counts.shape[1])
        elif not isinstance(group, pd.Categorical):
            group = pd.Categorical(group, categories=sorted(pd.unique(np.asarray(group))))
        if len(group) != counts.shape[1]:
            raise ValueError(
                f"group has {len(group)} entries but counts has {counts.shape[1]} samples"
            )

        samples = pd.DataFrame({
            "group": group,
            "lib_size": counts.sum(axis=0).to_numpy(dtype=float),
            "norm_factors": np.ones(counts.shape[1]),
        }, index=counts.columns)

        dge = cls(counts=counts, samples=samples)
        if genes is not None:
            dge = dge.with_genes(genes)
        return dge

    @property
    def n_genes(self) -> int:
        return self.counts.shape[0]

    @property
    def n_samples(self) -> int:
        return self.counts.shape[1]

    @property
    def group(self) -> pd.Categorical:
        return pd.Categorical(self.samples["group"])

    @property
    def lib_sizes(self) -> pd.Series:
        return self.samples["lib_size"]

    @property
    def norm_factors(self) -> pd.Series:
        return self.samples["norm_factors"]

    @property
    def effective_lib_sizes(self) -> pd.Series:
        return self.samples["lib_size"] * self.samples["norm_factors"]

    def cpm(
        self,
        log: bool = False,
        prior_count: float = 2.0,
        normalized: bool = True
    ) -> pd.DataFrame:
        """
        Counts per million.

        With ``log=True`` the prior count is scaled by each library's size
        relative to the mean library size before taking log2, matching
        edgeR's ``cpm(y, log=TRUE)``.

        Args:
            log: Return log2-CPM
            prior_count: Average count added before taking logs
            normalized: Use library sizes multiplied by normalization factors

        Returns:
            DataFrame shaped like ``counts``
        """
        lib = self.effective_lib_sizes if normalized else self.lib_sizes
        lib = lib.to_numpy(dtype=float)
        y = self.counts.to_numpy(dtype=float)

        if not log:
            values = y / lib * 1e6
        else:
            scaled_prior = prior_count * lib / lib.mean()
            values = np.log2((y + scaled_prior) / (lib + 2 * scaled_prior) * 1e6)

        return pd.DataFrame(values, index=self.counts.index, columns=self.counts.columns)

    def subset_genes(self, mask: Union[pd.Series, np.ndarray, Sequence[bool]]) -> "DGEList":
        """
        Keep the genes selected by ``mask``.

        Library sizes are recomputed from the retained counts and
        normalization factors are reset to 1.
        """
        mask = np.asarray(mask, dtype=bool)
        if mask.shape[0] != self.n_genes:
            raise ValueError(f"mask has {mask.shape[0]} entries for {self.n_genes} genes")

        counts = self.counts.loc[mask]
        samples = self.samples.copy()
        samples["lib_size"] = counts.sum(axis=0).to_numpy(dtype=float)
        samples["norm_factors"] = 1.0
        genes = self.genes.loc[mask] if self.genes is not None else None
        return DGEList(counts=counts, samples=samples, genes=genes)

    def with_norm_factors(self, factors: Union[pd.Series, np.ndarray, Sequence[float]]) -> "DGEList":
        factors = np.asarray(factors, dtype=float)
        if factors.shape[0] != self.n_samples:
            raise ValueError(f"{factors.shape[0]} normalization factors for {self.n_samples} samples")
        samples = self.samples.copy()
        samples["norm_factors"] = factors
        return replace(self, samples=samples)

    def with_genes(self, genes: pd.DataFrame) -> "DGEList":
        """Attach an annotation table, aligned to the count rows."""
        genes = genes.copy()
        genes.index = genes.index.astype(str)
        missing = self.counts.index.difference(genes.index)
        if len(missing):
            raise ValueError(f"Annotation missing for {len(missing)} genes")
        return replace(self, genes=genes.loc[self.counts.index])

    def __repr__(self) -> str:
        return f"DGEList({self.n_genes} genes x {self.n_samples} samples)"

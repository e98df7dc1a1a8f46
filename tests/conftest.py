"""Shared fixtures: a small lactation-shaped dataset."""

import shutil

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from rnaseq_workshop.dgelist import DGEList, make_groups


SAMPLES = [
    ("MCL1.DG", "basal", "virgin"),
    ("MCL1.DH", "basal", "virgin"),
    ("MCL1.DI", "basal", "pregnant"),
    ("MCL1.DJ", "basal", "pregnant"),
    ("MCL1.DK", "basal", "lactate"),
    ("MCL1.DL", "basal", "lactate"),
    ("MCL1.LA", "luminal", "virgin"),
    ("MCL1.LB", "luminal", "virgin"),
    ("MCL1.LC", "luminal", "pregnant"),
    ("MCL1.LD", "luminal", "pregnant"),
    ("MCL1.LE", "luminal", "lactate"),
    ("MCL1.LF", "luminal", "lactate"),
]


def _r_available():
    if shutil.which("R") is None:
        return False
    try:
        from rnaseq_workshop.limma_voom import LimmaVoomWrapper
        LimmaVoomWrapper()
    except Exception:
        return False
    return True


requires_r = pytest.mark.skipif(not _r_available(), reason="R with edgeR and limma not installed")


@pytest.fixture
def sample_info():
    """Sample information indexed by SampleName, the short sample ID."""
    df = pd.DataFrame({
        'FileName': [f"{s[0]}_BC2CTUACXX_ACTTGA_L002_R1" for s in SAMPLES],
        'SampleName': [s[0] for s in SAMPLES],
        'CellType': [s[1] for s in SAMPLES],
        'Status': [s[2] for s in SAMPLES],
    })
    return df.set_index('SampleName', drop=False).rename_axis(None)


@pytest.fixture
def counts():
    """300 expressed genes, 50 silent genes and a basal/luminal split."""
    rng = np.random.default_rng(42)
    n_expressed, n_silent = 300, 50
    means = rng.lognormal(mean=5, sigma=1, size=n_expressed)
    luminal = np.array([s[1] == 'luminal' for s in SAMPLES])

    expressed = np.empty((n_expressed, len(SAMPLES)))
    for j, is_luminal in enumerate(luminal):
        mu = means.copy()
        if is_luminal:
            mu[:40] *= 8
        expressed[:, j] = rng.poisson(mu)

    silent = np.zeros((n_silent, len(SAMPLES)))
    silent[:, 0] = 1

    values = np.vstack([expressed, silent]).astype(int)
    gene_ids = [str(100000 + i) for i in range(values.shape[0])]
    return pd.DataFrame(values, index=gene_ids, columns=[s[0] for s in SAMPLES])


@pytest.fixture
def dge(counts, sample_info):
    return DGEList.from_counts(counts, group=make_groups(sample_info))


@pytest.fixture
def annotation(counts):
    """Annotation for all but the last five genes, with one ID mapped twice."""
    ids = list(counts.index[:-5])
    df = pd.DataFrame({
        'ENTREZID': ids,
        'SYMBOL': [f'Gene{i}' for i in range(len(ids))],
        'GENENAME': [f'gene number {i}' for i in range(len(ids))],
    })
    dup = pd.DataFrame({'ENTREZID': [ids[0]], 'SYMBOL': ['Gene0-ps'], 'GENENAME': ['pseudogene']})
    return pd.concat([df, dup], ignore_index=True)


@pytest.fixture
def data_dir(tmp_path, counts, sample_info, annotation):
    """Workshop input files written the way GEO ships them."""
    directory = tmp_path / "data"
    directory.mkdir()

    raw = counts.copy()
    raw.columns = [f"{c}_BC2CTUACXX_ACTTGA_L002_R1" for c in raw.columns]
    raw.insert(0, 'Length', 1000)
    raw.index.name = 'EntrezGeneID'
    raw.reset_index().to_csv(directory / "GSE60450_LactationGenewiseCounts.txt", sep='\t', index=False)

    sample_info.to_csv(directory / "SampleInfo_Corrected.txt", sep='\t', index=False)
    annotation.to_csv(directory / "mouse_annotation.txt", sep='\t', index=False)
    return directory

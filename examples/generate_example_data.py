"""Generate a synthetic dataset laid out like the GSE60450 lactation workshop files."""

from pathlib import Path

import numpy as np
import pandas as pd


SAMPLES = [
    # (short name, cell type, status, barcode)
    ("MCL1.DG", "basal", "virgin", "ACTTGA"),
    ("MCL1.DH", "basal", "virgin", "CAGATC"),
    ("MCL1.DI", "basal", "pregnant", "ACAGTG"),
    ("MCL1.DJ", "basal", "pregnant", "GCCAAT"),
    ("MCL1.DK", "basal", "lactate", "TGACCA"),
    ("MCL1.DL", "basal", "lactate", "CGATGT"),
    ("MCL1.LA", "luminal", "virgin", "GATCAG"),
    ("MCL1.LB", "luminal", "virgin", "TAGCTT"),
    ("MCL1.LC", "luminal", "pregnant", "TTAGGC"),
    ("MCL1.LD", "luminal", "pregnant", "ATCACG"),
    ("MCL1.LE", "luminal", "lactate", "CAGATC"),
    ("MCL1.LF", "luminal", "lactate", "ACAGTG"),
]


def generate_example_data(
    n_genes: int = 2000,
    n_de_genes: int = 200,
    fold_change_range: tuple = (2, 6),
    output_dir: str = "data",
    seed: int = 42
):
    """
    Generate synthetic counts, sample information and gene annotation.

    Group effects come from cell type (large), status (moderate) and a
    pregnant-vs-lactating difference within each cell type.

    Args:
        n_genes: Total number of genes
        n_de_genes: Number of genes that differ between pregnant and lactating
        fold_change_range: (min, max) fold change for DE genes
        output_dir: Directory to save files
        seed: Random seed for reproducibility
    """
    rng = np.random.default_rng(seed)

    gene_ids = np.arange(497097, 497097 + n_genes * 7, 7)[:n_genes]
    base_expression = rng.lognormal(mean=3, sigma=2, size=n_genes)

    celltype_effect = rng.choice([0.5, 1.0, 2.0], size=n_genes, p=[0.15, 0.7, 0.15])
    status_effect = {
        "virgin": np.ones(n_genes),
        "pregnant": np.ones(n_genes),
        "lactate": np.ones(n_genes),
    }
    de_indices = rng.choice(n_genes, n_de_genes, replace=False)
    fc = rng.uniform(fold_change_range[0], fold_change_range[1], n_de_genes)
    direction = rng.choice([-1, 1], size=n_de_genes)
    status_effect["pregnant"][de_indices] = fc ** direction

    counts = np.zeros((n_genes, len(SAMPLES)), dtype=int)
    lib_scale = rng.uniform(0.8, 1.2, len(SAMPLES))
    for j, (_, cell_type, status, _) in enumerate(SAMPLES):
        mean = base_expression * status_effect[status] * lib_scale[j] * 50
        if cell_type == "luminal":
            mean = mean * celltype_effect
        dispersion = 0.1
        counts[:, j] = rng.negative_binomial(n=1 / dispersion, p=1 / (1 + mean * dispersion))

    long_names = [
        f"{name}_BC2CTUACXX_{barcode}_L00{1 + j % 2}_R1"
        for j, (name, _, _, barcode) in enumerate(SAMPLES)
    ]
    counts_df = pd.DataFrame(counts, columns=long_names)
    counts_df.insert(0, "Length", rng.integers(300, 8000, n_genes))
    counts_df.insert(0, "EntrezGeneID", gene_ids)

    sample_info = pd.DataFrame({
        "FileName": long_names,
        "SampleName": [s[0] for s in SAMPLES],
        "CellType": [s[1] for s in SAMPLES],
        "Status": [s[2] for s in SAMPLES],
    })

    annotation = pd.DataFrame({
        "ENTREZID": gene_ids.astype(str),
        "SYMBOL": [f"Gm{i}" for i in range(n_genes)],
        "GENENAME": [f"predicted gene {i}" for i in range(n_genes)],
    })
    # A few IDs map to two annotation rows, as with real lookups
    annotation = pd.concat([annotation, annotation.iloc[:3].assign(SYMBOL=lambda d: d["SYMBOL"] + "-ps")])

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    counts_df.to_csv(output_path / "GSE60450_LactationGenewiseCounts.txt", sep="\t", index=False)
    sample_info.to_csv(output_path / "SampleInfo_Corrected.txt", sep="\t", index=False)
    annotation.to_csv(output_path / "mouse_annotation.txt", sep="\t", index=False)

    print("Generated example data:")
    print(f"  - Genes: {n_genes} ({n_de_genes} differ between pregnant and lactating)")
    print(f"  - Samples: {len(SAMPLES)}")
    print(f"  - Files saved to: {output_path.absolute()}")

    return counts_df, sample_info, annotation


if __name__ == "__main__":
    generate_example_data()

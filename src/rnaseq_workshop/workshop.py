"""Run the whole workshop analysis from the two input files to the results tables."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import pandas as pd

from .annotation import AnnotationReport, annotate_genes, query_mygene, read_annotation_table
from .config import Config, get_config
from .design import make_contrasts, make_design
from .dgelist import DGEList, make_groups
from .filtering import counts_at_threshold, cpm_threshold_table, filter_by_cpm
from .loading import read_count_table, read_sample_info
from .qc import clustered_heatmap_data, library_sizes, log_cpm_summary, mds_coordinates, most_variable_genes, row_zscores
from .results import export_results, format_top_table, summarize_decide_tests
from .session import save_snapshot
from .static_plots import StaticPlotter
from .validation import check_sample_alignment, require_valid, validate_analysis_inputs
from .visualizations import create_heatmap, create_md_plot, create_mds_plot, create_pca_plot, save_html


logger = logging.getLogger(__name__)


@dataclass
class PreparedData:
    """Filtered, annotated counts ready for normalization."""

    dge: DGEList
    sample_info: pd.DataFrame
    keep: pd.Series
    annotation_report: Optional[AnnotationReport] = None


@dataclass
class WorkshopOutputs:
    """Files written and headline numbers from one run."""

    n_genes_raw: int = 0
    n_genes_kept: int = 0
    figures: List[Path] = field(default_factory=list)
    html: List[Path] = field(default_factory=list)
    tables: Dict[str, Path] = field(default_factory=dict)
    snapshot: Optional[Path] = None
    decide_summary: Optional[pd.DataFrame] = None
    treat_decide_summary: Optional[pd.DataFrame] = None


def _load_annotation(config: Config, gene_ids) -> Optional[pd.DataFrame]:
    if config.defaults.use_mygene:
        return query_mygene(gene_ids, species=config.defaults.annotation_species)
    path = config.paths.annotation_path
    if path is not None and path.exists():
        return read_annotation_table(path)
    logger.warning("No gene annotation available; results will carry gene IDs only")
    return None


def prepare_data(config: Config) -> PreparedData:
    """Load, validate, group, filter and annotate."""
    defaults = config.defaults

    counts = read_count_table(config.paths.counts_path)
    sample_info = read_sample_info(config.paths.sample_info_path)

    require_valid(validate_analysis_inputs(counts, sample_info, defaults.group_columns))
    sample_info = check_sample_alignment(counts, sample_info)

    group = make_groups(sample_info, defaults.group_columns)
    sample_info["group"] = group
    dge = DGEList.from_counts(counts, group=group)

    filtered, keep = filter_by_cpm(dge, defaults.cpm_threshold, defaults.min_samples)

    report = None
    annotation = _load_annotation(config, filtered.counts.index)
    if annotation is not None:
        genes, report = annotate_genes(filtered.counts.index, annotation)
        filtered = filtered.with_genes(genes)

    return PreparedData(dge=filtered, sample_info=sample_info, keep=keep, annotation_report=report)


def run_qc(prepared: PreparedData, config: Config, outputs: WorkshopOutputs):
    """Library sizes, log-CPM distributions, MDS and the variable-gene heatmap."""
    defaults = config.defaults
    dge = prepared.dge
    plotter = StaticPlotter(config.paths.figures_dir, dpi=config.plots.dpi, fmt=config.plots.static_format)
    size = dict(width=config.plots.width, height=config.plots.height)

    first = dge.counts.columns[0]
    logger.info(
        f"{defaults.cpm_threshold} CPM is ~{counts_at_threshold(dge, first, defaults.cpm_threshold):.1f} "
        f"reads in {first}"
    )
    figures = [
        plotter.plot_cpm_threshold(cpm_threshold_table(dge, first), defaults.cpm_threshold, first),
        plotter.plot_library_sizes(library_sizes(dge), group=dge.group),
    ]

    log_cpm = dge.cpm(log=True, prior_count=defaults.prior_count)
    logger.info(f"Median log-CPM across samples: {log_cpm_summary(log_cpm)['overall_median'].iloc[0]:.2f}")
    figures.append(plotter.plot_log_cpm_boxplot(log_cpm))

    mds = mds_coordinates(log_cpm, top=defaults.mds_top)
    color_by = defaults.group_columns[0]
    marker_by = defaults.group_columns[1] if len(defaults.group_columns) > 1 else None
    figures.append(plotter.plot_mds(mds, prepared.sample_info, color_by=color_by, marker_by=marker_by))
    outputs.html.append(save_html(
        create_mds_plot(
            mds, prepared.sample_info, color_by=color_by, symbol_by=marker_by,
            title=f"{config.title}: MDS", **size
        ),
        config.paths.html_dir / "MDS-Plot.html"
    ))
    outputs.html.append(save_html(
        create_pca_plot(
            log_cpm, prepared.sample_info, color_by=color_by, symbol_by=marker_by,
            top=defaults.heatmap_top, title=f"{config.title}: PCA", **size
        ),
        config.paths.html_dir / "PCA-Plot.html"
    ))

    genes = most_variable_genes(log_cpm, defaults.heatmap_top)
    figures.append(plotter.plot_heatmap(row_zscores(log_cpm.loc[genes]), group=dge.group))
    labels = dge.genes['SYMBOL'] if dge.genes is not None else None
    outputs.html.append(save_html(
        create_heatmap(
            clustered_heatmap_data(log_cpm, defaults.heatmap_top), labels=labels,
            title=f"{config.title}: most variable genes", width=config.plots.width
        ),
        config.paths.html_dir / "Heatmap.html"
    ))

    for fig in figures:
        plt.close(fig)
    outputs.figures = sorted(config.paths.figures_dir.glob(f"*.{config.plots.static_format}"))


def run_differential_expression(prepared: PreparedData, config: Config, outputs: WorkshopOutputs):
    """TMM, voom, linear model, contrasts and the per-contrast outputs."""
    from .limma_voom import run_limma_voom

    defaults = config.defaults
    dge = prepared.dge
    plotter = StaticPlotter(config.paths.figures_dir, dpi=config.plots.dpi, fmt=config.plots.static_format)

    design = make_design(dge.group, index=dge.counts.columns)
    contrasts = make_contrasts(design, **defaults.contrasts)

    result = run_limma_voom(
        dge,
        design,
        contrasts,
        fdr_threshold=defaults.fdr_threshold,
        lfc_threshold=defaults.lfc_threshold,
        treat_lfc=defaults.treat_lfc,
        norm_method=defaults.norm_method
    )
    normalized = result.dge

    figures = []
    sample = dge.counts.columns[0]
    figures.append(plotter.plot_sample_md(
        dge.cpm(log=True, prior_count=defaults.prior_count), sample, name=f"md_{sample}_before_tmm"))
    figures.append(plotter.plot_sample_md(
        normalized.cpm(log=True, prior_count=defaults.prior_count), sample, name=f"md_{sample}_after_tmm"))
    figures.append(plotter.plot_log_cpm_boxplot(
        result.voom.E, title='Boxplots of logCPMs (normalised)', name="voom_boxplot"))
    figures.append(plotter.plot_voom_trend(result.voom.trend_points, result.voom.trend_line))

    summary = summarize_decide_tests(result.decide_tests)
    outputs.decide_summary = summary
    logger.info(f"decideTests summary:\n{summary}")
    if result.treat_decide_tests is not None:
        outputs.treat_decide_summary = summarize_decide_tests(result.treat_decide_tests)
        logger.info(f"TREAT decideTests summary:\n{outputs.treat_decide_summary}")

    for i, name in enumerate(result.tables):
        table = format_top_table(
            result.tables[name],
            annotation=normalized.genes,
            fdr_threshold=defaults.fdr_threshold,
            lfc_threshold=defaults.lfc_threshold
        )
        outputs.tables[name] = export_results(table, config.paths.output_dir / f"limma-voom_{name}.csv")

        if name in result.treat_tables:
            treat_table = format_top_table(
                result.treat_tables[name],
                annotation=normalized.genes,
                fdr_threshold=defaults.fdr_threshold
            )
            outputs.tables[f"{name}.treat"] = export_results(
                treat_table, config.paths.output_dir / f"limma-voom-treat_{name}.csv")

        figures.append(plotter.plot_md(table, name))
        figures.append(plotter.plot_volcano(table, name, highlight=defaults.volcano_highlight))

        top_gene = table['gene'].iloc[0]
        label = table['SYMBOL'].iloc[0] if 'SYMBOL' in table and pd.notna(table['SYMBOL'].iloc[0]) else top_gene
        figures.append(plotter.plot_stripchart(result.voom.E, normalized.group, top_gene, label=str(label)))

        if i == 0:
            outputs.html.append(save_html(
                create_md_plot(
                    table, defaults.fdr_threshold, defaults.lfc_threshold,
                    title=f"{config.title}: {name}",
                    width=config.plots.width, height=config.plots.height
                ),
                config.paths.html_dir / "MD-Plot.html"
            ))

    for fig in figures:
        plt.close(fig)
    outputs.figures = sorted(config.paths.figures_dir.glob(f"*.{config.plots.static_format}"))


def run_workshop(config: Optional[Config] = None, with_limma: bool = True) -> WorkshopOutputs:
    """
    Execute the analysis end to end.

    Args:
        config: Configuration (the global one when None)
        with_limma: Run the R-backed normalization and testing steps

    Returns:
        WorkshopOutputs describing what was written
    """
    config = config or get_config()
    config.initialize()
    outputs = WorkshopOutputs()

    prepared = prepare_data(config)
    outputs.n_genes_raw = int(prepared.keep.shape[0])
    outputs.n_genes_kept = int(prepared.keep.sum())

    run_qc(prepared, config, outputs)

    outputs.snapshot = save_snapshot(
        config.paths.sessions_dir / config.snapshot_name,
        group=prepared.dge.group,
        dge=prepared.dge,
        sample_info=prepared.sample_info
    )

    if with_limma:
        run_differential_expression(prepared, config, outputs)

    logger.info(
        f"Done: {len(outputs.figures)} figures, {len(outputs.html)} HTML files, "
        f"{len(outputs.tables)} tables"
    )
    return outputs


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_workshop()

"""edgeR / limma wrapper using rpy2 for TMM normalization, voom and moderated t-tests."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

try:
    import rpy2.robjects as ro
    from rpy2.robjects import pandas2ri
    from rpy2.robjects.packages import importr
    from rpy2.robjects.conversion import localconverter
    from rpy2.rinterface_lib.embedded import RRuntimeError
    RPY2_AVAILABLE = True
except ImportError:
    RPY2_AVAILABLE = False
    logging.warning("rpy2 not available. edgeR/limma analysis will not work.")

from .dgelist import DGEList


logger = logging.getLogger(__name__)


class LimmaVoomError(Exception):
    """Exception for edgeR/limma-related errors."""
    pass


@dataclass
class VoomResult:
    """Log-CPM values with precision weights from voom."""

    E: pd.DataFrame
    weights: pd.DataFrame
    design: pd.DataFrame
    trend_points: pd.DataFrame
    trend_line: pd.DataFrame
    r_object: object = field(default=None, repr=False)


@dataclass
class LimmaFit:
    """A fitted limma linear model (``MArrayLM``)."""

    coefficients: pd.DataFrame
    r_object: object = field(repr=False)
    moderated: bool = False

    @property
    def coef_names(self) -> List[str]:
        return list(self.coefficients.columns)


@dataclass
class LimmaVoomResult:
    """Everything produced by :func:`run_limma_voom`."""

    dge: DGEList
    voom: VoomResult
    fit: LimmaFit
    contrasts: pd.DataFrame
    tables: Dict[str, pd.DataFrame]
    decide_tests: pd.DataFrame
    treat_tables: Dict[str, pd.DataFrame] = field(default_factory=dict)
    treat_decide_tests: Optional[pd.DataFrame] = None


class LimmaVoomWrapper:
    """Wrapper for the edgeR and limma R packages."""

    def __init__(self):
        """Initialize wrapper and check R environment."""
        if not RPY2_AVAILABLE:
            raise LimmaVoomError("rpy2 is not installed. Please install it with: pip install rpy2")

        self._check_r_packages()
        self._load_r_packages()

    def _check_r_packages(self):
        """Check if required R packages are installed."""
        required_packages = ['edgeR', 'limma']

        utils = importr('utils')
        base = importr('base')

        installed = base.rownames(utils.installed_packages())

        missing = [pkg for pkg in required_packages if pkg not in installed]

        if missing:
            quoted = ', '.join(f"'{p}'" for p in missing)
            error_msg = (
                f"Required R packages not found: {', '.join(missing)}\n"
                "Please install them in R using:\n"
                "  if (!require('BiocManager', quietly = TRUE))\n"
                "      install.packages('BiocManager')\n"
                f"  BiocManager::install(c({quoted}))"
            )
            raise LimmaVoomError(error_msg)

    def _load_r_packages(self):
        """Load required R packages."""
        try:
            self.edger = importr('edgeR')
            self.limma = importr('limma')
            self.base = importr('base')
            logger.info("Successfully loaded edgeR and limma")
        except RRuntimeError as e:
            raise LimmaVoomError(f"Failed to load R packages: {str(e)}")

    def _convert_to_r_matrix(self, df: pd.DataFrame):
        """Convert pandas DataFrame to a numeric R matrix with dimnames."""
        values = df.to_numpy(dtype=float)
        r_matrix = ro.r['matrix'](
            ro.FloatVector(values.ravel(order='F')),
            nrow=df.shape[0],
            ncol=df.shape[1]
        )
        r_matrix.rownames = ro.StrVector([str(i) for i in df.index])
        r_matrix.colnames = ro.StrVector([str(c) for c in df.columns])
        return r_matrix

    def _dimnames(self, names) -> Optional[List[str]]:
        if ro.r['is.null'](names)[0]:
            return None
        return [str(n) for n in names]

    def _convert_from_r_matrix(self, r_matrix, index=None, columns=None) -> pd.DataFrame:
        """Convert an R matrix to a pandas DataFrame, keeping dimnames."""
        nrow = int(self.base.nrow(r_matrix)[0])
        ncol = int(self.base.ncol(r_matrix)[0])
        flat = np.array(ro.r['as.numeric'](r_matrix), dtype=float)
        values = flat.reshape((nrow, ncol), order='F')

        if index is None:
            index = self._dimnames(self.base.rownames(r_matrix))
        if columns is None:
            columns = self._dimnames(self.base.colnames(r_matrix))
        return pd.DataFrame(values, index=index, columns=columns)

    def _field(self, r_list, name: str):
        """``r_list[[name]]`` for R lists and list-based S4 objects."""
        return ro.r['[['](r_list, name)

    def _convert_from_r_dataframe(self, r_df) -> pd.DataFrame:
        """Convert R data.frame to pandas DataFrame."""
        with localconverter(ro.default_converter + pandas2ri.converter):
            pd_df = ro.conversion.rpy2py(r_df)
        return pd_df

    def calc_norm_factors(
        self,
        counts: pd.DataFrame,
        lib_sizes: Optional[pd.Series] = None,
        method: str = "TMM"
    ) -> pd.Series:
        """
        Composition normalization factors (edgeR ``calcNormFactors``).

        Args:
            counts: Count matrix (genes x samples)
            lib_sizes: Library sizes; column sums when omitted
            method: "TMM", "TMMwsp", "RLE", "upperquartile" or "none"

        Returns:
            Series of factors indexed by sample, with product 1
        """
        logger.info(f"Calculating {method} normalization factors for {counts.shape[1]} samples")
        if lib_sizes is None:
            lib_sizes = counts.sum(axis=0)

        try:
            factors = self.edger.calcNormFactors(
                self._convert_to_r_matrix(counts),
                **{
                    'lib.size': ro.FloatVector(np.asarray(lib_sizes, dtype=float)),
                    'method': method,
                }
            )
        except RRuntimeError as e:
            raise LimmaVoomError(f"calcNormFactors failed: {str(e)}")

        return pd.Series(np.asarray(factors, dtype=float), index=counts.columns, name="norm_factors")

    def voom(
        self,
        counts: pd.DataFrame,
        design: pd.DataFrame,
        lib_sizes: Optional[pd.Series] = None
    ) -> VoomResult:
        """
        Transform counts to log-CPM with observation-level precision weights.

        Args:
            counts: Count matrix (genes x samples)
            design: Design matrix (samples x coefficients)
            lib_sizes: Effective library sizes (library size x norm factor)

        Returns:
            VoomResult including the mean-variance trend used for the weights
        """
        self._check_design(design)
        logger.info("Running voom...")
        if lib_sizes is None:
            lib_sizes = counts.sum(axis=0)

        try:
            v = self.limma.voom(
                self._convert_to_r_matrix(counts),
                self._convert_to_r_matrix(design),
                **{
                    'lib.size': ro.FloatVector(np.asarray(lib_sizes, dtype=float)),
                    'save.plot': True,
                }
            )
        except RRuntimeError as e:
            raise LimmaVoomError(f"voom failed: {str(e)}")

        E = self._convert_from_r_matrix(self._field(v, 'E'))
        weights = self._convert_from_r_matrix(self._field(v, 'weights'), index=E.index, columns=E.columns)

        xy = self._field(v, 'voom.xy')
        line = self._field(v, 'voom.line')
        trend_points = pd.DataFrame({
            'sx': np.asarray(self._field(xy, 'x'), dtype=float),
            'sy': np.asarray(self._field(xy, 'y'), dtype=float),
        })
        trend_line = pd.DataFrame({
            'x': np.asarray(self._field(line, 'x'), dtype=float),
            'y': np.asarray(self._field(line, 'y'), dtype=float),
        })

        return VoomResult(
            E=E,
            weights=weights,
            design=design,
            trend_points=trend_points,
            trend_line=trend_line,
            r_object=v
        )

    def _check_design(self, design: pd.DataFrame):
        rank = np.linalg.matrix_rank(design.to_numpy(dtype=float))
        if rank < design.shape[1]:
            raise LimmaVoomError(
                "Design matrix is rank deficient. This usually means:\n"
                "  - A group has no samples\n"
                "  - Two columns of the design are identical or collinear"
            )

    def _wrap_fit(self, r_fit, moderated: bool = False) -> LimmaFit:
        coefficients = self._convert_from_r_matrix(self._field(r_fit, 'coefficients'))
        return LimmaFit(coefficients=coefficients, r_object=r_fit, moderated=moderated)

    def lm_fit(self, voom_result: VoomResult, design: Optional[pd.DataFrame] = None) -> LimmaFit:
        """Fit a weighted linear model per gene (limma ``lmFit``)."""
        design = voom_result.design if design is None else design
        self._check_design(design)
        try:
            r_fit = self.limma.lmFit(voom_result.r_object, self._convert_to_r_matrix(design))
        except RRuntimeError as e:
            raise LimmaVoomError(f"lmFit failed: {str(e)}")
        return self._wrap_fit(r_fit)

    def contrasts_fit(self, fit: LimmaFit, contrasts: pd.DataFrame) -> LimmaFit:
        """Re-express coefficients as the given contrasts."""
        unknown = set(contrasts.index) - set(fit.coef_names)
        if unknown:
            raise LimmaVoomError(
                f"Contrast rows do not match model coefficients: {', '.join(sorted(unknown))}"
            )
        contrasts = contrasts.loc[fit.coef_names]
        try:
            r_fit = self.limma.contrasts_fit(
                fit.r_object, contrasts=self._convert_to_r_matrix(contrasts)
            )
        except RRuntimeError as e:
            raise LimmaVoomError(f"contrasts.fit failed: {str(e)}")
        return self._wrap_fit(r_fit)

    def e_bayes(self, fit: LimmaFit, trend: bool = False, robust: bool = False) -> LimmaFit:
        """Empirical Bayes moderation of the standard errors."""
        try:
            r_fit = self.limma.eBayes(fit.r_object, trend=trend, robust=robust)
        except RRuntimeError as e:
            raise LimmaVoomError(f"eBayes failed: {str(e)}")
        return self._wrap_fit(r_fit, moderated=True)

    def treat(self, fit: LimmaFit, lfc: float = 1.0) -> LimmaFit:
        """Moderated t-tests relative to a fold-change threshold (limma ``treat``)."""
        try:
            r_fit = self.limma.treat(fit.r_object, lfc=lfc)
        except RRuntimeError as e:
            raise LimmaVoomError(f"treat failed: {str(e)}")
        return self._wrap_fit(r_fit, moderated=True)

    def decide_tests(
        self,
        fit: LimmaFit,
        p_value: float = 0.05,
        lfc: float = 0.0,
        adjust_method: str = "BH"
    ) -> pd.DataFrame:
        """
        Classify each gene as down (-1), not significant (0) or up (1)
        for every contrast.
        """
        self._require_moderated(fit)
        try:
            res = self.limma.decideTests(
                fit.r_object,
                **{
                    'method': 'separate',
                    'adjust.method': adjust_method,
                    'p.value': p_value,
                    'lfc': lfc,
                }
            )
        except RRuntimeError as e:
            raise LimmaVoomError(f"decideTests failed: {str(e)}")

        matrix = self._convert_from_r_matrix(
            res,
            index=fit.coefficients.index,
            columns=fit.coefficients.columns
        )
        return matrix.astype(int)

    def top_table(
        self,
        fit: LimmaFit,
        coef: str,
        number: Optional[int] = None,
        sort_by: str = "p",
        adjust_method: str = "BH"
    ) -> pd.DataFrame:
        """
        Table of top-ranked genes for one coefficient or contrast.

        Args:
            fit: Moderated fit
            coef: Coefficient/contrast name
            number: Maximum rows (all genes when None)
            sort_by: "p", "B", "logFC", "AveExpr", "t" or "none"
            adjust_method: Multiple testing correction

        Returns:
            DataFrame with logFC, AveExpr, t, P.Value, adj.P.Val and B,
            indexed by gene ID
        """
        self._require_moderated(fit)
        self._require_coef(fit, coef)
        logger.info(f"Extracting top table for {coef}")
        try:
            res = self.limma.topTable(
                fit.r_object,
                **{
                    'coef': coef,
                    'number': float('inf') if number is None else number,
                    'sort.by': sort_by,
                    'adjust.method': adjust_method,
                }
            )
        except RRuntimeError as e:
            raise LimmaVoomError(f"topTable failed: {str(e)}")

        table = self._convert_from_r_dataframe(res)
        table.index = table.index.astype(str)
        return table

    def top_treat(
        self,
        fit: LimmaFit,
        coef: str,
        number: Optional[int] = None,
        sort_by: str = "p"
    ) -> pd.DataFrame:
        """Top table for a fit produced by :meth:`treat`."""
        self._require_coef(fit, coef)
        try:
            res = self.limma.topTreat(
                fit.r_object,
                **{
                    'coef': coef,
                    'number': float('inf') if number is None else number,
                    'sort.by': sort_by,
                }
            )
        except RRuntimeError as e:
            raise LimmaVoomError(f"topTreat failed: {str(e)}")

        table = self._convert_from_r_dataframe(res)
        table.index = table.index.astype(str)
        return table

    def _require_moderated(self, fit: LimmaFit):
        if not fit.moderated:
            raise LimmaVoomError("Fit has no moderated statistics; run e_bayes() first")

    def _require_coef(self, fit: LimmaFit, coef: str):
        if coef not in fit.coef_names:
            raise LimmaVoomError(
                f"Unknown coefficient '{coef}'. Available: {', '.join(fit.coef_names)}"
            )


def run_limma_voom(
    dge: DGEList,
    design: pd.DataFrame,
    contrasts: pd.DataFrame,
    fdr_threshold: float = 0.05,
    lfc_threshold: float = 0.0,
    treat_lfc: Optional[float] = None,
    norm_method: str = "TMM"
) -> LimmaVoomResult:
    """
    Run the complete normalization and testing pipeline.

    TMM normalization, voom, lmFit, contrasts.fit, eBayes, decideTests and a
    full top table per contrast; optionally TREAT against ``treat_lfc``.

    Args:
        dge: Filtered counts
        design: Design matrix (samples x groups)
        contrasts: Contrast matrix (groups x contrasts)
        fdr_threshold: Adjusted p-value cutoff for decideTests
        lfc_threshold: log2 fold-change cutoff for decideTests
        treat_lfc: Fold-change threshold for TREAT (skipped when None)
        norm_method: edgeR normalization method

    Returns:
        LimmaVoomResult
    """
    wrapper = LimmaVoomWrapper()

    factors = wrapper.calc_norm_factors(dge.counts, dge.lib_sizes, method=norm_method)
    dge = dge.with_norm_factors(factors)
    logger.info(
        "Normalization factors: "
        + ", ".join(f"{s}={f:.3f}" for s, f in dge.norm_factors.items())
    )

    v = wrapper.voom(dge.counts, design, dge.effective_lib_sizes)
    fit = wrapper.lm_fit(v, design)
    fit_cont = wrapper.contrasts_fit(fit, contrasts)
    fit_cont = wrapper.e_bayes(fit_cont)

    decisions = wrapper.decide_tests(fit_cont, p_value=fdr_threshold, lfc=lfc_threshold)
    for name in decisions.columns:
        n_up = int((decisions[name] == 1).sum())
        n_down = int((decisions[name] == -1).sum())
        logger.info(f"{name}: {n_up} up-regulated and {n_down} down-regulated genes")

    tables = {name: wrapper.top_table(fit_cont, name) for name in fit_cont.coef_names}

    treat_tables = {}
    treat_decisions = None
    if treat_lfc is not None:
        fit_treat = wrapper.treat(fit_cont, lfc=treat_lfc)
        treat_decisions = wrapper.decide_tests(fit_treat, p_value=fdr_threshold)
        treat_tables = {
            name: wrapper.top_treat(fit_treat, name) for name in fit_treat.coef_names
        }

    return LimmaVoomResult(
        dge=dge,
        voom=v,
        fit=fit_cont,
        contrasts=contrasts,
        tables=tables,
        decide_tests=decisions,
        treat_tables=treat_tables,
        treat_decide_tests=treat_decisions
    )

"""Data validation for count matrices and sample information."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when inputs cannot be analysed."""
    pass


class ValidationWarning(BaseModel):
    """Warning message from validation."""
    message: str
    severity: str = Field(default="warning")  # warning, info


class ValidationResult(BaseModel):
    """Result of data validation."""
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)
    summary: Dict[str, Any] = Field(default_factory=dict)


class CountMatrixSchema(BaseModel):
    """Schema for count matrix validation."""
    n_genes: int
    n_samples: int
    gene_ids: List[str]
    sample_ids: List[str]
    has_negative: bool
    has_non_integer: bool
    has_missing: bool
    library_sizes: Dict[str, float]


class SampleInfoSchema(BaseModel):
    """Schema for sample information validation."""
    n_samples: int
    sample_ids: List[str]
    columns: List[str]
    group_columns: List[str] = Field(default_factory=list)
    n_groups: Optional[int] = None
    replicates_per_group: Optional[Dict[str, int]] = None


def validate_count_matrix(counts: pd.DataFrame) -> Tuple[ValidationResult, Optional[CountMatrixSchema]]:
    """
    Validate count matrix.

    Args:
        counts: Count matrix DataFrame (genes x samples)

    Returns:
        Tuple of (ValidationResult, CountMatrixSchema)
    """
    errors = []
    warnings = []

    if counts.empty:
        errors.append("Count matrix is empty")
        return ValidationResult(valid=False, errors=errors), None

    n_genes, n_samples = counts.shape

    has_negative = bool((counts < 0).any().any())
    if has_negative:
        errors.append("Count matrix contains negative values")

    values = counts.to_numpy(dtype=float)
    has_missing = bool(np.isnan(values).any())
    if has_missing:
        n_missing = int(np.isnan(values).sum())
        errors.append(f"Count matrix contains {n_missing} missing values")

    finite = values[~np.isnan(values)]
    has_non_integer = not np.allclose(finite, np.round(finite))
    if has_non_integer:
        warnings.append(ValidationWarning(
            message="Count matrix contains non-integer values. They will be rounded.",
            severity="warning"
        ))

    if n_genes < 5000:
        warnings.append(ValidationWarning(
            message=f"Low number of genes ({n_genes}). A mouse genewise count table has ~27,000 genes.",
            severity="warning"
        ))

    library_sizes = {str(k): float(v) for k, v in counts.sum(axis=0).items()}

    for sample, size in library_sizes.items():
        if size < 1e6:
            warnings.append(ValidationWarning(
                message=f"Sample '{sample}' has low library size: {size:,.0f} reads",
                severity="warning"
            ))
        elif size > 100e6:
            warnings.append(ValidationWarning(
                message=f"Sample '{sample}' has very high library size: {size:,.0f} reads",
                severity="info"
            ))

    if counts.index.duplicated().any():
        n_duplicates = counts.index.duplicated().sum()
        errors.append(f"Count matrix contains {n_duplicates} duplicate gene IDs")

    if counts.columns.duplicated().any():
        n_duplicates = counts.columns.duplicated().sum()
        errors.append(f"Count matrix contains {n_duplicates} duplicate sample IDs")

    schema = CountMatrixSchema(
        n_genes=n_genes,
        n_samples=n_samples,
        gene_ids=[str(g) for g in counts.index],
        sample_ids=[str(s) for s in counts.columns],
        has_negative=has_negative,
        has_non_integer=has_non_integer,
        has_missing=has_missing,
        library_sizes=library_sizes
    )

    summary = {
        "n_genes": n_genes,
        "n_samples": n_samples,
        "total_counts": float(np.nansum(values)),
        "mean_library_size": float(np.mean(list(library_sizes.values()))),
        "median_library_size": float(np.median(list(library_sizes.values())))
    }

    result = ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        summary=summary
    )

    return result, schema


def validate_sample_info(
    sample_info: pd.DataFrame,
    count_samples: Optional[List[str]] = None,
    group_columns: Sequence[str] = ("CellType", "Status")
) -> Tuple[ValidationResult, Optional[SampleInfoSchema]]:
    """
    Validate sample information.

    Args:
        sample_info: Sample information DataFrame indexed by sample ID
        count_samples: Sample IDs from the count matrix (for matching check)
        group_columns: Columns whose combination defines experimental groups

    Returns:
        Tuple of (ValidationResult, SampleInfoSchema)
    """
    errors = []
    warnings = []

    if sample_info.empty:
        errors.append("Sample information is empty")
        return ValidationResult(valid=False, errors=errors), None

    n_samples = len(sample_info)
    sample_ids = [str(s) for s in sample_info.index]
    columns = sample_info.columns.tolist()
    group_columns = list(group_columns)

    replicates_per_group = None
    n_groups = None

    missing_columns = [c for c in group_columns if c not in sample_info.columns]
    for column in missing_columns:
        errors.append(f"Group column '{column}' not found in sample information")

    if group_columns and not missing_columns:
        for column in group_columns:
            if sample_info[column].isna().any():
                errors.append(f"Group column '{column}' contains missing values")

        labels = sample_info[group_columns].astype(str).agg(".".join, axis=1)
        group_counts = labels.value_counts().sort_index()
        replicates_per_group = {str(k): int(v) for k, v in group_counts.items()}
        n_groups = len(group_counts)

        for group, count in replicates_per_group.items():
            if count < 2:
                errors.append(
                    f"Group '{group}' has only {count} replicate(s). "
                    "At least 2 replicates per group are required."
                )
            elif count < 3:
                warnings.append(ValidationWarning(
                    message=f"Group '{group}' has only {count} replicates. "
                            "3+ replicates recommended for robust analysis.",
                    severity="warning"
                ))

    if count_samples is not None:
        count_set = set(str(s) for s in count_samples)
        info_set = set(sample_ids)

        missing_in_info = count_set - info_set
        missing_in_counts = info_set - count_set

        if missing_in_info:
            errors.append(
                f"Samples in count matrix but not in sample information: {', '.join(sorted(missing_in_info))}"
            )

        if missing_in_counts:
            warnings.append(ValidationWarning(
                message=f"Samples in sample information but not in count matrix: {', '.join(sorted(missing_in_counts))}",
                severity="info"
            ))

    if sample_info.index.duplicated().any():
        n_duplicates = sample_info.index.duplicated().sum()
        errors.append(f"Sample information contains {n_duplicates} duplicate sample IDs")

    schema = SampleInfoSchema(
        n_samples=n_samples,
        sample_ids=sample_ids,
        columns=columns,
        group_columns=group_columns,
        n_groups=n_groups,
        replicates_per_group=replicates_per_group
    )

    summary = {
        "n_samples": n_samples,
        "n_columns": len(columns),
        "columns": columns
    }

    if replicates_per_group:
        summary["groups"] = replicates_per_group

    result = ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        summary=summary
    )

    return result, schema


def validate_analysis_inputs(
    counts: pd.DataFrame,
    sample_info: pd.DataFrame,
    group_columns: Sequence[str] = ("CellType", "Status")
) -> ValidationResult:
    """
    Validate complete analysis inputs.

    Args:
        counts: Count matrix
        sample_info: Sample information
        group_columns: Columns defining experimental groups

    Returns:
        ValidationResult with combined validation from both inputs
    """
    all_errors = []
    all_warnings = []

    counts_result, _ = validate_count_matrix(counts)
    all_errors.extend(counts_result.errors)
    all_warnings.extend(counts_result.warnings)

    info_result, _ = validate_sample_info(
        sample_info,
        count_samples=[str(s) for s in counts.columns],
        group_columns=group_columns
    )
    all_errors.extend(info_result.errors)
    all_warnings.extend(info_result.warnings)

    summary = {
        "counts": counts_result.summary,
        "sample_info": info_result.summary
    }

    return ValidationResult(
        valid=len(all_errors) == 0,
        errors=all_errors,
        warnings=all_warnings,
        summary=summary
    )


def require_valid(result: ValidationResult) -> ValidationResult:
    """Log warnings and raise ``ValidationError`` if the result has errors."""
    for warning in result.warnings:
        if warning.severity == "info":
            logger.info(warning.message)
        else:
            logger.warning(warning.message)

    if not result.valid:
        raise ValidationError("; ".join(result.errors))
    return result


def check_sample_alignment(counts: pd.DataFrame, sample_info: pd.DataFrame) -> pd.DataFrame:
    """
    Align sample information to the count matrix columns.

    Args:
        counts: Count matrix (genes x samples)
        sample_info: Sample information indexed by sample ID

    Returns:
        ``sample_info`` reordered to match ``counts.columns``

    Raises:
        ValidationError: if a count column has no sample information row
    """
    columns = [str(c) for c in counts.columns]
    info = sample_info.copy()
    info.index = info.index.astype(str)

    missing = [c for c in columns if c not in info.index]
    if missing:
        raise ValidationError(
            f"Count columns without sample information: {', '.join(missing)}"
        )

    if list(info.index) != columns:
        logger.info("Reordering sample information to match count matrix columns")

    return info.loc[columns]

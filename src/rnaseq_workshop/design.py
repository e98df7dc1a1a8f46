"""Design and contrast matrices."""

import re
from typing import Sequence, Union

import numpy as np
import pandas as pd


_TERM = re.compile(
    r"\s*(?P<sign>[+-])?\s*"
    r"(?:(?P<coef>\d+(?:\.\d*)?|\.\d+)\s*\*\s*)?"
    r"(?P<name>[A-Za-z_.][A-Za-z0-9_.]*)\s*"
)


def make_design(group: Union[pd.Categorical, Sequence], index=None) -> pd.DataFrame:
    """
    Indicator design matrix without an intercept (``~0 + group``).

    Each column is a group level; each row has a single 1 for the sample's
    group, so coefficients are group means.

    Args:
        group: Group label per sample
        index: Sample IDs for the rows

    Returns:
        DataFrame of 0/1 integers, samples x group levels
    """
    if not isinstance(group, pd.Categorical):
        group = pd.Categorical(group, categories=sorted(pd.unique(np.asarray(group))))
    design = pd.get_dummies(group, dtype=int)
    design = design.reindex(columns=list(group.categories), fill_value=0)
    design.columns = [str(c) for c in design.columns]
    if index is not None:
        design.index = index
    return design


def parse_contrast(expression: str, levels: Sequence[str]) -> pd.Series:
    """
    Turn ``"basal.pregnant - basal.lactate"`` into a coefficient vector.

    Terms are design column names joined by ``+`` or ``-``, each optionally
    prefixed by a numeric coefficient (``"0.5*a + 0.5*b - c"``).
    """
    levels = list(levels)
    weights = pd.Series(0.0, index=levels)
    pos = 0
    expression = expression.strip()
    if not expression:
        raise ValueError("Empty contrast expression")

    first = True
    while pos < len(expression):
        match = _TERM.match(expression, pos)
        if match is None or match.end() == pos:
            raise ValueError(f"Cannot parse contrast '{expression}' at position {pos}")
        sign = match.group("sign")
        if sign is None and not first:
            raise ValueError(f"Missing operator before '{match.group('name')}' in '{expression}'")
        name = match.group("name")
        if name not in weights.index:
            raise ValueError(
                f"Unknown level '{name}' in contrast '{expression}'; "
                f"design columns are: {', '.join(levels)}"
            )
        coef = float(match.group("coef")) if match.group("coef") else 1.0
        weights[name] += -coef if sign == "-" else coef
        pos = match.end()
        first = False

    return weights


def make_contrasts(design: pd.DataFrame, **contrasts: str) -> pd.DataFrame:
    """
    Contrast matrix for named comparisons between design columns.

    Example::

        make_contrasts(design, B_PregVsLac="basal.pregnant - basal.lactate")

    Use ``make_contrasts(design, **{"B.PregVsLac": ...})`` for names that are
    not Python identifiers.

    Returns:
        DataFrame with design columns as rows and one column per contrast
    """
    if not contrasts:
        raise ValueError("At least one contrast is required")

    matrix = pd.DataFrame(
        {name: parse_contrast(expr, design.columns) for name, expr in contrasts.items()}
    )
    matrix.index.name = "Levels"
    return matrix


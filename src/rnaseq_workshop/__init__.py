"""RNA-seq workshop - differential expression with edgeR, limma and voom."""

__version__ = "0.1.0"

from .config import get_config, Config
from .dgelist import DGEList, make_groups
from .validation import validate_count_matrix, validate_sample_info, ValidationError
from .filtering import filter_by_cpm
from .design import make_design, make_contrasts
from .workshop import run_workshop

__all__ = [
    'get_config',
    'Config',
    'DGEList',
    'make_groups',
    'validate_count_matrix',
    'validate_sample_info',
    'ValidationError',
    'filter_by_cpm',
    'make_design',
    'make_contrasts',
    'run_workshop'
]

"""Configuration management for the RNA-seq workshop pipeline."""

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml


class AnalysisDefaults(BaseModel):
    """Default analysis parameters."""

    cpm_threshold: float = Field(default=0.5, ge=0.0)
    min_samples: int = Field(default=2, ge=1)
    prior_count: float = Field(default=2.0, gt=0.0)
    norm_method: str = Field(default="TMM")
    group_columns: List[str] = ["CellType", "Status"]
    mds_top: int = Field(default=500, ge=2)
    heatmap_top: int = Field(default=500, ge=2)
    fdr_threshold: float = Field(default=0.05, ge=0.0, le=1.0)
    lfc_threshold: float = Field(default=0.0, ge=0.0)
    treat_lfc: Optional[float] = Field(default=1.0, ge=0.0)
    volcano_highlight: int = Field(default=100, ge=0)
    annotation_species: str = Field(default="mouse")
    use_mygene: bool = False
    contrasts: Dict[str, str] = {
        "B.PregVsLac": "basal.pregnant - basal.lactate",
        "L.PregVsLac": "luminal.pregnant - luminal.lactate",
    }


class PathConfig(BaseModel):
    """Path configurations."""

    workdir: Path = Field(default_factory=lambda: Path.cwd())
    data_dir: Optional[Path] = None
    output_dir: Optional[Path] = None
    sessions_dir: Optional[Path] = None
    counts_file: str = "GSE60450_LactationGenewiseCounts.txt"
    sample_info_file: str = "SampleInfo_Corrected.txt"
    annotation_file: Optional[str] = "mouse_annotation.txt"

    def __init__(self, **data):
        super().__init__(**data)
        # Set derived paths if not provided
        if self.data_dir is None:
            self.data_dir = self.workdir / "data"
        if self.output_dir is None:
            self.output_dir = self.workdir / "output"
        if self.sessions_dir is None:
            self.sessions_dir = self.workdir / "sessions"

    @property
    def counts_path(self) -> Path:
        return self.data_dir / self.counts_file

    @property
    def sample_info_path(self) -> Path:
        return self.data_dir / self.sample_info_file

    @property
    def annotation_path(self) -> Optional[Path]:
        if self.annotation_file is None:
            return None
        return self.data_dir / self.annotation_file

    @property
    def figures_dir(self) -> Path:
        return self.output_dir / "figures"

    @property
    def html_dir(self) -> Path:
        return self.output_dir / "html"

    def create_directories(self):
        """Create all output directories."""
        for path in [self.output_dir, self.figures_dir, self.html_dir,
                     self.sessions_dir]:
            path.mkdir(parents=True, exist_ok=True)


class PlotConfig(BaseModel):
    """Plot rendering settings."""

    dpi: int = Field(default=150, ge=50)
    static_format: str = Field(default="png")
    width: int = Field(default=900, ge=200)
    height: int = Field(default=600, ge=200)


class Config(BaseSettings):
    """Main configuration class."""

    model_config = SettingsConfigDict(
        env_prefix="RNASEQ_WS_",
        env_nested_delimiter="__",
    )

    defaults: AnalysisDefaults = Field(default_factory=AnalysisDefaults)
    paths: PathConfig = Field(default_factory=PathConfig)
    plots: PlotConfig = Field(default_factory=PlotConfig)

    title: str = "RNA-seq differential expression workshop"
    snapshot_name: str = "preprocessing.pkl"

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from YAML file."""
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path):
        """Save configuration to YAML file."""
        data = self.model_dump()
        # Convert Path objects to strings
        def convert_paths(obj):
            if isinstance(obj, dict):
                return {k: convert_paths(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert_paths(item) for item in obj]
            elif isinstance(obj, Path):
                return str(obj)
            return obj

        data = convert_paths(data)

        with open(path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def initialize(self):
        """Create the output directories."""
        self.paths.create_directories()


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance.

    A ``workshop.yaml`` in the working directory takes precedence over the
    built-in defaults.
    """
    global _config
    if _config is None:
        default_config_path = Path.cwd() / "workshop.yaml"
        if default_config_path.exists():
            _config = Config.from_yaml(default_config_path)
        else:
            _config = Config()
    return _config


def set_config(config: Optional[Config]):
    """Set (or with ``None`` reset) the global configuration instance."""
    global _config
    _config = config


# Example workshop.yaml template
CONFIG_TEMPLATE = """
# RNA-seq workshop configuration

defaults:
  cpm_threshold: 0.5         # Keep genes above this CPM ...
  min_samples: 2             # ... in at least this many samples
  prior_count: 2.0           # Prior count for log-CPM
  norm_method: TMM
  group_columns:
    - CellType
    - Status
  mds_top: 500               # Genes used for each pairwise MDS distance
  heatmap_top: 500           # Most variable genes in the heatmap
  fdr_threshold: 0.05
  lfc_threshold: 0.0
  treat_lfc: 1.0             # Set to null to skip TREAT
  volcano_highlight: 100
  annotation_species: mouse
  use_mygene: false          # Query mygene.info instead of annotation_file
  contrasts:
    B.PregVsLac: basal.pregnant - basal.lactate
    L.PregVsLac: luminal.pregnant - luminal.lactate

paths:
  workdir: .
  counts_file: GSE60450_LactationGenewiseCounts.txt
  sample_info_file: SampleInfo_Corrected.txt
  annotation_file: mouse_annotation.txt
  # data_dir: ./data
  # output_dir: ./output
  # sessions_dir: ./sessions

plots:
  dpi: 150
  static_format: png
  width: 900
  height: 600               # Interactive (HTML) figure size in pixels

title: RNA-seq differential expression workshop   # Prefix of figure titles
snapshot_name: preprocessing.pkl
"""


if __name__ == "__main__":
    config = get_config()
    print(f"Data dir: {config.paths.data_dir}")
    print(f"CPM threshold: {config.defaults.cpm_threshold}")
    print(f"Contrasts: {config.defaults.contrasts}")

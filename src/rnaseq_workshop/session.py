"""Save and restore intermediate objects between sessions."""

import dataclasses
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Union

import pandas as pd


logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT = 1


def _detach_r_objects(obj: Any) -> Any:
    """R handles live in the embedded R process and cannot be pickled."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        changes = {}
        for f in dataclasses.fields(obj):
            value = getattr(obj, f.name)
            if f.name == "r_object":
                changes[f.name] = None
            elif dataclasses.is_dataclass(value) or isinstance(value, dict):
                changes[f.name] = _detach_r_objects(value)
        return dataclasses.replace(obj, **changes) if changes else obj
    if isinstance(obj, dict):
        return {k: _detach_r_objects(v) for k, v in obj.items()}
    return obj


def save_snapshot(filepath: Union[str, Path], **objects: Any) -> Path:
    """
    Save named objects (DGEList, group, sample info, ...) to one file.

    Example::

        save_snapshot("preprocessing.pkl", group=group, dge=dge, sample_info=info)
    """
    from . import __version__

    if not objects:
        raise ValueError("Nothing to save")

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        "format": SNAPSHOT_FORMAT,
        "version": __version__,
        "created_at": datetime.now().isoformat(timespec="seconds"),
        "objects": {name: _detach_r_objects(obj) for name, obj in objects.items()},
    }
    pd.to_pickle(payload, filepath)
    logger.info(f"Saved {', '.join(objects)} to {filepath}")
    return filepath


def load_snapshot(filepath: Union[str, Path]) -> Dict[str, Any]:
    """Load the objects saved by :func:`save_snapshot`."""
    filepath = Path(filepath)
    payload = pd.read_pickle(filepath)

    if not isinstance(payload, dict) or payload.get("format") != SNAPSHOT_FORMAT:
        raise ValueError(f"{filepath} is not a workshop snapshot (format {SNAPSHOT_FORMAT})")

    logger.info(
        f"Loaded {', '.join(payload['objects'])} from {filepath} "
        f"(saved {payload['created_at']} by version {payload['version']})"
    )
    return payload["objects"]

# src/quad_dla/utils.py
from __future__ import annotations

import json
import math
import os
import time
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

DENSITY_COLUMNS = ("radius", "count", "area", "density")


@dataclass
class ClusterResult:
    """Common container for aggregation run outputs."""

    positions: Optional[np.ndarray] = None
    density: Optional[np.ndarray] = None
    meta: Optional[Dict[str, Any]] = None


def make_rng(seed: int | None = None) -> np.random.Generator:
    """Per-run random source; pass the same seed to replay a run exactly."""
    return np.random.default_rng(seed)


def now_str() -> str:
    return time.strftime("%Y%m%d-%H%M%S")


def radial_distances(positions: np.ndarray, center: tuple[float, float]) -> np.ndarray:
    pos = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
    return np.hypot(pos[:, 0] - center[0], pos[:, 1] - center[1])


def ring_points(
    count: int, radius: float, center: tuple[float, float], phase: float = 0.0
) -> np.ndarray:
    """Return `count` points evenly spaced on a circle, shape (count, 2)."""
    if count <= 0:
        return np.empty((0, 2), dtype=np.float64)
    theta = phase + np.arange(count, dtype=np.float64) * (2.0 * math.pi / count)
    pts = np.empty((count, 2), dtype=np.float64)
    pts[:, 0] = center[0] + radius * np.cos(theta)
    pts[:, 1] = center[1] + radius * np.sin(theta)
    return pts


def save_cluster_result(
    path: str | os.PathLike[str], result: ClusterResult, *, overwrite: bool = True
) -> None:
    """Serialize a ClusterResult to disk."""
    out_dir = Path(path).parent
    out_dir.mkdir(parents=True, exist_ok=True)
    out: Dict[str, Any] = {}
    if result.positions is not None:
        out["positions"] = np.asarray(result.positions, dtype=np.float64)
    if result.density is not None:
        out["density"] = np.asarray(result.density, dtype=np.float64)

    # numpy arrays in meta are stored at top level for easier access
    meta = result.meta or {}
    meta_clean = {}
    for key, value in meta.items():
        if isinstance(value, np.ndarray):
            out[key] = value
        else:
            meta_clean[key] = value
    out["meta"] = meta_clean

    if not overwrite and Path(path).exists():
        raise FileExistsError(f"{path} already exists")
    np.savez_compressed(path, **out)


def load_cluster(path: str | os.PathLike[str]) -> ClusterResult:
    """
    Load cluster .npz into a ClusterResult.
    """
    data = np.load(path, allow_pickle=True)
    positions = data["positions"].astype(float) if "positions" in data else None
    density = data["density"].astype(float) if "density" in data else None
    meta = None
    if "meta" in data:
        meta_raw = data["meta"]
        if hasattr(meta_raw, "item"):
            try:
                meta = meta_raw.item()
            except ValueError:
                meta = meta_raw
        else:
            meta = meta_raw
    if meta is None:
        meta = {}
    for key in data.files:
        if key not in {"positions", "density", "meta"} and key not in meta:
            meta[key] = data[key]

    return ClusterResult(positions=positions, density=density, meta=meta)


def write_density_table(
    path: str | os.PathLike[str],
    table: np.ndarray,
    sticking_probability: float | None = None,
) -> None:
    """
    Write a (rows, 4) radius/count/area/density table as comma-delimited text.

    The only header is an optional leading line recording the sticking
    probability in force when the table was taken. The file is overwritten.
    """
    out_dir = Path(path).parent
    out_dir.mkdir(parents=True, exist_ok=True)
    table = np.asarray(table, dtype=np.float64).reshape(-1, 4)
    header = "" if sticking_probability is None else f"sticking_probability={sticking_probability:.6g}"
    np.savetxt(
        path,
        table,
        delimiter=",",
        fmt=("%d", "%d", "%.10g", "%.10g"),
        header=header,
        comments="# ",
    )


def read_density_table(path: str | os.PathLike[str]) -> tuple[np.ndarray, float | None]:
    """Inverse of write_density_table: returns (table, sticking_probability)."""
    sticking = None
    with open(path, "r", encoding="utf-8") as fh:
        first = fh.readline()
    if first.startswith("#") and "=" in first:
        sticking = float(first.split("=", 1)[1])
    table = np.loadtxt(path, delimiter=",", comments="#", ndmin=2)
    if table.size == 0:
        table = np.empty((0, 4), dtype=np.float64)
    return table, sticking


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load simulation parameters from JSON or TOML.
    """
    path = str(path)
    with open(path, "rb") as fh:
        data = fh.read()
    suffix = Path(path).suffix.lower()
    if suffix in {".json", ""}:
        return json.loads(data.decode("utf-8"))
    if suffix in {".toml", ".tml"}:
        return tomllib.loads(data.decode("utf-8"))
    raise ValueError(f"Unsupported parameter file format: {suffix}")

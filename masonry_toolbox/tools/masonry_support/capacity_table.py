from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import CapacityDataError
from .paths import user_override_capacity_path

_COLUMNS = [
    "description",
    "slab",
    "top",
    "bottom",
    "spacing",
    "tension",
    "tension_uf",
    "shear",
    "shear_uf",
    "combined_uf",
]
_INHERITED = ["slab", "top", "bottom"]
_NUMERIC = _COLUMNS[1:]
_MAX_COLUMNS = 32


class UtilizationFactors(BaseModel):
    model_config = ConfigDict(frozen=True)

    tension_pct: float = Field(ge=0.0, le=1000.0)
    shear_pct: float = Field(ge=0.0, le=1000.0)
    combined_pct: float = Field(ge=0.0, le=1000.0)


class ChannelSpec(BaseModel):
    """Tabulated capacity of one fixing channel at one (slab thickness, bracket centres)."""

    model_config = ConfigDict(frozen=True)

    channel_type: str
    slab_thickness_mm: float = Field(gt=0.0)
    bracket_centres_mm: float = Field(gt=0.0)
    top_edge_mm: float = Field(gt=0.0)
    bottom_edge_mm: float = Field(gt=0.0)
    max_tension_kn: float = Field(gt=0.0)
    max_shear_kn: float = Field(gt=0.0)
    utilization_factors: Optional[UtilizationFactors] = None

    @property
    def id(self) -> str:
        return f"{self.channel_type}_{self.slab_thickness_mm:g}_{self.bracket_centres_mm:g}"


@dataclass(frozen=True)
class CapacityLookup:
    spec: Optional[ChannelSpec]
    fallback: bool = False
    note: str = ""

    @property
    def found(self) -> bool:
        return self.spec is not None


SpecKey = Tuple[str, float, float]


def extract_channel_type(description: str) -> Optional[str]:
    """Map a product header description onto a channel type name."""
    d = description or ""
    if "CPRO38" in d:
        return "CPRO38"
    if "CPRO50" in d:
        return "CPRO50"
    if "CPRO52" in d:
        return "CPRO52"
    if "HPTIII-70mm" in d or ("R-HPTIII" in d and "70mm" in d):
        return "R-HPTIII-70"
    if "HPTIII-90mm" in d or ("R-HPTIII" in d and "90mm" in d):
        return "R-HPTIII-90"
    return None


def parse_capacity_csv(text: str) -> Tuple[List[ChannelSpec], List[str]]:
    """Parse the sparse capacity sheet.

    Layout: one block per product. The block's header row carries the product
    description in the first cell. Data rows leave the first cell blank and
    only populate slab thickness / edge distances on the first row where they
    change; blank cells inherit from the row above within the same block.

    Malformed rows are skipped and reported as warnings.
    """
    warnings: List[str] = []

    def _bad_line(fields: List[str]) -> None:
        warnings.append(f"Row with {len(fields)} columns exceeds {_MAX_COLUMNS}; skipping")
        return None

    if not text.strip():
        return [], warnings

    frame = pd.read_csv(
        io.StringIO(text),
        header=None,
        names=list(range(_MAX_COLUMNS)),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        engine="python",
        on_bad_lines=_bad_line,
    )
    if frame.empty:
        return [], warnings

    frame = frame.iloc[:, : len(_COLUMNS)].fillna("")
    frame.columns = _COLUMNS
    frame = frame.apply(lambda col: col.str.strip())
    row_no = pd.Series(range(1, len(frame) + 1), index=frame.index)

    is_header = frame["description"] != ""
    block = is_header.cumsum()
    channel = frame["description"].where(is_header).map(extract_channel_type, na_action="ignore")
    channel = channel.groupby(block).ffill()

    for idx in frame.index[is_header & channel.isna()]:
        warnings.append(f"Row {row_no[idx]}: unrecognised product '{frame.at[idx, 'description']}'")

    numeric = frame[_NUMERIC].apply(lambda col: pd.to_numeric(col.str.replace("%", "", regex=False), errors="coerce"))
    invalid = (frame[_NUMERIC] != "") & numeric.isna()
    numeric[_INHERITED] = numeric[_INHERITED].groupby(block).ffill()

    specs: List[ChannelSpec] = []
    for idx in frame.index[~is_header]:
        n = row_no[idx]
        ctype = channel.at[idx]
        if pd.isna(ctype):
            warnings.append(f"Row {n}: no valid channel type in effect; skipping data row")
            continue
        bad_cells = [c for c in _NUMERIC if invalid.at[idx, c]]
        if bad_cells:
            warnings.append(f"Row {n}: non-numeric values in {bad_cells}; skipping")
            continue
        row = numeric.loc[idx]
        required = ["slab", "top", "bottom", "spacing", "tension", "shear"]
        missing = [c for c in required if pd.isna(row[c])]
        if missing:
            warnings.append(f"Row {n}: missing {missing}; skipping")
            continue

        ufs = None
        if not any(pd.isna(row[c]) for c in ("tension_uf", "shear_uf", "combined_uf")):
            ufs = {
                "tension_pct": float(row["tension_uf"]),
                "shear_pct": float(row["shear_uf"]),
                "combined_pct": float(row["combined_uf"]),
            }
        try:
            specs.append(
                ChannelSpec(
                    channel_type=str(ctype),
                    slab_thickness_mm=float(row["slab"]),
                    bracket_centres_mm=float(row["spacing"]),
                    top_edge_mm=float(row["top"]),
                    bottom_edge_mm=float(row["bottom"]),
                    max_tension_kn=float(row["tension"]),
                    max_shear_kn=float(row["shear"]),
                    utilization_factors=ufs,
                )
            )
        except ValidationError as e:
            warnings.append(f"Row {n}: invalid capacity record ({e.error_count()} errors); skipping")

    return specs, warnings


def _tool_data_csv_path() -> Path:
    # Tool-relative table (packaged with tool)
    return Path(__file__).resolve().parent / "data" / "channel_capacities.csv"


class CapacityTable:
    """Immutable channel capacity table.

    Built once and handed to the engine; lookups are read-only, so one table
    can be shared across concurrent evaluations.
    """

    def __init__(self, specs: Iterable[ChannelSpec], warnings: Iterable[str] = (), source: str = "memory") -> None:
        by_key: Dict[SpecKey, ChannelSpec] = {}
        for s in specs:
            by_key[(s.channel_type, float(s.slab_thickness_mm), float(s.bracket_centres_mm))] = s
        self._specs = MappingProxyType(by_key)
        self.warnings: Tuple[str, ...] = tuple(warnings)
        self.source = source

    # ------------------------------
    # Construction
    # ------------------------------
    @classmethod
    def from_rows(cls, rows: Iterable[Dict[str, Any]], source: str = "rows") -> "CapacityTable":
        return cls([ChannelSpec.model_validate(r) for r in rows], source=source)

    @classmethod
    def from_csv_text(cls, text: str, source: str = "text") -> "CapacityTable":
        specs, warnings = parse_capacity_csv(text)
        for w in warnings:
            logger.warning(f"Capacity table {source}: {w}")
        if not specs:
            raise CapacityDataError(f"Capacity table {source} contains no usable rows.")
        return cls(specs, warnings=warnings, source=source)

    @classmethod
    def from_csv_path(cls, path: Union[str, Path]) -> "CapacityTable":
        p = Path(path)
        try:
            text = p.read_text(encoding="utf-8-sig")
        except OSError as e:
            raise CapacityDataError(f"Unable to read capacity table {p}: {e}") from e
        return cls.from_csv_text(text, source=str(p))

    @classmethod
    def load_default(cls, override_path: Optional[Union[str, Path]] = None) -> "CapacityTable":
        """Explicit path, then the user override file, then the packaged table."""
        if override_path:
            return cls.from_csv_path(override_path)
        user = user_override_capacity_path()
        if user is not None:
            logger.info(f"Using user capacity table override: {user}")
            return cls.from_csv_path(user)
        return cls.from_csv_path(_tool_data_csv_path())

    # ------------------------------
    # Queries
    # ------------------------------
    def __len__(self) -> int:
        return len(self._specs)

    def specs(self) -> List[ChannelSpec]:
        return list(self._specs.values())

    def channel_types(self) -> List[str]:
        return sorted({k[0] for k in self._specs})

    def lookup(self, channel_type: str, slab_thickness_mm: float, bracket_centres_mm: float) -> CapacityLookup:
        """Exact key, else greatest slab <= requested, else smallest slab (flagged)."""
        exact = self._specs.get((channel_type, float(slab_thickness_mm), float(bracket_centres_mm)))
        if exact is not None:
            return CapacityLookup(spec=exact)

        candidates = sorted(
            (s for k, s in self._specs.items() if k[0] == channel_type and k[2] == float(bracket_centres_mm)),
            key=lambda s: s.slab_thickness_mm,
        )
        if not candidates:
            return CapacityLookup(
                spec=None,
                note=f"No capacity data for {channel_type} at {bracket_centres_mm:g} mm centres.",
            )

        lower = [s for s in candidates if s.slab_thickness_mm <= float(slab_thickness_mm)]
        if lower:
            chosen = lower[-1]
            return CapacityLookup(
                spec=chosen,
                note=(
                    f"{channel_type}: no data for {slab_thickness_mm:g} mm slab; "
                    f"using {chosen.slab_thickness_mm:g} mm slab row."
                ),
            )

        chosen = candidates[0]
        note = (
            f"{channel_type}: no slab row <= {slab_thickness_mm:g} mm at {bracket_centres_mm:g} mm centres; "
            f"using {chosen.slab_thickness_mm:g} mm slab row (non-conservative fallback)."
        )
        logger.warning(note)
        return CapacityLookup(spec=chosen, fallback=True, note=note)

    def valid_bracket_centres(self, channel_type: str, slab_thickness_mm: float) -> Tuple[List[float], str]:
        """Tabulated centres for a channel at a slab thickness, using the same nearest-lower rule."""
        for_type = [s for s in self._specs.values() if s.channel_type == channel_type]
        if not for_type:
            return [], ""
        slabs = sorted({s.slab_thickness_mm for s in for_type})
        note = ""
        if float(slab_thickness_mm) in slabs:
            chosen = float(slab_thickness_mm)
        else:
            lower = [t for t in slabs if t <= float(slab_thickness_mm)]
            chosen = lower[-1] if lower else slabs[0]
            note = f"{channel_type}: no data for {slab_thickness_mm:g} mm slab; using {chosen:g} mm centres."
            logger.warning(note)
        centres = sorted(s.bracket_centres_mm for s in for_type if s.slab_thickness_mm == chosen)
        return centres, note

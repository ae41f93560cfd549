from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import (
    DEFAULT_FIXING_POSITION_MM,
    DEFAULT_LOAD_POSITION,
    DEFAULT_MASONRY_DENSITY_KG_M3,
    DEFAULT_MASONRY_HEIGHT_M,
    DEFAULT_MASONRY_THICKNESS_MM,
    DIM_D_CLEARANCE_MM,
    DIM_D_MAX_MM,
    DIM_D_MIN_MM,
    DIM_D_STEP_MM,
    MIN_RISE_TO_BOLTS_MM,
    TOP_N_ALTERNATIVES,
)

FixingFamily = Literal["cast_in", "post_fix", "all", "steel"]
SteelSectionType = Literal["RHS", "SHS", "I-BEAM"]
SteelFixingChoice = Literal["SET_SCREW", "BLIND_BOLT", "both"]


class SteelSection(BaseModel):
    """Steel section the brackets bolt to (replaces the concrete slab)."""

    section_type: SteelSectionType = Field("I-BEAM", description="Steel section family.")
    section_size: str = Field("", description="Section designation, for reporting only (e.g. 305x165).")
    effective_height_mm: float = Field(..., gt=50.0, le=1000.0, description="Effective section height used as slab thickness (mm).")
    fixing_method: Optional[SteelFixingChoice] = Field(
        None, description="I-BEAM only: SET_SCREW (default), BLIND_BOLT or both. RHS/SHS always use BLIND_BOLT."
    )

    @field_validator("section_type", mode="before")
    @classmethod
    def _normalize_section_type(cls, v: str) -> str:
        s = str(v).strip().upper().replace("_", "-")
        return "I-BEAM" if s in {"IBEAM", "I-BEAM", "UB", "UC"} else s

    @model_validator(mode="after")
    def _cross_checks(self):
        if self.section_type in ("RHS", "SHS") and self.fixing_method not in (None, "BLIND_BOLT"):
            raise ValueError(f"{self.section_type} sections only accept BLIND_BOLT fixings.")
        return self

    def fixing_methods(self) -> List[str]:
        if self.section_type in ("RHS", "SHS"):
            return ["BLIND_BOLT"]
        if self.fixing_method == "both":
            return ["SET_SCREW", "BLIND_BOLT"]
        return [self.fixing_method or "SET_SCREW"]


class DesignInputs(BaseModel):
    """
    Caller-supplied design brief for one masonry support run.

    Units: millimetres, kN, N/mm2. Support level is the signed offset of the
    masonry bearing level from structural slab level (negative = below SSL).

    The characteristic line load may be given directly or, when omitted,
    derived from masonry density, height and thickness.
    """

    slab_thickness_mm: float = Field(200.0, ge=150.0, le=500.0, description="Concrete slab thickness (mm).")
    cavity_mm: float = Field(100.0, ge=40.0, le=400.0, description="Cavity width, slab face to masonry (mm).")
    support_level_mm: float = Field(-100.0, ge=-600.0, le=500.0, description="Support level relative to SSL (mm).")
    characteristic_load_kn_per_m: Optional[float] = Field(
        5.0, gt=0.0, le=50.0, description="Characteristic masonry line load (kN/m). Omit to derive from masonry."
    )

    masonry_density_kg_m3: float = Field(DEFAULT_MASONRY_DENSITY_KG_M3, gt=0.0, description="Masonry density (kg/m3).")
    masonry_height_m: float = Field(DEFAULT_MASONRY_HEIGHT_M, gt=0.0, description="Masonry height supported (m).")
    masonry_thickness_mm: float = Field(DEFAULT_MASONRY_THICKNESS_MM, gt=0.0, le=300.0, description="Facade leaf thickness (mm).")
    load_position: float = Field(
        DEFAULT_LOAD_POSITION, gt=0.0, le=1.0, description="Load position as a fraction of facade thickness."
    )

    notch_height_mm: float = Field(0.0, ge=0.0, le=400.0, description="Bracket notch height (mm).")
    notch_depth_mm: float = Field(0.0, ge=0.0, le=200.0, description="Bracket notch depth (mm).")

    fixing_family: FixingFamily = Field("all", description="Fixing restriction: cast_in, post_fix, all or steel.")
    channel_types: Optional[List[str]] = Field(None, description="Explicit channel types to consider (overrides family).")
    steel_section: Optional[SteelSection] = Field(None, description="Steel section when fixing_family is steel.")

    fixed_angle_length_mm: Optional[float] = Field(
        None, ge=200.0, le=1490.0, description="Ceiling on angle piece length for run layout (mm)."
    )
    run_length_mm: Optional[float] = Field(None, gt=0.0, le=200000.0, description="Total support run length (mm).")
    max_bracket_extension_mm: Optional[float] = Field(
        None, gt=0.0, description="Exclusion zone: max bracket extension below the fixing (mm)."
    )

    @field_validator("channel_types")
    @classmethod
    def _normalize_channel_types(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return None
        out = [s.strip().upper().replace(" ", "") for s in v if s and s.strip()]
        return out or None

    @model_validator(mode="after")
    def _cross_checks(self):
        if self.fixing_family == "steel" and self.steel_section is None:
            raise ValueError("fixing_family 'steel' requires steel_section.")
        if self.steel_section is not None and self.fixing_family != "steel":
            raise ValueError("steel_section is only valid with fixing_family 'steel'.")
        if self.fixing_family == "steel" and self.channel_types:
            raise ValueError("channel_types cannot be combined with fixing_family 'steel'.")
        if self.notch_height_mm > 0.0 and self.notch_depth_mm <= 0.0:
            raise ValueError("notch_depth_mm must be > 0 when a notch height is given.")
        return self

    def effective_slab_thickness_mm(self) -> float:
        if self.steel_section is not None:
            return float(self.steel_section.effective_height_mm)
        return float(self.slab_thickness_mm)


class FixedFixingPosition(BaseModel):
    mode: Literal["fixed"] = "fixed"
    position_mm: float = Field(DEFAULT_FIXING_POSITION_MM, gt=0.0, description="Fixing depth below top of slab (mm).")


class OptimizedFixingPosition(BaseModel):
    mode: Literal["optimize"] = "optimize"
    start_position_mm: float = Field(DEFAULT_FIXING_POSITION_MM, gt=0.0)
    increment_mm: float = Field(5.0, gt=0.0)
    min_rise_to_bolts_mm: float = Field(MIN_RISE_TO_BOLTS_MM, ge=0.0)
    min_bottom_clearance_mm: float = Field(125.0, ge=0.0)
    max_position_mm: Optional[float] = Field(None, gt=0.0)


class DimDOff(BaseModel):
    mode: Literal["off"] = "off"


class DimDScan(BaseModel):
    mode: Literal["scan"] = "scan"
    start_mm: float = Field(DIM_D_MIN_MM, gt=0.0)
    end_mm: float = Field(DIM_D_MAX_MM, gt=0.0)
    step_mm: float = Field(DIM_D_STEP_MM, gt=0.0)
    clearance_mm: float = Field(DIM_D_CLEARANCE_MM, ge=0.0)

    @model_validator(mode="after")
    def _cross_checks(self):
        if self.end_mm < self.start_mm:
            raise ValueError("dim_d end_mm must be >= start_mm.")
        return self


FixingPositionSearch = Annotated[Union[FixedFixingPosition, OptimizedFixingPosition], Field(discriminator="mode")]
DimDSearch = Annotated[Union[DimDOff, DimDScan], Field(discriminator="mode")]


class SearchConfig(BaseModel):
    fixing_position: FixingPositionSearch = Field(default_factory=FixedFixingPosition)
    dim_d: DimDSearch = Field(default_factory=DimDScan)
    timeout_s: Optional[float] = Field(None, gt=0.0, description="Wall-clock limit; default from settings or 120 s.")
    max_combinations: Optional[int] = Field(None, gt=0, description="Refuse to search spaces larger than this.")
    top_n_alternatives: int = Field(TOP_N_ALTERNATIVES, ge=0, le=50)
    workers: int = Field(1, ge=1, le=32, description="Worker threads; 1 evaluates sequentially.")
    progress_interval_s: float = Field(0.5, ge=0.0)


class MasonrySupportInputs(DesignInputs):
    """Tool input model: the design brief plus search configuration."""

    search: SearchConfig = Field(default_factory=SearchConfig)

    def design_inputs(self) -> DesignInputs:
        return DesignInputs.model_validate(self.model_dump(exclude={"search"}))

    @model_validator(mode="after")
    def _fixing_within_slab(self):
        fp = self.search.fixing_position
        slab = self.effective_slab_thickness_mm()
        pos = fp.position_mm if isinstance(fp, FixedFixingPosition) else fp.start_position_mm
        if pos >= slab:
            raise ValueError(f"Fixing position {pos:g} mm must be less than slab thickness {slab:g} mm.")
        return self

from __future__ import annotations

import math

DEFAULT_UNITS_SYSTEM = "SI (mm, kN, N/mm2)"

# Final reported values are rounded to this many decimals; intermediates never are.
REPORT_DECIMALS = 12

GRAVITY = 9.81

# Material
STEEL_YIELD_N_MM2 = 210.0
STEEL_E_N_MM2 = 200000.0
RAMBERG_OSGOOD_N = 8.0
GAMMA_M0 = 1.1
LOAD_FACTOR = 1.35
STEEL_KG_PER_MM3 = 7850e-9
EPSILON = 1.058

# Bolts (angle to bracket)
BOLT_FUB_N_MM2 = 700.0
GAMMA_M2 = 1.25
ALPHA_TENSION = 0.9
BOLT_STRESS_AREA_MM2 = {10: 58.0, 12: 84.3}
TENSION_INTERACTION_FACTOR = 1.4
PACKER_THICKNESS_MM = 10.0

# Fixing
BASE_PLATE_WIDTH_MM = 56.0
CONCRETE_GRADE_N_MM2 = 30.0
EQUILIBRIUM_TOLERANCE = 1e-5
INTERACTION_POWER = 1.5
INTERACTION_LINEAR_DIVISOR = 1.2

# Deflection limits
MAX_ANGLE_DEFLECTION_MM = 1.5
MAX_SYSTEM_DEFLECTION_MM = 2.0
ANGLE_IXX_FOR_SPAN_MM4 = {
    3: 139727.0,
    4: 180849.0,
    5: 218359.0,
    6: 255683.0,
    8: 617257.0,
    10: 741102.0,
}

# Angle geometry
HORIZONTAL_LEG_MM = 90.0
VERTICAL_LEG_MM = 60.0
VERTICAL_LEG_HEAVY_MM = 75.0
HEAVY_ANGLE_THICKNESS_MM = 8
ANGLE_SHIM_MM = 3.0
CAVITY_TOLERANCE_MM = 10.0
DESIGN_CAVITY_ALLOWANCE_MM = 20.0
MODEL_LEG_ALLOWANCE_MM = 16.5
BRACKET_SPINE_WIDTH_MM = {3: 43.17, 4: 40.55}

# Bracket / fixing geometry
DEFAULT_FIXING_POSITION_MM = 75.0
BASELINE_FIXING_LEVEL_MM = -75.0
DISTANCE_FROM_TOP_TO_FIXING_MM = 40.0
WORST_CASE_ADJUSTMENT_MM = 15.0
MIN_RISE_TO_BOLTS_MM = 95.0
FALLBACK_TOP_EDGE_MM = 75.0
FALLBACK_BOTTOM_EDGE_MM = 150.0
FIXING_PERFORMANCE_LIMIT_MM = 100.0

# Minimum bracket height used for Inverted brackets when the base formula
# implies a negative rise to bolts. Empirical; pending engineering confirmation.
INVERTED_BRACKET_MIN_HEIGHT_MM = 165.0

MAX_ANGLE_HEIGHT_MM = 400.0

# Dim D (inverted bracket width)
DIM_D_MIN_MM = 130.0
DIM_D_MAX_MM = 450.0
DIM_D_STEP_MM = 5.0
DIM_D_CLEARANCE_MM = 40.0

# Search domains
BRACKET_CENTRES_MM = tuple(range(200, 501, 25))
HEAVY_LOAD_CENTRES_LIMIT_MM = 500
LIGHT_LOAD_CENTRES_LIMIT_MM = 600
HEAVY_LOAD_KN_PER_M = 5.0
BRACKET_THICKNESSES_MM = (3, 4)
THICK_BRACKET_LOAD_KN_PER_M = 4.0
THICK_BRACKET_OVERHANG_MM = 50.0
ANGLE_THICKNESSES_MM = (3, 4, 5, 6, 8)
BOLT_DIAMETERS_MM = (10, 12)
LARGE_SEARCH_SPACE = 50_000
TOP_N_ALTERNATIVES = 10

CAST_IN_CHANNELS = ("CPRO38", "CPRO50")
POST_FIX_CHANNELS = ("R-HPTIII-70", "R-HPTIII-90")
REVIEW_REQUIRED_CHANNELS = POST_FIX_CHANNELS

# Loading defaults
DEFAULT_MASONRY_DENSITY_KG_M3 = 2000.0
DEFAULT_MASONRY_HEIGHT_M = 3.0
DEFAULT_MASONRY_THICKNESS_MM = 102.5
DEFAULT_LOAD_POSITION = 1.0 / 3.0

SQRT_3 = math.sqrt(3.0)

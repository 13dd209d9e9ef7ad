"""
Lattice Settings (Configuration Model)
======================================
Defines the declarative configuration consumed by the lattice generator.

Why is this file needed?
------------------------
1. Single source of truth: every knob the generator reads lives in one tree of
   dataclasses with the application's defaults.
2. Transport: the worker boundary receives settings by value as plain dicts;
   `LatticeSettings.from_dict` / `to_dict` convert between the two forms.
3. Robustness: unknown enum values and garbage map keys fall back to defaults
   with a warning instead of aborting generation.

Classes:
    OriginConfig: Root or secondary origin with its branch tables.
    EqualStepConfig, GridGeometryConfig, SpiralConfig, CurvedGeometryConfig:
        Geometry mode blocks.
    NodeBranchOverride: Per-node branch overrides.
    LatticeSettings: The main container.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, asdict, fields
from enum import StrEnum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from jilattice.config import (
    DEFAULT_IMPLICIT_EXPRESSION, DEFAULT_PARAMETRIC_EXPRESSION, DEFAULT_VOXEL_EXPRESSION
)
from jilattice.utils import int_keys

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=StrEnum)


class SettingsError(ValueError):
    """Raised when a configuration cannot be interpreted at all."""


class LayoutMode(StrEnum):
    LATTICE = "lattice"
    DIAMOND = "diamond"


class GridMode(StrEnum):
    RECTANGLE = "rectangle"
    CUSTOM = "custom"
    SPHERE = "sphere"


class CustomStyle(StrEnum):
    IMPLICIT = "implicit"
    VOXEL = "voxel"
    PARAMETRIC = "parametric"


class InputSpace(StrEnum):
    LATTICE = "lattice"
    WORLD = "world"
    BOTH = "both"


class ThresholdMode(StrEnum):
    LTE0 = "lte0"
    ABS = "abs"


class ParametricMode(StrEnum):
    CURVE = "curve"
    SURFACE = "surface"


class EqualStepVisualization(StrEnum):
    HELIX = "helix"
    GRAPHITE = "graphite"


class PitchMetric(StrEnum):
    LOG2 = "log2"
    CENTS = "cents"
    PRIME_L1 = "primeL1"
    PRIME_L2 = "primeL2"
    PRIME_LINF = "primeLInf"
    WEIGHTED = "weighted"


class DistanceMode(StrEnum):
    LINEAR = "linear"
    POWER = "power"
    LOG = "log"


class PriorityCriterion(StrEnum):
    GEN = "gen"
    LIMIT = "limit"
    ORIGIN = "origin"


# ------------------------------------------------------------------------------
# Parsing helpers
# ------------------------------------------------------------------------------
def _enum(enum_cls: Type[E], value: Any, default: E) -> E:
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"Unknown {enum_cls.__name__} '{value}', using '{default}'.")
        return default


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise SettingsError(f"Expected a mapping for {what}, got {type(data).__name__}.")
    return data


def _int_map(data: Any) -> Dict[int, int]:
    result: Dict[int, int] = {}
    for k, v in int_keys(data).items():
        if v is None:
            continue
        try:
            result[k] = int(v)
        except (TypeError, ValueError):
            continue
    return result


def _float_map(data: Any) -> Dict[int, float]:
    result: Dict[int, float] = {}
    for k, v in int_keys(data).items():
        try:
            result[k] = float(v)
        except (TypeError, ValueError):
            continue
    return result


def _int_list(data: Any) -> List[int]:
    result: List[int] = []
    for v in data or []:
        try:
            result.append(int(v))
        except (TypeError, ValueError, OverflowError):
            continue
    return result


def _opt_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if math.isfinite(number) else None


def _scalars(cls: Type[Any], data: Mapping[str, Any], skip: Tuple[str, ...] = ()) -> Dict[str, Any]:
    """Pick plain scalar fields of a dataclass from data, coercing to the default's type."""
    defaults = cls()
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name in skip or f.name not in data or data[f.name] is None:
            continue
        default = getattr(defaults, f.name)
        value = data[f.name]
        if isinstance(default, StrEnum):
            kwargs[f.name] = _enum(type(default), value, default)
        elif isinstance(default, bool):
            kwargs[f.name] = bool(value)
        elif isinstance(default, int):
            try:
                kwargs[f.name] = int(value)
            except (TypeError, ValueError, OverflowError):
                logger.warning(f"Ignoring non-integer {cls.__name__}.{f.name}={value!r}.")
        elif isinstance(default, float):
            try:
                kwargs[f.name] = float(value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring non-numeric {cls.__name__}.{f.name}={value!r}.")
        else:
            kwargs[f.name] = value
    return kwargs


# ------------------------------------------------------------------------------
# Origins and overrides
# ------------------------------------------------------------------------------
@dataclass
class BranchRange:
    """Asymmetric branch length (negative and positive side)."""
    neg: int = 0
    pos: int = 0

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> BranchRange:
        return BranchRange(neg=int(data.get("neg", 0) or 0), pos=int(data.get("pos", 0) or 0))


def _range_map(data: Any) -> Dict[int, BranchRange]:
    return {k: BranchRange.from_dict(v) for k, v in int_keys(data).items() if isinstance(v, Mapping)}


@dataclass
class OriginConfig:
    """
    One expansion origin (the global root or a secondary origin).

    Optional fields left as None fall back to the global root's value.
    """
    id: str = "root"
    name: str = "Global Root"
    prime_vector: Dict[int, int] = field(default_factory=dict)
    root_limits: List[int] = field(default_factory=lambda: [3])

    expansion_a: int = 12
    expansion_b: int = 4
    expansion_c: int = 1
    expansion_d: int = 0
    expansion_e: int = 0

    gen0_lengths: Dict[int, int] = field(default_factory=dict)
    gen0_ranges: Dict[int, BranchRange] = field(default_factory=dict)
    gen1_lengths: Dict[int, int] = field(default_factory=dict)
    gen1_ranges: Dict[int, BranchRange] = field(default_factory=dict)
    # Generation 2 tables are keyed by the parent's axis, then the child axis
    gen2_lengths: Dict[int, Dict[int, int]] = field(default_factory=dict)
    gen2_ranges: Dict[int, Dict[int, BranchRange]] = field(default_factory=dict)
    gen3_lengths: Dict[int, int] = field(default_factory=dict)
    gen3_ranges: Dict[int, BranchRange] = field(default_factory=dict)
    gen4_lengths: Dict[int, int] = field(default_factory=dict)
    gen4_ranges: Dict[int, BranchRange] = field(default_factory=dict)

    max_prime_limit: int = 11
    gen1_max_prime_limit: Optional[int] = None
    gen2_max_prime_limit: Optional[int] = None
    gen3_max_prime_limit: Optional[int] = None
    gen4_max_prime_limit: Optional[int] = None
    gen1_prime_set: Optional[List[int]] = None
    gen2_prime_set: Optional[List[int]] = None
    gen3_prime_set: Optional[List[int]] = None
    gen4_prime_set: Optional[List[int]] = None

    axis_looping: Optional[Dict[int, Optional[int]]] = None
    comma_spreading: Optional[Dict[int, bool]] = None
    gen0_customize_enabled: Optional[bool] = None

    def max_prime_for_generation(self, gen: int) -> Optional[int]:
        return getattr(self, f"gen{gen}_max_prime_limit", None) if 1 <= gen <= 4 else None

    def prime_set_for_generation(self, gen: int) -> Optional[List[int]]:
        return getattr(self, f"gen{gen}_prime_set", None) if 1 <= gen <= 4 else None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> OriginConfig:
        data = _mapping(data, "origin")
        kwargs = _scalars(OriginConfig, data, skip=tuple(
            f"gen{g}_max_prime_limit" for g in range(1, 5)
        ))
        kwargs["prime_vector"] = _int_map(data.get("prime_vector"))
        if data.get("root_limits") is not None:
            kwargs["root_limits"] = _int_list(data.get("root_limits"))
        for g in (0, 1, 3, 4):
            kwargs[f"gen{g}_lengths"] = _int_map(data.get(f"gen{g}_lengths"))
            kwargs[f"gen{g}_ranges"] = _range_map(data.get(f"gen{g}_ranges"))
        kwargs["gen2_lengths"] = {k: _int_map(v) for k, v in int_keys(data.get("gen2_lengths")).items()}
        kwargs["gen2_ranges"] = {k: _range_map(v) for k, v in int_keys(data.get("gen2_ranges")).items()}
        for g in range(1, 5):
            kwargs[f"gen{g}_max_prime_limit"] = _opt_int(data.get(f"gen{g}_max_prime_limit"))
            prime_set = data.get(f"gen{g}_prime_set")
            kwargs[f"gen{g}_prime_set"] = _int_list(prime_set) if prime_set is not None else None
        if data.get("axis_looping") is not None:
            kwargs["axis_looping"] = {k: _opt_int(v) for k, v in int_keys(data.get("axis_looping")).items()}
        if data.get("comma_spreading") is not None:
            kwargs["comma_spreading"] = {k: bool(v) for k, v in int_keys(data.get("comma_spreading")).items()}
        customize = data.get("gen0_customize_enabled")
        kwargs["gen0_customize_enabled"] = None if customize is None else bool(customize)
        return OriginConfig(**kwargs)


@dataclass
class AxisOverride:
    pos: Optional[int] = None
    neg: Optional[int] = None
    # Ordered (progress, deviation) control points; progress in [0, 1]
    custom_curve: List[Tuple[float, float]] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> AxisOverride:
        curve: List[Tuple[float, float]] = []
        for point in data.get("custom_curve") or []:
            if isinstance(point, Mapping):
                point = (point.get("x"), point.get("y"))
            try:
                curve.append((float(point[0]), float(point[1])))
            except (TypeError, ValueError, IndexError):
                continue
        return AxisOverride(pos=_opt_int(data.get("pos")), neg=_opt_int(data.get("neg")), custom_curve=curve)


@dataclass
class NodeBranchOverride:
    pos: Optional[int] = None
    neg: Optional[int] = None
    axis_overrides: Dict[int, AxisOverride] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> NodeBranchOverride:
        data = _mapping(data, "node branch override")
        axis = {
            k: AxisOverride.from_dict(v)
            for k, v in int_keys(data.get("axis_overrides")).items()
            if isinstance(v, Mapping)
        }
        return NodeBranchOverride(pos=_opt_int(data.get("pos")), neg=_opt_int(data.get("neg")), axis_overrides=axis)


# ------------------------------------------------------------------------------
# Visuals & notation
# ------------------------------------------------------------------------------
@dataclass
class VisualSettings:
    global_scale: float = 1.0
    prime_spacings: Dict[int, float] = field(default_factory=dict)
    spiral_factor: float = 0.0
    helix_factor: float = 0.0
    layout_mode: LayoutMode = LayoutMode.LATTICE
    diamond_limit: int = 7
    node_scale: float = 1.0

    def spacing(self, prime: int) -> float:
        return self.prime_spacings.get(prime) or 1.0

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> VisualSettings:
        data = _mapping(data, "visuals")
        kwargs = _scalars(VisualSettings, data)
        kwargs["prime_spacings"] = _float_map(data.get("prime_spacings"))
        return VisualSettings(**kwargs)


@dataclass
class NotationSymbol:
    up: str = ""
    down: str = ""
    placement: Optional[str] = None

    @staticmethod
    def from_dict(data: Any) -> NotationSymbol:
        if isinstance(data, str):
            return NotationSymbol(up=data, down=data)
        data = _mapping(data, "notation symbol")
        return NotationSymbol(up=str(data.get("up") or ""), down=str(data.get("down") or ""), placement=data.get("placement"))


def default_notation_symbols() -> Dict[int, NotationSymbol]:
    return {
        5: NotationSymbol(up="~", down="+", placement="right"),
        7: NotationSymbol(up="γ", down="γ"),
        11: NotationSymbol(up="ε", down="ε"),
        13: NotationSymbol(up="θ", down="θ"),
        17: NotationSymbol(up="κ", down="κ"),
        19: NotationSymbol(up="σ", down="σ"),
        23: NotationSymbol(up="τ", down="τ"),
        29: NotationSymbol(up="μ", down="μ"),
        31: NotationSymbol(up="ν", down="ν"),
    }


@dataclass
class CustomPrime:
    """A user-declared integer axis that behaves like a prime."""
    prime: int
    symbol: Optional[NotationSymbol] = None

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> CustomPrime:
        data = _mapping(data, "custom prime")
        if "prime" not in data:
            raise SettingsError("Custom prime entry is missing 'prime'.")
        symbol = data.get("symbol")
        return CustomPrime(prime=int(data["prime"]), symbol=NotationSymbol.from_dict(symbol) if symbol else None)


# ------------------------------------------------------------------------------
# Geometry mode blocks
# ------------------------------------------------------------------------------
@dataclass
class EqualStepConfig:
    enabled: bool = False
    base: float = 2.0
    divisions: int = 12
    delta_n: int = 1
    steps_per_circle: int = 12
    range: int = 12
    radius: float = 40.0
    z_rise: float = 2.0
    layer_gap: float = 10.0
    visualization_mode: EqualStepVisualization = EqualStepVisualization.GRAPHITE

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> EqualStepConfig:
        return EqualStepConfig(**_scalars(EqualStepConfig, _mapping(data, "equal_step")))


@dataclass
class SphereConfig:
    limits: List[int] = field(default_factory=lambda: [3, 5, 7])
    structuring_axis: int = 3
    radius: int = 3

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> SphereConfig:
        data = _mapping(data, "sphere")
        kwargs = _scalars(SphereConfig, data, skip=("limits",))
        if data.get("limits") is not None:
            kwargs["limits"] = _int_list(data.get("limits"))
        return SphereConfig(**kwargs)


@dataclass
class ParametricConfig:
    mode: ParametricMode = ParametricMode.CURVE
    expression: str = DEFAULT_PARAMETRIC_EXPRESSION
    u_min: float = -6.28
    u_max: float = 6.28
    v_min: float = -3.14
    v_max: float = 3.14
    u_steps: int = 120
    v_steps: int = 48
    thickness: float = 8.0

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> ParametricConfig:
        return ParametricConfig(**_scalars(ParametricConfig, _mapping(data, "parametric")))


@dataclass
class CustomShapeConfig:
    style: CustomStyle = CustomStyle.IMPLICIT
    input_space: InputSpace = InputSpace.BOTH
    threshold_mode: ThresholdMode = ThresholdMode.LTE0
    epsilon: float = 0.4
    implicit_expression: str = DEFAULT_IMPLICIT_EXPRESSION
    voxel_expression: str = DEFAULT_VOXEL_EXPRESSION
    parametric: ParametricConfig = field(default_factory=ParametricConfig)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> CustomShapeConfig:
        data = _mapping(data, "custom")
        kwargs = _scalars(CustomShapeConfig, data, skip=("parametric",))
        kwargs["parametric"] = ParametricConfig.from_dict(data.get("parametric"))
        return CustomShapeConfig(**kwargs)


@dataclass
class GridGeometryConfig:
    enabled: bool = False
    mode: GridMode = GridMode.RECTANGLE
    limits: List[int] = field(default_factory=lambda: [3, 5, 7])
    dimensions: List[int] = field(default_factory=lambda: [3, 3, 3])
    spacing: float = 1.6
    sphere: SphereConfig = field(default_factory=SphereConfig)
    custom: CustomShapeConfig = field(default_factory=CustomShapeConfig)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> GridGeometryConfig:
        data = _mapping(data, "geometry")
        kwargs = _scalars(GridGeometryConfig, data, skip=("limits", "dimensions", "sphere", "custom"))
        if data.get("limits") is not None:
            kwargs["limits"] = _int_list(data.get("limits"))
        if data.get("dimensions") is not None:
            kwargs["dimensions"] = _int_list(data.get("dimensions"))
        kwargs["sphere"] = SphereConfig.from_dict(data.get("sphere"))
        kwargs["custom"] = CustomShapeConfig.from_dict(data.get("custom"))
        return GridGeometryConfig(**kwargs)


@dataclass
class SpiralConfig:
    enabled: bool = False
    axis: int = 3
    length: int = 60
    primary_step: int = 12
    radius1: float = 40.0
    secondary_step: int = 0
    radius2: float = 20.0
    tertiary_step: int = 0
    radius3: float = 200.0
    rise: float = 2.0
    rise2: float = 2.0
    rise3: float = 2.0
    expansion_b: int = 2
    expansion_c: int = 0

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> SpiralConfig:
        return SpiralConfig(**_scalars(SpiralConfig, _mapping(data, "spiral")))


@dataclass
class CurvedGeometryConfig:
    enabled: bool = False
    pitch_metric: PitchMetric = PitchMetric.LOG2
    distance_mode: DistanceMode = DistanceMode.LINEAR
    distance_scale: float = 12.0
    distance_exponent: float = 1.0
    distance_offset: float = 0.0
    curve_radians_per_step: float = math.pi / 16
    auto_spacing: bool = True
    collision_padding: float = 0.25

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> CurvedGeometryConfig:
        return CurvedGeometryConfig(**_scalars(CurvedGeometryConfig, _mapping(data, "curved")))


# ------------------------------------------------------------------------------
# Main container
# ------------------------------------------------------------------------------
@dataclass
class LatticeSettings:
    """Everything the generator needs to build one lattice."""
    root: OriginConfig = field(default_factory=OriginConfig)
    secondary_origins: List[OriginConfig] = field(default_factory=list)
    simple_mode: bool = False

    custom_primes: List[CustomPrime] = field(default_factory=list)
    transposition_vector: Dict[int, int] = field(default_factory=dict)
    notation_symbols: Dict[int, NotationSymbol] = field(default_factory=default_notation_symbols)
    accidental_placement: str = "split"

    visuals: VisualSettings = field(default_factory=VisualSettings)
    equal_step: EqualStepConfig = field(default_factory=EqualStepConfig)
    geometry: GridGeometryConfig = field(default_factory=GridGeometryConfig)
    spiral: SpiralConfig = field(default_factory=SpiralConfig)
    curved: CurvedGeometryConfig = field(default_factory=CurvedGeometryConfig)

    node_branch_overrides: Dict[str, NodeBranchOverride] = field(default_factory=dict)
    ignore_overrides: bool = False

    deduplicate: bool = False
    dedup_tolerance: float = 5.0
    priority_order: List[str] = field(default_factory=lambda: ["gen", "limit", "origin"])
    masked_node_ids: List[str] = field(default_factory=list)

    def origins(self) -> List[OriginConfig]:
        """The global root followed by every secondary origin."""
        return [self.root, *self.secondary_origins]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> LatticeSettings:
        data = _mapping(data, "settings")
        kwargs = _scalars(LatticeSettings, data, skip=("priority_order", "masked_node_ids"))
        kwargs["root"] = OriginConfig.from_dict(data.get("root") or {})
        kwargs["secondary_origins"] = [
            OriginConfig.from_dict(o) for o in data.get("secondary_origins") or [] if o is not None
        ]
        kwargs["custom_primes"] = [CustomPrime.from_dict(cp) for cp in data.get("custom_primes") or []]
        kwargs["transposition_vector"] = _int_map(data.get("transposition_vector"))
        if data.get("notation_symbols") is not None:
            kwargs["notation_symbols"] = {
                k: NotationSymbol.from_dict(v) for k, v in int_keys(data.get("notation_symbols")).items() if v
            }
        kwargs["visuals"] = VisualSettings.from_dict(data.get("visuals"))
        kwargs["equal_step"] = EqualStepConfig.from_dict(data.get("equal_step"))
        kwargs["geometry"] = GridGeometryConfig.from_dict(data.get("geometry"))
        kwargs["spiral"] = SpiralConfig.from_dict(data.get("spiral"))
        kwargs["curved"] = CurvedGeometryConfig.from_dict(data.get("curved"))
        kwargs["node_branch_overrides"] = {
            str(k): NodeBranchOverride.from_dict(v)
            for k, v in _mapping(data.get("node_branch_overrides"), "node_branch_overrides").items()
        }
        if data.get("priority_order") is not None:
            kwargs["priority_order"] = [str(c) for c in data.get("priority_order")]
        kwargs["masked_node_ids"] = [str(i) for i in data.get("masked_node_ids") or []]
        return LatticeSettings(**kwargs)

    @staticmethod
    def coerce(settings: LatticeSettings | Mapping[str, Any]) -> LatticeSettings:
        """Accept either a settings object or its dict form."""
        if isinstance(settings, LatticeSettings):
            return settings
        return LatticeSettings.from_dict(settings)

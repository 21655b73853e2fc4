from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from app.schemas.water import MineralProfile, WaterAddition

IONS = ("ca", "mg", "na", "cl", "so4", "hco3")

OVERSHOOT_TOLERANCE_PPM = 10.0
MIN_DOSE = 0.5

# ml of 80% lactic acid per liter per ppm of bicarbonate neutralised
LACTIC_ML_PER_PPM_LITER = 0.002
LACTIC_MIN_SOURCE_HCO3 = 60.0


@dataclass(frozen=True)
class Salt:
    name: str
    # ppm raised per gram dissolved in one liter
    ppm_per_g_l: dict[str, float]
    reason: str


_EPSOM_SALT = Salt(
    name="Epsom Salt (MgSO4)",
    ppm_per_g_l={"mg": 98.6, "so4": 389.6},
    reason="Raises magnesium for yeast health.",
)
_GYPSUM = Salt(
    name="Gypsum (CaSO4)",
    ppm_per_g_l={"ca": 232.8, "so4": 557.7},
    reason="Raises sulfate for a crisper, drier bitterness.",
)
_CALCIUM_CHLORIDE = Salt(
    name="Calcium Chloride (CaCl2)",
    ppm_per_g_l={"ca": 272.6, "cl": 482.3},
    reason="Raises chloride for a rounder, fuller malt character.",
)
_BAKING_SODA = Salt(
    name="Baking Soda (NaHCO3)",
    ppm_per_g_l={"na": 273.7, "hco3": 726.4},
    reason="Raises alkalinity to support mash pH with dark malts.",
)
_TABLE_SALT = Salt(
    name="Table Salt (NaCl)",
    ppm_per_g_l={"na": 393.4, "cl": 606.6},
    reason="Raises sodium for palate fullness.",
)

# (salt, ion it is dosed for); order decides which salt claims a shared ion first
_DOSING_PLAN: tuple[tuple[Salt, str], ...] = (
    (_EPSOM_SALT, "mg"),
    (_GYPSUM, "so4"),
    (_CALCIUM_CHLORIDE, "cl"),
    (_CALCIUM_CHLORIDE, "ca"),
    (_GYPSUM, "ca"),
    (_BAKING_SODA, "hco3"),
    (_TABLE_SALT, "na"),
)

_SALTS_BY_NAME = {salt.name: salt for salt, _ in _DOSING_PLAN}
LACTIC_ACID_NAME = "Lactic Acid 80%"


def _coerce_profile(profile: MineralProfile | Mapping[str, Any] | None) -> dict[str, float | None] | None:
    if profile is None:
        return None
    if isinstance(profile, MineralProfile):
        return profile.model_dump()

    values: dict[str, float | None] = {}
    for ion in IONS:
        raw = profile.get(ion)
        values[ion] = float(raw) if isinstance(raw, (int, float)) and not isinstance(raw, bool) else None
    return values


def _headroom(ion: str, projected: dict[str, float], target: dict[str, float]) -> float:
    if projected[ion] >= target[ion]:
        return 0.0
    return target[ion] + OVERSHOOT_TOLERANCE_PPM - projected[ion]


def _floor_tenth(value: float) -> float:
    return math.floor(value * 10 + 1e-9) / 10


def calculate_additions(
    source: MineralProfile | Mapping[str, Any] | None,
    target: MineralProfile | Mapping[str, Any] | None,
    batch_volume_liters: float,
) -> list[WaterAddition]:
    """Compute salt and acid additions that move ``source`` toward ``target``.

    Salts only ever raise ions, so an ion is raised only while it sits below
    its target and never past target + OVERSHOOT_TOLERANCE_PPM. Ions already
    above target are left alone, except bicarbonate, which lactic acid can
    bring down. A target ion that is missing is held at its source value.
    Returns an empty list for a non-positive volume or an incomplete source.
    """
    if batch_volume_liters is None or batch_volume_liters <= 0:
        return []

    source_values = _coerce_profile(source)
    target_values = _coerce_profile(target)
    if source_values is None or target_values is None:
        return []
    if any(source_values[ion] is None for ion in IONS):
        return []

    base: dict[str, float] = {ion: float(source_values[ion]) for ion in IONS}  # type: ignore[arg-type]
    goal: dict[str, float] = {
        ion: base[ion] if target_values[ion] is None else float(target_values[ion])  # type: ignore[arg-type]
        for ion in IONS
    }

    projected = dict(base)
    doses_g_l: dict[str, float] = {}

    for salt, primary_ion in _DOSING_PLAN:
        deficit = goal[primary_ion] - projected[primary_ion]
        if deficit <= 0:
            continue

        grams_per_l = deficit / salt.ppm_per_g_l[primary_ion]
        for ion, ppm in salt.ppm_per_g_l.items():
            grams_per_l = min(grams_per_l, _headroom(ion, projected, goal) / ppm)
        if grams_per_l <= 0:
            continue

        for ion, ppm in salt.ppm_per_g_l.items():
            projected[ion] += grams_per_l * ppm
        doses_g_l[salt.name] = doses_g_l.get(salt.name, 0.0) + grams_per_l

    additions: list[WaterAddition] = []
    for salt_name, grams_per_l in doses_g_l.items():
        grams_total = _floor_tenth(grams_per_l * batch_volume_liters)
        if grams_total < MIN_DOSE:
            continue

        salt = _SALTS_BY_NAME[salt_name]
        raised = ", ".join(
            f"{ion.upper()} +{grams_total / batch_volume_liters * ppm:.0f} ppm"
            for ion, ppm in salt.ppm_per_g_l.items()
        )
        additions.append(
            WaterAddition(
                name=salt.name,
                amount=grams_total,
                unit="g",
                description=f"{salt.reason} ({raised})",
            )
        )

    acid = _lactic_acid_addition(base, goal, batch_volume_liters)
    if acid is not None:
        additions.append(acid)

    return additions


def _lactic_acid_addition(
    source: dict[str, float],
    target: dict[str, float],
    batch_volume_liters: float,
) -> WaterAddition | None:
    if source["hco3"] <= LACTIC_MIN_SOURCE_HCO3 or target["hco3"] >= source["hco3"]:
        return None

    reduction = source["hco3"] - target["hco3"]
    millilitres = _floor_tenth(reduction * LACTIC_ML_PER_PPM_LITER * batch_volume_liters)
    if millilitres < MIN_DOSE:
        return None

    return WaterAddition(
        name=LACTIC_ACID_NAME,
        amount=millilitres,
        unit="ml",
        description=f"Reduces alkalinity by ~{reduction:.0f} ppm HCO3 to bring mash pH down.",
    )


def project_profile(
    source: MineralProfile,
    additions: list[WaterAddition],
    batch_volume_liters: float,
) -> MineralProfile:
    projected = source.model_dump()
    if batch_volume_liters <= 0:
        return MineralProfile(**projected)

    for addition in additions:
        if addition.name == LACTIC_ACID_NAME:
            reduction = addition.amount / (LACTIC_ML_PER_PPM_LITER * batch_volume_liters)
            projected["hco3"] = max(0.0, projected["hco3"] - reduction)
            continue

        salt = _SALTS_BY_NAME.get(addition.name)
        if salt is None:
            continue
        for ion, ppm in salt.ppm_per_g_l.items():
            projected[ion] += addition.amount / batch_volume_liters * ppm

    return MineralProfile(**{ion: round(value, 2) for ion, value in projected.items()})

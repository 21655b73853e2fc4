"""Deterministic post-processing of model-authored recipe drafts.

``sanitize`` never raises for odd draft content. Each step falls back to a
safe default so the physical invariants hold even for sparse drafts:
a single Mash In / Mash Out pair, true hops only in ``hops``, computed
water volumes and an ordered conditioning window.
"""

from __future__ import annotations

import re

from app.schemas.generation import ExpertWaterProfile, RecipeRequest
from app.schemas.recipe import ExtraEntry, GeneratedRecipe, HopEntry, MashStep, SanitizedRecipe
from app.services.rules import DerivedConstraints, MashComplexity, StyleCategory, WaterMode
from app.services.units import (
    DEFAULT_SACCHARIFICATION_C,
    MASH_OUT_TEMP_C,
    SACCHARIFICATION_MAX_C,
    SACCHARIFICATION_MIN_C,
    STRIKE_OFFSET_C,
    estimate_abv,
    format_temperature,
    format_volume,
    parse_mass_kg,
    parse_number,
    parse_temperature_c,
)
from app.services.water_chemistry import calculate_additions

MASH_IN_NAME = "Mash In"
MASH_OUT_NAME = "Mash Out"

_MASH_BOUNDARY_RE = re.compile(r"mash[\s-]*in\b|einmaischen|mash[\s-]*out\b|abmaischen|strike", re.IGNORECASE)
_NON_HOP_RE = re.compile(r"puree|fruit|lactose|sugar|honey|syrup|extract|essence", re.IGNORECASE)
_FRUIT_LIKE_RE = re.compile(r"fruit|puree", re.IGNORECASE)
_DRY_HOP_RE = re.compile(r"dry[\s-]*hop|hopfenstopf", re.IGNORECASE)
_WHIRLPOOL_RE = re.compile(r"whirlpool|hop[\s-]*stand", re.IGNORECASE)
_PRE_SOURING_RE = re.compile(r"first[\s-]*wort|\bmash\b|\bfwh\b", re.IGNORECASE)
_STRONG_RE = re.compile(r"imperial|strong|double|triple", re.IGNORECASE)

FIRST_WORT_IBU_THRESHOLD = 50

# (liters per kg of grain absorbed, fixed allowance in liters, mash share of total)
_WATER_MODEL = {
    "pot": (0.6, 2.0, 1.0),
    "all-in-one": (0.8, 2.0, 0.7),
    "professional": (0.5, 1.5, 0.6),
}

# grams of CO2 per liter
_CARBONATION = {
    StyleCategory.WHEAT: 6.0,
    StyleCategory.SOUR: 5.5,
    StyleCategory.BELGIAN: 5.5,
    StyleCategory.LAGER: 5.0,
    StyleCategory.BARLEYWINE: 3.5,
    StyleCategory.STOUT_PORTER: 4.5,
    StyleCategory.IPA: 4.5,
    StyleCategory.IPA_HAZY: 4.5,
    StyleCategory.IPA_WEST_COAST: 4.5,
    StyleCategory.PALE_AMBER_BROWN: 4.5,
}
DEFAULT_CARBONATION = 5.0
STRONG_ALE_CARBONATION = 3.5


def _normalize_mash(recipe: SanitizedRecipe, request: RecipeRequest, constraints: DerivedConstraints) -> None:
    rests = [step for step in recipe.mash_schedule if not _MASH_BOUNDARY_RE.search(step.step)]

    anchor: MashStep | None = None
    anchor_temp: float | None = None
    for step in rests:
        temp = parse_temperature_c(step.temp, default_unit=request.temp_unit)
        if temp is None or not SACCHARIFICATION_MIN_C <= temp <= SACCHARIFICATION_MAX_C:
            continue
        if anchor_temp is None or temp < anchor_temp:
            anchor, anchor_temp = step, temp

    if constraints.mash.complexity is MashComplexity.SINGLE_INFUSION:
        rests = [anchor] if anchor is not None else []

    if not rests:
        anchor_temp = DEFAULT_SACCHARIFICATION_C
        rests = [
            MashStep(
                step="Saccharification Rest",
                temp=format_temperature(anchor_temp, request.temp_unit),
                time="60 min",
                description="Main conversion rest.",
            )
        ]
    if anchor_temp is None:
        anchor_temp = DEFAULT_SACCHARIFICATION_C

    mash_in = MashStep(
        step=MASH_IN_NAME,
        temp=format_temperature(anchor_temp + STRIKE_OFFSET_C, request.temp_unit),
        time="15 min",
        description="Heat strike water and mix in grains thoroughly.",
    )
    mash_out = MashStep(
        step=MASH_OUT_NAME,
        temp=format_temperature(MASH_OUT_TEMP_C, request.temp_unit),
        time="10 min",
        description="Raise to 78°C to stop enzymatic activity and reduce wort viscosity for lautering.",
    )
    recipe.mash_schedule = [mash_in, *rests, mash_out]


def _is_true_hop(hop: HopEntry) -> bool:
    return hop.alpha is not None and hop.alpha > 0 and not _NON_HOP_RE.search(hop.name)


def _hop_to_extra(hop: HopEntry) -> ExtraEntry:
    amount = hop.amount
    if not amount and hop.amount_grams is not None:
        amount = f"{hop.amount_grams:g} g"
    timing = hop.time or ""
    return ExtraEntry(
        name=hop.name,
        amount=amount or "0 g",
        unit="g",
        type="fruit" if _FRUIT_LIKE_RE.search(hop.name) else "other",
        use="Dry Hop" if "dry" in timing.lower() else "Boil",
        time=timing or "0 min",
        description=hop.explanation or "Moved from hops (no alpha acid or not a hop).",
    )


def _separate_hops(recipe: SanitizedRecipe) -> None:
    hops: list[HopEntry] = []
    for hop in recipe.hops:
        if _is_true_hop(hop):
            hops.append(hop)
        else:
            recipe.extras.append(_hop_to_extra(hop))
    recipe.hops = hops


def _is_dry_hop(hop: HopEntry) -> bool:
    return bool(_DRY_HOP_RE.search(hop.time or "") or _DRY_HOP_RE.search(hop.name))


def _is_dry_hop_extra(extra: ExtraEntry) -> bool:
    return any(_DRY_HOP_RE.search(text or "") for text in (extra.use, extra.time, extra.name))


def _strip_dry_hop_extras(extras: list[ExtraEntry]) -> list[ExtraEntry]:
    kept: list[ExtraEntry] = []
    for extra in extras:
        if not _is_dry_hop_extra(extra):
            kept.append(extra)
            continue
        # fruit, lactose and the like keep their data but lose the dry-hop timing
        if _NON_HOP_RE.search(extra.name) and not _DRY_HOP_RE.search(extra.name):
            extra.use = "Secondary"
            extra.time = "Secondary"
            kept.append(extra)
    return kept


def _enforce_hop_techniques(recipe: SanitizedRecipe, request: RecipeRequest, constraints: DerivedConstraints) -> None:
    if not request.use_dry_hop:
        recipe.hops = [hop for hop in recipe.hops if not _is_dry_hop(hop)]
        recipe.extras = _strip_dry_hop_extras(recipe.extras)
        recipe.fermentation_schedule = [
            step
            for step in recipe.fermentation_schedule
            if step.type != "dryhop" and not _DRY_HOP_RE.search(step.description)
        ]
        recipe.fermentation_instructions = [
            line for line in recipe.fermentation_instructions if not _DRY_HOP_RE.search(line)
        ]

    if not request.use_whirlpool:
        for hop in recipe.hops:
            if _WHIRLPOOL_RE.search(hop.time or ""):
                hop.time = "Flameout"
                hop.boil_time = 0

    if constraints.hops.boil_only_after_souring:
        for hop in recipe.hops:
            if _PRE_SOURING_RE.search(hop.time or ""):
                hop.time = "60 min"
                hop.boil_time = 60


def _is_sixty_minute(hop: HopEntry) -> bool:
    if hop.boil_time is not None:
        return hop.boil_time == 60
    return parse_number(hop.time) == 60


def _promote_first_wort(recipe: SanitizedRecipe, request: RecipeRequest, constraints: DerivedConstraints) -> None:
    if not constraints.hops.first_wort_allowed:
        return
    ibu = parse_number(recipe.specs.ibu) or 0
    if request.expertise != "expert" and ibu < FIRST_WORT_IBU_THRESHOLD:
        return

    for hop in recipe.hops:
        if not _is_sixty_minute(hop):
            continue
        hop.time = "First Wort"
        hop.boil_time = 0
        if not hop.explanation:
            hop.explanation = "First Wort Hopping for smoother bitterness."


def total_grain_kg(recipe: GeneratedRecipe) -> float:
    total = 0.0
    for malt in recipe.malts:
        kg = parse_mass_kg(malt.amount)
        if kg is None and malt.amount_grams is not None:
            kg = malt.amount_grams / 1000
        total += kg or 0.0
    return total


def _format_water(liters: float, units: str) -> str:
    if units == "imperial" and liters > 0:
        return f"{round(liters)} L ({format_volume(liters, units)})"
    return format_volume(liters, "metric")


def _recalculate_volumes(recipe: SanitizedRecipe, request: RecipeRequest, constraints: DerivedConstraints) -> None:
    absorption, allowance, mash_share = _WATER_MODEL[request.equipment]
    total = constraints.batch_liters + total_grain_kg(recipe) * absorption + allowance

    mash_liters = total * mash_share
    sparge_liters = total - mash_liters
    recipe.specs.mash_water = _format_water(mash_liters, request.units)
    if request.equipment == "pot":
        recipe.specs.sparge_water = "0 L"
    else:
        recipe.specs.sparge_water = _format_water(sparge_liters, request.units)


def carbonation_for(category: StyleCategory, beer_style: str) -> float:
    level = _CARBONATION.get(category, DEFAULT_CARBONATION)
    if level == 4.5 and _STRONG_RE.search(beer_style):
        return STRONG_ALE_CARBONATION
    return level


def _default_carbonation(recipe: SanitizedRecipe, request: RecipeRequest, constraints: DerivedConstraints) -> None:
    if recipe.specs.carbonation:
        return
    level = carbonation_for(constraints.style.category, request.beer_style)
    recipe.specs.carbonation = f"{level:.1f} g/L"


def _override_water_agents(recipe: SanitizedRecipe, request: RecipeRequest, constraints: DerivedConstraints) -> None:
    water = constraints.water
    source = request.source_water_profile
    if water is None or water.mode is not WaterMode.EXACT or not isinstance(source, ExpertWaterProfile):
        return
    target = recipe.water_profile
    if target is None or all(value is None for value in target.minerals().values()):
        return

    additions = calculate_additions(source.minerals(), target.minerals(), constraints.batch_liters)
    recipe.extras = [extra for extra in recipe.extras if extra.type != "water_agent"]
    recipe.extras.extend(ExtraEntry.model_validate(addition.model_dump()) for addition in additions)


def _normalize_conditioning(recipe: SanitizedRecipe, constraints: DerivedConstraints) -> None:
    window = constraints.conditioning
    low = recipe.conditioning_days_min
    high = recipe.conditioning_days_max

    low = window.min_days if low is None else max(0, low)
    high = window.max_days if high is None else max(0, high)
    if low > high:
        low, high = high, low

    recipe.conditioning_days_min = low
    recipe.conditioning_days_max = high


def _backfill_abv(recipe: SanitizedRecipe) -> None:
    if parse_number(recipe.specs.abv) is not None:
        return
    og = parse_number(recipe.specs.og)
    fg = parse_number(recipe.specs.fg)
    if og is None or fg is None or og <= fg:
        return
    recipe.specs.abv = f"{estimate_abv(og, fg):.1f}%"


def sanitize(draft: GeneratedRecipe, request: RecipeRequest, constraints: DerivedConstraints) -> SanitizedRecipe:
    recipe = SanitizedRecipe.model_validate(draft.model_dump(by_alias=True))

    _normalize_mash(recipe, request, constraints)
    _separate_hops(recipe)
    _enforce_hop_techniques(recipe, request, constraints)
    _promote_first_wort(recipe, request, constraints)
    _recalculate_volumes(recipe, request, constraints)
    _default_carbonation(recipe, request, constraints)
    _override_water_agents(recipe, request, constraints)
    _normalize_conditioning(recipe, constraints)
    _backfill_abv(recipe)

    return recipe

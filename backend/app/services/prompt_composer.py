from __future__ import annotations

from dataclasses import dataclass

from app.schemas.generation import RecipeRequest
from app.services.rules import (
    AddonDirective,
    DerivedConstraints,
    LauteringMethod,
    MashComplexity,
    WaterMode,
    YeastCategory,
)


@dataclass(frozen=True)
class ComposedPrompt:
    system_text: str
    user_text: str


SYSTEM_TEXT = """You are the "Craft Beer Wizard", a Master Brewer and Water Chemist.

YOUR MISSION: Create a chemically precise, brewable recipe.

--- INGREDIENT ENGINE (STRICT) ---
1. Malts & fermentables go in the 'malts' array (grains, flakes, sugars) with specific names.
2. Everything else goes in the 'extras' array with a mandatory 'type':
   "water_agent" (Gypsum, Calcium Chloride, Lactic Acid, Baking Soda),
   "process_aid" (Irish Moss, Rice Hulls, Yeast Nutrient, Gelatin),
   "spice", "herb", "fruit", "sugar", "nutrient", or "other".
3. Physics & safety:
   - If wheat, rye and oats together exceed 20% of the grist, add "Rice Hulls"
     (type "process_aid", use "Mash", ~5% of the grain bill).
   - If ABV > 8% or the adjunct share is high, add "Yeast Nutrient" (type "process_aid").

--- USER CHOICE RESPECT ("The Brewer is Boss") ---
Never override the user's choices. Techniques and ingredients marked REQUIRED must
appear; everything marked FORBIDDEN must not appear, even if the style usually has it.

--- CONDITIONING DAYS (REQUIRED) ---
Set integer "conditioning_days_min" and "conditioning_days_max" (min <= max) from the
style and OG. Higher OG (>1.080) means longer conditioning, lower OG (<1.045) shorter.

--- MASH SCHEDULE RULES ---
List ONLY the enzyme rest steps (e.g. "Protein Rest", "Beta Amylase Rest",
"Saccharification Rest"). Do NOT add "Mash In" or "Mash Out" steps; they are added
programmatically.

--- INGREDIENT SEPARATION RULES ---
The 'hops' array is strictly for hop varieties with a measurable alpha acid ("alpha" > 0).
Fruit, puree, lactose, sugar, honey, syrup, extracts and essences belong in 'extras'.

--- OUTPUT FORMAT (JSON ONLY) ---
{
  "name": "String",
  "description": "String",
  "specs": {"og": "1.xxx", "fg": "1.xxx", "abv": "x.x%", "ibu": "xx", "srm": "xx",
            "mash_water": "xx L", "sparge_water": "xx L"},
  "conditioning_days_min": Number,
  "conditioning_days_max": Number,
  "malts": [{"name": "String", "amount": "String", "amount_grams": Number, "percentage": "String", "explanation": "String"}],
  "hops": [{"name": "String", "amount": "String", "amount_grams": Number, "time": "String", "boil_time": Number, "alpha": Number, "explanation": "String"}],
  "yeast": {"name": "String", "amount": "String", "explanation": "String"},
  "extras": [{"name": "String", "amount": Number, "unit": "g", "type": "water_agent", "use": "Mash", "time": "0 min", "description": "String"}],
  "mash_schedule": [{"step": "String", "temp": "String", "time": "String", "description": "String"}],
  "waterProfile": {"ca": 0, "mg": 0, "na": 0, "cl": 0, "so4": 0, "hco3": 0, "ph": 5.4, "description": "Target Profile"},
  "fermentation_instructions": ["String"],
  "fermentationSchedule": [{"day": 0, "type": "temp|dryhop|additive|reading|other", "description": "String", "value": "String"}],
  "shopping_list": [{"item": "String", "category": "malt/hop/yeast/additive"}],
  "notes": "String"
}"""

_FORBIDDEN_TEXT = {
    "use_whirlpool": "FORBIDDEN: Whirlpool / hop stand step. Put aroma hops at '5 min' or 'Flameout' instead.",
    "use_dry_hop": "FORBIDDEN: Dry hops of any kind, even if the style typically uses them.",
    "use_irish_moss": "FORBIDDEN: Irish Moss, Whirlfloc or any other kettle fining.",
    "use_lactose": "FORBIDDEN: Lactose.",
    "use_ascorbic_acid": "FORBIDDEN: Ascorbic acid.",
    "use_fruit": "FORBIDDEN: Fruit additions beyond any fruit named in the style.",
    "use_spices": "FORBIDDEN: Spices, herbs or coffee.",
    "use_wood": "FORBIDDEN: Wood chips, cubes or spirals.",
}


def _block(title: str, lines: list[str]) -> str:
    if not lines:
        return ""
    body = "\n".join(f"- {line}" for line in lines)
    return f"{title}:\n{body}"


def _format_amount(addon: AddonDirective) -> str:
    if addon.amount is None:
        return "amount to taste for the style"
    return f"{addon.amount:g} {addon.unit}"


def _style_block(constraints: DerivedConstraints) -> str:
    style = constraints.style
    low, high = style.mash_temp_c
    lines = [
        f"Category: {style.label}",
        f"Typical base malts: {', '.join(style.base_malts)}",
        f"Hop character: {style.hop_character}",
        f"Yeast family: {style.yeast_family}",
        f"Main rest temperature: {low:g}-{high:g}°C",
    ]
    if style.ibu_range is not None:
        lines.append(f"Bitterness: {style.ibu_range[0]}-{style.ibu_range[1]} IBU unless a target is given")
    if constraints.adjunct is not None:
        lines.append(f"STYLE REQUIREMENT: {constraints.adjunct.instruction}")
    return _block("STYLE GUIDANCE", lines)


def _technique_block(constraints: DerivedConstraints) -> str:
    mash = constraints.mash
    yeast = constraints.yeast
    hops = constraints.hops
    lines: list[str] = []

    if mash.lautering is LauteringMethod.FULL_VOLUME:
        lines.append("Full-volume mash (brew in a bag): no sparge, all water goes into the mash.")
    else:
        lines.append("Mash with a separate sparge; mash and sparge volumes are calculated afterwards.")

    if mash.complexity is MashComplexity.SINGLE_INFUSION:
        lines.append("Exactly ONE single-infusion saccharification rest.")
    elif mash.complexity is MashComplexity.MULTI_STEP:
        lines.append(f"Step mash with at least {mash.min_rests} enzyme rests.")
    else:
        lines.append("Single infusion preferred; add a step rest only if the style benefits.")

    if yeast.category is YeastCategory.DRY_ONLY:
        lines.append("Use DRY yeast only.")
    elif yeast.category is YeastCategory.LIQUID_WITH_STARTER:
        lines.append(f"Liquid yeast allowed; specify a {yeast.starter_liters:g} L starter when using it.")
    else:
        lines.append("Dry or liquid yeast, whichever suits the style best.")

    if hops.max_total_grams is not None:
        lines.append(f"Total hop quantity must not exceed {hops.max_total_grams:g} g.")
    if hops.boil_only_after_souring:
        lines.append("All hops go into the boil AFTER souring; no mash, first wort or pre-souring hops.")
    return _block("TECHNIQUE", lines)


def _sour_block(constraints: DerivedConstraints) -> str:
    sour = constraints.sour
    if sour is None:
        return ""
    lines = [
        f"Method: {sour.description}",
        f"Yeast/culture: {sour.yeast}",
        "Fermentation schedule template:",
    ]
    for step in sour.fermentation_steps:
        value = f" ({step.value})" if step.value else ""
        lines.append(f"  Day {step.day} [{step.type}]: {step.description}{value}")
    return _block("SOUR PROCESS", lines)


def _fruit_block(constraints: DerivedConstraints) -> str:
    fruit = constraints.fruit
    if fruit is None:
        return ""
    if fruit.choose_one:
        return _block("FRUIT", ["Choose ONE fruit that fits the style and add it to extras (type 'fruit')."])
    return _block("FRUIT", [f"Use {fruit.fruit} as the fruit addition (extras, type 'fruit')."])


def _water_block(request: RecipeRequest, constraints: DerivedConstraints) -> str:
    water = constraints.water
    if water is None:
        return ""

    if water.mode is WaterMode.EXACT and water.source is not None:
        source = water.source
        lines = [
            f"Source water (exact ppm): Ca {source.ca:g}, Mg {source.mg:g}, Na {source.na:g}, "
            f"Cl {source.cl:g}, SO4 {source.so4:g}, HCO3 {source.hco3:g}.",
            f"Determine the ideal target profile for {request.beer_style} in 'waterProfile'.",
            "Salt additions are computed from the target afterwards; explain the Cl:SO4 ratio in the notes.",
        ]
        return _block("WATER CHEMISTRY (EXACT SOURCE)", lines)

    if water.mode is WaterMode.ESTIMATED and water.estimate is not None:
        estimate = water.estimate
        lines = [
            f"Total hardness {water.hardness_dh:g} °dH, pH {water.ph:g}.",
            f"Estimated Ca ~{estimate.ca:g} ppm, Mg ~{estimate.mg:g} ppm, HCO3 ~{estimate.hco3:g} ppm.",
            "Assume moderate Na (15-30 ppm), Cl (20-40 ppm) and SO4 (20-40 ppm).",
            f"Calculate additions to reach the target profile for {request.beer_style}; "
            "add them to extras with type 'water_agent'.",
        ]
        return _block("WATER CHEMISTRY (ESTIMATED FROM HARDNESS)", lines)

    if water.mode is WaterMode.LOCATION:
        lines = [
            f"Location: {water.location}. Estimate the typical tap water profile for it.",
            f"Calculate additions to reach the target profile for {request.beer_style}; "
            "add them to extras with type 'water_agent'.",
            f"Note in the notes: 'Estimated from {water.location}. Actual values may vary.'",
        ]
        return _block("WATER CHEMISTRY (ESTIMATED FROM LOCATION)", lines)

    return _block(
        "WATER PROFILE",
        ["Suggest an ideal target water profile (Ca, Mg, Na, Cl, SO4, HCO3) in 'waterProfile'."],
    )


def _addon_block(constraints: DerivedConstraints) -> str:
    lines = [
        f"REQUIRED: {addon.name}, {_format_amount(addon)}, type '{addon.type}', use '{addon.use}', {addon.timing}."
        for addon in constraints.addons
    ]
    lines.extend(_FORBIDDEN_TEXT[flag] for flag in constraints.excluded_flags)
    return _block("USER CHOICES", lines)


def _targets_block(request: RecipeRequest) -> str:
    lines: list[str] = []
    for label, value in (("ABV", request.target_abv), ("IBU", request.target_ibu), ("EBC", request.target_ebc)):
        if value is None or value == "auto":
            continue
        lines.append(f"Target {label}: {value:g}")
    return _block("TARGETS", lines)


def compose_prompt(request: RecipeRequest, constraints: DerivedConstraints) -> ComposedPrompt:
    batch_unit = "liters" if request.units == "metric" else "gallons"
    header = "\n".join(
        [
            f"Generate a {request.expertise} recipe for: {request.beer_style}",
            f"Flavor: {request.flavor_profile or 'true to style'}",
            f"Batch: {request.batch_size:g} {batch_unit}",
            f"Efficiency: {constraints.efficiency.label}",
            f"Temperatures in °{request.temp_unit}",
        ]
    )

    blocks = [
        header,
        _targets_block(request),
        _style_block(constraints),
        _technique_block(constraints),
        _sour_block(constraints),
        _fruit_block(constraints),
        _water_block(request, constraints),
        _addon_block(constraints),
        "Return strictly valid JSON.",
    ]
    user_text = "\n\n".join(block for block in blocks if block)
    return ComposedPrompt(system_text=SYSTEM_TEXT, user_text=user_text)

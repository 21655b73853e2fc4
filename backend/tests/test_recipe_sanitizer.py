from typing import Any

import pytest

from app.schemas.generation import RecipeRequest
from app.schemas.recipe import GeneratedRecipe, SanitizedRecipe
from app.services.recipe_sanitizer import MASH_IN_NAME, MASH_OUT_NAME, sanitize
from app.services.rules import derive_constraints

EXPERT_WATER = {"mode": "expert", "ca": 20, "mg": 5, "na": 10, "cl": 20, "so4": 15, "hco3": 10}


def _sanitize(draft: dict[str, Any], **overrides: object) -> SanitizedRecipe:
    values: dict[str, object] = {"beer_style": "American Pale Ale", "batch_size": 20}
    values.update(overrides)
    request = RecipeRequest(**values)
    return sanitize(GeneratedRecipe.model_validate(draft), request, derive_constraints(request))


def _step_names(recipe: SanitizedRecipe) -> list[str]:
    return [step.step for step in recipe.mash_schedule]


def test_mash_schedule_gets_exactly_one_mash_in_and_out() -> None:
    recipe = _sanitize(
        {
            "mash_schedule": [
                {"step": "Mash In", "temp": "70°C", "time": "10 min"},
                {"step": "Protein Rest", "temp": "52°C", "time": "15 min"},
                {"step": "Saccharification Rest", "temp": "66°C", "time": "60 min"},
                {"step": "Mash Out", "temp": "76°C", "time": "10 min"},
                {"step": "Abmaischen", "temp": "77°C", "time": "5 min"},
            ]
        }
    )

    names = _step_names(recipe)
    assert names == [MASH_IN_NAME, "Protein Rest", "Saccharification Rest", MASH_OUT_NAME]
    assert recipe.mash_schedule[0].temp == "69°C"
    assert recipe.mash_schedule[-1].temp == "78°C"


def test_lowest_saccharification_rest_anchors_strike_temperature() -> None:
    recipe = _sanitize(
        {
            "mash_schedule": [
                {"step": "Dextrinization Rest", "temp": "72°C", "time": "15 min"},
                {"step": "Beta Amylase Rest", "temp": "63°C", "time": "40 min"},
            ]
        }
    )

    assert recipe.mash_schedule[0].temp == "66°C"


def test_mash_out_is_78c_in_fahrenheit() -> None:
    recipe = _sanitize(
        {"mash_schedule": [{"step": "Saccharification Rest", "temp": "152°F", "time": "60 min"}]},
        temp_unit="F",
    )

    assert recipe.mash_schedule[-1].step == MASH_OUT_NAME
    assert recipe.mash_schedule[-1].temp == "172.4°F"


def test_single_infusion_keeps_only_the_anchor_rest() -> None:
    recipe = _sanitize(
        {
            "mash_schedule": [
                {"step": "Protein Rest", "temp": "52°C", "time": "15 min"},
                {"step": "Saccharification Rest", "temp": "67°C", "time": "60 min"},
                {"step": "Dextrin Rest", "temp": "72°C", "time": "10 min"},
            ]
        },
        expertise="beginner",
    )

    assert _step_names(recipe) == [MASH_IN_NAME, "Saccharification Rest", MASH_OUT_NAME]
    assert recipe.mash_schedule[1].temp == "67°C"


def test_empty_mash_schedule_gets_default_rest() -> None:
    recipe = _sanitize({})

    assert _step_names(recipe) == [MASH_IN_NAME, "Saccharification Rest", MASH_OUT_NAME]
    assert recipe.mash_schedule[0].temp == "71°C"
    assert recipe.mash_schedule[1].temp == "68°C"


def test_non_hops_are_relocated_to_extras() -> None:
    recipe = _sanitize(
        {
            "hops": [
                {"name": "Citra", "amount": "30 g", "alpha": 12, "time": "10 min"},
                {"name": "Mango Puree", "amount": "1 kg", "alpha": 0, "time": "Secondary", "explanation": "Juicy"},
                {"name": "Lactose", "amount": "250 g", "time": "10 min"},
                {"name": "Honey Malt Syrup", "amount": "200 g", "alpha": 3, "time": "5 min"},
            ],
            "extras": [{"name": "Irish Moss", "amount": 5, "type": "process_aid"}],
        }
    )

    assert [hop.name for hop in recipe.hops] == ["Citra"]
    assert all(hop.alpha and hop.alpha > 0 for hop in recipe.hops)

    extras = {extra.name: extra for extra in recipe.extras}
    assert set(extras) == {"Irish Moss", "Mango Puree", "Lactose", "Honey Malt Syrup"}
    assert extras["Mango Puree"].type == "fruit"
    assert extras["Mango Puree"].amount == "1 kg"
    assert extras["Mango Puree"].description == "Juicy"
    assert extras["Lactose"].type == "other"
    assert extras["Lactose"].time == "10 min"


def test_dry_hop_removed_when_not_requested() -> None:
    draft = {
        "hops": [
            {"name": "Centennial", "amount": "40 g", "alpha": 10, "time": "60 min", "boil_time": 60},
            {"name": "Citra", "amount": "100 g", "alpha": 12, "time": "Dry Hop 3 days"},
        ],
        "fermentationSchedule": [
            {"day": 0, "type": "temp", "description": "Ferment at 19°C"},
            {"day": 7, "type": "dryhop", "description": "Add dry hops"},
        ],
        "fermentation_instructions": ["Ferment at 19°C", "Dry hop on day 7"],
    }

    recipe = _sanitize(draft, beer_style="West Coast IPA", use_dry_hop=False)

    assert [hop.name for hop in recipe.hops] == ["Centennial"]
    assert [step.type for step in recipe.fermentation_schedule] == ["temp"]
    assert recipe.fermentation_instructions == ["Ferment at 19°C"]

    kept = _sanitize(draft, beer_style="West Coast IPA", use_dry_hop=True)

    assert [hop.name for hop in kept.hops] == ["Centennial", "Citra"]
    assert [step.type for step in kept.fermentation_schedule] == ["temp", "dryhop"]


def test_dry_hop_extras_removed_when_not_requested() -> None:
    draft = {
        "hops": [
            {"name": "Centennial", "amount": "40 g", "alpha": 10, "time": "60 min", "boil_time": 60},
            {"name": "Citra", "amount": "100 g", "time": "Dry Hop day 7"},
            {"name": "Mango Puree", "amount": "1 kg", "time": "Dry Hop day 5"},
        ],
        "extras": [
            {"name": "Citra (dry hop)", "amount": 50, "unit": "g", "type": "other", "use": "Dry Hop"},
            {"name": "Mosaic pellets", "amount": 30, "unit": "g", "type": "other", "time": "dry hop day 3"},
            {"name": "Irish Moss", "amount": 5, "unit": "g", "type": "fining", "use": "Boil", "time": "15 min"},
        ],
    }

    recipe = _sanitize(draft, beer_style="West Coast IPA", use_dry_hop=False)

    assert [hop.name for hop in recipe.hops] == ["Centennial"]
    extras = {extra.name: extra for extra in recipe.extras}
    assert set(extras) == {"Mango Puree", "Irish Moss"}
    assert extras["Mango Puree"].amount == "1 kg"
    assert extras["Mango Puree"].type == "fruit"
    assert extras["Mango Puree"].use == "Secondary"
    assert extras["Irish Moss"].use == "Boil"
    assert not [
        extra
        for extra in recipe.extras
        if any("dry hop" in (text or "").lower() for text in (extra.name, extra.use, extra.time))
    ]

    kept = _sanitize(draft, beer_style="West Coast IPA", use_dry_hop=True)

    kept_names = {extra.name for extra in kept.extras}
    assert {"Citra", "Citra (dry hop)", "Mosaic pellets", "Mango Puree"} <= kept_names


def test_whirlpool_hops_moved_to_flameout_when_not_requested() -> None:
    draft = {"hops": [{"name": "Mosaic", "amount": "50 g", "alpha": 12, "time": "Whirlpool 20 min", "boil_time": 0}]}

    assert _sanitize(draft).hops[0].time == "Flameout"
    assert _sanitize(draft, use_whirlpool=True).hops[0].time == "Whirlpool 20 min"


def test_first_wort_hopping_for_expert_tier() -> None:
    recipe = _sanitize(
        {
            "specs": {"ibu": "30"},
            "hops": [
                {"name": "Magnum", "amount": "20 g", "alpha": 14, "time": "60 min", "boil_time": 60},
                {"name": "Citra", "amount": "30 g", "alpha": 12, "time": "10 min", "boil_time": 10},
            ],
        },
        expertise="expert",
    )

    assert recipe.hops[0].time == "First Wort"
    assert recipe.hops[0].boil_time == 0
    assert recipe.hops[0].explanation
    assert recipe.hops[1].time == "10 min"


@pytest.mark.parametrize(("ibu", "promoted"), [("65", True), ("50 IBU", True), ("30", False)])
def test_first_wort_hopping_for_bitter_recipes(ibu: str, promoted: bool) -> None:
    recipe = _sanitize(
        {
            "specs": {"ibu": ibu},
            "hops": [{"name": "Magnum", "amount": "20 g", "alpha": 14, "time": "60 min"}],
        },
        expertise="intermediate",
    )

    assert (recipe.hops[0].time == "First Wort") is promoted


def test_kettle_sour_hops_stay_after_souring() -> None:
    recipe = _sanitize(
        {
            "specs": {"ibu": "60"},
            "hops": [
                {"name": "Hallertau", "amount": "10 g", "alpha": 4, "time": "First Wort", "boil_time": 0},
                {"name": "Saaz", "amount": "10 g", "alpha": 3.5, "time": "60 min", "boil_time": 60},
            ],
        },
        beer_style="Berliner Weisse",
        expertise="expert",
    )

    assert [hop.time for hop in recipe.hops] == ["60 min", "60 min"]


def test_pot_volumes_have_no_sparge() -> None:
    recipe = _sanitize(
        {
            "specs": {"mash_water": "99 L", "sparge_water": "12 L"},
            "malts": [
                {"name": "Pale Malt", "amount": "4 kg"},
                {"name": "Crystal 60", "amount": "500 g"},
            ],
        },
        equipment="pot",
    )

    assert recipe.specs.mash_water == "25 L"
    assert recipe.specs.sparge_water == "0 L"


@pytest.mark.parametrize(
    ("equipment", "mash", "sparge"),
    [("all-in-one", "18 L", "8 L"), ("professional", "14 L", "10 L")],
)
def test_sparge_volumes_by_equipment(equipment: str, mash: str, sparge: str) -> None:
    recipe = _sanitize({"malts": [{"name": "Pale Malt", "amount_grams": 5000}]}, equipment=equipment)

    assert recipe.specs.mash_water == mash
    assert recipe.specs.sparge_water == sparge


def test_unparsable_malts_fall_back_to_minimal_volume() -> None:
    recipe = _sanitize({"malts": [{"name": "Mystery grain", "amount": "some"}]}, equipment="pot")

    assert recipe.specs.mash_water == "22 L"


def test_imperial_volumes_show_gallons() -> None:
    recipe = _sanitize({}, equipment="pot", units="imperial", batch_size=5)

    assert recipe.specs.mash_water == "21 L (5.5 gal)"
    assert recipe.specs.sparge_water == "0 L"


@pytest.mark.parametrize(
    ("style", "carbonation"),
    [
        ("Hefeweizen", "6.0 g/L"),
        ("Gose", "5.5 g/L"),
        ("Saison", "5.5 g/L"),
        ("Czech Pilsner", "5.0 g/L"),
        ("English Barleywine", "3.5 g/L"),
        ("Imperial IPA", "3.5 g/L"),
        ("American Pale Ale", "4.5 g/L"),
        ("Kveik Experiment", "5.0 g/L"),
    ],
)
def test_default_carbonation(style: str, carbonation: str) -> None:
    assert _sanitize({}, beer_style=style).specs.carbonation == carbonation


def test_draft_carbonation_is_kept() -> None:
    assert _sanitize({"specs": {"carbonation": "2.4 vol"}}).specs.carbonation == "2.4 vol"


def test_water_agents_replaced_for_exact_source_water() -> None:
    draft = {
        "waterProfile": {"ca": 80, "mg": 5, "na": 10, "cl": 100, "so4": 15, "hco3": 10},
        "extras": [
            {"name": "Gypsum", "amount": 10, "unit": "g", "type": "water_agent"},
            {"name": "Irish Moss", "amount": 5, "unit": "g", "type": "process_aid"},
        ],
    }

    recipe = _sanitize(draft, source_water_profile=EXPERT_WATER)

    water_agents = [extra for extra in recipe.extras if extra.type == "water_agent"]
    assert [extra.name for extra in water_agents] == ["Calcium Chloride (CaCl2)"]
    assert water_agents[0].amount == 3.3
    assert "Irish Moss" in [extra.name for extra in recipe.extras]


def test_water_agents_kept_without_exact_source_water() -> None:
    draft = {
        "waterProfile": {"ca": 80, "cl": 100},
        "extras": [{"name": "Gypsum", "amount": 10, "unit": "g", "type": "water_agent"}],
    }

    recipe = _sanitize(draft, expertise="expert", source_water_profile={"mode": "basic", "hardness": 8})

    assert [extra.name for extra in recipe.extras] == ["Gypsum"]


@pytest.mark.parametrize(
    ("low", "high", "expected"),
    [
        (14, 60, (14, 60)),
        (60, 14, (14, 60)),
        (None, None, (21, 90)),
        (-5, 30, (0, 30)),
        ("21 days", "6 weeks", (6, 21)),
    ],
)
def test_conditioning_window_is_ordered(low: object, high: object, expected: tuple[int, int]) -> None:
    recipe = _sanitize({"conditioning_days_min": low, "conditioning_days_max": high})

    assert (recipe.conditioning_days_min, recipe.conditioning_days_max) == expected


def test_abv_backfilled_from_gravities() -> None:
    recipe = _sanitize({"specs": {"og": "1.060", "fg": "1.012"}})

    assert recipe.specs.abv == "6.3%"


def test_sanitized_recipe_keeps_wire_names() -> None:
    recipe = _sanitize({"waterProfile": {"ca": 50}, "fermentationSchedule": [{"day": 0, "description": "Pitch"}]})

    dumped = recipe.model_dump(by_alias=True)
    assert "waterProfile" in dumped
    assert "fermentationSchedule" in dumped

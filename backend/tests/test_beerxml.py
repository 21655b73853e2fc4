import xml.etree.ElementTree as ET

import pytest

from app.schemas.generation import RecipeRequest
from app.schemas.recipe import SanitizedRecipe
from app.services.beerxml import duration_minutes, gravity_sg, recipe_to_beerxml

RECIPE = {
    "name": "Hops & Dreams",
    "description": "Bright and resinous.",
    "specs": {"og": "1.060", "fg": "1.012", "ibu": "60", "carbonation": "4.9 g/L"},
    "conditioning_days_min": 14,
    "conditioning_days_max": 28,
    "malts": [
        {"name": "Pale Ale Malt", "amount": "5 kg"},
        {"name": "Crystal 40", "amount_grams": 250},
        {"name": "Mystery Malt", "amount": "a handful"},
    ],
    "hops": [
        {"name": "Magnum", "amount": "20 g", "alpha": 12, "time": "First Wort", "boil_time": 0},
        {"name": "Citra", "amount": "50 g", "alpha": 12.5, "time": "10 min", "boil_time": 10},
        {"name": "Mosaic", "amount": "80 g", "alpha": 12, "time": "Dry Hop 4 days"},
        {"name": "Amarillo", "amount": "30 g", "alpha": 9, "time": "Flameout", "boil_time": 0},
    ],
    "yeast": {"name": "SafAle US-05", "amount": "1 pack"},
    "extras": [
        {"name": "Gypsum (CaSO4)", "amount": 4, "unit": "g", "type": "water_agent", "use": "Mash", "time": "0 min"},
        {"name": "Irish Moss", "amount": "5 g", "type": "fining", "use": "Boil", "time": "15 min"},
        {"name": "Lactic Acid 80%", "amount": 2.5, "unit": "ml", "type": "water_agent", "use": "Mash"},
        {"name": "Vanilla", "amount": "to taste", "type": "spice"},
    ],
    "mash_schedule": [
        {"step": "Mash In", "temp": "69°C", "time": "15 min"},
        {"step": "Saccharification Rest", "temp": "66°C", "time": "60 min"},
        {"step": "Mash Out", "temp": "78°C", "time": "10 min"},
    ],
}


def _export(recipe: dict | None = None, **request_fields: object) -> ET.Element:
    values: dict[str, object] = {"beer_style": "West Coast IPA", "batch_size": 20}
    values.update(request_fields)
    xml = recipe_to_beerxml(SanitizedRecipe.model_validate(recipe or RECIPE), RecipeRequest(**values))
    return ET.fromstring(xml).find("RECIPE")


def test_recipe_header_is_metric() -> None:
    rec = _export()

    assert rec.findtext("NAME") == "Hops & Dreams"
    assert rec.findtext("TYPE") == "All Grain"
    assert rec.findtext("BATCH_SIZE") == "20.00"
    assert rec.findtext("BOIL_SIZE") == "22.00"
    assert rec.findtext("EFFICIENCY") == "80.0"
    assert rec.findtext("OG") == "1.060"
    assert rec.findtext("FG") == "1.012"
    assert rec.findtext("AGE") == "14"
    assert rec.findtext("CARBONATION") == "2.5"
    assert rec.findtext("STYLE/NAME") == "West Coast IPA"
    assert rec.findtext("STYLE/TYPE") == "Ale"


def test_imperial_batch_is_exported_in_liters() -> None:
    rec = _export(units="imperial", batch_size=5, equipment="pot")

    assert rec.findtext("BATCH_SIZE") == "18.93"
    assert rec.findtext("EFFICIENCY") == "65.0"


def test_name_is_escaped() -> None:
    xml = recipe_to_beerxml(
        SanitizedRecipe.model_validate(RECIPE),
        RecipeRequest(beer_style="West Coast IPA", batch_size=20),
    )
    assert "Hops &amp; Dreams" in xml


def test_fermentables_in_kilograms_skip_unreadable_amounts() -> None:
    rec = _export()

    fermentables = [(item.findtext("NAME"), item.findtext("AMOUNT")) for item in rec.findall("FERMENTABLES/FERMENTABLE")]
    assert fermentables == [("Pale Ale Malt", "5.0000"), ("Crystal 40", "0.2500")]


def test_hop_uses_and_times() -> None:
    rec = _export()

    hops = {
        item.findtext("NAME"): (item.findtext("USE"), item.findtext("TIME"), item.findtext("AMOUNT"))
        for item in rec.findall("HOPS/HOP")
    }
    assert hops == {
        "Magnum": ("First Wort", "60.0", "0.0200"),
        "Citra": ("Boil", "10.0", "0.0500"),
        "Mosaic": ("Dry Hop", "5760.0", "0.0800"),
        "Amarillo": ("Aroma", "0.0", "0.0300"),
    }


def test_extras_become_miscs() -> None:
    rec = _export()

    miscs = {
        item.findtext("NAME"): (
            item.findtext("TYPE"),
            item.findtext("USE"),
            item.findtext("AMOUNT"),
            item.findtext("AMOUNT_IS_WEIGHT"),
        )
        for item in rec.findall("MISCS/MISC")
    }
    assert miscs == {
        "Gypsum (CaSO4)": ("Water Agent", "Mash", "0.0040", "TRUE"),
        "Irish Moss": ("Fining", "Boil", "0.0050", "TRUE"),
        "Lactic Acid 80%": ("Water Agent", "Mash", "0.0025", "FALSE"),
    }


def test_yeast_attenuation_from_gravities() -> None:
    rec = _export()

    assert rec.findtext("YEASTS/YEAST/NAME") == "SafAle US-05"
    assert rec.findtext("YEASTS/YEAST/ATTENUATION") == "80.0"
    assert rec.findtext("YEASTS/YEAST/FORM") == "Liquid"

    beginner = _export(expertise="beginner")
    assert beginner.findtext("YEASTS/YEAST/FORM") == "Dry"

    lager = _export(beer_style="Czech Pilsner")
    assert lager.findtext("STYLE/TYPE") == "Lager"
    assert lager.findtext("YEASTS/YEAST/TYPE") == "Lager"


def test_missing_gravities_fall_back_to_defaults() -> None:
    recipe = {**RECIPE, "specs": {}}

    rec = _export(recipe)

    assert rec.findtext("OG") == "1.050"
    assert rec.findtext("FG") == "1.010"
    assert rec.findtext("YEASTS/YEAST/ATTENUATION") == "80.0"
    assert rec.find("CARBONATION") is None


def test_mash_steps_in_celsius() -> None:
    rec = _export()

    steps = [
        (item.findtext("NAME"), item.findtext("STEP_TEMP"), item.findtext("STEP_TIME"))
        for item in rec.findall("MASH/MASH_STEPS/MASH_STEP")
    ]
    assert steps == [
        ("Mash In", "69.0", "15.0"),
        ("Saccharification Rest", "66.0", "60.0"),
        ("Mash Out", "78.0", "10.0"),
    ]

    fahrenheit = {**RECIPE, "mash_schedule": [{"step": "Saccharification Rest", "temp": "152°F", "time": "1 h"}]}
    rec = _export(fahrenheit, temp_unit="F")
    assert rec.findtext("MASH/MASH_STEPS/MASH_STEP/STEP_TEMP") == "66.7"
    assert rec.findtext("MASH/MASH_STEPS/MASH_STEP/STEP_TIME") == "60.0"


@pytest.mark.parametrize(
    ("text", "expected"),
    [("1.055 SG", 1.055), ("12°P", 1.048), (None, 1.05), ("high", 1.05)],
)
def test_gravity_sg(text: str | None, expected: float) -> None:
    assert round(gravity_sg(text, 1.05), 3) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [("90 min", 90), ("1 h", 60), ("2 weeks", 20160), ("45", 45), ("Flameout", 0), (None, 0)],
)
def test_duration_minutes(text: str | None, expected: float) -> None:
    assert duration_minutes(text) == expected

import pytest

from app.schemas.generation import RecipeRequest
from app.services.rules import (
    ADDON_DIRECTIVES,
    STYLE_PRIORITY,
    LauteringMethod,
    MashComplexity,
    SourMethod,
    StyleCategory,
    WaterMode,
    YeastCategory,
    classify_style,
    derive_constraints,
)

EXPERT_WATER = {"mode": "expert", "ca": 20, "mg": 5, "na": 10, "cl": 20, "so4": 15, "hco3": 10}


def _request(**overrides: object) -> RecipeRequest:
    values: dict[str, object] = {"beer_style": "American Pale Ale", "batch_size": 20}
    values.update(overrides)
    return RecipeRequest(**values)


def test_style_priority_order_is_explicit() -> None:
    assert [category for category, _ in STYLE_PRIORITY] == [
        StyleCategory.SOUR,
        StyleCategory.STOUT_PORTER,
        StyleCategory.LAGER,
        StyleCategory.WHEAT,
        StyleCategory.BARLEYWINE,
        StyleCategory.BELGIAN,
        StyleCategory.IPA,
        StyleCategory.PALE_AMBER_BROWN,
    ]


@pytest.mark.parametrize(
    ("style", "expected"),
    [
        ("Belgian IPA", StyleCategory.BELGIAN),
        ("Berliner Weisse", StyleCategory.SOUR),
        ("Hazy IPA", StyleCategory.IPA_HAZY),
        ("NEIPA", StyleCategory.IPA_HAZY),
        ("West Coast IPA", StyleCategory.IPA_WEST_COAST),
        ("American IPA", StyleCategory.IPA),
        ("Imperial Stout", StyleCategory.STOUT_PORTER),
        ("Munich Helles", StyleCategory.LAGER),
        ("Hefeweizen", StyleCategory.WHEAT),
        ("English Barleywine", StyleCategory.BARLEYWINE),
        ("Saison", StyleCategory.BELGIAN),
        ("Irish Red Ale", StyleCategory.PALE_AMBER_BROWN),
        ("Kveik Experiment", StyleCategory.GENERIC),
    ],
)
def test_classify_style(style: str, expected: StyleCategory) -> None:
    assert classify_style(style) == expected


def test_flavor_only_consulted_when_style_is_unknown() -> None:
    assert classify_style("House Beer", "crisp pilsner character") == StyleCategory.LAGER
    assert classify_style("Dry Stout", "crisp pilsner character") == StyleCategory.STOUT_PORTER


@pytest.mark.parametrize(
    ("equipment", "percent", "lautering"),
    [
        ("pot", 65, LauteringMethod.FULL_VOLUME),
        ("all-in-one", 80, LauteringMethod.SPARGE),
        ("professional", 85, LauteringMethod.SPARGE),
    ],
)
def test_equipment_sets_efficiency_and_lautering(equipment: str, percent: int, lautering: LauteringMethod) -> None:
    constraints = derive_constraints(_request(equipment=equipment))

    assert constraints.efficiency.percent == percent
    assert constraints.mash.lautering is lautering


def test_beginner_constraints() -> None:
    constraints = derive_constraints(_request(expertise="beginner"))

    assert constraints.mash.complexity is MashComplexity.SINGLE_INFUSION
    assert constraints.yeast.category is YeastCategory.DRY_ONLY
    assert constraints.hops.max_total_grams == 160.0


def test_beginner_hop_ceiling_relaxed_for_hazy_styles() -> None:
    constraints = derive_constraints(_request(expertise="beginner", beer_style="Hazy IPA"))

    assert constraints.hops.max_total_grams == 300.0


def test_intermediate_has_no_hop_ceiling() -> None:
    constraints = derive_constraints(_request(expertise="intermediate"))

    assert constraints.mash.complexity is MashComplexity.FLEXIBLE
    assert constraints.yeast.category is YeastCategory.DRY_OR_LIQUID
    assert constraints.hops.max_total_grams is None


@pytest.mark.parametrize(("batch_size", "starter"), [(20, 1.5), (40, 3.0), (5, 1.0)])
def test_expert_constraints_scale_starter(batch_size: float, starter: float) -> None:
    constraints = derive_constraints(_request(expertise="expert", batch_size=batch_size))

    assert constraints.mash.complexity is MashComplexity.MULTI_STEP
    assert constraints.mash.min_rests >= 2
    assert constraints.yeast.category is YeastCategory.LIQUID_WITH_STARTER
    assert constraints.yeast.starter_liters == starter


def test_no_flags_means_no_addons() -> None:
    constraints = derive_constraints(_request())

    assert constraints.addons == ()
    assert constraints.excluded_flags == tuple(ADDON_DIRECTIVES)


@pytest.mark.parametrize("flag", list(ADDON_DIRECTIVES))
def test_each_flag_produces_only_its_own_directive(flag: str) -> None:
    constraints = derive_constraints(_request(**{flag: True}))

    assert [addon.flag for addon in constraints.addons] == [flag]
    assert flag not in constraints.excluded_flags
    assert len(constraints.excluded_flags) == len(ADDON_DIRECTIVES) - 1


def test_dry_hop_flag_respected_both_ways() -> None:
    without = derive_constraints(_request(beer_style="West Coast IPA", use_dry_hop=False))
    with_dry_hop = derive_constraints(_request(beer_style="West Coast IPA", use_dry_hop=True))

    assert without.hops.dry_hop is False
    assert not [addon for addon in without.addons if addon.use == "Dry Hop"]
    assert "use_dry_hop" in without.excluded_flags

    assert with_dry_hop.hops.dry_hop is True
    assert [addon.flag for addon in with_dry_hop.addons] == ["use_dry_hop"]


@pytest.mark.parametrize(("batch_size", "grams"), [(20, 250.0), (25, 500.0)])
def test_lactose_amount_depends_on_batch_size(batch_size: float, grams: float) -> None:
    constraints = derive_constraints(_request(batch_size=batch_size, use_lactose=True))

    assert constraints.addons[0].amount == grams


def test_sour_method_by_expertise() -> None:
    fast = derive_constraints(_request(beer_style="Berliner Weisse", expertise="intermediate"))
    kettle = derive_constraints(_request(beer_style="Berliner Weisse", expertise="expert"))

    assert fast.sour is not None
    assert fast.sour.method is SourMethod.FAST_BIOLOGICAL
    assert fast.hops.first_wort_allowed is True

    assert kettle.sour is not None
    assert kettle.sour.method is SourMethod.KETTLE
    assert kettle.hops.boil_only_after_souring is True
    assert kettle.hops.first_wort_allowed is False


def test_non_sour_styles_have_no_sour_directive() -> None:
    assert derive_constraints(_request(beer_style="Dry Stout")).sour is None


def test_named_fruit_is_explicit() -> None:
    constraints = derive_constraints(_request(beer_style="Raspberry Sour", use_fruit=True))

    assert constraints.fruit is not None
    assert constraints.fruit.fruit == "raspberry"
    assert constraints.fruit.choose_one is False
    assert constraints.addons[0].name == "Raspberry puree"


def test_fruit_flag_without_name_asks_to_choose_one() -> None:
    constraints = derive_constraints(_request(beer_style="Gose", use_fruit=True))

    assert constraints.fruit is not None
    assert constraints.fruit.choose_one is True


def test_sour_fruit_step_is_ordered_by_day() -> None:
    constraints = derive_constraints(_request(beer_style="Passion Fruit Sour", use_fruit=True))

    assert constraints.sour is not None
    days = [step.day for step in constraints.sour.fermentation_steps]
    assert days == sorted(days)
    assert any(step.type == "additive" and step.day == 7 for step in constraints.sour.fermentation_steps)


def test_water_directive_modes() -> None:
    exact = derive_constraints(_request(source_water_profile=EXPERT_WATER))
    basic = derive_constraints(
        _request(expertise="expert", source_water_profile={"mode": "basic", "hardness": 10, "ph": 7.5})
    )
    location = derive_constraints(
        _request(expertise="expert", source_water_profile={"mode": "location", "location": "Munich"})
    )
    suggest = derive_constraints(_request(expertise="expert"))
    beginner_basic = derive_constraints(
        _request(expertise="beginner", source_water_profile={"mode": "basic", "hardness": 10})
    )

    assert exact.water is not None and exact.water.mode is WaterMode.EXACT
    assert basic.water is not None and basic.water.mode is WaterMode.ESTIMATED
    assert basic.water.estimate is not None
    assert basic.water.estimate.ca == 134
    assert basic.water.estimate.hco3 == 151
    assert location.water is not None and location.water.location == "Munich"
    assert suggest.water is not None and suggest.water.mode is WaterMode.SUGGEST_TARGET
    assert beginner_basic.water is None


@pytest.mark.parametrize(("style", "kind"), [("Cold IPA", "rice_or_corn"), ("Tripel", "sugar"), ("Dry Stout", None)])
def test_adjunct_directive(style: str, kind: str | None) -> None:
    adjunct = derive_constraints(_request(beer_style=style)).adjunct

    assert (adjunct.kind if adjunct else None) == kind


def test_conditioning_window_follows_style() -> None:
    constraints = derive_constraints(_request(beer_style="Czech Pilsner"))

    assert constraints.conditioning.min_days == 28
    assert constraints.conditioning.max_days == 120


def test_derivation_is_deterministic() -> None:
    request = _request(
        beer_style="Mango Gose",
        expertise="expert",
        use_fruit=True,
        use_whirlpool=True,
        source_water_profile=EXPERT_WATER,
    )

    assert derive_constraints(request) == derive_constraints(request)


def test_request_accepts_camel_case_payload() -> None:
    request = RecipeRequest.model_validate(
        {"beerStyle": "Dry Stout", "batchSize": 19, "tempUnit": "F", "useDryHop": True}
    )

    assert request.beer_style == "Dry Stout"
    assert request.temp_unit == "F"
    assert request.use_dry_hop is True

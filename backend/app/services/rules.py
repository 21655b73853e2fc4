"""Derive structured brewing constraints from a recipe request.

Everything here is pure: the same request always yields an equal
``DerivedConstraints``. Rendering the constraints into model instructions is
the prompt composer's job.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from app.schemas.generation import BasicWaterProfile, ExpertWaterProfile, LocationWaterProfile, RecipeRequest
from app.services.units import batch_liters, hardness_dh_to_ppm_caco3


class StyleCategory(str, Enum):
    SOUR = "sour"
    STOUT_PORTER = "stout_porter"
    LAGER = "lager"
    WHEAT = "wheat"
    BARLEYWINE = "barleywine"
    BELGIAN = "belgian"
    IPA_HAZY = "ipa_hazy"
    IPA_WEST_COAST = "ipa_west_coast"
    IPA = "ipa"
    PALE_AMBER_BROWN = "pale_amber_brown"
    GENERIC = "generic"


class LauteringMethod(str, Enum):
    FULL_VOLUME = "full_volume"
    SPARGE = "sparge"


class MashComplexity(str, Enum):
    SINGLE_INFUSION = "single_infusion"
    FLEXIBLE = "flexible"
    MULTI_STEP = "multi_step"


class YeastCategory(str, Enum):
    DRY_ONLY = "dry_only"
    DRY_OR_LIQUID = "dry_or_liquid"
    LIQUID_WITH_STARTER = "liquid_with_starter"


class SourMethod(str, Enum):
    FAST_BIOLOGICAL = "fast_biological"
    KETTLE = "kettle"


class WaterMode(str, Enum):
    EXACT = "exact"
    ESTIMATED = "estimated"
    LOCATION = "location"
    SUGGEST_TARGET = "suggest_target"


# Order is the style precedence policy: the first group that matches wins.
STYLE_PRIORITY: tuple[tuple[StyleCategory, tuple[str, ...]], ...] = (
    (StyleCategory.SOUR, (r"\bsour", r"\bgose", r"lambic", r"gueuze", r"geuze", r"berliner", r"\bwild\b", r"flanders", r"\bkriek", r"\bkettle")),
    (StyleCategory.STOUT_PORTER, (r"stout", r"porter")),
    (StyleCategory.LAGER, (r"\blager", r"\bpils", r"bock\b", r"helles", r"m[äa]rzen", r"oktoberfest", r"schwarzbier", r"\bvienna")),
    (StyleCategory.WHEAT, (r"wheat", r"\bweiss", r"weizen", r"\bhefe", r"\bwit\b", r"witbier")),
    (StyleCategory.BARLEYWINE, (r"barley\s?wine", r"\bold ale", r"wee heavy")),
    (StyleCategory.BELGIAN, (r"belgian", r"saison", r"tripel", r"dubbel", r"\bquad", r"farmhouse")),
    (StyleCategory.IPA, (r"ipa\b", r"india pale")),
    (StyleCategory.PALE_AMBER_BROWN, (r"\bpale", r"\bamber", r"\bbrown", r"\bbitter\b", r"\bblonde?\b", r"k[öo]lsch", r"cream ale", r"red ale")),
)

_HAZY_PATTERNS = (r"neipa", r"new england", r"\bhazy", r"\bjuicy", r"tropical")
_WEST_COAST_PATTERNS = (r"west coast",)

_RICE_OR_CORN_PATTERNS = (r"cold ipa", r"mexican", r"japanese", r"cream ale", r"pre-prohibition")
_SUGAR_PATTERNS = (r"tripel", r"\bquad", r"\bstrong", r"double ipa", r"belgian", r"saison")

# canonical name first; longer phrases before the fruits they contain
_FRUITS: tuple[tuple[str, str], ...] = (
    ("passion fruit", r"passion\s?fruit|maracuja"),
    ("blood orange", r"blood orange"),
    ("sour cherry", r"sour cherr"),
    ("raspberry", r"raspberr|himbeer"),
    ("blackberry", r"blackberr|brombeer"),
    ("blueberry", r"blueberr|heidelbeer"),
    ("strawberry", r"strawberr|erdbeer"),
    ("cherry", r"cherr|kirsch|kriek"),
    ("mango", r"\bmango"),
    ("peach", r"\bpeach|pfirsich"),
    ("apricot", r"apricot|aprikose"),
    ("pineapple", r"pineapple|ananas"),
    ("guava", r"guava"),
    ("grapefruit", r"grapefruit"),
    ("orange", r"\borange\b(?!\s*(?:peel|zest))"),
    ("lemon", r"\blemon\b(?!\s*(?:peel|zest|grass))"),
    ("lime", r"\blime\b(?!\s*(?:peel|zest))"),
    ("yuzu", r"yuzu"),
    ("plum", r"\bplum"),
    ("rhubarb", r"rhubarb|rhabarber"),
    ("cranberry", r"cranberr"),
    ("pomegranate", r"pomegranate"),
)

BEGINNER_HOP_GRAMS_PER_LITER = 8.0
HAZY_HOP_GRAMS_PER_LITER = 15.0
LACTOSE_SMALL_BATCH_LITERS = 20.0


@dataclass(frozen=True)
class ConditioningWindow:
    min_days: int
    max_days: int


@dataclass(frozen=True)
class StyleDirective:
    category: StyleCategory
    label: str
    base_malts: tuple[str, ...]
    hop_character: str
    yeast_family: str
    mash_temp_c: tuple[float, float]
    ibu_range: tuple[int, int] | None
    conditioning: ConditioningWindow


@dataclass(frozen=True)
class EfficiencyDirective:
    percent: int
    label: str


@dataclass(frozen=True)
class MashDirective:
    lautering: LauteringMethod
    complexity: MashComplexity
    min_rests: int
    max_rests: int | None


@dataclass(frozen=True)
class YeastDirective:
    category: YeastCategory
    starter_liters: float | None = None


@dataclass(frozen=True)
class HopDirective:
    max_total_grams: float | None
    dry_hop: bool
    whirlpool: bool
    boil_only_after_souring: bool
    first_wort_allowed: bool


@dataclass(frozen=True)
class AddonDirective:
    flag: str
    name: str
    amount: float | None
    unit: str
    type: str
    use: str
    timing: str


@dataclass(frozen=True)
class FermentationTemplate:
    day: int
    type: str
    description: str
    value: str | None = None


@dataclass(frozen=True)
class SourDirective:
    method: SourMethod
    description: str
    yeast: str
    fermentation_steps: tuple[FermentationTemplate, ...]


@dataclass(frozen=True)
class FruitDirective:
    fruit: str | None

    @property
    def choose_one(self) -> bool:
        return self.fruit is None


@dataclass(frozen=True)
class MineralEstimate:
    ca: float
    mg: float
    hco3: float


@dataclass(frozen=True)
class WaterDirective:
    mode: WaterMode
    source: ExpertWaterProfile | None = None
    location: str | None = None
    hardness_dh: float | None = None
    ph: float | None = None
    estimate: MineralEstimate | None = None


@dataclass(frozen=True)
class AdjunctDirective:
    kind: str
    instruction: str


@dataclass(frozen=True)
class DerivedConstraints:
    batch_liters: float
    style: StyleDirective
    efficiency: EfficiencyDirective
    mash: MashDirective
    yeast: YeastDirective
    hops: HopDirective
    addons: tuple[AddonDirective, ...]
    excluded_flags: tuple[str, ...]
    conditioning: ConditioningWindow
    sour: SourDirective | None = None
    fruit: FruitDirective | None = None
    water: WaterDirective | None = None
    adjunct: AdjunctDirective | None = None


_STYLE_DIRECTIVES: dict[StyleCategory, StyleDirective] = {
    directive.category: directive
    for directive in (
        StyleDirective(
            category=StyleCategory.SOUR,
            label="Sour / wild ale",
            base_malts=("Pilsner malt", "Wheat malt"),
            hop_character="Minimal hopping, keep bitterness under 10 IBU so acidity is not inhibited.",
            yeast_family="Souring culture followed by a clean, neutral ale yeast.",
            mash_temp_c=(64.0, 67.0),
            ibu_range=(3, 10),
            conditioning=ConditioningWindow(90, 365),
        ),
        StyleDirective(
            category=StyleCategory.STOUT_PORTER,
            label="Stout / porter",
            base_malts=("Maris Otter", "Roasted barley", "Chocolate malt"),
            hop_character="Earthy English hops in a supporting role.",
            yeast_family="English or clean American ale yeast.",
            mash_temp_c=(66.0, 68.0),
            ibu_range=(25, 50),
            conditioning=ConditioningWindow(21, 90),
        ),
        StyleDirective(
            category=StyleCategory.LAGER,
            label="Lager",
            base_malts=("Pilsner malt", "Vienna malt"),
            hop_character="Noble hops, clean and restrained.",
            yeast_family="Bottom-fermenting lager yeast at 9-12°C, then a cold lagering phase.",
            mash_temp_c=(63.0, 66.0),
            ibu_range=(18, 40),
            conditioning=ConditioningWindow(28, 120),
        ),
        StyleDirective(
            category=StyleCategory.WHEAT,
            label="Wheat beer",
            base_malts=("Wheat malt", "Pilsner malt"),
            hop_character="Low bitterness with noble hops.",
            yeast_family="Weizen or witbier yeast for banana/clove or citrus-spice esters.",
            mash_temp_c=(63.0, 66.0),
            ibu_range=(8, 18),
            conditioning=ConditioningWindow(14, 60),
        ),
        StyleDirective(
            category=StyleCategory.BARLEYWINE,
            label="Barleywine / strong ale",
            base_malts=("Maris Otter", "Crystal malt"),
            hop_character="Substantial bittering to balance residual sweetness.",
            yeast_family="High-attenuation ale yeast, pitched generously with nutrient.",
            mash_temp_c=(64.0, 66.0),
            ibu_range=(50, 100),
            conditioning=ConditioningWindow(70, 180),
        ),
        StyleDirective(
            category=StyleCategory.BELGIAN,
            label="Belgian / farmhouse",
            base_malts=("Belgian Pilsner malt", "Candi sugar"),
            hop_character="Restrained continental hops.",
            yeast_family="Belgian ale or saison yeast with a free-rise fermentation.",
            mash_temp_c=(63.0, 66.0),
            ibu_range=(15, 35),
            conditioning=ConditioningWindow(28, 120),
        ),
        StyleDirective(
            category=StyleCategory.IPA_HAZY,
            label="Hazy / New England IPA",
            base_malts=("Pale malt", "Oats", "Wheat malt"),
            hop_character="Late and post-boil hopping, soft bitterness, saturated tropical aroma.",
            yeast_family="Low-flocculating, ester-forward ale yeast.",
            mash_temp_c=(66.0, 68.0),
            ibu_range=(20, 45),
            conditioning=ConditioningWindow(14, 60),
        ),
        StyleDirective(
            category=StyleCategory.IPA_WEST_COAST,
            label="West Coast IPA",
            base_malts=("Pale 2-row malt", "Light crystal malt"),
            hop_character="Firm, clean bittering with resinous and citrus hops.",
            yeast_family="Clean, highly attenuative American ale yeast.",
            mash_temp_c=(64.0, 66.0),
            ibu_range=(55, 80),
            conditioning=ConditioningWindow(14, 60),
        ),
        StyleDirective(
            category=StyleCategory.IPA,
            label="IPA",
            base_malts=("Pale malt", "Crystal malt"),
            hop_character="Hop-forward with a balanced bittering charge.",
            yeast_family="Clean American ale yeast.",
            mash_temp_c=(65.0, 67.0),
            ibu_range=(40, 70),
            conditioning=ConditioningWindow(14, 60),
        ),
        StyleDirective(
            category=StyleCategory.PALE_AMBER_BROWN,
            label="Pale / amber / brown ale",
            base_malts=("Pale ale malt", "Crystal malt"),
            hop_character="Balanced hopping that lets the malt speak.",
            yeast_family="Clean or lightly fruity ale yeast.",
            mash_temp_c=(66.0, 68.0),
            ibu_range=(20, 40),
            conditioning=ConditioningWindow(21, 90),
        ),
        StyleDirective(
            category=StyleCategory.GENERIC,
            label="Custom style",
            base_malts=("Pale malt",),
            hop_character="Hopping appropriate to the requested style.",
            yeast_family="A yeast strain suited to the requested style.",
            mash_temp_c=(65.0, 68.0),
            ibu_range=None,
            conditioning=ConditioningWindow(28, 90),
        ),
    )
}

_EFFICIENCY = {
    "pot": EfficiencyDirective(percent=65, label="65% (BIAB)"),
    "all-in-one": EfficiencyDirective(percent=80, label="80% (all-in-one)"),
    "professional": EfficiencyDirective(percent=85, label="85%"),
}


def _matches(patterns: tuple[str, ...], text: str) -> bool:
    return any(re.search(pattern, text) for pattern in patterns)


def _classify_text(text: str) -> StyleCategory:
    for category, patterns in STYLE_PRIORITY:
        if not _matches(patterns, text):
            continue
        if category is StyleCategory.IPA:
            if _matches(_HAZY_PATTERNS, text):
                return StyleCategory.IPA_HAZY
            if _matches(_WEST_COAST_PATTERNS, text):
                return StyleCategory.IPA_WEST_COAST
        return category
    return StyleCategory.GENERIC


def classify_style(beer_style: str, flavor_profile: str = "") -> StyleCategory:
    """The style text decides; the flavor text is only consulted when it cannot."""
    category = _classify_text(beer_style.lower())
    if category is StyleCategory.GENERIC and flavor_profile:
        category = _classify_text(flavor_profile.lower())
    return category


def detect_fruit(*texts: str) -> str | None:
    combined = " ".join(texts).lower()
    for name, pattern in _FRUITS:
        if re.search(pattern, combined):
            return name
    return None


def _is_hazy_archetype(category: StyleCategory, text: str) -> bool:
    return category is StyleCategory.IPA_HAZY or _matches(_HAZY_PATTERNS, text)


def _mash_directive(request: RecipeRequest) -> MashDirective:
    lautering = LauteringMethod.FULL_VOLUME if request.equipment == "pot" else LauteringMethod.SPARGE
    if request.expertise == "beginner":
        return MashDirective(lautering, MashComplexity.SINGLE_INFUSION, min_rests=1, max_rests=1)
    if request.expertise == "expert":
        return MashDirective(lautering, MashComplexity.MULTI_STEP, min_rests=2, max_rests=None)
    return MashDirective(lautering, MashComplexity.FLEXIBLE, min_rests=1, max_rests=None)


def _yeast_directive(request: RecipeRequest, liters: float) -> YeastDirective:
    if request.expertise == "beginner":
        return YeastDirective(YeastCategory.DRY_ONLY)
    if request.expertise == "expert":
        starter = max(1.0, round(liters * 0.075 * 2) / 2)
        return YeastDirective(YeastCategory.LIQUID_WITH_STARTER, starter_liters=starter)
    return YeastDirective(YeastCategory.DRY_OR_LIQUID)


def _sour_method(request: RecipeRequest) -> SourMethod:
    if request.expertise == "expert":
        return SourMethod.KETTLE
    return SourMethod.FAST_BIOLOGICAL


def _sour_directive(method: SourMethod, fruit: FruitDirective | None) -> SourDirective:
    if method is SourMethod.KETTLE:
        steps = [
            FermentationTemplate(0, "other", "Pitch Lactobacillus into pre-acidified wort (pH 4.5) and hold warm", "37°C"),
            FermentationTemplate(2, "reading", "Confirm wort pH has reached 3.2-3.5 before boiling", "pH 3.3"),
            FermentationTemplate(2, "other", "Boil the soured wort with all hop additions, chill and pitch ale yeast"),
            FermentationTemplate(2, "temp", "Ferment clean", "19°C"),
            FermentationTemplate(14, "reading", "Check final gravity is stable over two days"),
        ]
        description = (
            "Kettle souring: mash and lauter, boil briefly to sanitise, cool to 35-40°C, pre-acidify to pH 4.5, "
            "pitch Lactobacillus and hold 24-48 h until pH 3.2-3.5, then run the full boil and ferment with a "
            "clean ale yeast."
        )
        yeast = "Lactobacillus plantarum culture for souring, then a clean ale yeast (e.g. US-05)."
    else:
        steps = [
            FermentationTemplate(0, "temp", "Pitch sour yeast and ferment warm", "21°C"),
            FermentationTemplate(4, "reading", "Check pH is falling toward 3.2-3.5"),
            FermentationTemplate(12, "reading", "Check final gravity is stable over two days"),
        ]
        description = (
            "Fast biological souring: a single sour-producing yeast acidifies and ferments in one step, "
            "no bacteria handling and no extra kettle hold."
        )
        yeast = "Lallemand WildBrew Philly Sour (dry, lactic-acid-producing yeast)."

    if fruit is not None:
        label = fruit.fruit or "the chosen fruit"
        steps.append(FermentationTemplate(7, "additive", f"Add {label} once primary fermentation slows"))

    ordered = tuple(sorted(steps, key=lambda step: step.day))
    return SourDirective(method=method, description=description, yeast=yeast, fermentation_steps=ordered)


def _water_directive(request: RecipeRequest) -> WaterDirective | None:
    source = request.source_water_profile
    if isinstance(source, ExpertWaterProfile):
        return WaterDirective(WaterMode.EXACT, source=source, ph=source.ph)
    if request.expertise != "expert":
        return None
    if isinstance(source, BasicWaterProfile):
        total = hardness_dh_to_ppm_caco3(source.hardness)
        estimate = MineralEstimate(
            ca=round(total * 0.75),
            mg=round(total * 0.25),
            hco3=round(total * 0.85),
        )
        return WaterDirective(WaterMode.ESTIMATED, hardness_dh=source.hardness, ph=source.ph, estimate=estimate)
    if isinstance(source, LocationWaterProfile):
        return WaterDirective(WaterMode.LOCATION, location=source.location or "unknown")
    return WaterDirective(WaterMode.SUGGEST_TARGET)


def _adjunct_directive(text: str) -> AdjunctDirective | None:
    if _matches(_RICE_OR_CORN_PATTERNS, text):
        return AdjunctDirective("rice_or_corn", "Use flaked rice or flaked corn for 10-30% of the grist.")
    if _matches(_SUGAR_PATTERNS, text):
        return AdjunctDirective("sugar", "Use dextrose or candi sugar to dry the beer out and lift ABV.")
    return None


def _whirlpool(request: RecipeRequest, liters: float, fruit: FruitDirective | None) -> AddonDirective:
    return AddonDirective(
        flag="use_whirlpool",
        name="Whirlpool / hop stand",
        amount=round(liters * 4, 1),
        unit="g",
        type="hop",
        use="Whirlpool",
        timing="20 min at 80°C after flameout",
    )


def _dry_hop(request: RecipeRequest, liters: float, fruit: FruitDirective | None) -> AddonDirective:
    return AddonDirective(
        flag="use_dry_hop",
        name="Dry hop",
        amount=round(liters * 5, 1),
        unit="g",
        type="hop",
        use="Dry Hop",
        timing="3-4 days before packaging",
    )


def _irish_moss(request: RecipeRequest, liters: float, fruit: FruitDirective | None) -> AddonDirective:
    return AddonDirective(
        flag="use_irish_moss",
        name="Irish Moss",
        amount=round(liters * 0.25, 1),
        unit="g",
        type="process_aid",
        use="Boil",
        timing="15 min before end of boil",
    )


def _lactose(request: RecipeRequest, liters: float, fruit: FruitDirective | None) -> AddonDirective:
    return AddonDirective(
        flag="use_lactose",
        name="Lactose",
        amount=250.0 if liters <= LACTOSE_SMALL_BATCH_LITERS else 500.0,
        unit="g",
        type="sugar",
        use="Boil",
        timing="10 min before end of boil",
    )


def _ascorbic_acid(request: RecipeRequest, liters: float, fruit: FruitDirective | None) -> AddonDirective:
    return AddonDirective(
        flag="use_ascorbic_acid",
        name="Ascorbic Acid",
        amount=round(liters * 0.05, 1),
        unit="g",
        type="process_aid",
        use="Bottling",
        timing="At packaging, dissolved in boiled water",
    )


def _fruit(request: RecipeRequest, liters: float, fruit: FruitDirective | None) -> AddonDirective:
    name = f"{fruit.fruit.title()} puree" if fruit and fruit.fruit else "Fruit puree (choose one fitting the style)"
    return AddonDirective(
        flag="use_fruit",
        name=name,
        amount=round(liters * 150),
        unit="g",
        type="fruit",
        use="Secondary",
        timing="After primary fermentation slows, 5-7 days contact",
    )


def _spices(request: RecipeRequest, liters: float, fruit: FruitDirective | None) -> AddonDirective:
    return AddonDirective(
        flag="use_spices",
        name="Spices / herbs / coffee",
        amount=None,
        unit="g",
        type="spice",
        use="Boil",
        timing="5 min before end of boil, or in secondary for coffee and delicate herbs",
    )


def _wood(request: RecipeRequest, liters: float, fruit: FruitDirective | None) -> AddonDirective:
    return AddonDirective(
        flag="use_wood",
        name="Oak cubes",
        amount=round(liters * 1.5, 1),
        unit="g",
        type="other",
        use="Secondary",
        timing="10-14 days in secondary, taste every few days",
    )


AddonFactory = Callable[[RecipeRequest, float, FruitDirective | None], AddonDirective]

# One entry per request flag. A directive exists only when its flag is set.
ADDON_DIRECTIVES: dict[str, AddonFactory] = {
    "use_whirlpool": _whirlpool,
    "use_dry_hop": _dry_hop,
    "use_irish_moss": _irish_moss,
    "use_lactose": _lactose,
    "use_ascorbic_acid": _ascorbic_acid,
    "use_fruit": _fruit,
    "use_spices": _spices,
    "use_wood": _wood,
}


def derive_constraints(request: RecipeRequest) -> DerivedConstraints:
    liters = batch_liters(request.batch_size, request.units)
    text = f"{request.beer_style} {request.flavor_profile}".lower()

    category = classify_style(request.beer_style, request.flavor_profile)
    style = _STYLE_DIRECTIVES[category]

    named_fruit = detect_fruit(request.beer_style, request.flavor_profile)
    fruit: FruitDirective | None = None
    if named_fruit is not None or request.use_fruit:
        fruit = FruitDirective(fruit=named_fruit)

    sour: SourDirective | None = None
    if category is StyleCategory.SOUR:
        sour = _sour_directive(_sour_method(request), fruit)
    kettle_sour = sour is not None and sour.method is SourMethod.KETTLE

    hop_ceiling: float | None = None
    if request.expertise == "beginner":
        per_liter = HAZY_HOP_GRAMS_PER_LITER if _is_hazy_archetype(category, text) else BEGINNER_HOP_GRAMS_PER_LITER
        hop_ceiling = round(liters * per_liter, 1)

    hops = HopDirective(
        max_total_grams=hop_ceiling,
        dry_hop=request.use_dry_hop,
        whirlpool=request.use_whirlpool,
        boil_only_after_souring=kettle_sour,
        first_wort_allowed=not kettle_sour,
    )

    addons: list[AddonDirective] = []
    excluded: list[str] = []
    for flag, factory in ADDON_DIRECTIVES.items():
        if getattr(request, flag):
            addons.append(factory(request, liters, fruit))
        else:
            excluded.append(flag)

    return DerivedConstraints(
        batch_liters=round(liters, 2),
        style=style,
        efficiency=_EFFICIENCY[request.equipment],
        mash=_mash_directive(request),
        yeast=_yeast_directive(request, liters),
        hops=hops,
        addons=tuple(addons),
        excluded_flags=tuple(excluded),
        conditioning=style.conditioning,
        sour=sour,
        fruit=fruit,
        water=_water_directive(request),
        adjunct=_adjunct_directive(text),
    )

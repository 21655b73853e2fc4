from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from app.services.units import parse_number


def _to_text(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _to_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return value


def _to_int(value: Any) -> int | None:
    number = parse_number(value)
    return None if number is None else int(round(number))


Text = Annotated[str | None, BeforeValidator(_to_text)]
RequiredText = Annotated[str, BeforeValidator(lambda value: _to_text(value) or "")]
Number = Annotated[float | None, BeforeValidator(parse_number)]
WholeNumber = Annotated[int | None, BeforeValidator(_to_int)]
Category = Annotated[str, BeforeValidator(lambda value: str(value or "other").strip().lower())]


class _DraftModel(BaseModel):
    """Lenient base for model-authored JSON: unknown keys are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class _NamedEntry(_DraftModel):
    @model_validator(mode="before")
    @classmethod
    def _wrap_plain_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"name": value}
        return value


class RecipeSpecs(_DraftModel):
    og: Text = None
    fg: Text = None
    abv: Text = None
    ibu: Text = None
    srm: Text = None
    mash_water: Text = None
    sparge_water: Text = None
    carbonation: Text = None


class MaltEntry(_NamedEntry):
    name: RequiredText = ""
    amount: Text = None
    amount_grams: Number = None
    percentage: Text = None
    explanation: Text = None


class HopEntry(_NamedEntry):
    name: RequiredText = ""
    amount: Text = None
    amount_grams: Number = None
    time: Text = None
    boil_time: Number = None
    alpha: Number = None
    explanation: Text = None


class YeastEntry(_NamedEntry):
    name: RequiredText = ""
    amount: Text = None
    explanation: Text = None


class ExtraEntry(_NamedEntry):
    name: RequiredText = ""
    amount: float | str | None = None
    unit: Text = None
    type: Category = "other"
    use: Text = None
    time: Text = None
    description: Text = None


class MashStep(_DraftModel):
    step: RequiredText = ""
    temp: Text = None
    time: Text = None
    description: Text = None


class WaterProfileTarget(_DraftModel):
    ca: Number = None
    mg: Number = None
    na: Number = None
    cl: Number = None
    so4: Number = None
    hco3: Number = None
    ph: Number = None
    description: Text = None

    def minerals(self) -> dict[str, float | None]:
        return {
            "ca": self.ca,
            "mg": self.mg,
            "na": self.na,
            "cl": self.cl,
            "so4": self.so4,
            "hco3": self.hco3,
        }


class FermentationStep(_DraftModel):
    day: WholeNumber = None
    type: Category = "other"
    description: RequiredText = ""
    value: Text = None


class ShoppingItem(_DraftModel):
    item: RequiredText = ""
    category: Text = None

    @model_validator(mode="before")
    @classmethod
    def _wrap_plain_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"item": value}
        return value


class GeneratedRecipe(_DraftModel):
    """Recipe draft as returned by the completion service. Untrusted."""

    name: RequiredText = "Untitled Recipe"
    description: RequiredText = ""
    specs: RecipeSpecs = Field(default_factory=RecipeSpecs)
    conditioning_days_min: WholeNumber = None
    conditioning_days_max: WholeNumber = None
    malts: list[MaltEntry] = Field(default_factory=list)
    hops: list[HopEntry] = Field(default_factory=list)
    yeast: YeastEntry | None = None
    extras: list[ExtraEntry] = Field(default_factory=list)
    mash_schedule: list[MashStep] = Field(default_factory=list)
    water_profile: WaterProfileTarget | None = Field(default=None, alias="waterProfile")
    fermentation_instructions: list[str] = Field(default_factory=list)
    fermentation_schedule: list[FermentationStep] = Field(default_factory=list, alias="fermentationSchedule")
    shopping_list: list[ShoppingItem] = Field(default_factory=list)
    notes: RequiredText = ""

    @field_validator("specs", mode="before")
    @classmethod
    def _specs(cls, value: Any) -> Any:
        return value or {}

    @field_validator(
        "malts",
        "hops",
        "extras",
        "mash_schedule",
        "fermentation_schedule",
        "shopping_list",
        mode="before",
    )
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _to_list(value)

    @field_validator("fermentation_instructions", mode="before")
    @classmethod
    def _instructions(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return [_to_text(item) for item in _to_list(value) if item is not None]

    @field_validator("yeast", mode="before")
    @classmethod
    def _yeast(cls, value: Any) -> Any:
        if isinstance(value, list):
            return value[0] if value else None
        return value


class SanitizedRecipe(GeneratedRecipe):
    """Recipe with physical invariants enforced; the persisted shape."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.schemas.recipe import SanitizedRecipe

Expertise = Literal["beginner", "intermediate", "expert"]
Equipment = Literal["pot", "all-in-one", "professional"]


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class LocationWaterProfile(_WireModel):
    mode: Literal["location"]
    location: str = Field(default="", max_length=200)


class BasicWaterProfile(_WireModel):
    mode: Literal["basic"]
    hardness: float = Field(default=0.0, ge=0, le=100)
    ph: float = Field(default=7.0, ge=0, le=14)


class ExpertWaterProfile(_WireModel):
    mode: Literal["expert"]
    ca: float = Field(default=0.0, ge=0)
    mg: float = Field(default=0.0, ge=0)
    na: float = Field(default=0.0, ge=0)
    cl: float = Field(default=0.0, ge=0)
    so4: float = Field(default=0.0, ge=0)
    hco3: float = Field(default=0.0, ge=0)
    ph: float | None = Field(default=None, ge=0, le=14)

    def minerals(self) -> dict[str, float]:
        return {
            "ca": self.ca,
            "mg": self.mg,
            "na": self.na,
            "cl": self.cl,
            "so4": self.so4,
            "hco3": self.hco3,
        }


SourceWaterProfile = Annotated[
    Union[LocationWaterProfile, BasicWaterProfile, ExpertWaterProfile],
    Field(discriminator="mode"),
]

TargetValue = float | Literal["auto"] | None


class RecipeRequest(_WireModel):
    expertise: Expertise = "intermediate"
    equipment: Equipment = "all-in-one"
    beer_style: str = Field(max_length=120)
    flavor_profile: str = Field(default="", max_length=500)
    units: Literal["metric", "imperial"] = "metric"
    temp_unit: Literal["C", "F"] = "C"
    batch_size: float = Field(gt=0, le=2000)

    target_abv: TargetValue = None
    target_ibu: TargetValue = None
    target_ebc: TargetValue = None

    source_water_profile: SourceWaterProfile | None = None

    use_whirlpool: bool = False
    use_fruit: bool = False
    use_irish_moss: bool = False
    use_ascorbic_acid: bool = False
    use_lactose: bool = False
    use_dry_hop: bool = False
    use_spices: bool = False
    use_wood: bool = False

    @field_validator("beer_style", "flavor_profile")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class GenerateRecipePayload(_WireModel):
    owner_id: str | None = Field(default=None, max_length=128)
    request: RecipeRequest


class GenerateRecipeResponse(_WireModel):
    success: bool = True
    recipe: SanitizedRecipe
    recipe_id: int | None = None
    saved: bool = False
    limit_reached: bool = False


class GenerationFailureResponse(_WireModel):
    success: bool = False
    message: str
    error: str


class RecipeDocumentRead(_WireModel):
    id: int
    owner_id: str
    beer_style: str
    name: str
    engine_version: str
    request: dict[str, Any]
    recipe: dict[str, Any]

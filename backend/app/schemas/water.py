from pydantic import BaseModel, Field


class MineralProfile(BaseModel):
    ca: float = Field(default=0.0, ge=0)
    mg: float = Field(default=0.0, ge=0)
    na: float = Field(default=0.0, ge=0)
    cl: float = Field(default=0.0, ge=0)
    so4: float = Field(default=0.0, ge=0)
    hco3: float = Field(default=0.0, ge=0)


class WaterAddition(BaseModel):
    name: str
    amount: float
    unit: str = "g"
    type: str = "water_agent"
    use: str = "Mash"
    time: str = "0 min"
    description: str = ""


class WaterAdditionsRequest(BaseModel):
    source: MineralProfile
    target: MineralProfile
    batch_volume_liters: float = Field(default=20.0, gt=0, le=2000)


class WaterAdditionsRead(BaseModel):
    batch_volume_liters: float
    source_profile: MineralProfile
    target_profile: MineralProfile
    projected_profile: MineralProfile
    additions: list[WaterAddition] = Field(default_factory=list)

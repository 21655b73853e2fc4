from fastapi import APIRouter

from app.schemas.water import WaterAdditionsRead, WaterAdditionsRequest
from app.services.water_chemistry import calculate_additions, project_profile

router = APIRouter(prefix="/water", tags=["water"])


@router.post("/additions", response_model=WaterAdditionsRead)
def compute_water_additions(payload: WaterAdditionsRequest) -> WaterAdditionsRead:
    additions = calculate_additions(payload.source, payload.target, payload.batch_volume_liters)
    return WaterAdditionsRead(
        batch_volume_liters=payload.batch_volume_liters,
        source_profile=payload.source,
        target_profile=payload.target,
        projected_profile=project_profile(payload.source, additions, payload.batch_volume_liters),
        additions=additions,
    )

from pydantic import Field

from routestops.models.base import CamelModel


class Coordinate(CamelModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def __str__(self) -> str:
        return f"{self.latitude},{self.longitude}"


class Bounds(CamelModel):
    low: Coordinate = Field(..., description="South-west corner")
    high: Coordinate = Field(..., description="North-east corner")

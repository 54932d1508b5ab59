"""
Pydantic schemas for the Scanner module.

Validate the plain structured data exchanged with the surrounding
application: the persisted corner points and the commit payload.
"""

import math
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator

from src.scanner.types import Point, Quadrilateral, RectificationResult


class PointSchema(BaseModel):
    """A point in source-image pixel space."""

    x: float
    y: float

    @field_validator("x", "y")
    @classmethod
    def validate_finite(cls, v):
        """Reject NaN and infinite coordinates."""
        if not math.isfinite(v):
            raise ValueError("Coordinates must be finite")
        return v


class QuadrilateralSchema(BaseModel):
    """Four corner points in [TL, TR, BR, BL] order."""

    points: List[PointSchema] = Field(min_length=4, max_length=4)

    @classmethod
    def from_quad(cls, quad: Quadrilateral) -> "QuadrilateralSchema":
        return cls(points=[PointSchema(x=p.x, y=p.y) for p in quad])

    def to_quad(self) -> Quadrilateral:
        return [Point(p.x, p.y) for p in self.points]


class ScanResultSchema(BaseModel):
    """What the commit step hands over for persistence."""

    points: List[PointSchema] = Field(min_length=4, max_length=4)
    aspect_ratio: float = Field(gt=0.0, description="Output width / height")
    width: int = Field(gt=0, description="Output width in pixels")
    height: int = Field(gt=0, description="Output height in pixels")

    @classmethod
    def from_result(cls, result: RectificationResult) -> "ScanResultSchema":
        return cls(
            points=[PointSchema(x=p.x, y=p.y) for p in result.points],
            aspect_ratio=result.aspect_ratio,
            width=result.width,
            height=result.height,
        )


def restore_quadrilateral(data: Any) -> Quadrilateral:
    """
    Rebuild a quadrilateral from persisted data.

    Accepts either a list of {"x", "y"} mappings or a mapping with a
    "points" key.

    Raises:
        pydantic.ValidationError: If the data is not 4 finite points.
    """
    if isinstance(data, dict):
        return QuadrilateralSchema.model_validate(data).to_quad()
    return QuadrilateralSchema.model_validate({"points": data}).to_quad()


def result_payload(result: RectificationResult) -> Dict[str, Any]:
    """Plain dict of accepted points, aspect ratio and size."""
    return ScanResultSchema.from_result(result).model_dump()

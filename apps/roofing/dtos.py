"""Schemas for the Roofing (EagleView) app. Field names follow the client-facing camelCase API."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from ninja import Schema


class ErrorDetail(Schema):
    code: str
    message: str


class RoofingErrorOut(Schema):
    error: ErrorDetail


class OrderIn(Schema):
    jobId: Optional[str] = None
    trade: Optional[str] = None
    address: Optional[str] = None
    address1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


class OrderOut(Schema):
    jobId: str
    orderId: UUID
    eagleviewOrderId: Optional[str] = None
    status: str
    message: Optional[str] = None
    estimatedCompletionDate: Optional[str] = None


class PitchArea(Schema):
    pitch: Optional[str] = None
    areaSqFt: Optional[float] = None


class RoofingMeasurementsOut(Schema):
    squares: float
    roofAreaSqFt: float
    pitchBreakdown: List[PitchArea] = []
    ridgesFt: float = 0
    hipsFt: float = 0
    valleysFt: float = 0
    eavesFt: float = 0
    rakesFt: float = 0
    flashingFt: Optional[float] = None
    dripEdgeFt: Optional[float] = None
    stepFlashingFt: Optional[float] = None
    facets: Optional[int] = None
    stories: Optional[int] = None
    predominantPitch: Optional[str] = None


class OrderStatusOut(Schema):
    jobId: str
    orderId: UUID
    status: str
    eagleviewOrderId: Optional[str] = None
    reportUrl: Optional[str] = None
    reportId: Optional[str] = None
    measurements: Optional[RoofingMeasurementsOut] = None
    errorMessage: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class WebhookAckOut(Schema):
    received: bool = True
    message: Optional[str] = None
    error: Optional[str] = None


class MessageOut(Schema):
    message: str


"""Schemas for the Geo app (address validation, reverse geocoding)."""
from typing import Any, List, Optional

from ninja import Schema


class ErrorDetail(Schema):
    code: str
    message: str


class GeoErrorOut(Schema):
    success: bool = False
    error: ErrorDetail


class StructuredAddressIn(Schema):
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postalCode: Optional[str] = None
    postalCodeSuffix: Optional[str] = None
    regionCode: Optional[str] = None


class AddressValidationIn(Schema):
    structured: Optional[StructuredAddressIn] = None
    address: Optional[str] = None
    # Client-side context, logged only
    placeId: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class VerdictDetailsOut(Schema):
    validationGranularity: str
    geocodeGranularity: str
    addressComplete: bool
    hasUnconfirmedComponents: bool
    hasReplacedComponents: bool
    unconfirmedComponentTypes: List[str]


class AddressValidationResult(Schema):
    verdict: str
    verdictDetails: VerdictDetailsOut
    hasUnconfirmedComponents: bool
    missingSubpremise: bool
    dpvConfirmation: str
    standardizedAddress: Optional[str] = None
    correctedFormatted: Optional[str] = None
    granularity: str
    addressInferred: bool
    isResidential: bool
    isComplete: bool
    messages: List[str]


class AddressValidationOut(Schema):
    success: bool = True
    validation: AddressValidationResult


class ReverseGeocodeIn(Schema):
    # Untyped so non-numeric input gets the INVALID_INPUT error body
    latitude: Any = None
    longitude: Any = None


class AddressComponentsOut(Schema):
    streetNumber: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    state: Optional[str] = None
    stateCode: Optional[str] = None
    country: Optional[str] = None
    countryCode: Optional[str] = None
    postalCode: Optional[str] = None
    neighborhood: Optional[str] = None


class GeocodeResultOut(Schema):
    formattedAddress: Optional[str] = None
    components: AddressComponentsOut
    placeId: Optional[str] = None
    locationType: Optional[str] = None
    types: List[str] = []
    lat: Optional[float] = None
    lng: Optional[float] = None


class ReverseGeocodeOut(Schema):
    success: bool = True
    data: GeocodeResultOut
    allResults: List[GeocodeResultOut]

# VIN decoding against NHTSA vPIC; optional enrichment for truck intake
from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Dict, Optional

import httpx

from shop.errors import ValidationError
from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

_VIN = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")


@dataclass(frozen=True)
class VehicleInfo:
    make: str
    model: str = ""
    year: str = ""
    engine: str = ""
    transmission: str = ""
    gvw: str = ""
    body_class: str = ""

    def as_attributes(self) -> Dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v}


def normalize_vin(vin: str) -> str:
    """Upper-cased VIN; ValidationError unless it has 17 valid characters."""
    vin = (vin or "").strip().upper()
    if len(vin) != 17:
        raise ValidationError("vin", "must be exactly 17 characters")
    if not _VIN.match(vin):
        raise ValidationError("vin", "may only contain letters and digits, excluding I, O and Q")
    return vin


def _clean(value) -> str:
    value = (value or "").strip()
    return "" if value == "Not Applicable" else value


def parse_decode_result(result: Dict[str, str]) -> Optional[VehicleInfo]:
    make = _clean(result.get("Make"))
    if not make:
        return None
    engine = ""
    if _clean(result.get("EngineModel")):
        displacement = _clean(result.get("DisplacementL"))
        parts = [
            _clean(result.get("EngineModel")),
            f"{displacement}L" if displacement else "",
            _clean(result.get("FuelTypePrimary")),
        ]
        engine = " ".join(p for p in parts if p)
    return VehicleInfo(
        make=make,
        model=_clean(result.get("Model")),
        year=_clean(result.get("ModelYear")),
        engine=engine,
        transmission=_clean(result.get("TransmissionStyle")),
        gvw=re.sub(r"[^0-9]", "", _clean(result.get("GVWR"))),
        body_class=_clean(result.get("BodyClass")),
    )


async def decode_vin(
    vin: str, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Optional[VehicleInfo]:
    """
    Look a VIN up. Returns None when the service is unreachable, times out,
    answers with an error, or knows nothing about the vehicle.
    """
    vin = normalize_vin(vin)
    url = f"{config.VIN_DECODER_URL}/{vin}"
    try:
        async with httpx.AsyncClient(timeout=config.HTTP_TIMEOUT, transport=transport) as client:
            response = await client.get(url, params={"format": "json"})
        response.raise_for_status()
        results = response.json().get("Results") or []
    except (httpx.HTTPError, ValueError) as e:
        _logger.warning(f"VIN lookup for {vin} failed: {e!r}")
        return None

    if not results:
        _logger.warning(f"VIN lookup for {vin} returned no results")
        return None
    info = parse_decode_result(results[0])
    if info is None:
        _logger.warning(f"No vehicle data found for VIN {vin}")
    return info

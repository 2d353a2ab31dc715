"""Decoded NMEA record types."""

from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass(frozen=True, slots=True)
class FixRecord:
    """GGA position fix, field for field.

    Text fields are kept verbatim (latitude and longitude stay in NMEA
    ``DDMM.MMMM`` form); numeric fields are parsed. Fields missing from the
    sentence keep their empty/zero defaults.
    """

    time: str = ""
    latitude: str = ""
    latitude_direction: str = ""
    longitude: str = ""
    longitude_direction: str = ""
    fix_quality: str = ""
    num_satellites: int = 0
    horizontal_dilution: float = 0.0
    altitude: float = 0.0
    altitude_unit: str = ""
    geoid_separation: float = 0.0
    geoid_separation_unit: str = ""
    age_of_dgps_data: float = 0.0
    dgps_station_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

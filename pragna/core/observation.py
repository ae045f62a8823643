"""
Observation Schema

Inbound record for one diagnosis request: four spectroscopic readings
(arbitrary frequency units) plus patient demographics.

Only structure is enforced here. Whether the values are physiologically
plausible is the Data-Quality unit's job, so out-of-range readings are
accepted and reported in-band rather than rejected.
"""
import math
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from pragna.utils import InvalidObservationError


class Channel(int, Enum):
    """Reading channels, in input order."""
    CARBONYL_STRETCH = 0
    METHYL_DEFORMATION = 1
    CARBON_OXYGEN_STRETCH = 2
    HYDROXYL_STRETCH = 3


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


# Plausible per-channel ranges (inclusive)
CHANNEL_RANGES: Tuple[Tuple[float, float], ...] = (
    (0.5, 3.5),
    (0.8, 3.8),
    (1.5, 4.8),
    (1.2, 4.2),
)

# Named-reading payload keys, snake_case and camelCase
_NAMED_READING_KEYS = (
    ("carbonyl_stretch", "carbonylStretch"),
    ("methyl_deformation", "methylDeformation"),
    ("carbon_oxygen_stretch", "carbonOxygenStretch"),
    ("hydroxyl_stretch", "hydroxylStretch"),
)


class Observation(BaseModel):
    """
    One immutable unit of input data.

    Attributes:
        readings:        Four ordered readings (see Channel).
        age:             Patient age in years, None if not supplied.
        gender:          Patient gender, None if not supplied.
        medical_history: Optional free-text history.
    """
    model_config = ConfigDict(frozen=True)

    readings: Tuple[float, float, float, float]
    age: Optional[int] = None
    gender: Optional[Gender] = None
    medical_history: Optional[str] = None

    @field_validator("readings")
    @classmethod
    def _readings_finite(cls, value: Tuple[float, ...]) -> Tuple[float, ...]:
        if not all(math.isfinite(v) for v in value):
            raise ValueError("readings must be finite numbers")
        return value

    @field_validator("gender", mode="before")
    @classmethod
    def _normalise_gender(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            return value or None
        return value

    @field_validator("medical_history", mode="before")
    @classmethod
    def _blank_history_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    # ------------------------------------------------------------------
    # Channel accessors
    # ------------------------------------------------------------------

    @property
    def carbonyl(self) -> float:
        return self.readings[Channel.CARBONYL_STRETCH]

    @property
    def methyl(self) -> float:
        return self.readings[Channel.METHYL_DEFORMATION]

    @property
    def carbon_oxygen(self) -> float:
        return self.readings[Channel.CARBON_OXYGEN_STRETCH]

    @property
    def hydroxyl(self) -> float:
        return self.readings[Channel.HYDROXYL_STRETCH]

    @property
    def readings_in_range(self) -> bool:
        """True if every reading lies inside its plausible channel range."""
        return all(
            low <= value <= high
            for value, (low, high) in zip(self.readings, CHANNEL_RANGES)
        )

    # ------------------------------------------------------------------
    # Construction from loosely-shaped payloads
    # ------------------------------------------------------------------

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Observation":
        """
        Build an Observation from a JSON-like payload.

        Accepts either ``readings: [c0, c1, c2, c3]`` or a named-channel
        object under ``molecular_readings`` / ``molecularReadings``.
        Demographic keys may be snake_case or camelCase
        (``age``/``patientAge``, ``gender``/``patientGender``,
        ``medical_history``/``medicalHistory``).

        Raises:
            InvalidObservationError: if the payload does not validate.
        """
        data: Dict[str, Any] = {
            "readings": _extract_readings(payload),
            "age": _first_present(payload, "age", "patientAge"),
            "gender": _first_present(payload, "gender", "patientGender"),
            "medical_history": _first_present(payload, "medical_history", "medicalHistory"),
        }
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            raise InvalidObservationError(
                f"Observation payload failed validation ({len(errors)} error(s))",
                errors=errors
            ) from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "readings": list(self.readings),
            "age": self.age,
            "gender": self.gender.value if self.gender else None,
            "medical_history": self.medical_history,
        }


def _first_present(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _extract_readings(payload: Mapping[str, Any]) -> Any:
    if payload.get("readings") is not None:
        return payload["readings"]

    named = _first_present(payload, "molecular_readings", "molecularReadings")
    if not isinstance(named, Mapping):
        return None

    readings = []
    for keys in _NAMED_READING_KEYS:
        value = _first_present(named, *keys)
        # Persisted analyses store {"value": x, "unit": "MHz"}
        if isinstance(value, Mapping):
            value = value.get("value")
        readings.append(value)
    return readings

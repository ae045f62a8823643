"""
Unit Tests for the Observation Schema

Tests payload parsing (positional and named-channel forms),
normalisation and rejection of malformed input.
"""
import math

import pytest
from pydantic import ValidationError

from pragna.core.observation import Observation, Gender, Channel
from pragna.utils import InvalidObservationError


class TestObservation:
    """Tests for the Observation model."""

    def test_channel_accessors(self, high_risk_observation):
        obs = high_risk_observation
        assert obs.carbonyl == 1.8
        assert obs.methyl == 1.2
        assert obs.carbon_oxygen == 3.3
        assert obs.hydroxyl == 3.2
        assert obs.readings[Channel.HYDROXYL_STRETCH] == 3.2

    def test_is_immutable(self, high_risk_observation):
        with pytest.raises(ValidationError):
            high_risk_observation.age = 30

    def test_readings_in_range(self, high_risk_observation):
        assert high_risk_observation.readings_in_range
        assert not Observation(readings=(5.0, 1.2, 3.3, 3.2)).readings_in_range

    def test_demographics_optional(self):
        obs = Observation(readings=(1.0, 1.0, 2.0, 2.0))
        assert obs.age is None
        assert obs.gender is None
        assert obs.medical_history is None

    def test_gender_normalised(self):
        obs = Observation(readings=(1.0, 1.0, 2.0, 2.0), gender="  FEMALE ")
        assert obs.gender == Gender.FEMALE

    def test_to_dict(self, low_risk_observation):
        data = low_risk_observation.to_dict()
        assert data["readings"] == [1.0, 1.5, 2.0, 2.0]
        assert data["gender"] == "male"
        assert data["age"] == 35


class TestFromPayload:
    """Tests for Observation.from_payload."""

    def test_positional_readings(self):
        obs = Observation.from_payload({
            "readings": [1.8, 1.2, 3.3, 3.2],
            "age": 55,
            "gender": "female",
        })
        assert obs.readings == (1.8, 1.2, 3.3, 3.2)
        assert obs.gender == Gender.FEMALE

    def test_named_channels_camel_case(self, camel_case_payload, high_risk_observation):
        obs = Observation.from_payload(camel_case_payload)
        assert obs.readings == high_risk_observation.readings
        assert obs.age == 55
        assert obs.gender == Gender.FEMALE
        # Blank history collapses to None
        assert obs.medical_history is None

    def test_named_channels_snake_case(self):
        obs = Observation.from_payload({
            "molecular_readings": {
                "carbonyl_stretch": 1.1,
                "methyl_deformation": 1.4,
                "carbon_oxygen_stretch": 2.2,
                "hydroxyl_stretch": 2.1,
            },
            "medical_history": "Type 2 diabetes",
        })
        assert obs.readings == (1.1, 1.4, 2.2, 2.1)
        assert obs.medical_history == "Type 2 diabetes"

    def test_wrong_reading_count_rejected(self):
        with pytest.raises(InvalidObservationError) as exc_info:
            Observation.from_payload({"readings": [1.0, 2.0, 3.0]})

        err = exc_info.value
        assert err.code == "INVALID_OBSERVATION"
        assert err.errors
        assert all("field" in e and "message" in e for e in err.errors)

    def test_missing_readings_rejected(self):
        with pytest.raises(InvalidObservationError):
            Observation.from_payload({"age": 40})

    def test_missing_named_channel_rejected(self):
        with pytest.raises(InvalidObservationError):
            Observation.from_payload({
                "molecularReadings": {
                    "carbonylStretch": 1.8,
                    "methylDeformation": 1.2,
                    "carbonOxygenStretch": 3.3,
                }
            })

    def test_non_finite_reading_rejected(self):
        with pytest.raises(InvalidObservationError):
            Observation.from_payload({"readings": [math.nan, 1.2, 3.3, 3.2]})

    def test_unknown_gender_rejected(self):
        with pytest.raises(InvalidObservationError) as exc_info:
            Observation.from_payload({"readings": [1.8, 1.2, 3.3, 3.2], "gender": "robot"})

        assert exc_info.value.to_dict()["error"] == "INVALID_OBSERVATION"

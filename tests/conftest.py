"""
Pytest Configuration and Fixtures

Shared fixtures for consensus engine tests.
"""
import pytest
from typing import Any, Dict

from pragna.config import Settings
from pragna.core.observation import Observation, Gender
from pragna.core.units import default_units


@pytest.fixture
def high_risk_observation() -> Observation:
    """Elevated carbonyl and hydroxyl readings, 55 year old female."""
    return Observation(
        readings=(1.8, 1.2, 3.3, 3.2),
        age=55,
        gender=Gender.FEMALE,
    )


@pytest.fixture
def low_risk_observation() -> Observation:
    """Readings near baseline, 35 year old male, history supplied."""
    return Observation(
        readings=(1.0, 1.5, 2.0, 2.0),
        age=35,
        gender=Gender.MALE,
        medical_history="No significant history",
    )


@pytest.fixture
def camel_case_payload() -> Dict[str, Any]:
    """Named-channel payload as stored by the analysis form."""
    return {
        "molecularReadings": {
            "carbonylStretch": {"value": 1.8, "unit": "MHz"},
            "methylDeformation": {"value": 1.2, "unit": "MHz"},
            "carbonOxygenStretch": {"value": 3.3, "unit": "MHz"},
            "hydroxylStretch": {"value": 3.2, "unit": "MHz"},
        },
        "patientAge": 55,
        "patientGender": "Female",
        "medicalHistory": "",
    }


@pytest.fixture
def quiet_settings() -> Settings:
    """Settings with trace logging off and no simulated latency."""
    return Settings(log_trace_steps=False, simulated_latency_ms=0, init_latency_ms=0)


@pytest.fixture
def units():
    """Fresh, uninitialized instances of every scoring unit."""
    return default_units()

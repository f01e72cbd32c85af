"""
Pytest Configuration and Shared Fixtures for CRM Analytics Tests.

Provides:
- Series factories for statistics, sampling and insight tests
- Client record fixtures with native attributes and custom field values
- Custom field definitions and mock collaborator fixtures
- Settings fixtures with small limits for cap and sampling tests
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence
from unittest.mock import MagicMock

import numpy as np
import pytest

from crm_analytics.core.config import Settings, get_settings
from crm_analytics.models import (
    ClientRecord,
    CustomFieldDefinition,
    DataPoint,
    DataSeries,
)


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - slow: large synthetic datasets (deselect with -m "not slow")
    - property: checks of documented invariants over many inputs
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'property: marks invariant checks run over many generated inputs'
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Make every test see settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================
# SERIES FIXTURES
# ============================================================

def make_series(
    values: Sequence[float],
    name: str = "Series",
    start: Optional[datetime] = None,
) -> DataSeries:
    """
    Build a DataSeries from raw values.

    Labels are "P0", "P1", ...; timestamps are daily from `start` when given.
    """
    points = [
        DataPoint(
            label=f"P{i}",
            value=float(v),
            timestamp=start + timedelta(days=i) if start is not None else None,
        )
        for i, v in enumerate(values)
    ]
    return DataSeries(name=name, sourceField=name.lower(), points=points)


@pytest.fixture
def series_factory() -> Callable[..., DataSeries]:
    return make_series


@pytest.fixture
def increasing_series() -> DataSeries:
    return make_series([10, 12, 14, 16, 18, 20, 22, 24, 26, 28], name="Revenue")


@pytest.fixture
def noisy_series() -> DataSeries:
    """500 points of a seeded random walk around 100."""
    np.random.seed(42)
    values = 100 + np.cumsum(np.random.normal(0, 2, 500))
    return make_series(values.tolist(), name="Walk", start=datetime(2024, 1, 1))


# ============================================================
# CLIENT RECORD FIXTURES
# ============================================================

@pytest.fixture
def custom_fields() -> List[CustomFieldDefinition]:
    return [
        CustomFieldDefinition(id=1, fieldName="policy_amount", label="Policy amount", fieldType="number"),
        CustomFieldDefinition(id=2, fieldName="state", label="State", fieldType="dropdown",
                              options='["CA", "TX", "FL"]'),
        CustomFieldDefinition(id=3, fieldName="active", label="Active", fieldType="checkbox"),
        CustomFieldDefinition(id=4, fieldName="renewal", label="Renewal date", fieldType="date"),
        CustomFieldDefinition(id=5, fieldName="agent", label="Agent", fieldType="Text"),
        CustomFieldDefinition(id=6, fieldName="legacy_code", label="Legacy", fieldType="text",
                              isActive=False),
    ]


@pytest.fixture
def client_records() -> List[ClientRecord]:
    """
    Eight clients across three states (one missing), mixed value types.

    policy_amount values: 100, 200, "300" (numeric string), 400, "n/a",
    600, None, 800.
    """
    base = datetime(2024, 1, 1)
    rows = [
        (1, "Ana", "CA", 100, True, "2024-06-01"),
        (2, "Ben", "TX", 200, False, "2024-07-01"),
        (3, "Cara", "CA", "300", "true", "2024-08-01"),
        (4, "Dan", "FL", 400, True, "not a date"),
        (5, "Eve", "TX", "n/a", None, None),
        (6, None, "CA", 600, "no", "2024-09-15"),
        (7, "Gus", None, None, True, "2024-10-01"),
        (8, "Hal", "TX", 800, 1, "2024-11-01"),
    ]
    records = []
    for client_id, name, state, amount, active, renewal in rows:
        extra = {"policy_amount": amount, "active": active, "renewal": renewal, "agent": "Smith"}
        if state is not None:
            extra["state"] = state
        records.append(
            ClientRecord(
                id=client_id,
                name=name,
                email=f"client{client_id}@example.com" if name else None,
                createdAt=base + timedelta(days=client_id),
                lastUpdated=base + timedelta(days=client_id + 30),
                extraData=extra,
            )
        )
    return records


@pytest.fixture
def many_records() -> List[ClientRecord]:
    """3000 clients with a numeric score following a noisy upward trend."""
    np.random.seed(7)
    base = datetime(2023, 1, 1)
    scores = np.linspace(10, 60, 3000) + np.random.normal(0, 3, 3000)
    return [
        ClientRecord(
            id=i + 1,
            name=f"Client {i + 1:04d}",
            createdAt=base + timedelta(hours=i),
            extraData={"score": float(score), "segment": "ABC"[i % 3]},
        )
        for i, score in enumerate(scores)
    ]


# ============================================================
# COLLABORATOR MOCKS
# ============================================================

@pytest.fixture
def custom_field_source(custom_fields) -> MagicMock:
    source = MagicMock()
    source.get_all.return_value = custom_fields
    return source


@pytest.fixture
def failing_custom_field_source() -> MagicMock:
    source = MagicMock()
    source.get_all.side_effect = RuntimeError("database is locked")
    return source


@pytest.fixture
def client_record_source(client_records) -> MagicMock:
    source = MagicMock()
    source.get_all_clients.return_value = client_records
    return source


# ============================================================
# SETTINGS FIXTURES
# ============================================================

@pytest.fixture
def small_settings() -> Settings:
    """Tight limits so cap and sampling paths trigger on small inputs."""
    return Settings(max_records=5, max_chart_points=4, enable_smart_sampling=True)


@pytest.fixture
def default_settings() -> Settings:
    return Settings()

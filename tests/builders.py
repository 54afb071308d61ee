# tests/builders.py

"""Valid sample records; tests override only the fields they care about."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

NOW = datetime(2024, 1, 1, tzinfo=UTC)


def lot_data(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": "lot-1",
        "name": "North field",
        "code": "N-01",
        "area": 2.5,
        "coordinates": [
            {"latitude": 10.0, "longitude": -84.0},
            {"latitude": 10.001, "longitude": -84.0},
            {"latitude": 10.001, "longitude": -84.001},
        ],
        "soilType": "loam",
        "status": "active",
        "ownerId": "u1",
        "organizationId": "org1",
        "createdAt": NOW - timedelta(days=30),
        "updatedAt": NOW - timedelta(days=30),
    }
    data.update(overrides)
    return data


def task_data(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": "task-1",
        "title": "Spray north field",
        "description": "Fungicide round",
        "dueDate": NOW + timedelta(days=3),
        "priority": "medium",
        "status": "pending",
        "category": "treatment",
    }
    data.update(overrides)
    return data


def infra_data(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": "infra-1",
        "lotId": "lot-1",
        "type": "irrigation",
        "status": "good",
        "lastInspection": NOW - timedelta(days=20),
        "nextInspection": NOW + timedelta(days=10),
    }
    data.update(overrides)
    return data


def health_record_data(**overrides: Any) -> dict[str, Any]:
    """Resolved record with every optional field and dated nested lists filled."""
    seen = NOW - timedelta(days=10)
    data: dict[str, Any] = {
        "id": "health-1",
        "lotId": "lot-1",
        "cropHistoryId": "crop-1",
        "date": seen,
        "type": "disease",
        "name": "Late blight",
        "scientificName": "Phytophthora infestans",
        "severity": "high",
        "description": "Dark lesions on lower leaves",
        "affectedArea": {
            "size": 0.4,
            "percentage": 15,
            "distribution": "scattered",
            "location": "edge",
        },
        "diagnosis": {
            "method": "laboratory",
            "confidence": "high",
            "date": seen + timedelta(days=1),
            "confirmedBy": "Regional lab",
        },
        "treatment": {
            "recommended": ["copper fungicide", "remove infected plants"],
            "applied": ["copper fungicide"],
        },
        "monitoring": {
            "frequency": "weekly",
            "method": "walk the edge rows",
            "responsiblePerson": "Ana",
            "nextInspectionDate": NOW + timedelta(days=7),
        },
        "images": [
            {"uri": "file:///img/1.jpg", "type": "symptom", "date": seen, "description": "first sighting"},
            {"uri": "file:///img/2.jpg", "type": "recovery", "date": NOW - timedelta(days=1)},
        ],
        "status": "resolved",
        "resolution": {"date": NOW - timedelta(days=1), "effectiveness": 4, "notes": "contained"},
        "notes": "Watch after rain",
        "createdBy": "u1",
        "organizationId": "org1",
        "createdAt": seen,
        "updatedAt": seen,
    }
    data.update(overrides)
    return data

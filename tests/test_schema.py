# tests/test_schema.py

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from agrilot.core.errors import SchemaViolation
from agrilot.store.schema import EntitySchema, Field, FieldKind, SchemaRegistry

from .builders import NOW, infra_data, lot_data, task_data


def test_validate_normalizes_optional_fields_and_doubles(registry) -> None:
    rec = registry.validate("Lot", lot_data(area=3), NOW)

    assert rec["area"] == 3.0
    assert isinstance(rec["area"], float)
    assert rec["notes"] is None
    assert list(rec)[0] == "id"


def test_missing_required_and_unknown_fields_are_reported_together(registry) -> None:
    data = lot_data(color="green")
    del data["name"]

    with pytest.raises(SchemaViolation) as exc:
        registry.validate("Lot", data, NOW)

    assert exc.value.errors["name"] == "is required"
    assert exc.value.errors["color"] == "unknown field"


def test_lot_needs_three_coordinates(registry) -> None:
    data = lot_data()
    data["coordinates"] = data["coordinates"][:2]

    with pytest.raises(SchemaViolation) as exc:
        registry.validate("Lot", data, NOW)

    assert "coordinates" in exc.value.errors


def test_nested_errors_use_dotted_paths(registry) -> None:
    data = lot_data()
    data["coordinates"][0]["latitude"] = 123.0

    with pytest.raises(SchemaViolation) as exc:
        registry.validate("Lot", data, NOW)

    assert "coordinates.0.latitude" in exc.value.errors


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("area", 0),
        ("slope", 101),
        ("orientation", "up"),
        ("status", "abandoned"),
        ("name", "   "),
    ],
)
def test_lot_field_constraints(registry, field, value) -> None:
    with pytest.raises(SchemaViolation) as exc:
        registry.validate("Lot", lot_data(**{field: value}), NOW)
    assert field in exc.value.errors


@pytest.mark.parametrize("field", ["area", "slope"])
@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_doubles_are_rejected(registry, field, value) -> None:
    with pytest.raises(SchemaViolation) as exc:
        registry.validate("Lot", lot_data(**{field: value}), NOW)
    assert exc.value.errors[field] == "must be a finite number"


def test_nan_inside_embedded_location_is_rejected(registry) -> None:
    data = lot_data()
    data["coordinates"][1]["latitude"] = float("nan")

    with pytest.raises(SchemaViolation) as exc:
        registry.validate("Lot", data, NOW)

    assert exc.value.errors["coordinates.1.latitude"] == "must be a finite number"


def test_nan_area_never_reaches_the_store(store) -> None:
    with pytest.raises(SchemaViolation):
        store.write(lambda: store.create("Lot", lot_data(area=float("nan"))))

    assert store.count("Lot") == 0


def test_naive_datetimes_are_rejected(registry) -> None:
    with pytest.raises(SchemaViolation) as exc:
        registry.validate("Task", task_data(dueDate=datetime(2024, 1, 5)), NOW)
    assert exc.value.errors["dueDate"] == "expected a timezone-aware datetime"


def test_lot_inspection_cannot_be_in_the_future(registry) -> None:
    with pytest.raises(SchemaViolation) as exc:
        registry.validate("Lot", lot_data(lastInspectionDate=NOW + timedelta(days=1)), NOW)
    assert "lastInspectionDate" in exc.value.errors


def test_infrastructure_next_inspection_must_follow_last(registry) -> None:
    with pytest.raises(SchemaViolation) as exc:
        registry.validate(
            "Infrastructure",
            infra_data(nextInspection=NOW - timedelta(days=30)),
            NOW,
        )
    assert "nextInspection" in exc.value.errors


def test_completed_task_requires_completed_at(registry) -> None:
    with pytest.raises(SchemaViolation) as exc:
        registry.validate("Task", task_data(status="completed"), NOW)
    assert "completedAt" in exc.value.errors

    rec = registry.validate("Task", task_data(status="completed", completedAt=NOW), NOW)
    assert rec["completedAt"] == NOW


def test_unknown_type_is_a_schema_violation(registry) -> None:
    with pytest.raises(SchemaViolation):
        registry.schema("Tractor")


def test_names_lists_only_stored_types(registry) -> None:
    names = registry.names()
    assert "Lot" in names and "Task" in names
    assert "Location" not in names


def test_registry_rejects_reference_to_undeclared_type() -> None:
    broken = EntitySchema(
        "Note",
        (
            Field("id", FieldKind.PRIMITIVE, "string", primary_key=True),
            Field("lotId", FieldKind.REFERENCE, "Lot"),
        ),
    )
    with pytest.raises(SchemaViolation) as exc:
        SchemaRegistry([broken])
    assert "lotId" in exc.value.errors


def test_registry_rejects_untyped_fields() -> None:
    loose = EntitySchema(
        "Note",
        (
            Field("id", FieldKind.PRIMITIVE, "string", primary_key=True),
            Field("extra", FieldKind.PRIMITIVE, "mixed"),
        ),
    )
    with pytest.raises(SchemaViolation) as exc:
        SchemaRegistry([loose])
    assert exc.value.errors["extra"] == "unknown primitive type 'mixed'"


def test_reference_must_match_target_primary_key_type(registry) -> None:
    with pytest.raises(SchemaViolation) as exc:
        registry.validate("Infrastructure", infra_data(lotId=7), NOW)
    assert exc.value.errors["lotId"] == "expected a Lot id"

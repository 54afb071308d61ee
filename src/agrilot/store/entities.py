# src/agrilot/store/entities.py

"""
Farm entity schemas.

Every persisted type is declared here as data. Cross-field invariants live in
small rule functions attached to the schema; the registry runs them after the
per-field checks pass.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import StrEnum
from typing import Any

from .schema import EntitySchema, Field, FieldKind, SchemaRegistry

SCHEMA_VERSION = 2

COMPASS = ("N", "S", "E", "W", "NE", "NW", "SE", "SW")


class LotStatus(StrEnum):
    ACTIVE = "active"
    FALLOW = "fallow"
    PREPARATION = "preparation"
    INACTIVE = "inactive"


class IrrigationType(StrEnum):
    DRIP = "drip"
    SPRINKLER = "sprinkler"
    FLOOD = "flood"
    NONE = "none"


class CropStatus(StrEnum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    HARVESTED = "harvested"
    FAILED = "failed"
    COMPLETED = "completed"


class TreatmentType(StrEnum):
    FERTILIZER = "fertilizer"
    PESTICIDE = "pesticide"
    HERBICIDE = "herbicide"
    FUNGICIDE = "fungicide"
    BIOLOGICAL = "biological"
    OTHER = "other"


class TreatmentStatus(StrEnum):
    PLANNED = "planned"
    APPLIED = "applied"
    EVALUATED = "evaluated"
    CANCELLED = "cancelled"


class HealthType(StrEnum):
    PEST = "pest"
    DISEASE = "disease"
    DEFICIENCY = "deficiency"
    WEED = "weed"
    STRESS = "stress"
    OTHER = "other"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class HealthStatus(StrEnum):
    IDENTIFIED = "identified"
    UNDER_TREATMENT = "under_treatment"
    CONTROLLED = "controlled"
    RESOLVED = "resolved"


class InfrastructureType(StrEnum):
    IRRIGATION = "irrigation"
    GREENHOUSE = "greenhouse"
    STORAGE = "storage"
    OTHER = "other"


class InfrastructureStatus(StrEnum):
    GOOD = "good"
    REGULAR = "regular"
    NEEDS_REPAIR = "needs_repair"
    CRITICAL = "critical"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskCategory(StrEnum):
    TREATMENT = "treatment"
    MAINTENANCE = "maintenance"
    HARVEST = "harvest"
    PLANTING = "planting"
    OTHER = "other"


# ---- table helpers ----


def _p(name: str, type_: str, **kw: Any) -> Field:
    return Field(name, FieldKind.PRIMITIVE, type_, **kw)


def _emb(name: str, type_: str, **kw: Any) -> Field:
    return Field(name, FieldKind.EMBEDDED, type_, **kw)


def _ref(name: str, type_: str, **kw: Any) -> Field:
    return Field(name, FieldKind.REFERENCE, type_, **kw)


def _list(name: str, type_: str, **kw: Any) -> Field:
    return Field(name, FieldKind.LIST, type_, **kw)


def _id() -> Field:
    return _p("id", "string", primary_key=True)


def _positive(name: str, **kw: Any) -> Field:
    return _p(name, "double", minimum=0, exclusive_minimum=True, **kw)


def _non_negative(name: str, **kw: Any) -> Field:
    return _p(name, "double", minimum=0, **kw)


def _rating(name: str, **kw: Any) -> Field:
    return _p(name, "int", minimum=1, maximum=5, **kw)


def _stamps() -> tuple[Field, ...]:
    return (
        _p("createdBy", "string"),
        _p("organizationId", "string"),
        _p("createdAt", "date"),
        _p("updatedAt", "date"),
    )


# ---- invariants ----


def _lot_inspection_not_future(r: Mapping[str, Any], now: datetime) -> tuple[str, str] | None:
    last = r.get("lastInspectionDate")
    if last is not None and last > now:
        return "lastInspectionDate", "cannot be in the future"
    return None


def _crop_failure_reason(r: Mapping[str, Any], now: datetime) -> tuple[str, str] | None:
    failed = r["status"] == CropStatus.FAILED
    has_reason = bool((r.get("failureReason") or "").strip())
    if failed and not has_reason:
        return "failureReason", "is required when the crop failed"
    if has_reason and not failed:
        return "failureReason", "only allowed when status is failed"
    return None


def _crop_actual_harvest(r: Mapping[str, Any], now: datetime) -> tuple[str, str] | None:
    if r.get("actualHarvestDate") is not None and r["status"] not in (
        CropStatus.HARVESTED,
        CropStatus.COMPLETED,
    ):
        return "actualHarvestDate", "requires status harvested or completed"
    return None


def _treatment_effectiveness(r: Mapping[str, Any], now: datetime) -> tuple[str, str] | None:
    if r.get("effectiveness") is not None and r["status"] != TreatmentStatus.EVALUATED:
        return "effectiveness", "only recorded once the treatment is evaluated"
    return None


def _health_resolution(r: Mapping[str, Any], now: datetime) -> tuple[str, str] | None:
    resolved = r["status"] == HealthStatus.RESOLVED
    has_resolution = r.get("resolution") is not None
    if resolved and not has_resolution:
        return "resolution", "is required when the record is resolved"
    if has_resolution and not resolved:
        return "resolution", "only allowed when status is resolved"
    return None


def _infrastructure_inspection_order(
    r: Mapping[str, Any], now: datetime
) -> tuple[str, str] | None:
    if r["nextInspection"] <= r["lastInspection"]:
        return "nextInspection", "must be after the last inspection"
    return None


def _task_completed_at(r: Mapping[str, Any], now: datetime) -> tuple[str, str] | None:
    completed = r["status"] == TaskStatus.COMPLETED
    if completed and r.get("completedAt") is None:
        return "completedAt", "is required for completed tasks"
    if not completed and r.get("completedAt") is not None:
        return "completedAt", "only set on completed tasks"
    return None


# ---- embedded types ----

EMBEDDED_SCHEMAS: tuple[EntitySchema, ...] = (
    EntitySchema(
        "Location",
        (
            _p("latitude", "double", minimum=-90, maximum=90),
            _p("longitude", "double", minimum=-180, maximum=180),
        ),
        embedded=True,
    ),
    EntitySchema(
        "Irrigation",
        (
            _p("type", "string", choices=tuple(IrrigationType)),
            _p("description", "string", optional=True),
        ),
        embedded=True,
    ),
    EntitySchema(
        "Density",
        (_positive("plantsPerHectare"), _positive("rowSpacing"), _positive("plantSpacing")),
        embedded=True,
    ),
    EntitySchema(
        "Fertilization",
        (
            _p("date", "date"),
            _p("product", "string"),
            _positive("amount"),
            _p("unit", "string"),
            _p("method", "string"),
        ),
        embedded=True,
    ),
    EntitySchema(
        "IrrigationEvent",
        (
            _p("date", "date"),
            _non_negative("duration"),
            _non_negative("amount", optional=True),
            _p("type", "string", choices=("drip", "sprinkler", "flood")),
        ),
        embedded=True,
    ),
    EntitySchema(
        "Yield",
        (
            _non_negative("amount"),
            _p("unit", "string"),
            _p("quality", "string", optional=True, choices=("excellent", "good", "fair", "poor")),
        ),
        embedded=True,
    ),
    EntitySchema(
        "CropCosts",
        tuple(
            _non_negative(n, optional=True)
            for n in ("seeds", "fertilizers", "pesticides", "labor", "irrigation", "other")
        ),
        embedded=True,
    ),
    EntitySchema(
        "Weather",
        (
            _p("temperature", "double"),
            _p("humidity", "double", minimum=0, maximum=100),
            _non_negative("windSpeed"),
            _p("windDirection", "string", optional=True, choices=COMPASS),
            _p(
                "conditions",
                "string",
                choices=("sunny", "cloudy", "partially_cloudy", "rainy", "windy"),
            ),
        ),
        embedded=True,
    ),
    EntitySchema(
        "Effectiveness",
        (_rating("rating"), _p("evaluationDate", "date"), _p("observations", "string")),
        embedded=True,
    ),
    EntitySchema(
        "SafetyMeasures",
        (
            _non_negative("reentryInterval"),
            _non_negative("harvestInterval"),
            _list("protectiveEquipment", "string"),
        ),
        embedded=True,
    ),
    EntitySchema(
        "Certification",
        (
            _p("organic", "bool"),
            _p("certifier", "string", optional=True),
            _p("certificationNumber", "string", optional=True),
        ),
        embedded=True,
    ),
    EntitySchema(
        "AffectedArea",
        (
            _non_negative("size"),
            _p("percentage", "double", minimum=0, maximum=100),
            _p("distribution", "string", choices=("isolated", "scattered", "widespread", "uniform")),
            _p("location", "string", choices=("edge", "center", "random", "pattern")),
        ),
        embedded=True,
    ),
    EntitySchema(
        "Diagnosis",
        (
            _p("method", "string", choices=("visual", "laboratory", "expert", "other")),
            _p("confidence", "string", choices=("low", "medium", "high")),
            _p("date", "date"),
            _p("confirmedBy", "string", optional=True),
        ),
        embedded=True,
    ),
    EntitySchema(
        "HealthTreatment",
        (
            _list("recommended", "string"),
            _list("applied", "string", optional=True),
        ),
        embedded=True,
    ),
    EntitySchema(
        "Monitoring",
        (
            _p("frequency", "string", choices=("daily", "weekly", "biweekly", "monthly")),
            _p("method", "string", optional=True),
            _p("responsiblePerson", "string", optional=True),
            _p("nextInspectionDate", "date"),
        ),
        embedded=True,
    ),
    EntitySchema(
        "HealthImage",
        (
            _p("uri", "string"),
            _p("type", "string", choices=("symptom", "damage", "treatment", "recovery")),
            _p("date", "date"),
            _p("description", "string", optional=True),
        ),
        embedded=True,
    ),
    EntitySchema(
        "Resolution",
        (_p("date", "date"), _rating("effectiveness"), _p("notes", "string")),
        embedded=True,
    ),
)


# ---- stored types ----

ENTITY_SCHEMAS: tuple[EntitySchema, ...] = (
    EntitySchema(
        "Lot",
        (
            _id(),
            _p("name", "string"),
            _p("code", "string"),
            _positive("area"),
            _list("coordinates", "Location", min_items=3),
            _p("soilType", "string", optional=True),
            _emb("irrigation", "Irrigation", optional=True),
            _p("slope", "double", optional=True, minimum=0, maximum=100),
            _p("orientation", "string", optional=True, choices=COMPASS),
            _p("status", "string", choices=tuple(LotStatus)),
            _p("notes", "string", optional=True),
            _p("ownerId", "string"),
            _p("organizationId", "string"),
            _p("createdAt", "date"),
            _p("updatedAt", "date"),
            _p("lastInspectionDate", "date", optional=True),
        ),
        rules=(_lot_inspection_not_future,),
    ),
    EntitySchema(
        "CropHistory",
        (
            _id(),
            _ref("lotId", "Lot"),
            _p("cropType", "string"),
            _p("variety", "string"),
            _p("season", "string"),
            _p("startDate", "date"),
            _p("plantingDate", "date"),
            _p("expectedHarvestDate", "date"),
            _p("actualHarvestDate", "date", optional=True),
            _p("endDate", "date", optional=True),
            _emb("density", "Density"),
            _list("fertilization", "Fertilization"),
            _list("irrigation", "IrrigationEvent"),
            _emb("yield", "Yield", optional=True),
            _emb("costs", "CropCosts"),
            _p("status", "string", choices=tuple(CropStatus)),
            _p("failureReason", "string", optional=True),
            _p("notes", "string", optional=True),
            _list("images", "string", optional=True),
            *_stamps(),
        ),
        rules=(_crop_failure_reason, _crop_actual_harvest),
    ),
    EntitySchema(
        "Treatment",
        (
            _id(),
            _ref("lotId", "Lot"),
            _ref("cropHistoryId", "CropHistory", optional=True),
            _p("type", "string", choices=tuple(TreatmentType)),
            _p("product", "string"),
            _p("activeIngredient", "string"),
            _positive("quantity"),
            _p("unit", "string"),
            _positive("dosagePerHectare"),
            _p(
                "applicationMethod",
                "string",
                choices=("spray", "drip", "granular", "foliar", "soil", "other"),
            ),
            _p("applicationDate", "date"),
            _p("nextApplicationDate", "date", optional=True),
            _p("applicator", "string"),
            _p("targetProblem", "string", optional=True),
            _emb("weather", "Weather"),
            _emb("effectiveness", "Effectiveness", optional=True),
            _emb("safetyMeasures", "SafetyMeasures"),
            _emb("certification", "Certification", optional=True),
            _list("images", "string", optional=True),
            _p("notes", "string", optional=True),
            _p("status", "string", choices=tuple(TreatmentStatus)),
            *_stamps(),
        ),
        rules=(_treatment_effectiveness,),
    ),
    EntitySchema(
        "HealthRecord",
        (
            _id(),
            _ref("lotId", "Lot"),
            _ref("cropHistoryId", "CropHistory", optional=True),
            _p("date", "date"),
            _p("type", "string", choices=tuple(HealthType)),
            _p("name", "string"),
            _p("scientificName", "string", optional=True),
            _p("severity", "string", choices=tuple(Severity)),
            _p("description", "string"),
            _emb("affectedArea", "AffectedArea"),
            _emb("diagnosis", "Diagnosis"),
            _emb("treatment", "HealthTreatment"),
            _emb("monitoring", "Monitoring"),
            _list("images", "HealthImage"),
            _p("status", "string", choices=tuple(HealthStatus)),
            _emb("resolution", "Resolution", optional=True),
            _p("notes", "string", optional=True),
            *_stamps(),
        ),
        rules=(_health_resolution,),
    ),
    EntitySchema(
        "Infrastructure",
        (
            _id(),
            _ref("lotId", "Lot"),
            _p("type", "string", choices=tuple(InfrastructureType)),
            _p("status", "string", choices=tuple(InfrastructureStatus)),
            _p("lastInspection", "date"),
            _p("nextInspection", "date"),
            _p("notes", "string", optional=True),
            _list("images", "string", optional=True),
        ),
        rules=(_infrastructure_inspection_order,),
    ),
    EntitySchema(
        "ImageRecord",
        (
            _id(),
            _ref("lotId", "Lot"),
            _p("uri", "string"),
            _p("type", "string", choices=("general", "issue", "progress", "infrastructure")),
            _p("date", "date"),
            _p("notes", "string", optional=True),
            _emb("location", "Location", optional=True),
        ),
    ),
    EntitySchema(
        "Task",
        (
            _id(),
            _ref("lotId", "Lot", optional=True),
            _p("title", "string"),
            _p("description", "string", optional=True),
            _p("dueDate", "date"),
            _p("priority", "string", choices=tuple(TaskPriority)),
            _p("status", "string", choices=tuple(TaskStatus)),
            _p("assignedTo", "string", optional=True),
            _p("category", "string", choices=tuple(TaskCategory)),
            _p("completedAt", "date", optional=True),
            _p("notes", "string", optional=True),
        ),
        rules=(_task_completed_at,),
    ),
    EntitySchema(
        "EconomicRecord",
        (
            _id(),
            _ref("lotId", "Lot", optional=True),
            _p("date", "date"),
            _p("type", "string", choices=("income", "expense")),
            _p("category", "string"),
            _non_negative("amount"),
            _p("description", "string"),
            _p("paymentMethod", "string", optional=True),
            _p("invoice", "string", optional=True),
            _p("notes", "string", optional=True),
        ),
    ),
    EntitySchema(
        "Alert",
        (
            _id(),
            _ref("lotId", "Lot", optional=True),
            _p(
                "type",
                "string",
                choices=("weather", "pest", "disease", "task", "maintenance", "other"),
            ),
            _p("severity", "string", choices=("info", "warning", "critical")),
            _p("title", "string"),
            _p("description", "string"),
            _p("createdAt", "date"),
            _p("expiresAt", "date", optional=True),
            _p("acknowledged", "bool"),
            _ref("relatedTaskId", "Task", optional=True),
        ),
    ),
)


def build_registry() -> SchemaRegistry:
    return SchemaRegistry((*EMBEDDED_SCHEMAS, *ENTITY_SCHEMAS))

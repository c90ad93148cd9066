# src/schedcheck/schemas/models.py
"""
@brief
Pydantic data models for the schedcheck project.

@details
Defines the canonical model types:
    - Client, Worker, Task: normalized input records (one per spreadsheet row)
    - Finding: one validation result produced by the validation engine
    - Rule (+ typed params per rule kind): business constraints for a downstream allocator
    - Priority: one named weighted criterion
    - Config: runtime configuration (from config.yaml)

Record field names follow the spreadsheet column names exactly (ClientID,
PriorityLevel, ...). Record models carry no range validators: out-of-range
values must reach the validation engine so they can be reported as findings.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class _StrictBaseModel(BaseModel):
    """
    @brief
    Base model enforcing strict defaults for configuration and data contracts.

    @details
    Forbids unknown fields and preserves exact naming rules.
    Designed as a foundation for all other schedcheck models.
    """

    model_config = {
        "extra": "forbid",  # Reject unknown fields
        "populate_by_name": True,  # Allow population by field name
        "use_enum_values": True,  # Export raw enum values
    }


# ------------------------------------------------------------
# Vocabularies
# ------------------------------------------------------------
class EntityType(str, Enum):
    CLIENTS = "clients"
    WORKERS = "workers"
    TASKS = "tasks"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class FindingType(str, Enum):
    MISSING = "missing"
    DUPLICATE = "duplicate"
    RANGE = "range"
    JSON = "json"
    REFERENCE = "reference"
    SKILL_COVERAGE = "skillCoverage"
    CONCURRENCY = "concurrency"
    SATURATION = "saturation"


class RuleType(str, Enum):
    CO_RUN = "coRun"
    SLOT_RESTRICTION = "slotRestriction"
    LOAD_LIMIT = "loadLimit"
    PHASE_WINDOW = "phaseWindow"
    PATTERN_MATCH = "patternMatch"


# ------------------------------------------------------------
# Input records
# ------------------------------------------------------------
class Client(_StrictBaseModel):
    """
    @brief
    Represents one row of the clients sheet.

    @details
    RequestedTaskIDs references Task.TaskID values; AttributesJSON is free-form
    JSON text checked for well-formedness by the validator.
    """

    ClientID: str = Field("", description="Unique client key")
    ClientName: str = Field("Unknown Client", description="Display name")
    PriorityLevel: int = Field(1, description="Client priority (expected 1..5)")
    RequestedTaskIDs: list[str] = Field(default_factory=list, description="Requested task keys")
    GroupTag: str = Field("Default", description="Client group")
    AttributesJSON: str = Field("{}", description="Extra attributes as JSON text")


class Worker(_StrictBaseModel):
    """
    @brief
    Represents one row of the workers sheet.

    @details
    AvailableSlots lists the phase numbers the worker can serve; capacity per
    phase is MaxLoadPerPhase.
    """

    WorkerID: str = Field("", description="Unique worker key")
    WorkerName: str = Field("Unknown Worker", description="Display name")
    Skills: list[str] = Field(default_factory=list, description="Skill names")
    AvailableSlots: list[int] = Field(default_factory=list, description="Phases (expected 1..10)")
    MaxLoadPerPhase: int = Field(1, description="Capacity per phase (expected >= 1)")
    WorkerGroup: str = Field("Default", description="Worker group")
    QualificationLevel: int = Field(1, description="Qualification level")


class Task(_StrictBaseModel):
    """
    @brief
    Represents one row of the tasks sheet.

    @details
    Duration is measured in phase-units of workload and is summed per preferred
    phase by the saturation check.
    """

    TaskID: str = Field("", description="Unique task key")
    TaskName: str = Field("Unknown Task", description="Display name")
    Category: str = Field("General", description="Task category")
    Duration: int = Field(1, description="Workload in phase-units (expected >= 1)")
    RequiredSkills: list[str] = Field(default_factory=list, description="Required skill names")
    PreferredPhases: list[int] = Field(default_factory=list, description="Preferred phases")
    MaxConcurrent: int = Field(1, description="Parallel executions (expected >= 1)")


Record = Client | Worker | Task

RECORD_MODELS: dict[str, type[_StrictBaseModel]] = {
    EntityType.CLIENTS.value: Client,
    EntityType.WORKERS.value: Worker,
    EntityType.TASKS.value: Task,
}

KEY_FIELDS: dict[str, str] = {
    EntityType.CLIENTS.value: "ClientID",
    EntityType.WORKERS.value: "WorkerID",
    EntityType.TASKS.value: "TaskID",
}


# ------------------------------------------------------------
# Validation findings
# ------------------------------------------------------------
class Finding(_StrictBaseModel):
    """
    @brief
    One validation result.

    @details
    Findings are immutable and regenerated on every validation run.
    Aggregate findings (saturation) carry no field and no row index.
    Serialize with `model_dump(by_alias=True, exclude_none=True)` to obtain
    the export shape {type, message, entity, field, rowIndex, severity}.
    """

    model_config = {**_StrictBaseModel.model_config, "frozen": True}

    type: FindingType
    message: str
    entity: EntityType
    field: str | None = None
    row_index: int | None = Field(None, alias="rowIndex", ge=0)
    severity: Severity


# ------------------------------------------------------------
# Rules
# ------------------------------------------------------------
class CoRunParams(_StrictBaseModel):
    tasks: list[str] = Field(default_factory=list)


class SlotRestrictionParams(_StrictBaseModel):
    group: str = ""
    minCommonSlots: int = Field(1, ge=1)


class LoadLimitParams(_StrictBaseModel):
    workerGroup: str = ""
    maxSlotsPerPhase: int = Field(1, ge=1)


class PhaseWindowParams(_StrictBaseModel):
    taskId: str = ""
    allowedPhases: list[int] = Field(default_factory=list)


class PatternMatchParams(_StrictBaseModel):
    regex: str = ""
    template: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)


RULE_PARAMS_MODELS: dict[str, type[_StrictBaseModel]] = {
    RuleType.CO_RUN.value: CoRunParams,
    RuleType.SLOT_RESTRICTION.value: SlotRestrictionParams,
    RuleType.LOAD_LIMIT.value: LoadLimitParams,
    RuleType.PHASE_WINDOW.value: PhaseWindowParams,
    RuleType.PATTERN_MATCH.value: PatternMatchParams,
}


class Rule(_StrictBaseModel):
    """
    @brief
    One business rule handed to the downstream allocator.

    @details
    `params` is shaped by `type` (see RULE_PARAMS_MODELS). The manual builder
    never checks referenced ids against the current record set.
    """

    id: str = Field(..., min_length=1, description="Opaque unique id")
    type: RuleType
    params: dict[str, Any] = Field(default_factory=dict)
    description: str = ""


class Priority(_StrictBaseModel):
    name: str
    weight: int = Field(..., ge=0, le=100)
    description: str = ""


# ------------------------------------------------------------
# Runtime configuration
# ------------------------------------------------------------
class ValidationConfig(BaseModel):
    """
    @brief
    Controls behavior of the validation report.
    """

    write_report: bool = True
    report_filename: str = "validation_report.json"


class ExportConfig(BaseModel):
    """
    @brief
    Export artifact settings.

    @details
    `version` is stamped into rules-config.json metadata; `array_separator`
    joins list-valued fields in the delimited-text export.
    """

    output_dir: str = "data/output"
    version: str = "1.0.0"
    array_separator: str = ","


class TranslatorConfig(BaseModel):
    """
    @brief
    Natural-language translator settings.

    @details
    provider="none" disables the external translator; search then always uses
    the substring fallback and rule translation returns nothing.
    """

    provider: str = Field("none", pattern="^(none|openai)$")
    model: str = "gpt-3.5-turbo"
    api_key_env: str = "OPENAI_API_KEY"
    base_url: str | None = None
    temperature: float = Field(0.1, ge=0.0, le=2.0)
    rule_temperature: float = Field(0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(300, ge=1)
    timeout_seconds: float | None = Field(None, gt=0.0)
    sample_size: int = Field(2, ge=0, description="Records sent to the translator for grounding")


class Config(_StrictBaseModel):
    """
    @brief
    Represents the full runtime configuration loaded from config.yaml.
    """

    validation: ValidationConfig = Field(default_factory=ValidationConfig.model_construct)
    export: ExportConfig = Field(default_factory=ExportConfig.model_construct)
    translator: TranslatorConfig = Field(default_factory=TranslatorConfig.model_construct)
    priorities: list[Priority] | None = None


__all__ = [
    "Client",
    "Config",
    "EntityType",
    "Finding",
    "FindingType",
    "Priority",
    "Record",
    "Rule",
    "RuleType",
    "Severity",
    "Task",
    "Worker",
]

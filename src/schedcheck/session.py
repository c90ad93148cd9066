# src/schedcheck/session.py
"""
@brief
In-memory working state: records, findings, rules and priorities.

@details
Every mutation of a record collection re-runs the full validation, so
`findings` and `can_export` always describe the current data. Rules and
priorities are edited independently of the records and only meet them at
export time.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from schedcheck.bridge.bridge import NaturalLanguageBridge
from schedcheck.bridge.translator import Translator, build_translator
from schedcheck.dataloader.normalizer import normalize_row, parse_int_list, parse_string_list
from schedcheck.dataloader.postload_handler import LoadResultHandler
from schedcheck.dataloader.records_loader import RecordsLoader
from schedcheck.errors import DataError
from schedcheck.export.exporter import export_package
from schedcheck.rules.builder import RuleBuilder
from schedcheck.rules.priorities import PriorityConfig
from schedcheck.schemas.models import (
    RECORD_MODELS,
    Client,
    Config,
    EntityType,
    Finding,
    Record,
    Rule,
    Task,
    Worker,
)
from schedcheck.validator.validator import can_export, validate_all

logger = logging.getLogger(__name__)

_LIST_PARSERS = {
    "RequestedTaskIDs": parse_string_list,
    "Skills": parse_string_list,
    "RequiredSkills": parse_string_list,
    "AvailableSlots": parse_int_list,
    "PreferredPhases": parse_int_list,
}


def _entity(value: EntityType | str) -> str:
    try:
        return EntityType(value).value
    except ValueError as e:
        raise DataError(
            message=f"Unknown entity type: {value!r}",
            source="Session",
            suggested_action="Use one of: clients, workers, tasks.",
        ) from e


class Session:
    def __init__(
        self,
        config: Config | None = None,
        translator: Translator | None = None,
    ) -> None:
        self.config = config or Config()
        self._records: dict[str, list[Record]] = {e.value: [] for e in EntityType}
        self.rule_builder = RuleBuilder()
        self.priority_config = PriorityConfig(self.config.priorities)
        self.bridge = NaturalLanguageBridge(
            translator or build_translator(self.config.translator),
            sample_size=self.config.translator.sample_size,
        )
        self.findings: list[Finding] = []

    # ------------------------------
    # Records
    # ------------------------------
    @property
    def clients(self) -> list[Client]:
        return list(self._records[EntityType.CLIENTS.value])  # type: ignore[arg-type]

    @property
    def workers(self) -> list[Worker]:
        return list(self._records[EntityType.WORKERS.value])  # type: ignore[arg-type]

    @property
    def tasks(self) -> list[Task]:
        return list(self._records[EntityType.TASKS.value])  # type: ignore[arg-type]

    def records(self, entity: EntityType | str) -> list[Record]:
        return list(self._records[_entity(entity)])

    def set_records(
        self, entity: EntityType | str, records: Sequence[Record | Mapping[str, Any]]
    ) -> list[Finding]:
        """
        @brief
        Replace one collection and revalidate.

        @details
        Model instances of the matching type are kept as they are; raw
        mappings go through the normalizer, like uploaded rows.
        """
        name = _entity(entity)
        model = RECORD_MODELS[name]
        out: list[Record] = []
        for index, record in enumerate(records):
            if isinstance(record, model):
                out.append(record)
            elif isinstance(record, Mapping):
                out.append(normalize_row(record, name, index))
            else:
                raise DataError(
                    message=f"Row {index} is not a {model.__name__}: {type(record).__name__}",
                    source="Session.set_records",
                )
        self._records[name] = out
        return self.revalidate()

    def load_file(self, entity: EntityType | str, path: Path) -> list[Finding]:
        """Load a CSV/XLSX file into one collection; rejected files leave it unchanged."""
        name = _entity(entity)
        result = RecordsLoader().load(Path(path), name)
        records = LoadResultHandler(Path(self.config.export.output_dir)).handle(result)
        if records is None:
            raise DataError(
                message=f"Failed to load {name} from {path}: {len(result.errors)} issue(s)",
                source="Session.load_file",
                suggested_action=f"See {name}_load_errors.json in the output directory.",
            )
        return self.set_records(name, records)

    def edit_cell(self, entity: EntityType | str, row: int, field: str, value: Any) -> Record:
        """
        @brief
        Change a single field of one record and revalidate.

        @details
        List fields accept comma-separated text as in uploaded files; every
        other value is coerced by the record model.

        @raises
            DataError
                On an unknown row or field, or a value the model cannot coerce.
        """
        name = _entity(entity)
        collection = self._records[name]
        model = RECORD_MODELS[name]
        if not 0 <= row < len(collection):
            raise DataError(f"Row {row} out of range for {name}", source="Session.edit_cell")
        if field not in model.model_fields:
            raise DataError(
                f"Unknown field {field!r} for {name}",
                source="Session.edit_cell",
                suggested_action=f"Use one of: {', '.join(model.model_fields)}.",
            )

        if field in _LIST_PARSERS and not isinstance(value, (list, tuple)):
            value = _LIST_PARSERS[field](value)

        data = collection[row].model_dump()
        data[field] = value
        try:
            updated = model.model_validate(data)
        except ValidationError as e:
            raise DataError(
                f"Invalid value for {name}[{row}].{field}: {value!r}",
                source="Session.edit_cell",
            ) from e

        collection[row] = updated
        self.revalidate()
        return updated

    # ------------------------------
    # Validation
    # ------------------------------
    def revalidate(self) -> list[Finding]:
        self.findings = validate_all(self.clients, self.workers, self.tasks)
        return self.findings

    @property
    def can_export(self) -> bool:
        return can_export(self.findings)

    def findings_for(self, entity: EntityType | str) -> list[Finding]:
        name = _entity(entity)
        return [f for f in self.findings if f.entity == name]

    # ------------------------------
    # Natural language
    # ------------------------------
    async def search(self, entity: EntityType | str, query: str) -> list[Record]:
        return await self.bridge.search(query, self.records(entity))

    async def add_rule_from_text(self, description: str) -> Rule | None:
        context = {e.value: self._records[e.value] for e in EntityType}
        rule = await self.bridge.rule_from_text(description, context)
        if rule is None:
            return None
        return self.rule_builder.add(rule)

    # ------------------------------
    # Export
    # ------------------------------
    def export(self, out_dir: Path | None = None) -> list[Path]:
        target = Path(out_dir) if out_dir is not None else Path(self.config.export.output_dir)
        return export_package(
            self.clients,
            self.workers,
            self.tasks,
            self.rule_builder.rules,
            self.priority_config.priorities,
            self.findings,
            target,
            version=self.config.export.version,
            separator=self.config.export.array_separator,
        )


__all__ = ["Session"]

# scripts/gen_schemas.py
"""
Generate JSON Schemas for schedcheck data models.

This script exports JSON Schema files for:
    - Client, Worker, Task (input records)
    - Finding (validation output)
    - Rule, Priority (rules-config.json content)
    - Config

Output directory: schemas/
"""

import json
from pathlib import Path

from schedcheck.schemas.models import Client, Config, Finding, Priority, Rule, Task, Worker


def export_schema(model_cls, name: str, out_dir: Path) -> Path:
    """
    @brief
    Exports the JSON schema of a given Pydantic model.

    @details
    Writes "<name>.schema.json" into `out_dir` (created if missing), UTF-8
    with a final newline. Findings are exported by alias (rowIndex).

    @returns
        Path of the written schema file.
    """
    out_dir.mkdir(parents=True, exist_ok=True)

    schema_path = (out_dir / f"{name}.schema.json").resolve()
    schema = model_cls.model_json_schema(by_alias=True)

    with schema_path.open("w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
        f.write("\n")

    try:
        rel = schema_path.relative_to(Path.cwd())
    except ValueError:
        rel = schema_path
    print(f"✅  Generated {rel}")
    return schema_path


def main() -> None:
    out_dir = Path("schemas").resolve()

    export_schema(Client, "client", out_dir)
    export_schema(Worker, "worker", out_dir)
    export_schema(Task, "task", out_dir)
    export_schema(Finding, "finding", out_dir)
    export_schema(Rule, "rule", out_dir)
    export_schema(Priority, "priority", out_dir)
    export_schema(Config, "config", out_dir)


if __name__ == "__main__":
    main()

# tests/dataloader/test_config_loader.py

import logging
from pathlib import Path

import pytest
import yaml

from schedcheck.dataloader.config_loader import ConfigLoader
from schedcheck.errors import ConfigError
from schedcheck.schemas.models import Config


@pytest.fixture()
def tmp_yaml(tmp_path: Path) -> Path:
    """Writes a temporary YAML file with valid Config fields."""
    path = tmp_path / "config.yaml"
    cfg = {
        "validation": {"write_report": False},
        "export": {"output_dir": "out", "version": "2.0.0"},
        "translator": {"provider": "openai", "model": "gpt-4o-mini", "sample_size": 3},
    }
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f)
    return path


def test_load_valid_yaml_returns_config(tmp_yaml: Path):
    """
    @brief
    Verify that valid YAML is correctly parsed and validated.

    @details
    Given values override defaults; omitted ones (report filename,
    array separator, api key env var) keep their defaults.
    """
    # --- Arrange ---
    loader = ConfigLoader()

    # --- Act ---
    cfg = loader.load(tmp_yaml)

    # --- Assert ---
    assert isinstance(cfg, Config)
    assert cfg.validation.write_report is False
    assert cfg.validation.report_filename == "validation_report.json"
    assert cfg.export.output_dir == "out"
    assert cfg.export.version == "2.0.0"
    assert cfg.export.array_separator == ","
    assert cfg.translator.provider == "openai"
    assert cfg.translator.api_key_env == "OPENAI_API_KEY"
    assert cfg.translator.sample_size == 3


def test_priorities_section_is_parsed(tmp_path: Path):
    # --- Arrange ---
    path = tmp_path / "config.yml"
    path.write_text(
        "priorities:\n  - {name: Fairness, weight: 90}\n  - {name: Cost Efficiency, weight: 10}\n",
        encoding="utf-8",
    )

    # --- Act ---
    cfg = ConfigLoader().load(path)

    # --- Assert ---
    assert [p.name for p in cfg.priorities] == ["Fairness", "Cost Efficiency"]
    assert cfg.priorities[0].weight == 90


def test_missing_file_raises_configerror(tmp_path: Path):
    """
    @brief
    Missing configuration file triggers ConfigError.
    """
    # --- Arrange ---
    loader = ConfigLoader()
    path = tmp_path / "no_such.yaml"

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        loader.load(path)

    # --- Assert ---
    assert "not found" in str(e.value)


def test_wrong_extension_raises_configerror(tmp_path: Path):
    # --- Arrange ---
    path = tmp_path / "config.txt"
    path.write_text("validation: {}", encoding="utf-8")

    # --- Act / Assert ---
    with pytest.raises(ConfigError):
        ConfigLoader().load(path)


def test_empty_yaml_uses_defaults(tmp_path: Path):
    """
    @brief
    A file holding only comments behaves like no file at all.
    """
    # --- Arrange ---
    path = tmp_path / "config.yaml"
    path.write_text("# nothing overridden yet\n", encoding="utf-8")

    # --- Act ---
    cfg = ConfigLoader().load(path)

    # --- Assert ---
    assert cfg == Config()


def test_non_mapping_root_raises_configerror(tmp_path: Path):
    # --- Arrange ---
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        ConfigLoader().load(path)

    assert "mapping" in str(e.value)


def test_yaml_syntax_error_raises_configerror(tmp_path: Path):
    # --- Arrange ---
    path = tmp_path / "config.yaml"
    path.write_text("validation: [unclosed\n", encoding="utf-8")

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        ConfigLoader().load(path)

    assert "YAML parsing failed" in str(e.value)


def test_yaml_with_extra_field_raises_configerror(tmp_yaml: Path):
    """
    @brief
    Extra field in YAML causes validation error.

    @details
    The root Config forbids unknown keys.
    """
    # --- Arrange ---
    data = yaml.safe_load(tmp_yaml.read_text(encoding="utf-8"))
    data["unexpected"] = 1
    tmp_yaml.write_text(yaml.safe_dump(data), encoding="utf-8")

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        ConfigLoader().load(tmp_yaml)

    assert "Invalid configuration structure" in str(e.value)


def test_out_of_bounds_value_raises_configerror(tmp_path: Path):
    # --- Arrange ---
    path = tmp_path / "config.yaml"
    path.write_text("priorities:\n  - {name: Fairness, weight: 150}\n", encoding="utf-8")

    # --- Act / Assert ---
    with pytest.raises(ConfigError):
        ConfigLoader().load(path)


def test_no_path_returns_defaults():
    # --- Act ---
    cfg = ConfigLoader().load(None)

    # --- Assert ---
    assert cfg == Config()
    assert cfg.export.output_dir == "data/output"
    assert cfg.translator.provider == "none"
    assert cfg.priorities is None


def test_string_path_is_accepted(tmp_yaml: Path):
    cfg = ConfigLoader().load(str(tmp_yaml))
    assert cfg.export.version == "2.0.0"


def test_duplicate_priority_names_raise_configerror(tmp_path: Path):
    # --- Arrange ---
    path = tmp_path / "config.yaml"
    path.write_text(
        "priorities:\n  - {name: Fairness, weight: 10}\n  - {name: Fairness, weight: 20}\n",
        encoding="utf-8",
    )

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        ConfigLoader().load(path)

    assert "Duplicate priority names: Fairness" in str(e.value)


@pytest.mark.parametrize("sep", ["", '"', "\n"])
def test_unusable_array_separator_raises_configerror(tmp_path: Path, sep: str):
    # --- Arrange ---
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"export": {"array_separator": sep}}), encoding="utf-8")

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        ConfigLoader().load(path)

    assert "array_separator" in str(e.value)


def test_openai_without_key_warns(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
):
    """
    @brief
    A configured provider without its API key still loads, with a warning.
    """
    # --- Arrange ---
    monkeypatch.delenv("SCHEDCHECK_TEST_KEY", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump({"translator": {"provider": "openai", "api_key_env": "SCHEDCHECK_TEST_KEY"}}),
        encoding="utf-8",
    )

    # --- Act ---
    with caplog.at_level(logging.WARNING):
        cfg = ConfigLoader().load(path)

    # --- Assert ---
    assert cfg.translator.provider == "openai"
    assert "SCHEDCHECK_TEST_KEY is not set" in caplog.text

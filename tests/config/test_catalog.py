"""Unit coverage for the YAML catalogue and tax regime loaders."""

from __future__ import annotations

from pathlib import Path
from shutil import copy2

import pytest
import yaml

from plancalc.backend.config import ConfigurationError, catalog


@pytest.fixture()
def isolated_config_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Return a temporary configuration directory patched into ``catalog``."""

    original_directory = catalog.CONFIG_DIRECTORY
    for filename in ("manifest.yaml", "services.yaml", "dutch2025.yaml"):
        copy2(original_directory / filename, tmp_path / filename)

    monkeypatch.setattr(catalog, "CONFIG_DIRECTORY", tmp_path)
    monkeypatch.setattr(catalog, "MANIFEST_FILE", tmp_path / "manifest.yaml")
    catalog.clear_caches()

    yield tmp_path

    catalog.clear_caches()


def _rewrite(path: Path, mutate) -> None:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    mutate(data)
    path.write_text(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8")
    catalog.clear_caches()


def test_bundled_catalogue_loads() -> None:
    services = catalog.load_service_catalog()

    assert services.ids == ("representation", "ops", "qc", "training", "intel")
    assert services.get("ops").display.title == "Operations"
    with pytest.raises(KeyError):
        services.get("missing")


def test_bundled_regime_loads() -> None:
    regime = catalog.load_tax_regime("dutch2025")

    assert regime.year == 2025
    assert regime.brackets[-1].upper_bound is None
    assert regime.solver.epsilon == 0.5
    assert tuple(catalog.available_tax_regimes()) == ("dutch2025",)


def test_loaders_are_cached() -> None:
    assert catalog.load_service_catalog() is catalog.load_service_catalog()


def test_new_regime_is_discovered_from_the_manifest(isolated_config_directory: Path) -> None:
    copy2(isolated_config_directory / "dutch2025.yaml", isolated_config_directory / "dutch2026.yaml")
    _rewrite(
        isolated_config_directory / "dutch2026.yaml",
        lambda data: data.update({"id": "dutch2026", "year": 2026}),
    )
    _rewrite(
        isolated_config_directory / "manifest.yaml",
        lambda data: data["tax_regimes"].append({"id": "dutch2026"}),
    )

    assert tuple(catalog.available_tax_regimes()) == ("dutch2025", "dutch2026")
    assert catalog.load_tax_regime("dutch2026").year == 2026


def test_undeclared_regime_raises_file_not_found(isolated_config_directory: Path) -> None:
    with pytest.raises(FileNotFoundError):
        catalog.load_tax_regime("dutch1999")


def test_missing_catalogue_file_raises(isolated_config_directory: Path) -> None:
    (isolated_config_directory / "services.yaml").unlink()

    with pytest.raises(FileNotFoundError):
        catalog.load_service_catalog()


def test_unknown_service_field_is_a_configuration_error(
    isolated_config_directory: Path,
) -> None:
    _rewrite(
        isolated_config_directory / "services.yaml",
        lambda data: data["services"][0]["defaults"].update({"discount": 0.1}),
    )

    with pytest.raises(ConfigurationError):
        catalog.load_service_catalog()


def test_unordered_brackets_are_rejected(isolated_config_directory: Path) -> None:
    def reverse_brackets(data):
        data["brackets"] = [{"upper": 90_000, "rate": 0.3}, {"upper": 50_000, "rate": 0.4}, {"rate": 0.5}]

    _rewrite(isolated_config_directory / "dutch2025.yaml", reverse_brackets)

    with pytest.raises(ConfigurationError):
        catalog.load_tax_regime("dutch2025")


def test_duplicate_service_ids_are_rejected(isolated_config_directory: Path) -> None:
    _rewrite(
        isolated_config_directory / "services.yaml",
        lambda data: data["services"].append(dict(data["services"][0])),
    )

    with pytest.raises(ConfigurationError):
        catalog.load_service_catalog()

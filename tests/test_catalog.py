"""Tests for the source catalog."""

from pathlib import Path

import pytest

from digestbot.core.catalog import (
    DEFAULT_SOURCES,
    SourceCatalog,
    SourceEntry,
    default_catalog,
    load_catalog,
)


def test_default_catalog_has_six_channels():
    catalog = default_catalog()

    assert len(catalog) == 6
    assert "two-minute-papers" in catalog
    assert catalog["yannic-kilcher"].external_id == "UCZHmQd67S-4pR5qHs7Fqu5Q"


def test_catalog_preserves_declaration_order():
    catalog = default_catalog()
    assert list(catalog) == [entry.id for entry in DEFAULT_SOURCES]


def test_catalog_unknown_id_returns_none():
    assert default_catalog().get("z") is None


def test_catalog_is_read_only():
    catalog = default_catalog()
    with pytest.raises(TypeError):
        catalog["new"] = SourceEntry(id="new", external_id="x", name="New")


def test_duplicate_ids_rejected():
    entry = SourceEntry(id="a", external_id="UC_A", name="A")
    with pytest.raises(ValueError, match="Duplicate"):
        SourceCatalog([entry, entry])


def test_load_catalog_from_yaml(tmp_path):
    config = tmp_path / "sources.yaml"
    config.write_text(
        "sources:\n"
        "  - id: one\n"
        "    external_id: UC_ONE\n"
        "    name: One\n"
        "    description: First\n"
        "  - id: two\n"
        "    external_id: UC_TWO\n"
        "    name: Two\n"
        "    enabled: false\n",
        encoding="utf-8",
    )

    catalog = load_catalog(config)

    assert list(catalog) == ["one"]
    assert catalog["one"].description == "First"


def test_load_catalog_missing_file_falls_back(tmp_path):
    catalog = load_catalog(tmp_path / "missing.yaml")
    assert len(catalog) == len(DEFAULT_SOURCES)


def test_load_catalog_missing_field(tmp_path):
    config = tmp_path / "sources.yaml"
    config.write_text("sources:\n  - id: one\n    name: One\n", encoding="utf-8")

    with pytest.raises(ValueError, match="external_id"):
        load_catalog(config)


def test_shipped_config_matches_defaults():
    catalog = load_catalog(Path(__file__).parent.parent / "config" / "sources.yaml")
    assert [e.id for e in catalog.entries()] == [e.id for e in DEFAULT_SOURCES]

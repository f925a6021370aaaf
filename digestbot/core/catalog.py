"""Source catalog: the fixed set of channels a summary request may select.

The catalog is an immutable value built once at startup (from
``config/sources.yaml`` or the built-in defaults) and handed to the
pipeline explicitly.
"""

from dataclasses import dataclass, asdict
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

import yaml

from digestbot.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SourceEntry:
    """One configured content source."""
    id: str
    external_id: str
    name: str
    description: str = ""
    thumbnail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_SOURCES = (
    SourceEntry(
        id="two-minute-papers",
        external_id="UCbfYPyITQ-7l4upoX8nvctg",
        name="Two Minute Papers",
        description="AI research paper summaries and breakthroughs",
    ),
    SourceEntry(
        id="matthew-berman",
        external_id="UCawZsQWqfGSbCI5yjkdVkTA",
        name="Matthew Berman",
        description="AI, Open Source, Generative Art, AI Art, Futurism, ChatGPT, Large Language Models",
    ),
    SourceEntry(
        id="ai-explained",
        external_id="UCNJ1Ymd5yFuUPtn21xtRbbw",
        name="AI Explained",
        description="Covering the biggest news of the century - the arrival of smarter-than-human AI",
    ),
    SourceEntry(
        id="matt-wolfe",
        external_id="UChpleBmo18P08aKCIgti38g",
        name="Matt Wolfe",
        description="AI News Breakdowns every Saturday and other cool nerdy tech and AI stuff",
    ),
    SourceEntry(
        id="david-shapiro",
        external_id="UCvKRFNawVcuz4b9ihUTApCg",
        name="David Shapiro",
        description="AI Maximalist, Post-Labor Economics, Meaning Economy",
    ),
    SourceEntry(
        id="yannic-kilcher",
        external_id="UCZHmQd67S-4pR5qHs7Fqu5Q",
        name="Yannic Kilcher",
        description="AI research paper reviews and discussions",
    ),
)


class SourceCatalog(Mapping[str, SourceEntry]):
    """Read-only mapping of source id to ``SourceEntry``, in declaration order."""

    def __init__(self, entries: Iterable[SourceEntry]):
        by_id: Dict[str, SourceEntry] = {}
        for entry in entries:
            if entry.id in by_id:
                raise ValueError(f"Duplicate source id in catalog: {entry.id}")
            by_id[entry.id] = entry
        self._entries = MappingProxyType(by_id)

    def __getitem__(self, source_id: str) -> SourceEntry:
        return self._entries[source_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> List[SourceEntry]:
        return list(self._entries.values())

    def __repr__(self) -> str:
        return f"SourceCatalog({list(self._entries)})"


def default_catalog() -> SourceCatalog:
    return SourceCatalog(DEFAULT_SOURCES)


def _entry_from_record(record: Dict[str, Any]) -> SourceEntry:
    missing = [key for key in ("id", "external_id", "name") if not record.get(key)]
    if missing:
        raise ValueError(f"Source record missing required fields {missing}: {record}")
    return SourceEntry(
        id=str(record["id"]),
        external_id=str(record["external_id"]),
        name=str(record["name"]),
        description=str(record.get("description") or ""),
        thumbnail=record.get("thumbnail"),
    )


def load_catalog(path: Union[str, Path, None] = None) -> SourceCatalog:
    """
    Load the catalog from a YAML file with a top-level ``sources`` list.

    Falls back to the built-in defaults when the file does not exist.
    Records with ``enabled: false`` are left out.
    """
    if path is None:
        return default_catalog()

    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Catalog file not found: {config_path}, using built-in sources")
        return default_catalog()

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}

    records = config.get('sources', [])
    entries = [
        _entry_from_record(record)
        for record in records
        if record.get('enabled', True)
    ]
    logger.info(f"Loaded {len(entries)} sources from {config_path}")
    return SourceCatalog(entries)

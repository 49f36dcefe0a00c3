"""
Static field mappings per form type.

A mapping translates the flattened key of a submission value (for example
``petitionerInfoLastName``) into the fully qualified field name inside the
official PDF template. Mappings are JSON files, one per form type::

    {
      "form_type": "I-130",
      "description": "Petition for Alien Relative",
      "field_mapping": {"petitionerInfoLastName": "form1[0].#subform[0].Pt2Line4a_FamilyName[0]"}
    }

The registry reads its tables once and never changes afterwards, so it can
be shared freely between request threads.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

FieldMapping = Mapping[str, str]

BUNDLED_MAPPINGS_DIR = Path(__file__).resolve().parent / "mappings"


def _normalize_form_type(form_type: str) -> str:
    return form_type.strip().lower()


def load_mapping_files(mappings_dir: Path) -> Dict[str, Dict]:
    """Read every ``*.json`` mapping config in ``mappings_dir`` keyed by form type."""
    configs: Dict[str, Dict] = {}
    if not mappings_dir.exists():
        logger.warning("Field mapping directory %s does not exist", mappings_dir)
        return configs

    for mapping_file in sorted(mappings_dir.glob("*.json")):
        try:
            with mapping_file.open("r", encoding="utf-8") as f:
                config = json.load(f)
            form_type = config.get("form_type") or mapping_file.stem
            field_mapping = {
                str(key): str(value) for key, value in config.get("field_mapping", {}).items()
            }
        except (OSError, ValueError, AttributeError) as exc:
            logger.error("Skipping malformed mapping file %s: %s", mapping_file.name, exc)
            continue
        configs[form_type] = {
            "description": config.get("description", ""),
            "field_mapping": field_mapping,
        }
    return configs


class FieldMappingRegistry:
    """Read-only lookup of field mappings keyed by form type.

    Lookups are case-insensitive, matching the lower-cased template file names.
    """

    def __init__(
        self,
        mappings_dir: Optional[Path] = None,
        tables: Optional[Mapping[str, Mapping[str, str]]] = None,
    ):
        if tables is not None:
            self.mappings_dir = None
            configs = {name: {"description": "", "field_mapping": dict(table)} for name, table in tables.items()}
        else:
            self.mappings_dir = Path(mappings_dir or BUNDLED_MAPPINGS_DIR)
            configs = load_mapping_files(self.mappings_dir)

        self._names: Mapping[str, str] = MappingProxyType(
            {_normalize_form_type(name): name for name in configs}
        )
        self._descriptions: Mapping[str, str] = MappingProxyType(
            {_normalize_form_type(name): config["description"] for name, config in configs.items()}
        )
        self._tables: Mapping[str, FieldMapping] = MappingProxyType(
            {
                _normalize_form_type(name): MappingProxyType(config["field_mapping"])
                for name, config in configs.items()
            }
        )
        logger.info("Loaded %d field mapping(s)", len(self._tables))

    def lookup_mapping(self, form_type: str) -> Optional[FieldMapping]:
        """Return the mapping for ``form_type``, or ``None`` when none is registered."""
        return self._tables.get(_normalize_form_type(form_type))

    def describe(self, form_type: str) -> str:
        return self._descriptions.get(_normalize_form_type(form_type), "")

    def form_types(self) -> List[str]:
        return sorted(self._names.values())

    def __contains__(self, form_type: object) -> bool:
        return isinstance(form_type, str) and _normalize_form_type(form_type) in self._tables

    def __len__(self) -> int:
        return len(self._tables)

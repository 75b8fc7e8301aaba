"""
Config table loading (YAML table files -> ConfigTable).

Three sources exist, each holding the same format:
    - the bundled default table shipped with the package
    - a project-local table, visa_repr_config.yaml at the project root
    - an explicit table at the absolute path in VISA_REPR_CONFIG_PATH

Table Format:
    platforms:
      - condition: 'target_os = "windows"'
        types:
          ViUInt16: u16
          ViInt32: i32
          ...

This module only loads tables. Choosing which table is consulted for a
given policy mode is the resolver's job.
"""

from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .condition_parser import parse_condition
from .errors import ErrorKind, ReprError
from .logging import get_logger
from .model import VISA_TYPES, ConfigTable, PlatformEntry, Representation, TableSource
from .settings import CONFIG_PATH_VARIABLE, project_table_path

log = get_logger(__name__)

BUNDLED_TABLE_RESOURCE = "repr_config.yaml"
BUNDLED_TABLE_LABEL = "<bundled repr_config.yaml>"


def _parse_entry(raw: Any, index: int, where: str) -> PlatformEntry:
    if not isinstance(raw, dict):
        raise ReprError.config_file_parse_error(where, f"platform entry #{index} must be a mapping")

    condition_text = raw.get("condition")
    if not isinstance(condition_text, str):
        raise ReprError.config_file_parse_error(where, f"platform entry #{index} needs a string 'condition'")

    types = raw.get("types")
    if not isinstance(types, dict):
        raise ReprError.config_file_parse_error(where, f"platform entry #{index} needs a 'types' mapping")

    try:
        condition = parse_condition(condition_text)
    except ReprError as err:
        raise err.with_context(path=where, details={**err.details, "entry": index}) from None

    reprs: Dict[str, Representation] = {}
    for type_name, token in types.items():
        if not isinstance(token, str):
            raise ReprError.config_file_parse_error(
                where, f"platform entry #{index}: representation of {type_name} must be a string"
            )
        try:
            reprs[str(type_name)] = Representation.parse(token)
        except ValueError as e:
            raise ReprError.config_file_parse_error(where, f"platform entry #{index}: {type_name}: {e}") from None
        if type_name not in VISA_TYPES:
            log.debug("unknown_type_in_table", table=where, entry=index, type_name=type_name)

    return PlatformEntry(condition=condition, reprs=reprs, condition_text=condition_text.strip())


def parse_table(text: str, source: TableSource, path: Optional[Path] = None) -> ConfigTable:
    """
    Parse table file contents.

    Raises:
        ReprError: ConfigFileParseError for YAML or structural problems,
                   MalformedConditionExpression / UnknownConditionKey for
                   bad conditions (with the file path attached)
    """
    where = str(path) if path is not None else BUNDLED_TABLE_LABEL
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ReprError.config_file_parse_error(where, str(e)) from e

    if not isinstance(data, dict) or not isinstance(data.get("platforms"), list):
        raise ReprError.config_file_parse_error(where, "expected a mapping with a 'platforms' list")

    entries: List[PlatformEntry] = [
        _parse_entry(raw, index, where) for index, raw in enumerate(data["platforms"])
    ]
    return ConfigTable(entries=tuple(entries), source=source, path=path)


def load_table_file(path: Path, source: TableSource, variable: Optional[str] = None) -> ConfigTable:
    """
    Read and parse a table file.

    Raises:
        ReprError: ConfigFileNotFound, ConfigFileParseError, or a condition error
    """
    if not path.is_file():
        raise ReprError.config_file_not_found(str(path), variable=variable)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ReprError.config_file_parse_error(str(path), str(e)) from e
    table = parse_table(text, source, path)
    log.debug("table_loaded", source=source.value, path=str(path), entries=len(table.entries))
    return table


def load_explicit_table(raw_path: Optional[str], variable: str = CONFIG_PATH_VARIABLE) -> Optional[ConfigTable]:
    """
    Load the explicit-path table, or None when no path is configured.

    Raises:
        ReprError: ConfigPathNotAbsolute for a relative path, otherwise as
                   load_table_file
    """
    if raw_path is None or not raw_path.strip():
        return None
    path = Path(raw_path.strip())
    if not path.is_absolute():
        raise ReprError.config_path_not_absolute(raw_path, variable)
    try:
        return load_table_file(path, TableSource.EXPLICIT_PATH, variable=variable)
    except ReprError as err:
        if err.kind is ErrorKind.CONFIG_FILE_NOT_FOUND:
            raise
        raise err.with_context(variable=variable) from None


def load_project_table(project_root: Optional[Path] = None) -> Optional[ConfigTable]:
    """Load the project-local table if the project has one."""
    path = project_table_path(project_root)
    if not path.exists():
        return None
    return load_table_file(path, TableSource.PROJECT_LOCAL)


@lru_cache(maxsize=None)
def load_bundled_table() -> ConfigTable:
    """The default table shipped with the package, parsed once per process."""
    text = (resources.files("visa_repr") / "data" / BUNDLED_TABLE_RESOURCE).read_text(encoding="utf-8")
    return parse_table(text, TableSource.BUNDLED)


def select_active_table(
    explicit: Optional[ConfigTable],
    project_local: Optional[ConfigTable],
    bundled: Optional[ConfigTable],
) -> Optional[ConfigTable]:
    """
    First available table by precedence: explicit path, project-local, bundled.

    Tables are never merged; the chosen table replaces the others entirely.
    """
    for table in (explicit, project_local, bundled):
        if table is not None:
            return table
    return None

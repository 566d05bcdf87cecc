"""
Encoder options and their YAML loader.

Example::

    encoder:
      dedup: false
      last_comp_version: 16
"""

import yaml
from dataclasses import dataclass

from .errors import ConfigError

DEFAULT_LAST_COMP_VERSION = 16


@dataclass
class StoreOptions:
    """Per-call settings for ``store``."""
    dedup: bool = True
    last_comp_version: int = DEFAULT_LAST_COMP_VERSION

    def __post_init__(self):
        if not isinstance(self.dedup, bool):
            raise ConfigError(f"'dedup' must be a boolean, got {self.dedup!r}")
        if (not isinstance(self.last_comp_version, int)
                or isinstance(self.last_comp_version, bool)
                or not 1 <= self.last_comp_version <= 17):
            raise ConfigError(
                f"'last_comp_version' must be an integer in 1..17, "
                f"got {self.last_comp_version!r}"
            )


def parse_options_yaml(yaml_str: str) -> StoreOptions:
    """Parse a YAML document into ``StoreOptions``.

    Args:
        yaml_str: YAML text with an optional ``encoder`` mapping.

    Returns:
        StoreOptions; fields absent from the document keep their defaults.

    Raises:
        ConfigError: If the YAML is malformed or holds invalid values.
    """
    if not yaml_str or not yaml_str.strip():
        return StoreOptions()

    try:
        data = yaml.safe_load(yaml_str)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e

    if data is None:
        return StoreOptions()
    if not isinstance(data, dict):
        raise ConfigError("YAML root must be a mapping")

    section = data.get("encoder")
    if section is None:
        return StoreOptions()
    if not isinstance(section, dict):
        raise ConfigError("'encoder' section must be a mapping")

    unknown = set(section) - {"dedup", "last_comp_version"}
    if unknown:
        raise ConfigError(
            f"Unknown field(s) in encoder section: {', '.join(sorted(map(str, unknown)))}"
        )

    kwargs = {k: v for k, v in section.items() if v is not None}
    return StoreOptions(**kwargs)

"""YAML config source with conf.d directory support.

Each settings domain may be configured from ``conf/<domain>.yaml`` with
overrides from ``conf/<domain>.d/*.yaml`` merged in alphabetical order.
The base directory can be moved with the ``CONFIG_DIR`` environment variable.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic_settings import YamlConfigSettingsSource

if TYPE_CHECKING:
    from pydantic_settings import BaseSettings


class ConfDYamlConfigSettingsSource(YamlConfigSettingsSource):
    """YAML settings source reading a base file plus a conf.d directory."""

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        domain: str,
        config_dir_env: str = "CONFIG_DIR",
        base_dir: str = "conf",
    ) -> None:
        config_base = Path(os.getenv(config_dir_env, base_dir))

        yaml_files: list[Path] = []
        main_file = config_base / f"{domain}.yaml"
        if main_file.exists():
            yaml_files.append(main_file)

        confd_path = config_base / f"{domain}.d"
        if confd_path.is_dir():
            yaml_files.extend(sorted(confd_path.glob("*.yaml")))
            yaml_files.extend(sorted(confd_path.glob("*.yml")))

        self._yaml_files = yaml_files
        super().__init__(
            settings_cls=settings_cls,
            yaml_file=yaml_files or None,
            yaml_file_encoding="utf-8",
        )

    def __repr__(self) -> str:
        files = ", ".join(str(f) for f in self._yaml_files)
        return f"{self.__class__.__name__}(yaml_files=[{files}])"


def create_yaml_source(
    settings_cls: type[BaseSettings], domain: str
) -> ConfDYamlConfigSettingsSource:
    """Create the YAML source for one settings domain (``app``, ``db``...)."""
    return ConfDYamlConfigSettingsSource(settings_cls, domain=domain)

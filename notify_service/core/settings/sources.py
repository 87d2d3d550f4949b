"""YAML config source with conf.d directory support.

Each settings domain may be backed by an optional YAML file plus a conf.d
directory of overrides:

    conf/
    ├── notify.yaml        # NotificationSettings
    ├── notify.d/
    │   └── 10-worker.yaml
    ├── db.yaml            # DatabaseSettings
    ├── logging.yaml       # LoggingSettings
    ├── email.yaml         # EmailSettings
    └── webhooks.yaml      # WebhookSettings

The base directory defaults to ``conf`` and can be moved per domain with
``<DOMAIN>_CONFIG_DIR`` (e.g. ``NOTIFY_CONFIG_DIR=/etc/notify``).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic_settings import YamlConfigSettingsSource

if TYPE_CHECKING:
    from pydantic_settings import BaseSettings


class ConfDYamlConfigSettingsSource(YamlConfigSettingsSource):
    """YAML settings source that merges a main file with a conf.d directory.

    Files in the conf.d directory are applied alphabetically after the main
    file, so ``10-base.yaml`` is overridden by ``20-local.yaml``.
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: str,
        confd_dir: str | None,
        config_dir_env: str,
        base_dir: str = "conf",
        yaml_file_encoding: str | None = "utf-8",
    ) -> None:
        config_base = Path(os.getenv(config_dir_env, base_dir))

        yaml_files: list[Path] = []
        main_file = config_base / yaml_file
        if main_file.exists():
            yaml_files.append(main_file)

        if confd_dir:
            confd_path = config_base / confd_dir
            if confd_path.is_dir():
                yaml_files.extend(
                    sorted(p for p in confd_path.iterdir() if p.suffix in {".yaml", ".yml"})
                )

        self._yaml_files = yaml_files
        super().__init__(
            settings_cls=settings_cls,
            yaml_file=yaml_files or None,
            yaml_file_encoding=yaml_file_encoding,
        )

    def __repr__(self) -> str:
        files_str = ", ".join(str(f) for f in self._yaml_files)
        return f"{self.__class__.__name__}(yaml_files=[{files_str}])"


def create_yaml_source(
    settings_cls: type[BaseSettings],
    domain: str,
) -> ConfDYamlConfigSettingsSource:
    """Create the YAML source for one settings domain.

    Args:
        settings_cls: Settings class being configured.
        domain: Domain name; loads ``conf/<domain>.yaml`` and ``conf/<domain>.d/``.

    Returns:
        Configured YAML source.
    """
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file=f"{domain}.yaml",
        confd_dir=f"{domain}.d",
        config_dir_env=f"{domain.upper()}_CONFIG_DIR",
    )


__all__ = ["ConfDYamlConfigSettingsSource", "create_yaml_source"]

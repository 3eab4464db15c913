"""System configuration for STeLLAR.

Provider defaults (Serverless framework provider name, default region,
endpoint scope, settle interval after container deployments) and the
warning thresholds are read from `config/systems.json`.
"""

import json
from typing import Optional

from stellar.types import EndpointScope
from stellar.utils import project_absolute_path


class StellarConfig:
    """Central access to the settings stored in systems.json.

    Attributes:
        _system_config (dict): The loaded system configuration.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        """Load the system configuration.

        Args:
            path: Alternative location of the configuration file. Defaults to
                `config/systems.json` in the project directory.

        Raises:
            FileNotFoundError: If the configuration file is not found.
            json.JSONDecodeError: If the file contains invalid JSON.
        """
        if path is None:
            path = project_absolute_path("config", "systems.json")
        with open(path, "r") as cfg:
            self._system_config = json.load(cfg)

    @staticmethod
    def from_dict(config: dict) -> "StellarConfig":
        cfg = StellarConfig.__new__(StellarConfig)
        cfg._system_config = config
        return cfg

    def _provider(self, provider: str) -> dict:
        return self._system_config.get(provider, {}) if provider != "general" else {}

    def serverless_provider(self, provider: str) -> str:
        """Provider name used in the `provider` section of serverless.yml.

        Args:
            provider (str): STeLLAR provider name, e.g. 'aws' or 'gcr'.

        Returns:
            str: Serverless framework provider name; the provider itself if not configured.
        """
        return self._provider(provider).get("serverless_provider", provider)

    def region(self, provider: str) -> str:
        return self._provider(provider).get("region", "")

    def endpoint_scope(self, provider: str) -> EndpointScope:
        """Whether functions of one deployment share a single endpoint identifier.

        Providers missing from the configuration use a shared endpoint.
        """
        return EndpointScope(self._provider(provider).get("endpoints", EndpointScope.SHARED.value))

    def settle_seconds(self, provider: str) -> float:
        """Time to wait after container deployments for changes to become visible."""
        return float(self._provider(provider).get("settle_seconds", 0))

    def provider_setting(self, provider: str, key: str) -> Optional[str]:
        return self._provider(provider).get(key)

    def serverless_file(self) -> str:
        return self._system_config["general"]["serverless_file"]

    def deploy_command(self) -> str:
        return self._system_config["general"]["deploy_command"]

    def framework_version(self) -> str:
        return self._system_config["general"]["framework_version"]

    def functions_directory(self) -> str:
        return self._system_config["general"]["functions_directory"]

    def build_directory(self) -> str:
        return self._system_config["general"]["build_directory"]

    def nic_contention_threshold(self) -> int:
        return self._system_config["general"]["thresholds"]["nic_contention_burst_size"]

    def storage_space_threshold(self) -> int:
        return self._system_config["general"]["thresholds"]["storage_space_bursts"]

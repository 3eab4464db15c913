"""Experiment description consumed and completed by provisioning.

An experiment configuration is a JSON file listing sub-experiments. Each
sub-experiment describes one deployed function configuration and its burst
workload. Provisioning fills in the endpoints through which the deployed
functions are invoked.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import List, Optional

from stellar.types import PackageType, Visualization
from stellar.utils import sanitize_name


def deployment_name(function: str, id: int) -> str:
    """Name of the deployed function of sub-experiment `id`, unique within one configuration."""
    return f"{sanitize_name(function)}_{id}"


@dataclass
class EndpointInfo:
    """
    Externally reachable identifier of a deployed function.

    Attributes:
        id: Gateway identifier, service URL or hostname, depending on provider.
        route: Path of the function behind a shared gateway, empty otherwise.
    """

    id: str
    route: str = ""

    def serialize(self) -> dict:
        return {"id": self.id, "route": self.route}

    @staticmethod
    def deserialize(config: dict) -> EndpointInfo:
        return EndpointInfo(id=config["id"], route=config.get("route", ""))


@dataclass
class SubExperiment:
    """
    One unit of the benchmark configuration.

    The `id` equals the position of the sub-experiment in its configuration
    and is assigned exactly once.
    """

    title: str = ""
    bursts: int = 0
    burst_sizes: List[int] = field(default_factory=list)
    iat_seconds: float = 0.0
    payload_length_bytes: int = 0
    parallelism: int = 1
    function_memory_mb: int = 128
    function_image_size_mb: float = 0.0
    package_type: str = PackageType.ZIP.value
    visualization: Visualization = Visualization.NONE
    function: str = ""
    runtime: str = ""
    handler: str = ""
    endpoints: List[EndpointInfo] = field(default_factory=list)
    _id: Optional[int] = field(default=None, repr=False)

    @property
    def id(self) -> int:
        if self._id is None:
            raise RuntimeError(f"Sub-experiment {self.title!r} has no ID assigned")
        return self._id

    @property
    def has_id(self) -> bool:
        return self._id is not None

    def assign_id(self, index: int):
        if self._id is not None and self._id != index:
            raise ValueError(
                f"Sub-experiment {self.title!r} already has ID {self._id}, cannot reassign {index}"
            )
        self._id = index

    @property
    def deployment_name(self) -> str:
        return deployment_name(self.function, self.id)

    def assign_endpoint_ids(self, endpoint_id: str):
        """Replace the endpoints with the shared gateway `endpoint_id`."""
        self.endpoints = [EndpointInfo(id=endpoint_id, route=f"/{self.deployment_name}")]

    def serialize(self) -> dict:
        out = {
            "title": self.title,
            "bursts": self.bursts,
            "burst_sizes": self.burst_sizes,
            "iat_seconds": self.iat_seconds,
            "payload_length_bytes": self.payload_length_bytes,
            "parallelism": self.parallelism,
            "function_memory_mb": self.function_memory_mb,
            "function_image_size_mb": self.function_image_size_mb,
            "package_type": self.package_type,
            "visualization": self.visualization.value,
            "function": self.function,
            "runtime": self.runtime,
            "handler": self.handler,
            "endpoints": [endpoint.serialize() for endpoint in self.endpoints],
        }
        if self._id is not None:
            out["id"] = self._id
        return out

    @staticmethod
    def deserialize(config: dict) -> SubExperiment:
        sub = SubExperiment(
            title=config.get("title", ""),
            bursts=config.get("bursts", 0),
            burst_sizes=list(config.get("burst_sizes", [])),
            iat_seconds=config.get("iat_seconds", 0.0),
            payload_length_bytes=config.get("payload_length_bytes", 0),
            parallelism=config.get("parallelism", 1),
            function_memory_mb=config.get("function_memory_mb", 128),
            function_image_size_mb=config.get("function_image_size_mb", 0.0),
            package_type=config.get("package_type", PackageType.ZIP.value),
            visualization=Visualization.deserialize(config.get("visualization", "none")),
            function=config.get("function", ""),
            runtime=config.get("runtime", ""),
            handler=config.get("handler", ""),
            endpoints=[EndpointInfo.deserialize(e) for e in config.get("endpoints", [])],
        )
        if "id" in config:
            sub.assign_id(config["id"])
        return sub


class ExperimentConfig:
    """
    Ordered set of sub-experiments deployed to one provider.

    Attributes:
        _provider: Provider name; names without dedicated support are hostnames.
        _repurpose_identifier: Key under which deployed endpoints are reused across runs.
        _region: Optional region overriding the provider default.
        _provider_settings: Provider specific settings, e.g. the Lambda role for AWS.
        _sub_experiments: Sub-experiments in configuration order.
    """

    def __init__(
        self,
        provider: str,
        sub_experiments: List[SubExperiment],
        repurpose_identifier: Optional[str] = None,
        region: Optional[str] = None,
        provider_settings: Optional[dict] = None,
    ):
        self._provider = provider
        self._repurpose_identifier = repurpose_identifier
        self._region = region
        self._provider_settings = provider_settings if provider_settings else {}
        self._sub_experiments = sub_experiments
        for index, sub in enumerate(self._sub_experiments):
            sub.assign_id(index)

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def repurpose_identifier(self) -> Optional[str]:
        return self._repurpose_identifier

    @property
    def region(self) -> Optional[str]:
        return self._region

    @property
    def provider_settings(self) -> dict:
        return self._provider_settings

    @property
    def sub_experiments(self) -> List[SubExperiment]:
        return self._sub_experiments

    def serialize(self) -> dict:
        out: dict = {
            "provider": self._provider,
            "sub_experiments": [sub.serialize() for sub in self._sub_experiments],
        }
        if self._repurpose_identifier is not None:
            out["repurpose_identifier"] = self._repurpose_identifier
        if self._region is not None:
            out["region"] = self._region
        if self._provider_settings:
            out[self._provider] = self._provider_settings
        return out

    @staticmethod
    def deserialize(config: dict) -> ExperimentConfig:
        provider = config["provider"]
        return ExperimentConfig(
            provider=provider,
            sub_experiments=[SubExperiment.deserialize(sub) for sub in config["sub_experiments"]],
            repurpose_identifier=config.get("repurpose_identifier"),
            region=config.get("region"),
            provider_settings=config.get(provider),
        )

    @staticmethod
    def load(path: str) -> ExperimentConfig:
        with open(path, "r") as f:
            return ExperimentConfig.deserialize(json.load(f))

    def save(self, path: str):
        with open(path, "w") as f:
            json.dump(self.serialize(), f, indent=2)

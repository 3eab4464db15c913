"""Serverless framework deployment descriptor.

All functions deployed through the Serverless framework in one provisioning
run form a single service described by one `serverless.yml`. The assembler
collects one function entry per sub-experiment; registering the same
sub-experiment again replaces its entry.
"""

import os
import re
from dataclasses import dataclass
from typing import Dict, Optional

from stellar.config import StellarConfig
from stellar.errors import UnsupportedProvider, collaborator_call
from stellar.experiment import EndpointInfo, ExperimentConfig, SubExperiment
from stellar.types import EndpointScope, PackageType
from stellar.utils import LoggingBase


@dataclass
class FunctionEntry:
    """
    One function of the deployment descriptor.

    Attributes:
        name: function name in the service, also used as its HTTP route
        kind: packaging kind of the deployed artifact
        memory_mb: memory of the function
        runtime: provider runtime of zip deployments
        handler: entrypoint of zip deployments
        artifact: zip archive location, relative to the descriptor
        image: container image reference of container deployments
    """

    name: str
    kind: PackageType
    memory_mb: int
    runtime: str = ""
    handler: str = ""
    artifact: str = ""
    image: str = ""

    @property
    def route(self) -> str:
        return f"/{self.name}"

    def serialize(self) -> dict:
        out: dict = {"memorySize": self.memory_mb}
        if self.kind == PackageType.CONTAINER:
            out["image"] = self.image
        else:
            out["handler"] = self.handler
            out["runtime"] = self.runtime
            out["package"] = {"artifact": self.artifact}
        out["events"] = [{"httpApi": {"path": self.route, "method": "GET"}}]
        return out


class DeploymentDescriptor:
    """
    Provider level deployment unit: a provider/region header and the
    function entries keyed by sub-experiment index.
    """

    def __init__(self, service: str, provider: str, region: str, framework_version: str = "3"):
        self._service = service
        self._provider = provider
        self._region = region
        self._framework_version = framework_version
        self._functions: Dict[int, FunctionEntry] = {}

    @property
    def service(self) -> str:
        return self._service

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def region(self) -> str:
        return self._region

    @property
    def functions(self) -> Dict[int, FunctionEntry]:
        return self._functions

    def register(self, index: int, entry: FunctionEntry):
        self._functions[index] = entry

    def has_container_functions(self) -> bool:
        return any(entry.kind == PackageType.CONTAINER for entry in self._functions.values())

    def serialize(self) -> dict:
        return {
            "service": self._service,
            "frameworkVersion": self._framework_version,
            "provider": {"name": self._provider, "region": self._region},
            "package": {"individually": True},
            "functions": {
                self._functions[index].name: self._functions[index].serialize()
                for index in sorted(self._functions)
            },
        }


class DescriptorAssembler(LoggingBase):
    """
    Accumulates the per sub-experiment deploy entries of one provisioning run.

    Providers exposing one endpoint per deployed resource (Cloud Run) do not
    deploy container services through the Serverless framework: the service
    is deployed immediately and its URL assigned to the sub-experiment.
    """

    def __init__(self, system_config: StellarConfig, container_deployer=None):
        super().__init__()
        self._system_config = system_config
        self._container_deployer = container_deployer
        self._descriptor: Optional[DeploymentDescriptor] = None
        self._provider = ""

    @staticmethod
    def typename() -> str:
        return "DescriptorAssembler"

    @property
    def descriptor(self) -> DeploymentDescriptor:
        if self._descriptor is None:
            raise RuntimeError("Deployment descriptor requested before create_header_config")
        return self._descriptor

    @property
    def region(self) -> str:
        return self.descriptor.region

    def create_header_config(self, config: ExperimentConfig):
        self._provider = config.provider
        region = config.region or self._system_config.region(config.provider)
        if config.repurpose_identifier:
            service = "stellar-" + re.sub(r"[^a-zA-Z0-9-]+", "-", config.repurpose_identifier)
        else:
            service = "stellar"
        self._descriptor = DeploymentDescriptor(
            service,
            self._system_config.serverless_provider(config.provider),
            region,
            self._system_config.framework_version(),
        )

    def add_function_config(self, sub: SubExperiment, index: int, artifact_path: str):
        """
        Register a zip deployment of the sub-experiment.

        :param artifact_path: directory holding the zip archive, relative to the descriptor.
        """
        entry = FunctionEntry(
            name=sub.deployment_name,
            kind=PackageType.ZIP,
            memory_mb=sub.function_memory_mb,
            runtime=sub.runtime,
            handler=sub.handler,
            artifact=os.path.join(artifact_path, f"{sub.deployment_name}.zip"),
        )
        self.descriptor.register(index, entry)
        self.logging.debug(f"Registered zip function {entry.name} for experiment {index}.")

    def deploy_container_service(self, sub: SubExperiment, index: int, image: str, region: str):
        if self._system_config.endpoint_scope(self._provider) == EndpointScope.PER_RESOURCE:
            self._deploy_per_resource(sub, image, region)
            return

        entry = FunctionEntry(
            name=sub.deployment_name,
            kind=PackageType.CONTAINER,
            memory_mb=sub.function_memory_mb,
            image=image,
        )
        self.descriptor.register(index, entry)
        self.logging.debug(f"Registered container function {entry.name} for experiment {index}.")

    def _deploy_per_resource(self, sub: SubExperiment, image: str, region: str):
        if self._container_deployer is None:
            raise UnsupportedProvider(self._provider, "Deploying container services")

        endpoints = []
        for instance in range(sub.parallelism):
            service_name = f"{sub.deployment_name}-{instance}".replace("_", "-")
            with collaborator_call("Container service deployment"):
                url = self._container_deployer.deploy_service(
                    service_name, image, region, sub.function_memory_mb
                )
            self.logging.info(f"Deployed container service {service_name} at {url}.")
            endpoints.append(EndpointInfo(id=url))
        sub.endpoints = endpoints

    def has_entries(self) -> bool:
        return self._descriptor is not None and len(self._descriptor.functions) > 0

"""Deployment of the assembled descriptor and endpoint discovery.

The deploy command prints the endpoints assigned by the provider. Functions
deployed to AWS share one HTTP API gateway, whose identifier is scraped from
lines such as

    GET - https://abcdef1234.execute-api.us-west-1.amazonaws.com/hellopy_0

Cloud Run services have one URL each, assigned while deploying them, so
nothing is extracted for them here.
"""

import os
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional, Type

import yaml

from stellar.config import StellarConfig
from stellar.errors import CollaboratorFailure, UnsupportedProvider, collaborator_call
from stellar.provisioning.descriptor import DeploymentDescriptor
from stellar.types import Provider
from stellar.utils import LoggingBase


class EndpointExtractor(ABC):
    @staticmethod
    @abstractmethod
    def provider() -> Provider:
        pass

    @abstractmethod
    def extract(self, output: str) -> Optional[str]:
        """
        Find the endpoint identifier shared by all deployed functions.

        :return: the identifier, None if endpoints are assigned per resource.
        """
        pass


class GatewayEndpointExtractor(EndpointExtractor):
    GATEWAY_ID = re.compile(r"https://([a-z0-9]+)\.execute-api\.")

    @staticmethod
    def provider() -> Provider:
        return Provider.AWS

    def extract(self, output: str) -> Optional[str]:
        match = self.GATEWAY_ID.search(output)
        if match is None:
            raise CollaboratorFailure(
                "Serverless deployment", "no API gateway endpoint found in the deployment output"
            )
        return match.group(1)


class PerResourceEndpointExtractor(EndpointExtractor):
    @staticmethod
    def provider() -> Provider:
        return Provider.GCR

    def extract(self, output: str) -> Optional[str]:
        return None


EXTRACTORS: Dict[Provider, Type[EndpointExtractor]] = {
    extractor.provider(): extractor
    for extractor in (GatewayEndpointExtractor, PerResourceEndpointExtractor)
}


class DeploymentExecutor(LoggingBase):
    """
    Writes the deployment descriptor into the serverless directory and runs
    the deploy command there.
    """

    def __init__(self, system_config: StellarConfig, deployer, serverless_dir: str):
        super().__init__()
        self._system_config = system_config
        self._deployer = deployer
        self._serverless_dir = serverless_dir

    @staticmethod
    def typename() -> str:
        return "DeploymentExecutor"

    @property
    def descriptor_path(self) -> str:
        return os.path.join(self._serverless_dir, self._system_config.serverless_file())

    def write_descriptor(self, descriptor: DeploymentDescriptor) -> str:
        os.makedirs(self._serverless_dir, exist_ok=True)
        with open(self.descriptor_path, "w") as out:
            yaml.dump(descriptor.serialize(), out, default_flow_style=False, sort_keys=False)
        self.logging.info(f"Wrote deployment descriptor {self.descriptor_path}.")
        return self.descriptor_path

    def deploy(self, descriptor: DeploymentDescriptor) -> str:
        """
        Serialize the descriptor and invoke the deploy command.

        :return: raw textual output of the deploy command.
        """
        self.write_descriptor(descriptor)
        self.logging.info(
            f"Starting functions deployment. Deploying {len(descriptor.functions)} "
            f"functions to {descriptor.provider}."
        )
        with collaborator_call("Serverless deployment"):
            output = self._deployer.deploy(self._serverless_dir)
        self.logging.info(output)
        return output

    def extract_endpoint_id(self, provider: str, output: str) -> Optional[str]:
        for kind, extractor in EXTRACTORS.items():
            if kind.value == provider:
                return extractor().extract(output)
        raise UnsupportedProvider(provider, "Getting endpoints")

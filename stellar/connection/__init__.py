"""Services listing, deploying and repurposing provider endpoints.

The endpoint allocator draws from the endpoints listed here to reuse
functions deployed by earlier runs under the same repurpose identifier.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from stellar.experiment import SubExperiment
from stellar.types import PackageType, Provider
from stellar.utils import LoggingBase


@dataclass
class Endpoint:
    """
    A deployed function reachable through a provider endpoint.

    Attributes:
        id: Provider endpoint identifier, e.g. an API gateway ID.
        function_name: Name of the function behind the endpoint.
        memory_mb: Memory configured for the function.
        image_size_mb: Size of the deployed artifact the function was created with.
        package_type: Packaging kind the function was deployed with.
        function: Function specification whose code the endpoint runs.
    """

    id: str
    function_name: str
    memory_mb: int
    image_size_mb: float
    package_type: PackageType = PackageType.ZIP
    function: str = ""

    def matches(self, sub: SubExperiment) -> bool:
        return (
            self.memory_mb == sub.function_memory_mb
            and self.image_size_mb == sub.function_image_size_mb
            and self.package_type.value == sub.package_type
            and self.function == sub.function
        )


class EndpointService(ABC, LoggingBase):
    """
    Provider specific access to deployed endpoints.

    `list_apis` returns `None` when the provider endpoints cannot be listed
    and reused; the provider name is then the external URL itself.
    """

    def __init__(self):
        super().__init__()
        self._used_container_images = False

    @property
    def used_container_images(self) -> bool:
        """True once a function was deployed or repurposed from a container image."""
        return self._used_container_images

    @abstractmethod
    def list_apis(self, repurpose_identifier: Optional[str]) -> Optional[List[Endpoint]]:
        pass

    @abstractmethod
    def deploy_function(self, sub: SubExperiment, repurpose_identifier: Optional[str]) -> Endpoint:
        pass

    @abstractmethod
    def repurpose_function(self, endpoint: Endpoint, sub: SubExperiment) -> Endpoint:
        """
        Reconfigure an already deployed function to match the sub-experiment.

        :return: the endpoint with updated attributes.
        """
        pass


def get_endpoint_service(provider: str, config, system_config, packager=None) -> EndpointService:
    """
    Create the endpoint service for a provider.

    :param provider: provider name from the experiment configuration.
    :param config: the experiment configuration (provider settings, region).
    :param system_config: system configuration with provider defaults.
    :param packager: container image packager used for container deployments.
    """
    if provider == Provider.AWS.value:
        import boto3

        from stellar.connection.aws import AWSEndpointService

        region = config.region or system_config.region(provider)
        return AWSEndpointService(
            boto3.session.Session(region_name=region),
            region,
            config.provider_settings,
            packager,
        )
    else:
        from stellar.connection.external import ExternalEndpointService

        return ExternalEndpointService(provider)

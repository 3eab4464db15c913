from typing import List, Optional

from stellar.connection import Endpoint, EndpointService
from stellar.errors import UnsupportedProvider
from stellar.experiment import SubExperiment


class ExternalEndpointService(EndpointService):
    """
    Endpoint service of a provider addressed by hostname, e.g. a self-hosted
    cluster. Its endpoints cannot be listed, deployed or reconfigured.
    """

    def __init__(self, hostname: str):
        super().__init__()
        self._hostname = hostname

    @staticmethod
    def typename() -> str:
        return "External.EndpointService"

    def list_apis(self, repurpose_identifier: Optional[str]) -> Optional[List[Endpoint]]:
        self.logging.info(
            f"Endpoints of {self._hostname} cannot be listed, the hostname is the endpoint."
        )
        return None

    def deploy_function(self, sub: SubExperiment, repurpose_identifier: Optional[str]) -> Endpoint:
        raise UnsupportedProvider(self._hostname, "Deploying functions")

    def repurpose_function(self, endpoint: Endpoint, sub: SubExperiment) -> Endpoint:
        raise UnsupportedProvider(self._hostname, "Repurposing functions")

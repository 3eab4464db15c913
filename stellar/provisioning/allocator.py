from typing import List, Optional

from stellar.connection import Endpoint, EndpointService
from stellar.errors import UnsupportedPackagingKind, collaborator_call
from stellar.experiment import EndpointInfo, SubExperiment
from stellar.types import PackageType
from stellar.utils import LoggingBase


class EndpointAllocator(LoggingBase):
    """
    Assigns endpoints to sub-experiments, preferring endpoints deployed by
    earlier runs under the same repurpose identifier.

    The pool of available endpoints is passed explicitly from one allocation
    to the next. An endpoint taken from the pool is assigned to exactly one
    sub-experiment and is absent from the returned pool.
    """

    def __init__(self, service: EndpointService, repurpose_identifier: Optional[str] = None):
        super().__init__()
        self._service = service
        self._repurpose_identifier = repurpose_identifier

    @staticmethod
    def typename() -> str:
        return "EndpointAllocator"

    def list_pool(self) -> Optional[List[Endpoint]]:
        with collaborator_call("Endpoint listing"):
            return self._service.list_apis(self._repurpose_identifier)

    @staticmethod
    def _take(pool: List[Endpoint], sub: SubExperiment, exact: bool) -> Optional[Endpoint]:
        for pos, endpoint in enumerate(pool):
            if exact:
                found = endpoint.matches(sub)
            else:
                # Lambda cannot switch a function between zip and image packaging
                found = endpoint.package_type.value == sub.package_type
            if found:
                return pool.pop(pos)
        return None

    def allocate(
        self, pool: Optional[List[Endpoint]], sub: SubExperiment, provider: str
    ) -> Optional[List[Endpoint]]:
        """
        Assign `sub.parallelism` endpoints to the sub-experiment.

        Without a pool the provider hostname is the external URL of the
        function, and the sub-experiment gets a single endpoint named after it.

        :param pool: endpoints available for reuse, None if not listable.
        :param sub: sub-experiment receiving the endpoints; modified in place.
        :param provider: provider name of the experiment.
        :return: endpoints still available after this allocation.
        """
        if pool is None:
            sub.endpoints = [EndpointInfo(id=provider)]
            return None

        if sub.package_type not in [kind.value for kind in PackageType]:
            raise UnsupportedPackagingKind(sub.package_type, sub.id)

        remaining = list(pool)
        assigned: List[EndpointInfo] = []
        self.logging.info(f"[sub-experiment {sub.id}] Setting up {sub.parallelism} functions...")
        for _ in range(sub.parallelism):
            endpoint = self._take(remaining, sub, exact=True)
            if endpoint is not None:
                self.logging.debug(f"Reusing endpoint {endpoint.id} as is.")
            else:
                endpoint = self._take(remaining, sub, exact=False)
                if endpoint is not None:
                    self.logging.info(f"Repurposing endpoint {endpoint.id}.")
                    with collaborator_call("Endpoint repurposing"):
                        endpoint = self._service.repurpose_function(endpoint, sub)
                else:
                    with collaborator_call("Function deployment"):
                        endpoint = self._service.deploy_function(sub, self._repurpose_identifier)
            assigned.append(EndpointInfo(id=endpoint.id))

        sub.endpoints = assigned
        return remaining

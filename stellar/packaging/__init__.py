"""Artifacts deployed for the functions of an experiment.

Zip archives are produced locally from built code; container images are built
with docker and pushed to the registry of the provider.
"""

from typing import Dict, Optional

from stellar.errors import UnsupportedProvider
from stellar.packaging.container import DockerContainer, ECRContainer, GCRContainer  # noqa
from stellar.packaging.zip import ZipArtifactGenerator
from stellar.utils import LoggingBase, LoggingHandlers


class Packager(LoggingBase):
    """
    Single entry point for packaging collaborators.

    Attributes:
        containers: container managers, keyed by provider name.
    """

    def __init__(
        self,
        zip_generator: ZipArtifactGenerator,
        containers: Optional[Dict[str, DockerContainer]] = None,
    ):
        super().__init__()
        self._zip_generator = zip_generator
        self.containers = containers if containers else {}

    @staticmethod
    def typename() -> str:
        return "Packager"

    def initialize_logging(self, handlers: LoggingHandlers):
        self.logging_handlers = handlers
        self._zip_generator.logging_handlers = handlers
        for container in self.containers.values():
            container.logging_handlers = handlers

    def setup_container_image_deployment(self, function: str, provider: str) -> str:
        """
        :return: URI of the pushed function image.
        :raises UnsupportedProvider: if no registry is configured for the provider.
        """
        if provider not in self.containers:
            raise UnsupportedProvider(provider, "Container image deployment")
        return self.containers[provider].setup(function)

    def generate_zip_artifacts(
        self,
        experiment_id: int,
        provider: str,
        runtime: str,
        function: str,
        image_size_mb: float,
    ) -> str:
        return self._zip_generator.generate_zip_artifacts(
            experiment_id, provider, runtime, function, image_size_mb
        )

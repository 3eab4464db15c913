from abc import ABC, abstractmethod
from typing import Dict, Type

from stellar.errors import UnsupportedPackagingKind, collaborator_call
from stellar.experiment import SubExperiment
from stellar.provisioning.descriptor import DescriptorAssembler
from stellar.types import PackageType
from stellar.utils import LoggingBase


class PackagingStrategy(ABC, LoggingBase):
    """
    Produces the deployable artifact of one sub-experiment and registers
    its deployment with the descriptor assembler.
    """

    def __init__(
        self,
        provider: str,
        assembler: DescriptorAssembler,
        packager,
        code_generator=None,
        builder=None,
    ):
        super().__init__()
        self._provider = provider
        self._assembler = assembler
        self._packager = packager
        self._code_generator = code_generator
        self._builder = builder

    @staticmethod
    @abstractmethod
    def package_type() -> PackageType:
        pass

    @abstractmethod
    def provision(self, index: int, sub: SubExperiment):
        pass


class ContainerStrategy(PackagingStrategy):
    @staticmethod
    def package_type() -> PackageType:
        return PackageType.CONTAINER

    @staticmethod
    def typename() -> str:
        return "Strategy.Container"

    def provision(self, index: int, sub: SubExperiment):
        with collaborator_call("Container image packaging"):
            image = self._packager.setup_container_image_deployment(sub.function, self._provider)
        self.logging.info(f"Experiment {index} deploys container image {image}.")
        self._assembler.deploy_container_service(sub, index, image, self._assembler.region)


class ZipStrategy(PackagingStrategy):
    @staticmethod
    def package_type() -> PackageType:
        return PackageType.ZIP

    @staticmethod
    def typename() -> str:
        return "Strategy.Zip"

    def provision(self, index: int, sub: SubExperiment):
        with collaborator_call("Code generation"):
            self._code_generator.generate_code(sub.function, self._provider)

        with collaborator_call("Function build"):
            artifact_path = self._builder.build_function(self._provider, sub.function, sub.runtime)
        self._assembler.add_function_config(sub, index, artifact_path)

        # filler files and the zip archive used as the Serverless artifact
        with collaborator_call("Zip packaging"):
            self._packager.generate_zip_artifacts(
                sub.id,
                self._provider,
                sub.runtime,
                sub.function,
                sub.function_image_size_mb,
            )


STRATEGIES: Dict[PackageType, Type[PackagingStrategy]] = {
    strategy.package_type(): strategy for strategy in (ContainerStrategy, ZipStrategy)
}


def strategy_type(package_type: str, index: int) -> Type[PackagingStrategy]:
    """
    Select the strategy of a configured packaging kind.

    :raises UnsupportedPackagingKind: if no strategy handles the kind.
    """
    for kind, strategy in STRATEGIES.items():
        if kind.value == package_type:
            return strategy
    raise UnsupportedPackagingKind(package_type, index)

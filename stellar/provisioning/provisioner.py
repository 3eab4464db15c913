import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TypeVar

from stellar.config import StellarConfig
from stellar.errors import ProvisioningError, UserDeclined
from stellar.experiment import ExperimentConfig, SubExperiment
from stellar.provisioning.allocator import EndpointAllocator
from stellar.provisioning.binder import EndpointBinder
from stellar.provisioning.descriptor import DescriptorAssembler
from stellar.provisioning.executor import DeploymentExecutor
from stellar.provisioning.guard import GuardDecision, ThresholdGuard
from stellar.provisioning.strategy import strategy_type
from stellar.utils import LoggingBase

T = TypeVar("T", bound=LoggingBase)


class ProvisioningStatus(Enum):
    SUCCESS = "success"
    DECLINED = "declined"
    FAILED = "failed"


@dataclass
class ProvisioningResult:
    status: ProvisioningStatus
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ProvisioningStatus.SUCCESS


class Provisioner(LoggingBase):
    """
    Deploys, reconfigures or reuses functions so that every sub-experiment
    of a configuration has endpoints to benchmark.

    Two provisioning modes exist: through the provider endpoint service
    (`provision_functions`) and through the Serverless framework
    (`provision_functions_serverless`). Sub-experiments are processed
    strictly in order. Any error aborts the whole run and is reported in the
    returned result.
    """

    def __init__(
        self,
        system_config: StellarConfig,
        guard: ThresholdGuard,
        endpoint_service=None,
        packager=None,
        code_generator=None,
        builder=None,
        deployer=None,
        container_deployer=None,
        serverless_dir: str = ".",
    ):
        super().__init__()
        self._system_config = system_config
        self._guard = guard
        self._endpoint_service = endpoint_service
        self._packager = packager
        self._code_generator = code_generator
        self._builder = builder
        self._deployer = deployer
        self._container_deployer = container_deployer
        self._serverless_dir = serverless_dir
        self._assembler: Optional[DescriptorAssembler] = None

    @staticmethod
    def typename() -> str:
        return "Provisioner"

    @property
    def assembler(self) -> Optional[DescriptorAssembler]:
        """Descriptor assembler of the last serverless provisioning run."""
        return self._assembler

    def _component(self, component: T) -> T:
        component.logging_handlers = self.logging_handlers
        return component

    def _run(self, provision, config: ExperimentConfig) -> ProvisioningResult:
        try:
            provision(config)
        except UserDeclined as e:
            self.logging.info(str(e))
            return ProvisioningResult(ProvisioningStatus.DECLINED, str(e))
        except ProvisioningError as e:
            self.logging.error(str(e))
            return ProvisioningResult(ProvisioningStatus.FAILED, str(e))
        return ProvisioningResult(ProvisioningStatus.SUCCESS)

    def _check_thresholds(self, sub: SubExperiment, index: int):
        if self._guard.check(sub, index) == GuardDecision.ABORT:
            raise UserDeclined(index, "threshold warning declined")

    def _settle(self, provider: str):
        settle_seconds = self._system_config.settle_seconds(provider)
        if settle_seconds > 0:
            self.logging.info(
                "A deployment was made using container images, waiting "
                f"{settle_seconds:g} seconds for changes to take effect with the provider..."
            )
            time.sleep(settle_seconds)

    def provision_functions(self, config: ExperimentConfig) -> ProvisioningResult:
        return self._run(self._provision_functions, config)

    def _provision_functions(self, config: ExperimentConfig):
        if self._endpoint_service is None:
            raise ProvisioningError("No endpoint service configured")
        allocator = self._component(
            EndpointAllocator(self._endpoint_service, config.repurpose_identifier)
        )

        # to filter out re-usable endpoints for continuous benchmarking
        available_endpoints = allocator.list_pool()

        for index, sub in enumerate(config.sub_experiments):
            sub.assign_id(index)
            self._check_thresholds(sub, index)
            available_endpoints = allocator.allocate(available_endpoints, sub, config.provider)

        if self._endpoint_service.used_container_images:
            self._settle(config.provider)

    def provision_functions_serverless(self, config: ExperimentConfig) -> ProvisioningResult:
        return self._run(self._provision_functions_serverless, config)

    def _provision_functions_serverless(self, config: ExperimentConfig):
        for index, sub in enumerate(config.sub_experiments):
            sub.assign_id(index)
            self._check_thresholds(sub, index)

        assembler = self._component(
            DescriptorAssembler(self._system_config, self._container_deployer)
        )
        self._assembler = assembler
        assembler.create_header_config(config)

        for index, sub in enumerate(config.sub_experiments):
            strategy = strategy_type(sub.package_type, index)(
                config.provider, assembler, self._packager, self._code_generator, self._builder
            )
            self._component(strategy).provision(index, sub)

        if not assembler.has_entries():
            self.logging.info("No functions to deploy with the Serverless framework.")
            return

        executor = self._component(
            DeploymentExecutor(self._system_config, self._deployer, self._serverless_dir)
        )
        output = executor.deploy(assembler.descriptor)

        # endpoints are scraped from the deploy output
        endpoint_id = executor.extract_endpoint_id(config.provider, output)
        self._component(EndpointBinder()).bind_all(config, endpoint_id)

        if assembler.descriptor.has_container_functions():
            self._settle(config.provider)

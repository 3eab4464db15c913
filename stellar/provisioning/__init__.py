from .guard import GuardDecision, ThresholdGuard  # noqa
from .allocator import EndpointAllocator  # noqa
from .descriptor import DeploymentDescriptor, DescriptorAssembler, FunctionEntry  # noqa
from .strategy import ContainerStrategy, PackagingStrategy, ZipStrategy  # noqa
from .executor import DeploymentExecutor  # noqa
from .binder import EndpointBinder  # noqa
from .provisioner import Provisioner, ProvisioningResult, ProvisioningStatus  # noqa

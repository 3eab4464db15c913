"""
STeLLAR: provisioning of serverless functions for tail-latency benchmarks.

This package deploys, repurposes or reuses the functions of an experiment,
either through the provider endpoint service or the Serverless framework,
and assigns the resulting endpoints to the sub-experiments.
"""

from .version import __version__  # noqa

from .config import StellarConfig  # noqa
from .experiment import EndpointInfo, ExperimentConfig, SubExperiment  # noqa
from .errors import ProvisioningError  # noqa

from enum import Enum


class Provider(str, Enum):
    """
    Providers with dedicated provisioning support.
    Any other provider name is treated as the hostname of an external endpoint.
    """

    AWS = "aws"  #: Amazon Web Services, functions behind a shared API gateway.
    GCR = "gcr"  #: Google Cloud Run, one URL per deployed container service.


class PackageType(str, Enum):
    """
    Strategy used to produce the deployable artifact of a sub-experiment.
    """

    CONTAINER = "Container"  #: Pre-built container image.
    ZIP = "Zip"  #: Generated, built and zipped function code.


class Visualization(str, Enum):
    """
    Visualization produced for every burst of a sub-experiment.
    """

    NONE = "none"
    HISTOGRAM = "histogram"
    ALL = "all"

    @staticmethod
    def deserialize(val: str) -> "Visualization":
        for member in Visualization:
            if member.value == val:
                return member
        raise Exception(f"Unknown visualization type {val}")


class EndpointScope(str, Enum):
    """
    How a provider exposes endpoints of the functions in one deployment.
    """

    SHARED = "shared"  #: One gateway identifier shared by all functions.
    PER_RESOURCE = "per_resource"  #: A distinct URL for every deployed resource.

import base64
import json
import os
from abc import abstractmethod
from typing import Dict, Optional, Tuple

import boto3
import docker
from botocore.exceptions import ClientError
from rich.progress import Progress

from stellar.config import StellarConfig
from stellar.types import Provider
from stellar.utils import LoggingBase, sanitize_name


class DockerContainer(LoggingBase):
    """
    Builds the container image of a function and pushes it to the registry
    of a provider.

    The function specification `<functions_dir>/<function>` must contain a
    Dockerfile. Images already present in the registry are not rebuilt.
    """

    @staticmethod
    @abstractmethod
    def name() -> str:
        pass

    @property
    def disable_rich_output(self) -> bool:
        return self._disable_rich_output

    @disable_rich_output.setter
    def disable_rich_output(self, val: bool):
        self._disable_rich_output = val

    def __init__(
        self,
        system_config: StellarConfig,
        docker_client: docker.client.DockerClient,
        functions_dir: str,
    ):
        super().__init__()
        self.docker_client = docker_client
        self.system_config = system_config
        self.functions_dir = functions_dir
        self._disable_rich_output = False

    @abstractmethod
    def registry_name(self, function: str) -> Tuple[str, str, str, str]:
        """
        :return: registry name, repository name, image tag and the full image URI.
        """
        pass

    def find_image(self, repository_name: str, image_tag: str) -> bool:
        try:
            self.docker_client.images.pull(repository=repository_name, tag=image_tag)
            return True
        except docker.errors.NotFound:
            return False

    def show_progress(self, txt, progress: Progress, layer_tasks: dict):
        line = json.loads(txt) if isinstance(txt, str) else txt

        status = line.get("status", "")
        progress_detail = line.get("progressDetail", {})
        id_ = line.get("id", "")

        if "Pushing" in status and progress_detail:
            current = progress_detail.get("current", 0)
            total = progress_detail.get("total", 0)

            if id_ not in layer_tasks and total > 0:
                layer_tasks[id_] = progress.add_task(f"Layer {id_[:12]}", total=total)
            if id_ in layer_tasks:
                progress.update(layer_tasks[id_], completed=current)

        elif any(x in status for x in ["Layer already exists", "Pushed"]):
            if id_ in layer_tasks:
                progress.update(layer_tasks[id_], completed=progress.tasks[layer_tasks[id_]].total)

        elif "error" in line:
            raise RuntimeError(line["error"])

    def push_image(self, repository_uri: str, image_tag: str):
        try:
            self.logging.info(f"Pushing image {image_tag} to {repository_uri}")
            ret_stream = self.docker_client.images.push(
                repository=repository_uri, tag=image_tag, stream=True, decode=True
            )
            if not self.disable_rich_output:
                layer_tasks: Dict[str, int] = {}
                with Progress() as progress:
                    for line in ret_stream:
                        self.show_progress(line, progress, layer_tasks)
            else:
                for val in ret_stream:
                    if "error" in val:
                        self.logging.error(f"Failed to push the image to registry {repository_uri}")
                        raise RuntimeError(val["error"])

        except docker.errors.APIError as e:
            self.logging.error(
                f"Failed to push the image to registry {repository_uri}. Error: {str(e)}"
            )
            raise e

    def setup(self, function: str) -> str:
        """
        Build and push the image of a function unless the registry has it.

        :return: URI of the image in the registry.
        """
        registry_name, repository_name, image_tag, image_uri = self.registry_name(function)

        if self.find_image(repository_name, image_tag):
            self.logging.info(
                f"Skipping building Docker image for {function}, using "
                f"Docker image {image_uri} from registry: {registry_name}."
            )
            return image_uri

        build_dir = os.path.join(self.functions_dir, function)
        if not os.path.isfile(os.path.join(build_dir, "Dockerfile")):
            raise RuntimeError(f"Function {function} has no Dockerfile in {build_dir}")

        self.logging.info(f"Build the image {repository_name}:{image_tag} of {function}.")
        self.docker_client.images.build(tag=image_uri, path=build_dir)

        self.logging.info(
            f"Push the image {repository_name}:{image_tag} to registry: {registry_name}."
        )
        self.push_image(image_uri[: -len(image_tag) - 1], image_tag)
        return image_uri


class ECRContainer(DockerContainer):
    """Images of Lambda functions, stored in an Amazon ECR repository."""

    @staticmethod
    def name() -> str:
        return Provider.AWS.value

    @staticmethod
    def typename() -> str:
        return "AWS.ECRContainer"

    def __init__(
        self,
        system_config: StellarConfig,
        session: boto3.session.Session,
        region: str,
        docker_client: docker.client.DockerClient,
        functions_dir: str,
        repository: Optional[str] = None,
    ):
        super().__init__(system_config, docker_client, functions_dir)
        self.ecr_client = session.client(service_name="ecr", region_name=region)
        self._container_repository = repository or system_config.provider_setting(
            self.name(), "container_repository"
        )
        self._repository_uri: Optional[str] = None

    def _check_repository(self) -> Optional[str]:
        try:
            resp = self.ecr_client.describe_repositories(
                repositoryNames=[self._container_repository]
            )
            return resp["repositories"][0]["repositoryUri"]
        except self.ecr_client.exceptions.RepositoryNotFoundException:
            return None

    def repository_uri(self) -> str:
        """Get or create the ECR repository holding the function images."""
        if self._repository_uri is not None:
            return self._repository_uri

        self._repository_uri = self._check_repository()
        if self._repository_uri is None:
            try:
                resp = self.ecr_client.create_repository(
                    repositoryName=self._container_repository
                )
                self.logging.info(f"Created ECR repository: {self._container_repository}")
                self._repository_uri = resp["repository"]["repositoryUri"]
            except self.ecr_client.exceptions.RepositoryAlreadyExistsException:
                # created concurrently by another run
                self.logging.info(f"ECR repository {self._container_repository} already exists.")
                self._repository_uri = self._check_repository()

        assert self._repository_uri is not None
        return self._repository_uri

    def registry_name(self, function: str) -> Tuple[str, str, str, str]:
        repository_uri = self.repository_uri()
        registry_name = repository_uri.split("/")[0]
        image_tag = sanitize_name(function)
        return (
            registry_name,
            self._container_repository,
            image_tag,
            f"{repository_uri}:{image_tag}",
        )

    def find_image(self, repository_name: str, image_tag: str) -> bool:
        try:
            response = self.ecr_client.describe_images(
                repositoryName=repository_name, imageIds=[{"imageTag": image_tag}]
            )
            if response["imageDetails"]:
                return True
        except ClientError:
            return False
        return False

    def push_image(self, repository_uri: str, image_tag: str):
        response = self.ecr_client.get_authorization_token()
        auth_token = response["authorizationData"][0]["authorizationToken"]
        username, password = base64.b64decode(auth_token).decode("utf-8").split(":")

        try:
            self.docker_client.login(
                username=username, password=password, registry=repository_uri.split("/")[0]
            )
            super().push_image(repository_uri, image_tag)
            self.logging.info(f"Successfully pushed the image to registry {repository_uri}.")
        except docker.errors.APIError as e:
            self.logging.error(f"Failed to push the image to registry {repository_uri}.")
            self.logging.error(f"Error: {str(e)}")
            raise RuntimeError("Couldn't push to Docker registry")


class GCRContainer(DockerContainer):
    """Images of Cloud Run services, stored in Google Container Registry.

    Pushing relies on docker credentials configured with `gcloud auth configure-docker`.
    """

    @staticmethod
    def name() -> str:
        return Provider.GCR.value

    @staticmethod
    def typename() -> str:
        return "GCR.Container"

    def __init__(
        self,
        system_config: StellarConfig,
        docker_client: docker.client.DockerClient,
        functions_dir: str,
        project: str,
    ):
        super().__init__(system_config, docker_client, functions_dir)
        self._project = project

    def registry_name(self, function: str) -> Tuple[str, str, str, str]:
        registry_name = self.system_config.provider_setting(self.name(), "container_registry")
        repository_name = f"{registry_name}/{self._project}/{sanitize_name(function)}"
        image_tag = "latest"
        return registry_name, repository_name, image_tag, f"{repository_name}:{image_tag}"

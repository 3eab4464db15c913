"""Deployment tools invoked by the provisioner.

`ServerlessDeployer` runs the Serverless framework on a directory with a
generated `serverless.yml`. `CloudRunDeployer` deploys one container image
as a Cloud Run service with the gcloud CLI.
"""

import re

from stellar.utils import LoggingBase, execute

SERVICE_URL = re.compile(r"Service URL: (https://\S+)")


class ServerlessDeployer(LoggingBase):
    def __init__(self, deploy_command: str = "serverless deploy"):
        super().__init__()
        self._deploy_command = deploy_command

    @staticmethod
    def typename() -> str:
        return "ServerlessDeployer"

    def deploy(self, directory: str) -> str:
        """
        Run the deploy command in the directory.

        :return: combined output of the command.
        :raises RuntimeError: if the command fails.
        """
        self.logging.debug(f"Running {self._deploy_command} in {directory}")
        return execute(self._deploy_command, shell=True, cwd=directory)


class CloudRunDeployer(LoggingBase):
    def __init__(self, project: str):
        super().__init__()
        self._project = project

    @staticmethod
    def typename() -> str:
        return "GCR.CloudRunDeployer"

    def deploy_service(self, name: str, image: str, region: str, memory_mb: int) -> str:
        """
        Deploy or update a publicly reachable Cloud Run service.

        :return: URL of the service.
        """
        cmd = (
            f"gcloud run deploy {name} --image={image} --region={region} "
            f"--project={self._project} --memory={memory_mb}Mi "
            "--platform=managed --allow-unauthenticated --quiet"
        )
        output = execute(cmd, shell=True)
        match = SERVICE_URL.search(output)
        if match is None:
            raise RuntimeError(f"Service URL of {name} not found in gcloud output: {output}")
        return match.group(1)

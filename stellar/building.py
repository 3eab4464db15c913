import os
from typing import Dict

from stellar.utils import LoggingBase, execute

ARTIFACTS_DIR = "artifacts"

BUILD_COMMANDS: Dict[str, str] = {
    "python": "",
    "nodejs": "",
    "go": "env GOOS=linux GOARCH=amd64 CGO_ENABLED=0 go build -o bootstrap .",
    "java": "mvn -q package",
}


def runtime_language(runtime: str) -> str:
    """
    Map a provider runtime (python3.9, nodejs18.x, go1.x, provided.al2, java11)
    to the language whose toolchain builds the function.
    """
    if runtime.startswith("provided"):
        return "go"
    for language in BUILD_COMMANDS:
        if runtime.startswith(language):
            return language
    raise RuntimeError(f"Runtime {runtime} is not supported")


class Builder(LoggingBase):
    """
    Builds generated function code in place. Interpreted runtimes need no
    build step; compiled ones run their language toolchain.
    """

    def __init__(self, serverless_dir: str, build_dir: str = "build"):
        super().__init__()
        self._serverless_dir = serverless_dir
        self._build_dir = build_dir

    @staticmethod
    def typename() -> str:
        return "Builder"

    @staticmethod
    def code_path(build_dir: str, provider: str, function: str) -> str:
        return os.path.join(build_dir, provider, function)

    @staticmethod
    def artifact_path(build_dir: str, provider: str) -> str:
        """Directory of the zip archives of a provider, shared by all its functions."""
        return os.path.join(build_dir, ARTIFACTS_DIR, provider)

    def build_function(self, provider: str, function: str, runtime: str) -> str:
        """
        Archives are kept outside the generated code, which is replaced
        whenever the function is generated again.

        :return: directory receiving the zip archives, relative to the serverless directory.
        """
        language = runtime_language(runtime)
        directory = os.path.join(
            self._serverless_dir, Builder.code_path(self._build_dir, provider, function)
        )
        if not os.path.isdir(directory):
            raise RuntimeError(f"No generated code of {function} in {directory}")

        command = BUILD_COMMANDS[language]
        if command:
            self.logging.info(f"Building {function} ({runtime}) with: {command}")
            output = execute(command, shell=True, cwd=directory)
            self.logging.debug(output)
        else:
            self.logging.debug(f"Runtime {runtime} of {function} requires no build.")

        artifact_path = Builder.artifact_path(self._build_dir, provider)
        os.makedirs(os.path.join(self._serverless_dir, artifact_path), exist_ok=True)
        return artifact_path

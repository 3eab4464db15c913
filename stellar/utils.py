import json
import logging
import os
import re
import subprocess
import uuid
import click
import datetime

from typing import Any, Optional

PROJECT_DIR = os.path.join(os.path.dirname(os.path.realpath(__file__)), os.pardir)
"""Absolute path to the STeLLAR project root directory."""


def project_absolute_path(*paths: str) -> str:
    """
    Construct an absolute path relative to the project root directory.

    :param paths: Variable number of path components to join with the project root.
    :return: Absolute path string.
    """
    return os.path.join(PROJECT_DIR, *paths)


class JSONSerializer(json.JSONEncoder):
    """
    JSON encoder for objects exposing a `serialize()` method.
    Other objects are encoded through `vars()`, falling back to `str()`.
    """

    def default(self, o: Any) -> Any:
        if hasattr(o, "serialize"):
            return o.serialize()
        try:
            return vars(o)
        except TypeError:
            return str(o)


def serialize(obj: Any) -> str:
    """
    Serialize an object to a pretty-printed JSON string.

    :param obj: The object to serialize.
    :return: A JSON string representation of the object, indented by 2.
    """
    if hasattr(obj, "serialize"):
        return json.dumps(obj.serialize(), sort_keys=True, indent=2)
    else:
        return json.dumps(obj, cls=JSONSerializer, sort_keys=True, indent=2)


def execute(cmd: str, shell: bool = False, cwd: Optional[str] = None) -> str:
    """
    Execute a command and return its combined stdout/stderr.

    :param cmd: The command string to execute.
    :param shell: If True, execute the command through the shell (needed for
                  environment assignments and globs). Defaults to False.
    :param cwd: Optional working directory for the command execution.
    :return: The decoded output of the executed command.
    :raises RuntimeError: If the command returns a non-zero exit code.
    """
    if not shell:
        command_list = cmd.split()
    else:
        command_list = cmd

    process_result = subprocess.run(
        command_list, shell=shell, cwd=cwd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT
    )
    if process_result.returncode != 0:
        raise RuntimeError(
            f"Running command '{cmd}' failed with exit code {process_result.returncode}!\n"
            f"Output: {process_result.stdout.decode('utf-8', errors='replace')}"
        )
    return process_result.stdout.decode("utf-8", errors="replace")


def sanitize_name(name: str) -> str:
    """
    Turn an arbitrary function name into one accepted by cloud providers
    and the Serverless framework: lowercase alphanumerics and underscores.
    """
    sanitized = re.sub(r"[^a-z0-9_]+", "_", name.lower()).strip("_")
    return sanitized if sanitized else "function"


def configure_logging():
    """
    Mute verbose logging from the libraries used for provider access
    (urllib3, docker, botocore) by raising their level to ERROR.
    """
    noisy_loggers = ["urllib3", "docker", "botocore", "boto3"]
    for logger_name_prefix in noisy_loggers:
        for name in list(logging.root.manager.loggerDict):
            if name.startswith(logger_name_prefix):
                logging.getLogger(name).setLevel(logging.ERROR)


def global_logging():
    """
    Set up basic global logging configuration: default format, date format
    and INFO level. Called once when the CLI starts.
    """
    logging_format = "%(asctime)s,%(msecs)d %(levelname)s %(name)s: %(message)s"
    logging_date_format = "%H:%M:%S"
    logging.basicConfig(format=logging_format, datefmt=logging_date_format, level=logging.INFO)


class ColoredWrapper:
    """
    A wrapper around a standard Python logger providing colored console output
    through click. Messages can also be propagated to the underlying logger.
    """

    SUCCESS = "\033[92m"
    STATUS = "\033[94m"
    WARNING = "\033[93m"
    ERROR = "\033[91m"
    BOLD = "\033[1m"
    END = "\033[0m"

    def __init__(
        self, prefix: str, logger: logging.Logger, verbose: bool = True, propagate: bool = False
    ):
        """
        :param prefix: A prefix string prepended to log messages (e.g., class name).
        :param logger: The underlying `logging.Logger` instance.
        :param verbose: If True, DEBUG messages are printed to console.
        :param propagate: If True, messages are also passed to the underlying logger.
        """
        self.verbose = verbose
        self.propagate = propagate
        self.prefix = prefix
        self._logging = logger

    def debug(self, message: str):
        if self.verbose:
            self._print(message, ColoredWrapper.STATUS)
        if self.propagate:
            self._logging.debug(message)

    def info(self, message: str):
        self._print(message, ColoredWrapper.SUCCESS)
        if self.propagate:
            self._logging.info(message)

    def warning(self, message: str):
        self._print(message, ColoredWrapper.WARNING)
        if self.propagate:
            self._logging.warning(message)

    def error(self, message: str):
        self._print(message, ColoredWrapper.ERROR)
        if self.propagate:
            self._logging.error(message)

    def critical(self, message: str):
        self._print(message, ColoredWrapper.ERROR)
        if self.propagate:
            self._logging.critical(message)

    def _print(self, message: str, color: str):
        timestamp = datetime.datetime.now().strftime("%H:%M:%S.%f")[:-3]
        click.echo(
            f"{color}{ColoredWrapper.BOLD}[{timestamp}]{ColoredWrapper.END} "
            f"{ColoredWrapper.BOLD}{self.prefix}{ColoredWrapper.END} {message}"
        )


class LoggingHandlers:
    """
    Holds the verbosity flag and, when a filename is given, a file handler
    shared by all components of one provisioning run.
    """

    def __init__(self, verbose: bool = False, filename: Optional[str] = None):
        logging_format = "%(asctime)s,%(msecs)d %(levelname)s %(name)s: %(message)s"
        logging_date_format = "%H:%M:%S"
        formatter = logging.Formatter(logging_format, logging_date_format)
        self.handler: Optional[logging.FileHandler] = None

        self.verbosity = verbose

        if filename:
            file_out_handler = logging.FileHandler(filename=filename, mode="w")
            file_out_handler.setFormatter(formatter)
            file_out_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
            self.handler = file_out_handler


class LoggingBase:
    """
    Base class providing standardized logging for STeLLAR components.

    Initializes a logger with a unique name (type name + UUID4 prefix) and
    a `ColoredWrapper` for console output. Assigning `logging_handlers`
    enables file logging.
    """

    def __init__(self):
        uuid_prefix = str(uuid.uuid4())[0:4]
        class_name = getattr(self, "typename", lambda: self.__class__.__name__)()
        self.log_name = f"{class_name}-{uuid_prefix}"

        self._logging = logging.getLogger(self.log_name)
        self._logging.setLevel(logging.DEBUG)

        self.wrapper = ColoredWrapper(self.log_name, self._logging)
        self._logging_handlers: Optional[LoggingHandlers] = None

    @property
    def logging(self) -> ColoredWrapper:
        return self.wrapper

    @property
    def logging_handlers(self) -> Optional[LoggingHandlers]:
        return self._logging_handlers

    @logging_handlers.setter
    def logging_handlers(self, handlers: Optional[LoggingHandlers]):
        if self._logging_handlers and self._logging_handlers.handler:
            if not handlers or self._logging_handlers.handler != handlers.handler:
                self._logging.removeHandler(self._logging_handlers.handler)

        self._logging_handlers = handlers

        if handlers:
            self.wrapper = ColoredWrapper(
                self.log_name,
                self._logging,
                verbose=handlers.verbosity,
                propagate=handlers.handler is not None,
            )
            if handlers.handler:
                self._logging.addHandler(handlers.handler)
            self._logging.propagate = False
        else:
            self.wrapper = ColoredWrapper(self.log_name, self._logging)
            self._logging.propagate = True

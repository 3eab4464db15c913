#!/usr/bin/env python3

import functools
import logging
import os
import sys
import traceback
from typing import Dict, Optional, Tuple

import boto3
import click
import docker

from stellar.building import Builder
from stellar.codegen import CodeGenerator
from stellar.config import StellarConfig
from stellar.connection import EndpointService, get_endpoint_service
from stellar.deployment import CloudRunDeployer, ServerlessDeployer
from stellar.experiment import ExperimentConfig
from stellar.packaging import DockerContainer, ECRContainer, GCRContainer, Packager
from stellar.packaging.zip import ZipArtifactGenerator
from stellar.provisioning import Provisioner, ProvisioningStatus, ThresholdGuard
from stellar.provisioning.guard import always_confirm, confirm_prompt
from stellar.types import PackageType, Provider
from stellar.utils import LoggingHandlers, configure_logging, global_logging, serialize


class ExceptionProcesser(click.Group):
    def __call__(self, *args, **kwargs):
        try:
            return self.main(*args, **kwargs)
        except Exception as e:
            logging.error(e)
            traceback.print_exc()
            logging.info("# Provisioning failed! See the output log for details")
            sys.exit(1)


def common_params(func):
    @click.option(
        "--config",
        required=True,
        type=click.Path(exists=True, dir_okay=False, readable=True),
        help="Location of experiment config.",
    )
    @click.option(
        "--system-config",
        default=None,
        type=click.Path(exists=True, dir_okay=False, readable=True),
        help="Alternative location of systems.json with provider defaults.",
    )
    @click.option("--output-file", default="out.log", help="Output filename for logging.")
    @click.option("--verbose/--no-verbose", default=False, help="Verbose output.")
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


def parse_common_params(
    config: str, system_config: Optional[str], output_file: str, verbose: bool
) -> Tuple[ExperimentConfig, StellarConfig, LoggingHandlers]:

    global_logging()
    experiment = ExperimentConfig.load(config)
    stellar_config = StellarConfig(system_config)
    logging_filename = os.path.abspath(output_file) if output_file else None
    handlers = LoggingHandlers(verbose, logging_filename)
    configure_logging()

    return experiment, stellar_config, handlers


def gcr_project(experiment: ExperimentConfig) -> Optional[str]:
    if experiment.provider != Provider.GCR.value:
        return None
    return experiment.provider_settings.get("project")


def create_packager(
    experiment: ExperimentConfig,
    system_config: StellarConfig,
    functions_dir: str,
    serverless_dir: str,
) -> Packager:
    """
    Container managers need a docker daemon and are created only when a
    sub-experiment deploys a container image.
    """
    zip_generator = ZipArtifactGenerator(serverless_dir, system_config.build_directory())
    containers: Dict[str, DockerContainer] = {}

    uses_containers = any(
        sub.package_type == PackageType.CONTAINER.value for sub in experiment.sub_experiments
    )
    if uses_containers:
        provider = experiment.provider
        docker_client = docker.from_env()
        if provider == Provider.AWS.value:
            region = experiment.region or system_config.region(provider)
            containers[provider] = ECRContainer(
                system_config,
                boto3.session.Session(region_name=region),
                region,
                docker_client,
                functions_dir,
                experiment.provider_settings.get("container_repository"),
            )
        elif provider == Provider.GCR.value:
            project = gcr_project(experiment)
            if project is None:
                raise click.UsageError("Container images for gcr require the 'project' setting")
            containers[provider] = GCRContainer(
                system_config, docker_client, functions_dir, project
            )

    return Packager(zip_generator, containers)


@click.group(cls=ExceptionProcesser)
def cli():
    pass


@cli.command()
@click.option(
    "--serverless/--no-serverless",
    default=False,
    help="Deploy with the Serverless framework instead of the provider endpoint service.",
)
@click.option(
    "--serverless-dir",
    default=os.path.curdir,
    type=click.Path(file_okay=False),
    help="Directory receiving serverless.yml and the built functions.",
)
@click.option(
    "--functions-dir",
    default=None,
    type=click.Path(file_okay=False),
    help="Directory with function sources; defaults to the configured functions directory.",
)
@click.option(
    "--output-config",
    default=None,
    type=click.Path(dir_okay=False, writable=True),
    help="Write the experiment config with assigned endpoints to this file.",
)
@click.option("--yes", is_flag=True, default=False, help="Continue without asking on warnings.")
@common_params
def provision(serverless, serverless_dir, functions_dir, output_config, yes, **kwargs):
    """Deploy or reuse the functions of an experiment and assign their endpoints."""

    experiment, system_config, handlers = parse_common_params(**kwargs)
    if functions_dir is None:
        functions_dir = system_config.functions_directory()
    build_dir = system_config.build_directory()

    guard = ThresholdGuard(
        always_confirm if yes else confirm_prompt,
        system_config.nic_contention_threshold(),
        system_config.storage_space_threshold(),
    )
    packager = create_packager(experiment, system_config, functions_dir, serverless_dir)
    packager.initialize_logging(handlers)

    endpoint_service = None
    code_generator = None
    builder = None
    deployer = None
    container_deployer = None
    if serverless:
        code_generator = CodeGenerator(functions_dir, serverless_dir, build_dir)
        builder = Builder(serverless_dir, build_dir)
        deployer = ServerlessDeployer(system_config.deploy_command())
        project = gcr_project(experiment)
        if project is not None:
            container_deployer = CloudRunDeployer(project)
    else:
        endpoint_service = get_endpoint_service(
            experiment.provider, experiment, system_config, packager
        )

    components = (guard, endpoint_service, code_generator, builder, deployer, container_deployer)
    for component in components:
        if component is not None:
            component.logging_handlers = handlers

    provisioner = Provisioner(
        system_config,
        guard,
        endpoint_service=endpoint_service,
        packager=packager,
        code_generator=code_generator,
        builder=builder,
        deployer=deployer,
        container_deployer=container_deployer,
        serverless_dir=serverless_dir,
    )
    provisioner.logging_handlers = handlers

    if serverless:
        result = provisioner.provision_functions_serverless(experiment)
    else:
        result = provisioner.provision_functions(experiment)

    if result.status == ProvisioningStatus.FAILED:
        provisioner.logging.error(f"Provisioning failed: {result.message}")
        sys.exit(1)
    if result.status == ProvisioningStatus.DECLINED:
        provisioner.logging.info("Provisioning stopped, no endpoints were assigned.")
        return

    for sub in experiment.sub_experiments:
        endpoints = ", ".join(f"{e.id}{e.route}" for e in sub.endpoints)
        provisioner.logging.info(f"({sub.id}) {sub.title}: {endpoints}")
    if output_config is not None:
        experiment.save(output_config)
        provisioner.logging.info(f"Saved experiment config with endpoints to {output_config}")


@cli.command()
@click.option(
    "--repurpose-identifier",
    default=None,
    type=str,
    help="Override the repurpose identifier of the experiment config.",
)
@common_params
def endpoints(repurpose_identifier, **kwargs):
    """List endpoints deployed by earlier runs that can be reused."""

    experiment, system_config, handlers = parse_common_params(**kwargs)
    service: EndpointService = get_endpoint_service(experiment.provider, experiment, system_config)
    service.logging_handlers = handlers

    identifier = repurpose_identifier or experiment.repurpose_identifier
    available = service.list_apis(identifier)
    if available is None:
        service.logging.info(f"Provider {experiment.provider} has no listable endpoints.")
        return
    service.logging.info(f"Endpoints for repurpose identifier {identifier}:")
    for idx, endpoint in enumerate(available):
        service.logging.info(f"({idx}) {endpoint.id} -> {endpoint.function_name}")
    if handlers.verbosity:
        click.echo(serialize(available))


def main():
    cli()


if __name__ == "__main__":
    main()

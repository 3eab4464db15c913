import os
import tempfile
import unittest
import zipfile
from unittest.mock import Mock, patch

from stellar.building import Builder
from stellar.codegen import CodeGenerator
from stellar.config import StellarConfig
from stellar.connection import Endpoint, EndpointService
from stellar.connection.external import ExternalEndpointService
from stellar.experiment import EndpointInfo, ExperimentConfig, SubExperiment
from stellar.packaging import Packager
from stellar.packaging.zip import ZipArtifactGenerator
from stellar.provisioning import Provisioner, ProvisioningStatus, ThresholdGuard
from stellar.types import PackageType

TESTS_DIR = os.path.dirname(os.path.realpath(__file__))
FUNCTIONS_DIR = os.path.join(TESTS_DIR, os.path.pardir, "functions")

DEPLOY_OUTPUT = (
    "endpoints:\n"
    "  GET - https://abc123.execute-api.us-west-1.amazonaws.com/hellopy_0\n"
    "  GET - https://abc123.execute-api.us-west-1.amazonaws.com/hellopy_1\n"
)


def make_sub(**kwargs) -> SubExperiment:
    params = dict(
        title="sub",
        bursts=10,
        burst_sizes=[1, 5],
        function="hellopy",
        runtime="python3.9",
        handler="main.lambda_handler",
        function_image_size_mb=10.0,
    )
    params.update(kwargs)
    return SubExperiment(**params)


class ServerlessProvisioningTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.prompt = Mock(return_value=True)
        self.code_generator = Mock()
        self.builder = Mock()
        self.builder.build_function.return_value = "build/artifacts/aws"
        self.packager = Mock()
        self.packager.setup_container_image_deployment.return_value = "registry/hellopy:latest"
        self.deployer = Mock()
        self.deployer.deploy.return_value = DEPLOY_OUTPUT
        self.container_deployer = Mock()
        self.container_deployer.deploy_service.return_value = "https://hellopy-0-0.a.run.app"

        self.provisioner = Provisioner(
            StellarConfig(),
            ThresholdGuard(self.prompt),
            packager=self.packager,
            code_generator=self.code_generator,
            builder=self.builder,
            deployer=self.deployer,
            container_deployer=self.container_deployer,
            serverless_dir=self.tmp.name,
        )
        self.sleep_patcher = patch("stellar.provisioning.provisioner.time.sleep")
        self.sleep = self.sleep_patcher.start()

    def tearDown(self):
        self.sleep_patcher.stop()
        self.tmp.cleanup()

    def test_zip_deployment_binds_gateway(self):
        config = ExperimentConfig("aws", [make_sub(), make_sub()])
        result = self.provisioner.provision_functions_serverless(config)

        self.assertEqual(result.status, ProvisioningStatus.SUCCESS)
        self.assertTrue(result.ok)
        self.deployer.deploy.assert_called_once_with(self.tmp.name)
        self.assertEqual(len(self.provisioner.assembler.descriptor.functions), 2)
        self.assertEqual(
            config.sub_experiments[1].endpoints, [EndpointInfo("abc123", "/hellopy_1")]
        )
        self.packager.generate_zip_artifacts.assert_any_call(
            0, "aws", "python3.9", "hellopy", 10.0
        )
        self.code_generator.generate_code.assert_any_call("hellopy", "aws")
        self.sleep.assert_not_called()

    def test_unknown_package_kind_fails(self):
        config = ExperimentConfig("aws", [make_sub(package_type="Unknown")])
        result = self.provisioner.provision_functions_serverless(config)

        self.assertEqual(result.status, ProvisioningStatus.FAILED)
        self.assertIn("Unknown", result.message)
        self.assertFalse(self.provisioner.assembler.has_entries())
        self.deployer.deploy.assert_not_called()

    def test_failure_aborts_remaining_sub_experiments(self):
        config = ExperimentConfig("aws", [make_sub(package_type="Unknown"), make_sub()])
        result = self.provisioner.provision_functions_serverless(config)

        self.assertEqual(result.status, ProvisioningStatus.FAILED)
        self.code_generator.generate_code.assert_not_called()

    def test_per_resource_container_skips_serverless_deploy(self):
        config = ExperimentConfig("gcr", [make_sub(package_type=PackageType.CONTAINER.value)])
        result = self.provisioner.provision_functions_serverless(config)

        self.assertEqual(result.status, ProvisioningStatus.SUCCESS)
        self.packager.setup_container_image_deployment.assert_called_once_with("hellopy", "gcr")
        self.assertEqual(
            config.sub_experiments[0].endpoints, [EndpointInfo("https://hellopy-0-0.a.run.app")]
        )
        self.deployer.deploy.assert_not_called()
        self.sleep.assert_not_called()

    def test_container_deployment_settles(self):
        config = ExperimentConfig("aws", [make_sub(package_type=PackageType.CONTAINER.value)])
        result = self.provisioner.provision_functions_serverless(config)

        self.assertEqual(result.status, ProvisioningStatus.SUCCESS)
        self.deployer.deploy.assert_called_once()
        self.sleep.assert_called_once_with(10.0)

    def test_declined_warning(self):
        self.prompt.return_value = False
        config = ExperimentConfig("aws", [make_sub(), make_sub(burst_sizes=[900])])
        result = self.provisioner.provision_functions_serverless(config)

        self.assertEqual(result.status, ProvisioningStatus.DECLINED)
        self.assertFalse(result.ok)
        self.code_generator.generate_code.assert_not_called()
        self.deployer.deploy.assert_not_called()

    def test_collaborator_failure(self):
        self.builder.build_function.side_effect = RuntimeError("go: command not found")
        config = ExperimentConfig("aws", [make_sub()])
        result = self.provisioner.provision_functions_serverless(config)

        self.assertEqual(result.status, ProvisioningStatus.FAILED)
        self.assertIn("Function build failed", result.message)
        self.assertIn("go: command not found", result.message)

    def test_unsupported_provider_for_endpoints(self):
        config = ExperimentConfig("myhost.example.com", [make_sub()])
        result = self.provisioner.provision_functions_serverless(config)

        self.assertEqual(result.status, ProvisioningStatus.FAILED)
        self.assertIn("myhost.example.com", result.message)


class ZipBuildProvisioningTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.deployer = Mock()
        self.deployer.deploy.return_value = DEPLOY_OUTPUT
        self.provisioner = Provisioner(
            StellarConfig(),
            ThresholdGuard(Mock(return_value=True)),
            packager=Packager(ZipArtifactGenerator(self.tmp.name)),
            code_generator=CodeGenerator(FUNCTIONS_DIR, self.tmp.name),
            builder=Builder(self.tmp.name),
            deployer=self.deployer,
            serverless_dir=self.tmp.name,
        )

    def tearDown(self):
        self.tmp.cleanup()

    def test_archives_of_repeated_function_survive_regeneration(self):
        config = ExperimentConfig(
            "aws",
            [make_sub(function_image_size_mb=1.0), make_sub(function_image_size_mb=2.0)],
        )
        result = self.provisioner.provision_functions_serverless(config)

        self.assertEqual(result.status, ProvisioningStatus.SUCCESS)
        entries = self.provisioner.assembler.descriptor.functions
        self.assertEqual(len(entries), 2)
        for entry in entries.values():
            archive = os.path.join(self.tmp.name, entry.artifact)
            self.assertTrue(os.path.isfile(archive), archive)
            self.assertTrue(zipfile.is_zipfile(archive), archive)
            with zipfile.ZipFile(archive) as zf:
                self.assertIn("main.py", zf.namelist())
        self.assertEqual(
            sorted(os.path.basename(entry.artifact) for entry in entries.values()),
            ["hellopy_0.zip", "hellopy_1.zip"],
        )
        self.assertTrue(os.path.isfile(os.path.join(self.tmp.name, "serverless.yml")))


class EndpointServiceProvisioningTest(unittest.TestCase):
    def setUp(self):
        self.service = Mock(spec=EndpointService)
        self.service.used_container_images = False
        self.service.list_apis.return_value = [Endpoint("a", "fa", 128, 10.0, function="hellopy")]
        self.service.deploy_function.return_value = Endpoint(
            "new", "fn", 128, 10.0, function="hellopy"
        )
        self.prompt = Mock(return_value=True)
        self.sleep_patcher = patch("stellar.provisioning.provisioner.time.sleep")
        self.sleep = self.sleep_patcher.start()

    def tearDown(self):
        self.sleep_patcher.stop()

    def provisioner(self, service) -> Provisioner:
        return Provisioner(StellarConfig(), ThresholdGuard(self.prompt), endpoint_service=service)

    def test_reuse_then_deploy(self):
        config = ExperimentConfig("aws", [make_sub(), make_sub()], repurpose_identifier="rid")
        result = self.provisioner(self.service).provision_functions(config)

        self.assertTrue(result.ok)
        self.service.list_apis.assert_called_once_with("rid")
        self.assertEqual(config.sub_experiments[0].endpoints, [EndpointInfo("a")])
        self.assertEqual(config.sub_experiments[1].endpoints, [EndpointInfo("new")])
        self.sleep.assert_not_called()

    def test_container_images_settle(self):
        self.service.used_container_images = True
        config = ExperimentConfig("aws", [make_sub()])
        result = self.provisioner(self.service).provision_functions(config)

        self.assertTrue(result.ok)
        self.sleep.assert_called_once_with(10.0)

    def test_external_hostname(self):
        service = ExternalEndpointService("myhost.example.com")
        config = ExperimentConfig("myhost.example.com", [make_sub(parallelism=3)])
        result = self.provisioner(service).provision_functions(config)

        self.assertTrue(result.ok)
        self.assertEqual(
            config.sub_experiments[0].endpoints, [EndpointInfo("myhost.example.com")]
        )

    def test_declined_stops_allocation(self):
        self.prompt.return_value = False
        config = ExperimentConfig("aws", [make_sub(burst_sizes=[801]), make_sub()])
        result = self.provisioner(self.service).provision_functions(config)

        self.assertEqual(result.status, ProvisioningStatus.DECLINED)
        self.assertEqual(config.sub_experiments[0].endpoints, [])
        self.service.deploy_function.assert_not_called()

    def test_allocation_failure(self):
        self.service.list_apis.return_value = []
        self.service.deploy_function.side_effect = RuntimeError("AccessDenied")
        config = ExperimentConfig("aws", [make_sub()])
        result = self.provisioner(self.service).provision_functions(config)

        self.assertEqual(result.status, ProvisioningStatus.FAILED)
        self.assertIn("AccessDenied", result.message)

    def test_missing_endpoint_service(self):
        config = ExperimentConfig("aws", [make_sub()])
        result = self.provisioner(None).provision_functions(config)
        self.assertEqual(result.status, ProvisioningStatus.FAILED)


if __name__ == "__main__":
    unittest.main()

import os
import tempfile
import unittest
import zipfile
from unittest.mock import Mock, patch

import docker

from stellar.building import Builder, runtime_language
from stellar.codegen import CodeGenerator
from stellar.config import StellarConfig
from stellar.errors import UnsupportedProvider
from stellar.packaging import ECRContainer, GCRContainer, Packager
from stellar.packaging.zip import FILLER_FILE, ZipArtifactGenerator

MiB = 1024 * 1024


def write(path: str, content: str):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        f.write(content)


class CodeGenerationTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.functions_dir = os.path.join(self.tmp.name, "functions")
        self.serverless_dir = os.path.join(self.tmp.name, "deploy")
        write(
            os.path.join(self.functions_dir, "hello", "main.py.tmpl"),
            "PROVIDER = '$provider'\nFUNCTION = '$function'\nOTHER = '$unknown'\n",
        )
        write(os.path.join(self.functions_dir, "hello", "util.py"), "X = '$provider'\n")
        self.generator = CodeGenerator(self.functions_dir, self.serverless_dir)

    def tearDown(self):
        self.tmp.cleanup()

    def test_templates_rendered(self):
        output = self.generator.generate_code("hello", "aws")

        self.assertEqual(output, os.path.join(self.serverless_dir, "build", "aws", "hello"))
        self.assertEqual(sorted(os.listdir(output)), ["main.py", "util.py"])
        with open(os.path.join(output, "main.py")) as f:
            self.assertEqual(
                f.read(), "PROVIDER = 'aws'\nFUNCTION = 'hello'\nOTHER = '$unknown'\n"
            )
        with open(os.path.join(output, "util.py")) as f:
            self.assertEqual(f.read(), "X = '$provider'\n")
        self.assertTrue(
            os.path.exists(os.path.join(self.functions_dir, "hello", "main.py.tmpl"))
        )

    def test_regeneration_replaces_output(self):
        output = self.generator.generate_code("hello", "aws")
        write(os.path.join(output, "stale.py"), "")
        self.generator.generate_code("hello", "aws")
        self.assertFalse(os.path.exists(os.path.join(output, "stale.py")))

    def test_missing_function(self):
        with self.assertRaises(RuntimeError):
            self.generator.generate_code("missing", "aws")


class BuilderTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        os.makedirs(os.path.join(self.tmp.name, "build", "aws", "hello"))
        self.builder = Builder(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_runtime_language(self):
        self.assertEqual(runtime_language("python3.9"), "python")
        self.assertEqual(runtime_language("nodejs18.x"), "nodejs")
        self.assertEqual(runtime_language("go1.x"), "go")
        self.assertEqual(runtime_language("provided.al2"), "go")
        self.assertEqual(runtime_language("java11"), "java")
        with self.assertRaises(RuntimeError):
            runtime_language("ruby2.7")

    @patch("stellar.building.execute")
    def test_interpreted_runtime_needs_no_build(self, execute):
        path = self.builder.build_function("aws", "hello", "python3.9")
        self.assertEqual(path, os.path.join("build", "artifacts", "aws"))
        self.assertTrue(os.path.isdir(os.path.join(self.tmp.name, path)))
        execute.assert_not_called()

    @patch("stellar.building.execute", return_value="")
    def test_compiled_runtime(self, execute):
        self.builder.build_function("aws", "hello", "go1.x")
        execute.assert_called_once()
        cmd = execute.call_args[0][0]
        self.assertIn("go build", cmd)
        self.assertEqual(
            execute.call_args[1],
            {"shell": True, "cwd": os.path.join(self.tmp.name, "build", "aws", "hello")},
        )

    def test_missing_generated_code(self):
        with self.assertRaises(RuntimeError):
            self.builder.build_function("gcr", "hello", "python3.9")


class ZipArtifactTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.code_dir = os.path.join(self.tmp.name, "build", "aws", "hello")
        write(os.path.join(self.code_dir, "main.py"), "def handler(event, context):\n    pass\n")
        self.archive_dir = os.path.join(self.tmp.name, "build", "artifacts", "aws")
        self.generator = ZipArtifactGenerator(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_padded_to_requested_size(self):
        archive = self.generator.generate_zip_artifacts(1, "aws", "python3.9", "hello", 2)

        self.assertEqual(archive, os.path.join(self.archive_dir, "hello_1.zip"))
        self.assertLess(abs(os.path.getsize(archive) - 2 * MiB), 4096)
        with zipfile.ZipFile(archive) as zf:
            self.assertEqual(sorted(zf.namelist()), [FILLER_FILE, "main.py"])

    def test_no_filler_for_zero_size(self):
        archive = self.generator.generate_zip_artifacts(0, "aws", "python3.9", "hello", 0)
        with zipfile.ZipFile(archive) as zf:
            self.assertEqual(zf.namelist(), ["main.py"])

    def test_archives_outside_code_directory(self):
        first = self.generator.generate_zip_artifacts(0, "aws", "python3.9", "hello", 0)
        second = self.generator.generate_zip_artifacts(1, "aws", "python3.9", "hello", 0)

        self.assertEqual(sorted(os.listdir(self.code_dir)), ["main.py"])
        self.assertEqual(sorted(os.listdir(self.archive_dir)), ["hello_0.zip", "hello_1.zip"])
        with zipfile.ZipFile(second) as zf:
            self.assertEqual(zf.namelist(), ["main.py"])
        self.assertTrue(zipfile.is_zipfile(first))

    def test_missing_build(self):
        with self.assertRaises(RuntimeError):
            self.generator.generate_zip_artifacts(0, "gcr", "python3.9", "hello", 1)


class PackagerTest(unittest.TestCase):
    def test_dispatch_by_provider(self):
        container = Mock()
        container.setup.return_value = "gcr.io/proj/hello:latest"
        packager = Packager(Mock(), {"gcr": container})

        self.assertEqual(
            packager.setup_container_image_deployment("hello", "gcr"), "gcr.io/proj/hello:latest"
        )
        container.setup.assert_called_once_with("hello")
        with self.assertRaises(UnsupportedProvider):
            packager.setup_container_image_deployment("hello", "aws")

    def test_zip_delegation(self):
        zip_generator = Mock()
        packager = Packager(zip_generator)
        packager.generate_zip_artifacts(2, "aws", "python3.9", "hello", 5.0)
        zip_generator.generate_zip_artifacts.assert_called_once_with(
            2, "aws", "python3.9", "hello", 5.0
        )


class ContainerTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        write(os.path.join(self.tmp.name, "hello", "Dockerfile"), "FROM scratch\n")
        self.docker_client = Mock()
        self.system_config = StellarConfig()

    def tearDown(self):
        self.tmp.cleanup()

    def test_gcr_registry_name(self):
        container = GCRContainer(self.system_config, self.docker_client, self.tmp.name, "proj")
        self.assertEqual(
            container.registry_name("hello"),
            ("gcr.io", "gcr.io/proj/hello", "latest", "gcr.io/proj/hello:latest"),
        )

    def test_existing_image_not_rebuilt(self):
        container = GCRContainer(self.system_config, self.docker_client, self.tmp.name, "proj")
        self.assertEqual(container.setup("hello"), "gcr.io/proj/hello:latest")
        self.docker_client.images.pull.assert_called_once_with(
            repository="gcr.io/proj/hello", tag="latest"
        )
        self.docker_client.images.build.assert_not_called()

    def test_missing_image_built_and_pushed(self):
        self.docker_client.images.pull.side_effect = docker.errors.NotFound("no such image")
        self.docker_client.images.push.return_value = iter([{"status": "Pushed", "id": "abc"}])
        container = GCRContainer(self.system_config, self.docker_client, self.tmp.name, "proj")
        container.disable_rich_output = True

        self.assertEqual(container.setup("hello"), "gcr.io/proj/hello:latest")
        self.docker_client.images.build.assert_called_once_with(
            tag="gcr.io/proj/hello:latest", path=os.path.join(self.tmp.name, "hello")
        )
        self.docker_client.images.push.assert_called_once_with(
            repository="gcr.io/proj/hello", tag="latest", stream=True, decode=True
        )

    def test_push_error(self):
        self.docker_client.images.pull.side_effect = docker.errors.NotFound("no such image")
        self.docker_client.images.push.return_value = iter([{"error": "denied"}])
        container = GCRContainer(self.system_config, self.docker_client, self.tmp.name, "proj")
        container.disable_rich_output = True

        with self.assertRaises(RuntimeError):
            container.setup("hello")

    def test_ecr_repository_created(self):
        class RepositoryNotFoundException(Exception):
            pass

        session = Mock()
        ecr = session.client.return_value
        ecr.exceptions.RepositoryNotFoundException = RepositoryNotFoundException
        ecr.describe_repositories.side_effect = RepositoryNotFoundException()
        ecr.create_repository.return_value = {
            "repository": {"repositoryUri": "123.dkr.ecr.us-west-1.amazonaws.com/stellar"}
        }

        container = ECRContainer(
            self.system_config, session, "us-west-1", self.docker_client, self.tmp.name
        )
        self.assertEqual(
            container.registry_name("hello"),
            (
                "123.dkr.ecr.us-west-1.amazonaws.com",
                "stellar",
                "hello",
                "123.dkr.ecr.us-west-1.amazonaws.com/stellar:hello",
            ),
        )
        ecr.create_repository.assert_called_once_with(repositoryName="stellar")
        container.registry_name("hello")
        ecr.create_repository.assert_called_once()


if __name__ == "__main__":
    unittest.main()

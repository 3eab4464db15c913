import os
import shutil
from string import Template

from stellar.utils import LoggingBase

TEMPLATE_SUFFIX = ".tmpl"


class CodeGenerator(LoggingBase):
    """
    Generates the source tree of a function for one provider.

    The function specification is a directory `<functions_dir>/<function>`.
    It is copied to `<serverless_dir>/<build_dir>/<provider>/<function>` and
    every `*.tmpl` file is rendered with `$provider` and `$function`
    substituted, dropping the suffix.
    """

    def __init__(self, functions_dir: str, serverless_dir: str, build_dir: str = "build"):
        super().__init__()
        self._functions_dir = functions_dir
        self._serverless_dir = serverless_dir
        self._build_dir = build_dir

    @staticmethod
    def typename() -> str:
        return "CodeGenerator"

    def output_directory(self, provider: str, function: str) -> str:
        return os.path.join(self._serverless_dir, self._build_dir, provider, function)

    def generate_code(self, function: str, provider: str) -> str:
        source = os.path.join(self._functions_dir, function)
        if not os.path.isdir(source):
            raise RuntimeError(f"Function {function} not found in {self._functions_dir}")

        output = self.output_directory(provider, function)
        if os.path.exists(output):
            shutil.rmtree(output)
        shutil.copytree(source, output)

        rendered = 0
        for root, _, files in os.walk(output):
            for name in files:
                if not name.endswith(TEMPLATE_SUFFIX):
                    continue
                template_path = os.path.join(root, name)
                with open(template_path, "r") as f:
                    content = Template(f.read()).safe_substitute(
                        provider=provider, function=function
                    )
                with open(template_path[: -len(TEMPLATE_SUFFIX)], "w") as f:
                    f.write(content)
                os.remove(template_path)
                rendered += 1

        self.logging.info(
            f"Generated code of {function} for {provider} in {output} ({rendered} templates)."
        )
        return output

import os
import zipfile

from stellar.building import Builder
from stellar.experiment import deployment_name
from stellar.utils import LoggingBase

FILLER_FILE = "filler.file"
CHUNK_SIZE = 1024 * 1024


class ZipArtifactGenerator(LoggingBase):
    """
    Packs built function code into the zip archive deployed by the
    Serverless framework.

    Random, incompressible filler bytes inflate the archive up to the image
    size requested by the sub-experiment, to measure the impact of the
    deployment size on cold starts.
    """

    def __init__(self, serverless_dir: str, build_dir: str = "build"):
        super().__init__()
        self._serverless_dir = serverless_dir
        self._build_dir = build_dir

    @staticmethod
    def typename() -> str:
        return "ZipArtifactGenerator"

    @staticmethod
    def _code_files(directory: str):
        for root, _, files in os.walk(directory):
            for name in files:
                path = os.path.join(root, name)
                yield path, os.path.relpath(path, directory)

    def generate_zip_artifacts(
        self,
        experiment_id: int,
        provider: str,
        runtime: str,
        function: str,
        image_size_mb: float,
    ) -> str:
        """
        Pack the built function code into `<deployment name>.zip` in the
        archive directory of the provider.

        :param experiment_id: ID of the sub-experiment deploying the archive.
        :param provider: provider the function was built for.
        :param runtime: provider runtime of the function.
        :param function: name of the function.
        :param image_size_mb: target archive size; smaller targets add no filler.
        :return: path of the zip archive.
        """
        directory = os.path.join(
            self._serverless_dir, Builder.code_path(self._build_dir, provider, function)
        )
        if not os.path.isdir(directory):
            raise RuntimeError(f"No built code of {function} in {directory}")
        archive_dir = os.path.join(
            self._serverless_dir, Builder.artifact_path(self._build_dir, provider)
        )
        os.makedirs(archive_dir, exist_ok=True)
        archive = os.path.join(archive_dir, f"{deployment_name(function, experiment_id)}.zip")

        files = list(self._code_files(directory))
        code_size = sum(os.path.getsize(path) for path, _ in files)
        filler_size = max(0, int(image_size_mb * 1024 * 1024) - code_size)

        with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path, name in files:
                zf.write(path, name)
            if filler_size > 0:
                info = zipfile.ZipInfo(FILLER_FILE)
                info.compress_type = zipfile.ZIP_STORED
                with zf.open(info, "w", force_zip64=True) as out:
                    remaining = filler_size
                    while remaining > 0:
                        chunk = min(CHUNK_SIZE, remaining)
                        out.write(os.urandom(chunk))
                        remaining -= chunk

        mbytes = os.path.getsize(archive) / 1024.0 / 1024.0
        self.logging.info(
            "Created {} archive for {} ({}), size {:2f} MB".format(
                archive, function, runtime, mbytes
            )
        )
        return archive

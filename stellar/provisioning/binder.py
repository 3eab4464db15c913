from typing import Optional

from stellar.experiment import ExperimentConfig
from stellar.utils import LoggingBase


class EndpointBinder(LoggingBase):
    @staticmethod
    def typename() -> str:
        return "EndpointBinder"

    def bind_all(self, config: ExperimentConfig, endpoint_id: Optional[str]):
        """
        Assign the endpoint shared by all deployed functions to every
        sub-experiment, replacing the endpoints assigned so far.
        Without a shared endpoint the sub-experiments keep their own.
        """
        if endpoint_id is None:
            return
        for sub in config.sub_experiments:
            sub.assign_endpoint_ids(endpoint_id)
        self.logging.info(
            f"Assigned endpoint {endpoint_id} to {len(config.sub_experiments)} sub-experiments."
        )

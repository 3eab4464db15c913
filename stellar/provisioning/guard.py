from enum import Enum
from typing import Callable

import click

from stellar.experiment import SubExperiment
from stellar.types import Visualization
from stellar.utils import LoggingBase

CONTINUE_QUESTION = "Do you wish to continue?"


class GuardDecision(Enum):
    PROCEED = "proceed"
    ABORT = "abort"


def confirm_prompt(question: str) -> bool:
    """Ask the user on the terminal, repeating until a yes/no answer is given."""
    return click.confirm(question, default=None)


def always_confirm(question: str) -> bool:
    return True


class ThresholdGuard(LoggingBase):
    """
    Warns about sub-experiments likely to distort measurements or flood the
    disk and asks the user whether to continue.

    Bursts larger than the NIC contention threshold were experimentally found
    to saturate the network interface of the benchmarking client. Every burst
    visualized as a histogram produces one file of ~18KiB, so the storage
    threshold of 500 bursts amounts to ~10MB per sub-experiment.
    """

    NIC_CONTENTION_WARN_THRESHOLD = 800
    STORAGE_SPACE_WARN_THRESHOLD = 500

    def __init__(
        self,
        prompt: Callable[[str], bool] = confirm_prompt,
        nic_contention_threshold: int = NIC_CONTENTION_WARN_THRESHOLD,
        storage_space_threshold: int = STORAGE_SPACE_WARN_THRESHOLD,
    ):
        super().__init__()
        self._prompt = prompt
        self._nic_contention_threshold = nic_contention_threshold
        self._storage_space_threshold = storage_space_threshold

    @staticmethod
    def typename() -> str:
        return "ThresholdGuard"

    def _confirm(self) -> GuardDecision:
        return GuardDecision.PROCEED if self._prompt(CONTINUE_QUESTION) else GuardDecision.ABORT

    def check_burst_size(self, size: int, index: int) -> GuardDecision:
        if size <= self._nic_contention_threshold:
            return GuardDecision.PROCEED
        self.logging.warning(
            f"Experiment {index} has a burst of size {size}, "
            "NIC (Network Interface Controller) contention may occur."
        )
        return self._confirm()

    def check_file_volume(
        self, bursts: int, visualization: Visualization, index: int
    ) -> GuardDecision:
        if bursts < self._storage_space_threshold or visualization not in (
            Visualization.ALL,
            Visualization.HISTOGRAM,
        ):
            return GuardDecision.PROCEED
        self.logging.warning(
            f"Experiment {index} is generating histograms for each burst, "
            f"this will create a large number ({bursts}) of new files (>10MB)."
        )
        return self._confirm()

    def check(self, sub: SubExperiment, index: int) -> GuardDecision:
        """Evaluate every burst size, then the file volume of a sub-experiment."""
        for burst_size in sub.burst_sizes:
            if self.check_burst_size(burst_size, index) == GuardDecision.ABORT:
                return GuardDecision.ABORT
        return self.check_file_volume(sub.bursts, sub.visualization, index)

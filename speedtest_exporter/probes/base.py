"""Base class for all speedtest probes."""

from abc import ABC, abstractmethod
from typing import final

from packaging.version import Version

from ..exceptions import ProbeError, ProbeExecutionFailed


class BaseProbe(ABC):
    """Base class for probes that run one speedtest and return its report."""

    @property
    def _version(self) -> Version:
        """Get the probe version.

        Returns:
            The version of the probe implementation
        """
        raise NotImplementedError("This probe does not report a version")

    @abstractmethod
    def _execute(self) -> bytes:
        """Run one speedtest.

        Returns:
            The raw JSON report written by the probe.

        Raises:
            ProbeExecutionFailed: If the probe could not run to successful completion
        """
        pass  # pragma: no cover

    @final
    def execute(self) -> bytes:
        """Run one speedtest and return its raw report.

        Operating system errors raised while running the probe are mapped to
        ProbeExecutionFailed, as is a run that completes without any output.

        Returns:
            The raw JSON report written by the probe.

        Raises:
            ProbeExecutionFailed: If the probe could not run or produced no output
            ProbeParseFailed: If a probe decodes its own output and that fails
        """
        try:
            output = self._execute()
        except ProbeError:
            raise
        except OSError as e:
            raise ProbeExecutionFailed(f"Probe could not be run: {e}") from e

        if not output or not output.strip():
            raise ProbeExecutionFailed("Probe produced no output")
        return output

    @final
    @property
    def version(self) -> Version:
        """Get the version of the probe.

        Returns:
            Probe version as a Version object.
        """
        return self._version

    @final
    @property
    def description(self) -> list[str]:
        """Get the description of the probe.

        Returns:
            Probe description as a list of strings.
        """
        return [
            stripped_line
            for line in (self.__doc__ or "").splitlines()
            if (stripped_line := line.strip())
        ]

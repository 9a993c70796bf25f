from abc import ABC, abstractmethod
from typing import List


class Sandbox(ABC):
    """Abstract base class for sandboxes whose writes land in an audited overlay."""

    @abstractmethod
    def command_line(self, command: List[str]) -> List[str]:
        """
        Build the full argument list that runs a command inside the sandbox.

        Args:
            command: List of command arguments to execute

        Returns:
            Argument list for subprocess
        """
        pass

    @abstractmethod
    def run_command(self, command: List[str]) -> int:
        """
        Execute a command in the sandbox environment.

        Args:
            command: List of command arguments to execute

        Returns:
            Exit status of the command
        """
        pass

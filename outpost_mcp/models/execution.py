"""Remote script execution data models."""

from dataclasses import dataclass, field

from outpost_mcp.models.error_code import ErrorCode


@dataclass
class ScriptExecutionResult:
    """Accumulated output and outcome of one remote script run."""

    stdout: list[str] = field(default_factory=list)
    stderr: list[str] = field(default_factory=list)
    exit_status: int | None = None
    killed: bool = False
    code: ErrorCode = ErrorCode.NO_ERROR

    @property
    def output(self) -> str:
        """Stdout lines joined with newlines."""
        return "\n".join(self.stdout)

    @property
    def error(self) -> str:
        """Stderr lines joined with newlines."""
        return "\n".join(self.stderr)

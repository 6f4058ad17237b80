"""Invocation of the external compute program as a subprocess."""
import asyncio
import logging
import os
import shlex
from typing import Dict, List, Optional, Protocol
from compute_relay.worker.models import ExecutionResult, ExecutionSpec

logger = logging.getLogger(__name__)


class ComputeExecutor(Protocol):
    """Runs the compute program for one job and reports its exit status."""

    async def run(self, spec: ExecutionSpec) -> ExecutionResult:
        ...


class SubprocessExecutor:
    """
    Runs the compute program with its fixed positional argument contract:

        <command...> <input name> <domain value> <heartbeat url>
                     <heartbeat interval ms> <metadata tag> [flags...]

    The program finds its input and output roots through the
    COMPUTE_INPUT_DIR and COMPUTE_OUTPUT_DIR environment variables.
    """

    def __init__(
        self,
        command: str,
        input_dir: str,
        output_dir: str,
        heartbeat_token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize subprocess executor.

        Args:
            command: Program and leading arguments, shell-quoted
            input_dir: Directory holding staged input artifacts
            output_dir: Root under which the program writes results
            heartbeat_token: Token the program sends with its heartbeats
            timeout_seconds: Kill the program after this long (None for no limit)
        """
        self.command = shlex.split(command)
        if not self.command:
            raise ValueError("Compute command is empty")
        self.input_dir = input_dir
        self.output_dir = output_dir
        self.heartbeat_token = heartbeat_token
        self.timeout_seconds = timeout_seconds

    def build_args(self, spec: ExecutionSpec) -> List[str]:
        """
        Build the full argv for a run.

        Args:
            spec: Execution arguments

        Returns:
            List[str]: Program argv
        """
        return [
            *self.command,
            spec.input_name,
            _format_domain_value(spec.domain_value),
            spec.heartbeat_url,
            str(spec.heartbeat_interval_ms),
            spec.metadata_tag,
            *spec.flags,
        ]

    def build_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env["COMPUTE_INPUT_DIR"] = self.input_dir
        env["COMPUTE_OUTPUT_DIR"] = self.output_dir
        if self.heartbeat_token:
            env["HEARTBEAT_TOKEN"] = self.heartbeat_token
        return env

    async def run(self, spec: ExecutionSpec) -> ExecutionResult:
        """
        Run the compute program to completion.

        Cancellation kills the child process before propagating.

        Args:
            spec: Execution arguments

        Returns:
            ExecutionResult: Exit code and captured output
        """
        args = self.build_args(spec)
        logger.info(f"Starting compute program for {spec.metadata_tag}: {shlex.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_env(),
            )
        except FileNotFoundError:
            return ExecutionResult(
                exit_code=127,
                stderr=f"Compute program not found: {self.command[0]}",
            )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            await _kill(process)
            logger.warning(
                f"Compute program for {spec.metadata_tag} timed out after "
                f"{self.timeout_seconds} seconds"
            )
            return ExecutionResult(
                exit_code=-1,
                stderr=f"Compute process timed out after {self.timeout_seconds} seconds",
                timed_out=True,
            )
        except asyncio.CancelledError:
            await _kill(process)
            raise

        result = ExecutionResult(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        logger.info(f"Compute program for {spec.metadata_tag} exited with code {result.exit_code}")
        logger.debug(f"STDOUT: {result.stdout}")
        logger.debug(f"STDERR: {result.stderr}")
        return result


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


def _format_domain_value(value: float) -> str:
    """Render 4.0 as "4.0" and 0.25 as "0.25"."""
    return repr(float(value))

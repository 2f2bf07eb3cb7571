"""Synchronous wrapper around the external tools cksctl drives.

Every call site picks a failure policy: FATAL raises ``CommandError`` on a
non-zero exit, SOFT logs a warning and hands the result back.
"""
import logging
import os
import shlex
import subprocess
from typing import Dict, List, Optional, Sequence

from cksctl.errors import CommandError
from .models import CommandResult, FailurePolicy

logger = logging.getLogger(__name__)

# Exit codes used when the command never produced one
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


class CommandRunner:
    """Runs external commands and applies a failure policy to their exit status."""

    def __init__(self, dry_run: bool = False, default_timeout: Optional[float] = None):
        """Initialize the runner.

        Args:
            dry_run: If True, mutating commands are only logged, not executed
            default_timeout: Timeout applied when a call does not pass one
        """
        self.dry_run = dry_run
        self.default_timeout = default_timeout

    def run(
        self,
        args: Sequence[str],
        policy: FailurePolicy = FailurePolicy.FATAL,
        timeout: Optional[float] = None,
        input: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        quiet: bool = False,
        read_only: bool = False,
    ) -> CommandResult:
        """Run a command and capture its exit code and combined output.

        Args:
            args: Program and arguments
            policy: FATAL raises on failure, SOFT logs and returns
            timeout: Seconds before the command is killed
            input: Text fed to stdin
            env: Extra environment variables
            quiet: Log SOFT failures at DEBUG instead of WARN
            read_only: The command only inspects state and runs even in dry-run mode

        Returns:
            CommandResult for the call

        Raises:
            CommandError: If the command fails and policy is FATAL
        """
        args = [str(a) for a in args]
        cmd = ' '.join(shlex.quote(a) for a in args)

        if self.dry_run and not read_only:
            logger.info(f"[dry-run] Would run: {cmd}")
            return CommandResult(args, 0, '')

        logger.debug(f"Running: {cmd}")
        result = self._execute(args, timeout or self.default_timeout, input, env)

        if not result.ok:
            if policy == FailurePolicy.FATAL:
                raise CommandError(args, result.returncode, result.output)
            log = logger.debug if quiet else logger.warning
            log(f"Command exited with {result.returncode} (continuing): {cmd}")
            if result.output.strip():
                logger.debug(result.output.strip())
        return result

    def _execute(self, args: List[str], timeout: Optional[float], input: Optional[str],
                 env: Optional[Dict[str, str]]) -> CommandResult:
        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)
        try:
            proc = subprocess.run(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                input=input,
                text=True,
                timeout=timeout,
                env=full_env,
            )
        except FileNotFoundError:
            return CommandResult(args, EXIT_NOT_FOUND, f"{args[0]}: command not found")
        except subprocess.TimeoutExpired as e:
            output = e.output if isinstance(e.output, str) else (e.output or b'').decode(errors='replace')
            return CommandResult(args, EXIT_TIMEOUT, output + f"\ntimed out after {timeout}s")
        return CommandResult(args, proc.returncode, proc.stdout or '')

    def succeeds(self, args: Sequence[str], timeout: Optional[float] = None) -> bool:
        """Quiet boolean check; never raises and runs in dry-run mode too."""
        return self.run(args, policy=FailurePolicy.SOFT, timeout=timeout, quiet=True, read_only=True).ok

    def output(self, args: Sequence[str], timeout: Optional[float] = None) -> str:
        """Output of a read-only command, or '' when it fails."""
        result = self.run(args, policy=FailurePolicy.SOFT, timeout=timeout, quiet=True, read_only=True)
        return result.output if result.ok else ''

    def run_as(self, user: str, script: str, policy: FailurePolicy = FailurePolicy.FATAL,
               timeout: Optional[float] = None) -> CommandResult:
        """Run a bash script as another (non-root) user with a login environment."""
        return self.run(['su', '--login', '--shell', '/bin/bash', '--command', script, user],
                        policy=policy, timeout=timeout)

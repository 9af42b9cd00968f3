# utils.py

import hmac
import hashlib
import subprocess
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

MASK = "***"


class CommandError(RuntimeError):
    pass


@dataclass(frozen=True)
class CommandStep:
    """
    One external command of a deploy run.

    A string command runs through the shell, a list runs directly.
    stdin_path / stdout_path redirect the process streams to files.
    """
    name: str
    command: Union[str, Sequence[str]]
    cwd: str = "."
    expected_returncode: int = 0
    stdin_path: Optional[str] = None
    stdout_path: Optional[str] = None
    secrets: Sequence[str] = field(default_factory=tuple)

    @property
    def shell(self) -> bool:
        return isinstance(self.command, str)

    def display(self) -> str:
        text = self.command if self.shell else " ".join(self.command)
        return mask_secrets(text, self.secrets)


def mask_secrets(text: str, secrets: Iterable[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, MASK)
    return text


def verify_signature(request_body: bytes, signature: Optional[str], secret: str) -> bool:
    if not secret:
        logger.warning("No webhook secret configured. Rejecting signature.")
        return False

    if signature is None:
        logger.warning("No signature provided.")
        return False

    try:
        sha_name, signature = signature.split('=', 1)
    except ValueError:
        logger.warning("Invalid signature format.")
        return False

    if sha_name != 'sha256':
        logger.warning(f"Unsupported signature type: {sha_name}")
        return False

    mac = hmac.new(secret.encode(), msg=request_body, digestmod=hashlib.sha256)
    is_valid = hmac.compare_digest(mac.hexdigest(), signature)
    if is_valid:
        logger.debug("Webhook signature verified successfully.")
    else:
        logger.warning("Webhook signature verification failed.")
    return is_valid


def run_command(step: CommandStep):
    command = step.display()
    logger.debug(f"Executing command: {command} in {step.cwd}")

    files = []
    try:
        stdin = open(step.stdin_path, 'rb') if step.stdin_path else None
        if stdin is not None:
            files.append(stdin)
        stdout = open(step.stdout_path, 'wb') if step.stdout_path else subprocess.PIPE
        if step.stdout_path:
            files.append(stdout)

        result = subprocess.run(
            step.command,
            cwd=step.cwd,
            shell=step.shell,
            stdin=stdin,
            stdout=stdout,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        error_message = f"Command failed: {command}\nError: {mask_secrets(str(e), step.secrets)}"
        logger.error(error_message)
        raise CommandError(error_message) from e
    finally:
        for f in files:
            f.close()

    stdout_decoded = (result.stdout or b"").decode(errors="replace").strip()
    stderr_decoded = mask_secrets((result.stderr or b"").decode(errors="replace").strip(), step.secrets)

    if stdout_decoded:
        logger.debug(f"Command stdout: {mask_secrets(stdout_decoded, step.secrets)}")
    if stderr_decoded:
        logger.debug(f"Command stderr: {stderr_decoded}")

    if result.returncode != step.expected_returncode:
        error_message = (
            f"Command failed with exit code {result.returncode}: {command}\nError: {stderr_decoded}"
        )
        logger.error(error_message)
        raise CommandError(error_message)

    logger.debug(f"Command executed successfully: {command}")
    return stdout_decoded, stderr_decoded


def run_steps(steps: List[CommandStep], runner: Callable[[CommandStep], object] = run_command):
    """
    Runs the steps in order. The first failure propagates and the remaining steps are never started.
    """
    for step in steps:
        logger.info(f"Running step '{step.name}'...")
        runner(step)

"""Claude CLI adapter for short JSON summaries."""

import json
import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class ClaudeCLIService:
    """
    Runs `claude -p` once per summary.

    Implements LLMService protocol. The prompt goes in on stdin and the
    CLI's JSON envelope is unwrapped to the model's reply; callers parse
    the reply itself.
    """

    def __init__(
        self,
        cwd: Path | str | None = None,
        timeout: int = 60,
    ):
        self.cwd = Path(cwd) if cwd else None
        self.timeout = timeout

    def generate(self, prompt: str) -> str:
        try:
            proc = subprocess.run(
                ["claude", "-p", "--output-format", "json"],
                input=prompt,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise RuntimeError("Claude CLI not found. Install with: npm install -g @anthropic-ai/claude-code")
        except subprocess.TimeoutExpired:
            raise RuntimeError(f"Claude CLI timed out after {self.timeout}s")

        if proc.returncode != 0:
            logger.error(f"Claude CLI failed: {proc.stderr}")
            raise RuntimeError(f"Claude CLI failed: {proc.stderr.strip() or proc.returncode}")
        return unwrap_result(proc.stdout)


def unwrap_result(stdout: str) -> str:
    """Reply text from the CLI's JSON envelope, or stdout as-is for older CLIs."""
    try:
        envelope = json.loads(stdout)
    except ValueError:
        return stdout.strip()
    if not isinstance(envelope, dict) or "result" not in envelope:
        return stdout.strip()
    if envelope.get("is_error"):
        raise RuntimeError(f"Claude CLI reported an error: {envelope.get('result')}")
    return str(envelope["result"]).strip()

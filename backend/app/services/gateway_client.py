import json
import logging
from typing import Any, Dict, List, Optional

from .command_runner import CommandRunner

logger = logging.getLogger(__name__)

# Extra wall-clock time granted so the CLI's own --timeout fires first
KILL_GRACE_MS = 2000


class GatewayError(Exception):
    """Base class for failures of a single gateway call."""
    pass


class GatewayCallError(GatewayError):
    """The gateway CLI exited with a non-zero status or was killed."""
    pass


class EmptyOutputError(GatewayError):
    """The gateway CLI succeeded but printed nothing."""
    pass


class InvalidJsonError(GatewayError):
    """The gateway CLI output could not be parsed as JSON, even after recovery."""
    pass


def _reject_constant(name: str) -> Any:
    # NaN, Infinity and -Infinity are not valid JSON
    raise ValueError(f"non-standard JSON constant: {name}")


def build_gateway_args(
    cli_path: str,
    method: str,
    timeout_ms: int,
    payload: Optional[Dict[str, Any]] = None
) -> List[str]:
    """Builds the argv for `<cli> gateway call <method> --json --timeout <ms> [--params <json>]`."""
    args = [cli_path, "gateway", "call", method, "--json", "--timeout", str(timeout_ms)]
    if payload is not None:
        args.extend(["--params", json.dumps(payload, separators=(",", ":"))])
    return args


def parse_json_output(stdout: Optional[str]) -> Any:
    """
    Parses gateway output as JSON, tolerating log noise around the payload.

    Tries a strict parse first; on failure, parses the text between the first
    "{" and the last "}" (inclusive).

    Raises:
        EmptyOutputError: output is empty or whitespace-only.
        InvalidJsonError: neither the full text nor the recovered object parses.
    """
    text = (stdout or "").strip()
    if not text:
        raise EmptyOutputError("empty gateway output")
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        pass

    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        try:
            return json.loads(text[start:end + 1], parse_constant=_reject_constant)
        except ValueError as e:
            raise InvalidJsonError("invalid JSON from gateway call") from e
    raise InvalidJsonError("invalid JSON from gateway call")


async def call_gateway_method(
    run_command: CommandRunner,
    cli_path: str,
    timeout_ms: int,
    method: str,
    payload: Optional[Dict[str, Any]] = None
) -> Any:
    """
    Invokes a gateway RPC method through the CLI and returns the decoded JSON.

    Args:
        run_command: Process runner (see command_runner.run_command_with_timeout)
        cli_path: Gateway CLI executable path or name
        timeout_ms: Timeout handed to the CLI; the process itself gets KILL_GRACE_MS more
        method: Gateway method name, e.g. "health" or "usage.cost"
        payload: Optional method parameters, serialized to --params

    Returns:
        The decoded JSON value, uninterpreted.
    """
    args = build_gateway_args(cli_path, method, timeout_ms, payload)
    logger.debug(f"Calling gateway method '{method}' via {cli_path} (timeout {timeout_ms}ms)")

    result = await run_command(args, timeout_ms + KILL_GRACE_MS)

    if result.code != 0:
        message = (result.stderr or result.stdout or "gateway call failed").strip()
        raise GatewayCallError(message)

    return parse_json_output(result.stdout)

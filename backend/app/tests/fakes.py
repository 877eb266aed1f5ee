import asyncio
from typing import Any, Dict

from app.services.command_runner import CommandResult

API_TOKEN = "secret123"

HEALTH_OK = '{"ok":true,"durationMs":12,"ts":1000}'
USAGE_OK = (
    '{"totals":{"totalTokens":500,"totalCost":1.2},'
    '"daily":[{"date":"2024-01-01","totalTokens":500,"totalCost":1.2}],'
    '"startDate":"2024-01-01","endDate":"2024-01-07"}'
)


def ok_result(stdout: str) -> CommandResult:
    return CommandResult(code=0, stdout=stdout, stderr="")


def failed_result(stderr: str = "", stdout: str = "", code: int = 1) -> CommandResult:
    return CommandResult(code=code, stdout=stdout, stderr=stderr)


class FakeGatewayRunner:
    """Stands in for run_command_with_timeout, answering per gateway method (argv[3])."""

    def __init__(self, responses: Dict[str, Any], delay: float = 0.0):
        self.responses = responses
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, argv, timeout_ms):
        self.calls.append((list(argv), timeout_ms))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = self.responses[argv[3]]
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1

    def call_for(self, method: str):
        return next((argv, timeout_ms) for argv, timeout_ms in self.calls if argv[3] == method)

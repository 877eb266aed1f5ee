from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field

# Ints stay ints in the JSON output (500, not 500.0)
Number = Union[int, float]


class UsageRecord(BaseModel):
    date: str
    tokens: Number = 0
    totalCostUsd: Number = 0


class HealthSummary(BaseModel):
    status: Literal["up", "down"]
    latencyMs: Optional[Number] = None
    checkedAt: Optional[Number] = None


class UsageSummary(BaseModel):
    days: int
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    totalTokens: Optional[Number] = None
    totalCostUsd: Optional[Number] = None
    daily: List[UsageRecord] = Field(default_factory=list)
    updatedAt: Optional[Number] = None


class SummaryResponse(BaseModel):
    ok: bool = True
    updatedAt: int  # epoch milliseconds
    health: HealthSummary
    usage: UsageSummary

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "ok": True,
                    "updatedAt": 1704067200000,
                    "health": {"status": "up", "latencyMs": 12, "checkedAt": 1000},
                    "usage": {
                        "days": 7,
                        "startDate": "2024-01-01",
                        "endDate": "2024-01-07",
                        "totalTokens": 500,
                        "totalCostUsd": 1.2,
                        "daily": [{"date": "2024-01-01", "tokens": 500, "totalCostUsd": 1.2}],
                        "updatedAt": None,
                    },
                }
            ]
        }
    }


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str

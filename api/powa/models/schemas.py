from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt
from typing import Any, List, Literal, Optional, Union

MAX_REVENUE_AMOUNT = 1e12
MAX_EPOCHS = 20


class SimulationConfig(BaseModel):
    # Unknown keys are scenario parameters forge reads; keep them
    model_config = ConfigDict(extra="allow")

    revenueAmount: Union[StrictInt, StrictFloat] = Field(gt=0, le=MAX_REVENUE_AMOUNT)
    epochs: List[Any] = Field(max_length=MAX_EPOCHS)
    userHoldings: Optional[Any] = None


class StartEvent(BaseModel):
    type: Literal["start"] = "start"


class OutputEvent(BaseModel):
    type: Literal["stdout", "stderr"]
    data: str


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    code: Optional[int]


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str


StreamEvent = Union[StartEvent, OutputEvent, CompleteEvent, ErrorEvent]


class HealthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["ok"] = "ok"
    message: str = "POWA dev server is running"
    active_tests: int = Field(alias="activeTests")


class ErrorResponse(BaseModel):
    error: str

from pydantic import BaseModel, Field, ConfigDict
from typing import Literal, Optional, Dict
from datetime import datetime

OracleCategory = Literal["quantum", "network", "metaphysical", "systems", "random"]


class OracleRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    question: str = Field(..., min_length=1, max_length=500, description="Question for the oracle")
    category: OracleCategory = Field("random", description="Topic, or random")


class OracleAnimation(BaseModel):
    speed: int
    style: str
    glow_color: str


class OracleAnswer(BaseModel):
    question: Optional[str] = None
    answer: str
    category: str
    animation: OracleAnimation
    sound: str
    timestamp: datetime


class OracleStatsResponse(BaseModel):
    total_requests: int
    categories: Dict[str, int]

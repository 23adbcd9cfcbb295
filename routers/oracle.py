from fastapi import APIRouter, Depends

from functions.oracle import generate_oracle_response
from schema.oracle import OracleAnswer, OracleRequest, OracleStatsResponse
from storage.base import OracleLogStore
from storage.dependencies import get_oracle_store
from utils.time_utils import utcnow

import logging
logger = logging.getLogger("darlingx_api")

oracle_router = APIRouter(prefix="/api/oracle", tags=["Oracle"])


@oracle_router.post("/generate", response_model=OracleAnswer)
def generate(data: OracleRequest, store: OracleLogStore = Depends(get_oracle_store)):
    """Answer a question from the requested category and keep it in the oracle log"""
    response = generate_oracle_response(data.category)
    store.record(data.question, response["answer"], response["category"])
    logger.info(f"Oracle answered in category {response['category']}")
    return OracleAnswer(question=data.question, timestamp=utcnow(), **response)


@oracle_router.get("/random", response_model=OracleAnswer)
def random_answer():
    return OracleAnswer(timestamp=utcnow(), **generate_oracle_response("random"))


@oracle_router.get("/stats", response_model=OracleStatsResponse)
def oracle_stats(store: OracleLogStore = Depends(get_oracle_store)):
    stats = store.stats()
    return OracleStatsResponse(total_requests=stats.total_requests, categories=stats.categories)

"""Chain height API routes."""

from fastapi import APIRouter, Depends

from legacy_tokens.api.schemas.tokens import ChainHeightResponse
from legacy_tokens.db.redis import get_redis
from legacy_tokens.host.chain import RedisChainHeight

router = APIRouter()


@router.get("/height", response_model=ChainHeightResponse)
async def get_chain_height(redis=Depends(get_redis)):
    """Current block height as seen by the engine."""
    return ChainHeightResponse(height=await RedisChainHeight(redis).current())

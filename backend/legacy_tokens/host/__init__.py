"""Host collaborators: chain height and ownership ledger."""

from legacy_tokens.host.chain import ChainHeight, RedisChainHeight
from legacy_tokens.host.ledger import OwnershipLedger, RedisOwnershipLedger

__all__ = [
    "ChainHeight",
    "OwnershipLedger",
    "RedisChainHeight",
    "RedisOwnershipLedger",
]

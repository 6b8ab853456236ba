"""
Interfaces of the on-chain collaborators the pipeline consumes.

Lookups return ``None`` when the chain has no answer (unknown block, module
without a safe, no oracle round at that height). Transport failures raise.
"""

from decimal import Decimal
from typing import Optional, Protocol

from .models import Block


class ChainClient(Protocol):
    def get_block_by_number(self, block_number: int) -> Optional[Block]:
        ...

    def resolve_safe_from_module(self, module_address: str, block_number: int) -> Optional[str]:
        ...

    def get_safe_owners(self, safe_address: str, block_number: int) -> Optional[list[str]]:
        ...

    def has_eligibility_nft(self, owners: list[str]) -> list[bool]:
        """One flag per owner, in order."""
        ...

    def get_token_balance(self, token_address: str, safe_address: str, block_number: int) -> int:
        ...


class PriceOracle(Protocol):
    def get_oracle_price(self, token_address: str, block_number: int) -> Optional[Decimal]:
        """USD price of ``token_address`` at ``block_number``."""
        ...

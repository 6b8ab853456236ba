from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    GNO = "GNO"


@dataclass(frozen=True)
class Token:
    address: str
    symbol: str
    name: str
    decimals: int
    currency: Currency
    # Priced at exactly 1 USD, no oracle lookup
    usd_pegged: bool = False

    def to_dict(self) -> dict:
        return {
            "address": self.address, "symbol": self.symbol, "name": self.name,
            "decimals": self.decimals, "currency": self.currency.value,
        }


MONERIUM_EURE_TOKEN = Token(
    address="0xcb444e90d8198415266c6a2724b7900fb12fc56e",
    symbol="EURe", name="Monerium EUR emoney", decimals=18, currency=Currency.EUR,
)
MONERIUM_GBPE_TOKEN = Token(
    address="0x5cb9073902f2035222b9749f8fb0c9bfe5527108",
    symbol="GBPe", name="Monerium GBP emoney", decimals=18, currency=Currency.GBP,
)
USDC_BRIDGE_TOKEN = Token(
    address="0xddafbb505ad214d7b80b1f830fccc89b60fb7a83",
    symbol="USDC.e", name="USD Coin (bridged from Ethereum)", decimals=6,
    currency=Currency.USD, usd_pegged=True,
)
CIRCLE_USDC_TOKEN = Token(
    address="0x2a22f9c3b484c3629090feed35f17ff8f88f76f0",
    symbol="USDC", name="USD Coin", decimals=6, currency=Currency.USD, usd_pegged=True,
)
GNO_TOKEN = Token(
    address="0x9c58bacc331c9aa871afd802db6379a98e80cedb",
    symbol="GNO", name="Gnosis Token", decimals=18, currency=Currency.GNO,
)

GNOSIS_PAY_TOKENS: tuple[Token, ...] = (
    MONERIUM_EURE_TOKEN,
    MONERIUM_GBPE_TOKEN,
    USDC_BRIDGE_TOKEN,
    CIRCLE_USDC_TOKEN,
)

_TOKENS_BY_ADDRESS: dict[str, Token] = {token.address: token for token in GNOSIS_PAY_TOKENS}


def normalize_address(address: str) -> str:
    return address.strip().lower()


def get_gnosis_pay_token_by_address(address: str) -> Optional[Token]:
    """Return the spend-capable token registered at ``address``, if any."""
    return _TOKENS_BY_ADDRESS.get(normalize_address(address))


def get_priced_token_by_address(address: str) -> Optional[Token]:
    """Like :func:`get_gnosis_pay_token_by_address` but also knows GNO."""
    if normalize_address(address) == GNO_TOKEN.address:
        return GNO_TOKEN
    return get_gnosis_pay_token_by_address(address)

"""
CoinStructure contract migration
Token -> Crowdsale -> token ownership -> TokenDesk proxy -> crowdsale wiring
"""

import os
from typing import Optional

from .errors import InvalidProfile
from .networks import normalize_address
from .pipeline import Address, Construct, Invoke, Pipeline, Ref

TOKEN = "CoinStructureToken"
SALE = "CoinStructureCrowdsale"
PROXY = "TokenDeskProxy"

TOKEN_DESK_BONUS = 6
MINTER_ADDRESS = "0x0594C787d906f68d57C7920F67386696a56C2Dbd"


def build_pipeline(minter: str = MINTER_ADDRESS, bonus: int = TOKEN_DESK_BONUS) -> Pipeline:
    """
    Build the six-step CoinStructure deployment

    The crowdsale must own the token before anything else is wired, so the
    ownership transfer runs right after the crowdsale is deployed.
    """
    minter = normalize_address(minter, field="minter address")
    if isinstance(bonus, bool) or not isinstance(bonus, int) or bonus < 0:
        raise ValueError(f"Token desk bonus must be a non-negative integer, got {bonus!r}")

    return Pipeline([
        Construct(TOKEN),                                             # 1
        Construct(SALE, (Ref(1),)),                                   # 2
        Invoke(1, "transferOwnership", (Ref(2),)),                    # 3
        Construct(PROXY, (Ref(2), bonus)),                            # 4
        Invoke(2, "setTokenDeskProxy", (Ref(4),)),                    # 5
        Invoke(2, "setTokenMinter", (Address(minter, role="minter"),)),  # 6
    ]).validate()


def pipeline_from_env(minter: Optional[str] = None, bonus: Optional[str] = None) -> Pipeline:
    """Build the pipeline with MINTER_ADDRESS / TOKEN_DESK_BONUS overrides from the environment"""
    minter = minter or os.getenv("MINTER_ADDRESS") or MINTER_ADDRESS
    bonus = bonus or os.getenv("TOKEN_DESK_BONUS")
    try:
        bonus_value = int(bonus) if bonus else TOKEN_DESK_BONUS
    except ValueError:
        raise InvalidProfile(f"TOKEN_DESK_BONUS must be an integer, got {bonus!r}") from None
    if bonus_value < 0:
        raise InvalidProfile(f"TOKEN_DESK_BONUS must not be negative, got {bonus_value}")
    return build_pipeline(minter, bonus_value)

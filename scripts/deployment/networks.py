"""
Network Profile Registry
Named connection and execution parameters, selected once per deployment run
"""

import os
import re
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Mapping, Optional

from web3 import Web3

from .errors import InvalidProfile, UnknownProfile

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
WILDCARD_NETWORK_ID = "*"

DEFAULT_GAS = 6713094
DEFAULT_GAS_PRICE = 5000000000  # 5 gwei

# Static profile table, one entry per network the contracts can be migrated to
NETWORKS: Dict[str, Dict[str, Any]] = {
    "development": {
        "host": "localhost",
        "port": 8545,
        "network_id": WILDCARD_NETWORK_ID,
        "gas": DEFAULT_GAS,
        "development": True,
    },
    "test": {
        "host": "localhost",
        "port": 8545,
        "network_id": WILDCARD_NETWORK_ID,
        "gas": DEFAULT_GAS,
        "development": True,
    },
    "rinkeby": {
        "host": "localhost",
        "port": 8545,
        "network_id": "4",
        "gas": DEFAULT_GAS,
        "gasPrice": DEFAULT_GAS_PRICE,
        "from": "0x9f3E02A42EA420Df52481a215e88AbA4b29f5012",
        "poa": True,
    },
    "live": {
        "host": "localhost",  # Change into main net node address
        "port": 8545,
        "network_id": "1",
        "gas": DEFAULT_GAS,
        "gasPrice": DEFAULT_GAS_PRICE,
        "from": ZERO_ADDRESS,
    },
}

ALIASES = {
    "pre-production": "rinkeby",
    "production": "live",
}

REQUIRED_KEYS = frozenset({"host", "port", "network_id", "gas"})
OPTIONAL_KEYS = frozenset({"gasPrice", "from", "development", "poa"})

_NETWORK_ID_RE = re.compile(r"^\d+$")


@dataclass(frozen=True)
class NetworkProfile:
    """Connection and execution parameters for one network"""
    name: str
    host: str
    port: int
    network_id: str
    resource_ceiling: int
    unit_price: Optional[int] = None
    originator: Optional[str] = None
    development: bool = False
    poa: bool = False

    @property
    def endpoint(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def matches_any_network(self) -> bool:
        return self.network_id == WILDCARD_NETWORK_ID

    def accepts_network(self, network_id) -> bool:
        return self.matches_any_network or str(network_id) == self.network_id


def is_placeholder(address: Optional[str]) -> bool:
    """True for a missing or empty identity, or the well-known all-zero address"""
    return not address or address.lower() == ZERO_ADDRESS


def normalize_address(value: Any, field: str = "address") -> str:
    """
    Validate a hex account address and return its checksummed form

    Mixed-case input is accepted without enforcing the EIP-55 checksum, since
    the addresses in the profile table were written by hand.
    """
    if not isinstance(value, str) or not Web3.is_address(value.lower()):
        raise InvalidProfile(f"Malformed {field}: {value!r}")
    return Web3.to_checksum_address(value.lower())


def parse_profile(name: str, entry: Mapping[str, Any]) -> NetworkProfile:
    """
    Parse one raw profile entry into a NetworkProfile

    Args:
        name: Profile name
        entry: Raw mapping using the Truffle-style keys (host, port, network_id, gas, gasPrice, from)

    Returns:
        Validated, immutable NetworkProfile
    """
    keys = set(entry)
    unknown = keys - REQUIRED_KEYS - OPTIONAL_KEYS
    if unknown:
        raise InvalidProfile(f"Profile '{name}' has unknown keys: {', '.join(sorted(unknown))}")
    missing = REQUIRED_KEYS - keys
    if missing:
        raise InvalidProfile(f"Profile '{name}' is missing keys: {', '.join(sorted(missing))}")

    host = entry["host"]
    if not isinstance(host, str) or not host:
        raise InvalidProfile(f"Profile '{name}' has an empty host")

    port = entry["port"]
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise InvalidProfile(f"Profile '{name}' has an invalid port: {port!r}")

    network_id = str(entry["network_id"])
    if network_id != WILDCARD_NETWORK_ID and not _NETWORK_ID_RE.match(network_id):
        raise InvalidProfile(f"Profile '{name}' has a malformed network_id: {network_id!r}")

    gas = entry["gas"]
    if isinstance(gas, bool) or not isinstance(gas, int) or gas <= 0:
        raise InvalidProfile(f"Profile '{name}' must have a positive gas ceiling, got {gas!r}")

    gas_price = entry.get("gasPrice")
    if gas_price is not None and (isinstance(gas_price, bool) or not isinstance(gas_price, int) or gas_price <= 0):
        raise InvalidProfile(f"Profile '{name}' has an invalid gasPrice: {gas_price!r}")

    originator = entry.get("from")
    if originator is not None:
        originator = normalize_address(originator, field=f"'from' address of profile '{name}'")

    return NetworkProfile(
        name=name,
        host=host,
        port=port,
        network_id=network_id,
        resource_ceiling=gas,
        unit_price=gas_price,
        originator=originator,
        development=bool(entry.get("development", False)),
        poa=bool(entry.get("poa", False)),
    )


class ProfileRegistry:
    """Read-only lookup of network profiles by name"""

    def __init__(self, profiles: Iterable[NetworkProfile], aliases: Optional[Mapping[str, str]] = None):
        self._profiles: Dict[str, NetworkProfile] = {}
        for profile in profiles:
            if profile.name in self._profiles:
                raise InvalidProfile(f"Duplicate profile name '{profile.name}'")
            self._profiles[profile.name] = profile

        self._aliases = dict(aliases or {})
        for alias, target in self._aliases.items():
            if alias in self._profiles:
                raise InvalidProfile(f"Alias '{alias}' shadows a profile of the same name")
            if target not in self._profiles:
                raise InvalidProfile(f"Alias '{alias}' points at unknown profile '{target}'")

    @classmethod
    def from_table(cls, table: Mapping[str, Mapping[str, Any]],
                   aliases: Optional[Mapping[str, str]] = None) -> "ProfileRegistry":
        return cls((parse_profile(name, entry) for name, entry in table.items()), aliases)

    def names(self):
        return list(self._profiles)

    def resolve(self, name: str) -> NetworkProfile:
        """
        Look up a profile by name or alias

        Raises:
            UnknownProfile: if neither a profile nor an alias has this name
        """
        key = self._aliases.get(name, name)
        try:
            return self._profiles[key]
        except KeyError:
            raise UnknownProfile(name, known=self.names()) from None

    def __contains__(self, name) -> bool:
        return self._aliases.get(name, name) in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)


def default_registry() -> ProfileRegistry:
    return ProfileRegistry.from_table(NETWORKS, ALIASES)


def apply_overrides(profile: NetworkProfile, host: Optional[str] = None, port: Optional[str] = None,
                    originator: Optional[str] = None) -> NetworkProfile:
    """Return a copy of the profile with operator-supplied values validated and applied"""
    changes: Dict[str, Any] = {}
    if host:
        changes["host"] = host
    if port:
        try:
            port_value = int(port)
        except (TypeError, ValueError):
            raise InvalidProfile(f"Port override must be an integer, got {port!r}") from None
        if not 0 < port_value < 65536:
            raise InvalidProfile(f"Port override out of range: {port_value}")
        changes["port"] = port_value
    if originator:
        changes["originator"] = normalize_address(originator, field="originator override")

    if not changes:
        return profile
    logger.info(f"Applying operator overrides to profile '{profile.name}': {', '.join(sorted(changes))}")
    return replace(profile, **changes)


def overrides_from_env(profile: NetworkProfile) -> NetworkProfile:
    return apply_overrides(
        profile,
        host=os.getenv("NETWORK_HOST"),
        port=os.getenv("NETWORK_PORT"),
        originator=os.getenv("DEPLOYER_ADDRESS"),
    )

# app/chain/roles.py
"""
The fixed Speed Horses contract graph: the twelve roles, in the order they
are deployed, and the wiring edges that cross-reference them.

WIRING_EDGES is applied by deploy.py and checked by verify_deployment.py in
exactly the order declared here so transcripts are reproducible. On-chain the
setters are idempotent, so the order carries no meaning beyond logging.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

CONTRACT_VERSION = "v1.0.0"


class ContractRole(str, Enum):
    FIXTURE_MANAGER = "SpeedH_FixtureManager"
    HAY_TOKEN = "SpeedH_HayToken"
    METADATA_HORSE = "SpeedH_Metadata_Horse"
    METADATA_HORSESHOE = "SpeedH_Metadata_Horseshoe"
    MINTER_ANVIL_ALCHEMY = "SpeedH_Minter_AnvilAlchemy"
    MINTER_FOAL_FORGE = "SpeedH_Minter_FoalForge"
    MINTER_IRON_REDEMPTION = "SpeedH_Minter_IronRedemption"
    NFT_HORSE = "SpeedH_NFT_Horse"
    NFT_HORSESHOE = "SpeedH_NFT_Horseshoe"
    STATS_HORSE = "SpeedH_Stats_Horse"
    STATS_HORSESHOE = "SpeedH_Stats_Horseshoe"
    STATS = "SpeedH_Stats"

    def __str__(self) -> str:
        return self.value

    @property
    def short_name(self) -> str:
        """'SpeedH_Minter_FoalForge' -> 'FoalForge', 'SpeedH_NFT_Horse' -> 'NFT_Horse'."""
        name = self.value[len("SpeedH_"):]
        if name.startswith("Minter_"):
            name = name[len("Minter_"):]
        return name

    @property
    def expected_version(self) -> str:
        return f"{self.value}-{CONTRACT_VERSION}"


# Declaration order == deployment order == address book order.
DECLARED_ROLES: Tuple[ContractRole, ...] = tuple(ContractRole)

MINTERS: Tuple[ContractRole, ...] = (
    ContractRole.MINTER_ANVIL_ALCHEMY,
    ContractRole.MINTER_FOAL_FORGE,
    ContractRole.MINTER_IRON_REDEMPTION,
)

MINTER_SETTER = "setContractMinter"
MINTER_GETTER = "isHorseMinter"


@dataclass(frozen=True)
class DeploymentEdge:
    """`source` must store the address of `target`.

    Authorization edges call `setContractMinter(target, true)` and are read
    back through `isHorseMinter(target)`; reference edges call
    `setContractX(target)` and are read back through `contractX()`.
    """
    source: ContractRole
    setter: str
    target: ContractRole
    authorize: bool = False

    @property
    def getter(self) -> str:
        if self.authorize:
            return MINTER_GETTER
        return "c" + self.setter[len("setC"):]

    @property
    def label(self) -> str:
        suffix = ", true" if self.authorize else ""
        return f"{self.source.value}.{self.setter}({self.target.short_name}{suffix})"

    def setter_args(self, target_address: str) -> tuple:
        return (target_address, True) if self.authorize else (target_address,)

    def getter_args(self, target_address: str) -> tuple:
        return (target_address,) if self.authorize else ()


def _ref(source: ContractRole, target: ContractRole) -> DeploymentEdge:
    return DeploymentEdge(source, f"setContract{_setter_suffix(target)}", target)


def _minter(source: ContractRole, minter: ContractRole) -> DeploymentEdge:
    return DeploymentEdge(source, MINTER_SETTER, minter, authorize=True)


def _setter_suffix(target: ContractRole) -> str:
    # setContractStats, setContractNFTHorse, setContractMetadataHorseshoe, ...
    return target.short_name.replace("_", "")


R = ContractRole

WIRING_EDGES: Tuple[DeploymentEdge, ...] = (
    # hub: minter authorizations, then module references
    *(_minter(R.STATS, m) for m in MINTERS),
    _ref(R.STATS, R.FIXTURE_MANAGER),
    _ref(R.STATS, R.HAY_TOKEN),
    _ref(R.STATS, R.NFT_HORSE),
    _ref(R.STATS, R.NFT_HORSESHOE),
    _ref(R.STATS, R.STATS_HORSE),
    _ref(R.STATS, R.STATS_HORSESHOE),
    _ref(R.STATS, R.METADATA_HORSE),
    _ref(R.STATS, R.METADATA_HORSESHOE),
    # stats submodules point back at the hub
    _ref(R.STATS_HORSESHOE, R.STATS),
    _ref(R.STATS_HORSE, R.STATS),
    # NFT kinds: hub back-reference plus minter authorizations
    _ref(R.NFT_HORSE, R.STATS),
    *(_minter(R.NFT_HORSE, m) for m in MINTERS),
    _ref(R.NFT_HORSESHOE, R.STATS),
    *(_minter(R.NFT_HORSESHOE, m) for m in MINTERS),
    # minters
    _ref(R.MINTER_IRON_REDEMPTION, R.STATS),
    _ref(R.MINTER_IRON_REDEMPTION, R.NFT_HORSESHOE),
    _ref(R.MINTER_IRON_REDEMPTION, R.HAY_TOKEN),
    _ref(R.MINTER_FOAL_FORGE, R.STATS),
    _ref(R.MINTER_FOAL_FORGE, R.NFT_HORSE),
    _ref(R.MINTER_FOAL_FORGE, R.NFT_HORSESHOE),
    _ref(R.MINTER_ANVIL_ALCHEMY, R.STATS),
    _ref(R.MINTER_ANVIL_ALCHEMY, R.NFT_HORSESHOE),
    _ref(R.MINTER_ANVIL_ALCHEMY, R.HAY_TOKEN),
    # race fixtures
    _ref(R.FIXTURE_MANAGER, R.STATS),
    _ref(R.FIXTURE_MANAGER, R.HAY_TOKEN),
)

del R


def edges_from(role: ContractRole) -> Tuple[DeploymentEdge, ...]:
    return tuple(e for e in WIRING_EDGES if e.source is role)

# app/chain/abi.py
"""
Loads contract ABIs and bytecode from Hardhat build artifacts
(artifacts/contracts/<Name>.sol/<Name>.json).

Deployment needs the artifacts (bytecode). Read paths and the verification
probe only need the small ABI surface below, so abi_for() falls back to
built-in fragments when `npx hardhat compile` has not been run.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from config import ARTIFACTS_DIR
from .roles import ContractRole, MINTER_GETTER, MINTER_SETTER, edges_from

logger = logging.getLogger(__name__)


def artifact_path(contract_name: str, artifacts_dir: Path = ARTIFACTS_DIR) -> Path:
    return artifacts_dir / "contracts" / f"{contract_name}.sol" / f"{contract_name}.json"


def load_artifact(contract_name: str, artifacts_dir: Path = ARTIFACTS_DIR) -> Dict[str, Any]:
    """
    Load a Hardhat artifact.

    Returns:
        dict with at least "abi" and "bytecode".

    Raises:
        FileNotFoundError if the artifact doesn't exist.
        ValueError if it has no ABI.
    """
    artifact = artifact_path(contract_name, artifacts_dir)
    if not artifact.exists():
        raise FileNotFoundError(
            f"ABI artifact not found: {artifact}\n"
            f"Run: npx hardhat compile"
        )

    with artifact.open() as f:
        data = json.load(f)

    if not data.get("abi"):
        raise ValueError(f"No 'abi' key in {artifact}")
    return data


def _load_abi(contract_name: str, artifacts_dir: Path) -> Optional[List[Dict[str, Any]]]:
    try:
        return load_artifact(contract_name, artifacts_dir)["abi"]
    except (FileNotFoundError, ValueError):
        return None


_STATS_COMPONENTS = [
    {"name": "power", "type": "uint256"},
    {"name": "acceleration", "type": "uint256"},
    {"name": "stamina", "type": "uint256"},
    {"name": "minSpeed", "type": "uint256"},
    {"name": "maxSpeed", "type": "uint256"},
    {"name": "luck", "type": "uint256"},
    {"name": "curveBonus", "type": "uint256"},
    {"name": "straightBonus", "type": "uint256"},
]

FOAL_FORGE_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "getPendingHorse",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [
            {"name": "imgCategory", "type": "uint256"},
            {"name": "imgNumber", "type": "uint256"},
            {"name": "stats", "type": "tuple", "components": _STATS_COMPONENTS},
            {"name": "totalPoints", "type": "uint256"},
            {"name": "extraPackagesBought", "type": "uint8"},
            {
                "name": "horseshoes",
                "type": "tuple[4]",
                "components": [
                    {"name": "imgCategory", "type": "uint256"},
                    {"name": "imgNumber", "type": "uint256"},
                    {"name": "bonusStats", "type": "tuple", "components": _STATS_COMPONENTS},
                ],
            },
        ],
        "stateMutability": "view",
    },
    {"type": "function", "name": "startHorseMint", "inputs": [], "outputs": [],
     "stateMutability": "payable"},
    {
        "type": "function",
        "name": "randomizeHorse",
        "inputs": [
            {"name": "keepImage", "type": "bool"},
            {"name": "keepStats", "type": "bool"},
            {"name": "keepShoes", "type": "bool"},
        ],
        "outputs": [],
        "stateMutability": "payable",
    },
    {"type": "function", "name": "buyExtraPoints", "inputs": [], "outputs": [],
     "stateMutability": "payable"},
    {"type": "function", "name": "claimHorse", "inputs": [], "outputs": [],
     "stateMutability": "nonpayable"},
]

VERSION_ABI = {
    "type": "function",
    "name": "version",
    "inputs": [],
    "outputs": [{"name": "", "type": "string"}],
    "stateMutability": "view",
}


def wiring_abi(role: ContractRole) -> List[Dict[str, Any]]:
    """Setter + getter fragments for every edge whose source is `role`, plus version()."""
    fragments: Dict[str, Dict[str, Any]] = {"version": VERSION_ABI}
    for edge in edges_from(role):
        if edge.authorize:
            fragments[MINTER_SETTER] = {
                "type": "function",
                "name": MINTER_SETTER,
                "inputs": [
                    {"name": "minter", "type": "address"},
                    {"name": "allowed", "type": "bool"},
                ],
                "outputs": [],
                "stateMutability": "nonpayable",
            }
            fragments[MINTER_GETTER] = {
                "type": "function",
                "name": MINTER_GETTER,
                "inputs": [{"name": "minter", "type": "address"}],
                "outputs": [{"name": "", "type": "bool"}],
                "stateMutability": "view",
            }
        else:
            fragments[edge.setter] = {
                "type": "function",
                "name": edge.setter,
                "inputs": [{"name": "contractAddress", "type": "address"}],
                "outputs": [],
                "stateMutability": "nonpayable",
            }
            fragments[edge.getter] = {
                "type": "function",
                "name": edge.getter,
                "inputs": [],
                "outputs": [{"name": "", "type": "address"}],
                "stateMutability": "view",
            }
    return list(fragments.values())


def abi_for(role: ContractRole, artifacts_dir: Path = ARTIFACTS_DIR) -> List[Dict[str, Any]]:
    abi = _load_abi(role.value, artifacts_dir)
    if abi is not None:
        return abi
    logger.debug("No artifact for %s, using built-in ABI fragments", role.value)
    fallback = wiring_abi(role)
    if role is ContractRole.MINTER_FOAL_FORGE:
        fallback = FOAL_FORGE_ABI + fallback
    return fallback

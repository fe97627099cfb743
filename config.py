# app/config.py
from dotenv import load_dotenv
from pathlib import Path
from typing import Optional
import logging
import os

load_dotenv()

logger = logging.getLogger(__name__)

# ------------------------------------------------------------
# Chain / network
# ------------------------------------------------------------
RPC_URL = os.getenv("RPC_URL", "https://testnet.telos.net/evm")

# Optional: when unset the chain id is read from the provider.
CHAIN_ID = int(os.getenv("CHAIN_ID")) if os.getenv("CHAIN_ID") else None

NETWORK_NAME = os.getenv("NETWORK_NAME", "unknown")

# File holding a single hex private key (no spaces, no quotes).
PRIVATE_KEY_FILE = os.getenv("PRIVATE_KEY_FILE", "")

# ------------------------------------------------------------
# Artifacts / address book / logs
# ------------------------------------------------------------
ARTIFACTS_DIR = Path(os.getenv("ARTIFACTS_DIR", "./artifacts"))
ADDRESS_BOOK_PATH = Path(os.getenv("ADDRESS_BOOK_PATH", "./contracts.json"))
ADDRESSES_DIR = Path(os.getenv("ADDRESSES_DIR", "./scripts"))
DEPLOY_LOG_DIR = Path(os.getenv("DEPLOY_LOG_DIR", "./scripts/logs"))

# Seconds to wait for a submitted transaction to be mined.
INCLUSION_TIMEOUT = float(os.getenv("INCLUSION_TIMEOUT", "120"))


def load_private_key(path: str = PRIVATE_KEY_FILE) -> Optional[str]:
    """
    Read the signer key from PRIVATE_KEY_FILE.

    Returns None when the variable is unset, the file is unreadable or empty,
    so callers can report a missing signer instead of crashing here.
    """
    if not path:
        return None
    try:
        raw = Path(path).expanduser().resolve().read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.warning("Could not read PRIVATE_KEY_FILE %s: %s", path, e)
        return None
    if not raw:
        return None
    return raw if raw.startswith("0x") else f"0x{raw}"


def describe() -> str:
    return "\n".join([
        "Config loaded:",
        f"  NETWORK_NAME: {NETWORK_NAME}",
        f"  CHAIN_ID: {CHAIN_ID if CHAIN_ID is not None else '<from provider>'}",
        f"  RPC_URL: {RPC_URL[:48]}{'…' if len(RPC_URL) > 48 else ''}",
        f"  PRIVATE_KEY_FILE: {PRIVATE_KEY_FILE or '<missing>'}",
        f"  ADDRESS_BOOK_PATH: {ADDRESS_BOOK_PATH}",
    ])

# app/main.py
"""
Read-only HTTP surface: contract addresses per chain and pending foals.

Signed actions (mint / randomize / extra points / claim) stay in the wallet
session through FoalForgeService; nothing here holds a user key.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from web3 import Web3

import config
from config import ADDRESS_BOOK_PATH, CHAIN_ID, RPC_URL
from chain.address_book import AddressBook
from chain.client import ContractClient, connect
from errors import ConfigurationError, NetworkError
from util import horse_image_path

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    logger.info(config.describe())
    app.state.client = ContractClient(connect(RPC_URL), AddressBook.load(ADDRESS_BOOK_PATH))
    yield


app = FastAPI(title="Speed Horses App API", version="0.1.0", lifespan=lifespan)


def get_client(request: Request) -> ContractClient:
    return request.app.state.client


def _resolve_chain_id(client: ContractClient, chain_id: Optional[int]) -> int:
    if chain_id is not None:
        return chain_id
    if CHAIN_ID is not None:
        return CHAIN_ID
    try:
        return client.chain_id()
    except NetworkError as e:
        raise HTTPException(503, str(e))


@app.get("/healthz")
def healthz():
    return {"ok": "true"}


@app.get("/api/contracts")
def get_contracts(chain_id: Optional[int] = None, client: ContractClient = Depends(get_client)):
    cid = _resolve_chain_id(client, chain_id)
    contracts = client.book.for_chain(cid)
    if not contracts:
        raise HTTPException(404, f"No contracts deployed on chain {cid}")
    logger.info("Returning %d contracts for chain %s", len(contracts), cid)
    return contracts


@app.get("/api/foal/{owner}")
async def get_pending_foal(
    owner: str,
    chain_id: Optional[int] = None,
    client: ContractClient = Depends(get_client),
):
    if not Web3.is_address(owner):
        raise HTTPException(400, "Invalid address")
    cid = _resolve_chain_id(client, chain_id)
    try:
        foal = await client.pending_foal(owner, cid)
    except ConfigurationError as e:
        raise HTTPException(503, str(e))
    except NetworkError as e:
        logger.warning("pending foal read failed: %s", e)
        raise HTTPException(502, str(e))

    result = {"owner": Web3.to_checksum_address(owner), "chain_id": cid, "foal": None, "image": None}
    if foal is not None:
        result["foal"] = foal.model_dump()
        result["image"] = horse_image_path(int(foal.imgCategory), int(foal.imgNumber))
    return result


@app.get("/api/horses/image")
def horse_image(category: int = Query(..., ge=0), number: int = Query(..., ge=0)):
    return {"path": horse_image_path(category, number)}

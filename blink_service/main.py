"""
FastAPI Solana Actions service
==============================

This service exposes Solana Actions ("Blinks"): HTTP endpoints that a
wallet uses to discover an action, collect its inputs, and receive an
unsigned transaction to sign.  Every action route answers:

* ``GET`` / ``OPTIONS`` with the action metadata (title, icon and the
  input fields of each link);
* ``POST`` with ``{"account": "<base58 pubkey>"}`` in the body and the
  action inputs in the query string.  The service validates the inputs,
  reads balances and rent from the RPC node, builds the transaction and
  returns it base64 encoded as ``{"transaction", "message", "type"}``.

Routes:

* ``/api/actions/create-token`` - Token-2022 mint with on-chain metadata
* ``/api/actions/meme-coin`` - classic SPL token mint
* ``/api/actions/donate`` - SOL donation
* ``/api/actions/claim`` - airdrop claim, signed by the pool key
* ``/api/actions/game`` - number-guessing game
* ``/actions.json`` - discovery rules

Environment variables
---------------------

All settings are read from the environment (or a ``.env`` file), see
``blink_service/config.py``.  The most important ones are
``SOLANA_CLUSTER`` (``devnet`` by default), ``SOLANA_RPC`` to use a
private node, ``AIRDROP_KEYPAIR`` and ``GAME_HOUSE_KEYPAIR``.  The
airdrop and game actions answer 503 until their keypairs are set.

Running locally
---------------

Install the package with:

```
pip install -e .
```

Then start the server:

```
uvicorn blink_service.main:app --host 0.0.0.0 --port 8000
```
"""

import logging
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from solders.keypair import Keypair
from starlette.datastructures import Headers
from starlette.types import Receive, Scope, Send

from . import __version__, handlers
from .config import Settings, get_settings, load_keypair
from .descriptors import airdrop_descriptor, donate_descriptor, game_descriptor, token_descriptor
from .errors import ActionError, ClientInputError
from .ledger import LedgerClient
from .logging_config import setup_logging
from .models import ActionGetResponse, ActionPostRequest, ActionPostResponse
from .tokens import SPL_TOKEN, TOKEN_2022

logger = logging.getLogger(__name__)

ACTIONS_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,PUT,OPTIONS",
    "Access-Control-Allow-Headers": (
        "Content-Type, Authorization, Content-Encoding, Accept-Encoding, "
        "X-Accept-Action-Version, X-Accept-Blockchain-Ids"
    ),
    "Access-Control-Expose-Headers": "X-Action-Version, X-Blockchain-Ids",
}


@dataclass
class Signers:
    """Service-owned keypairs, loaded once at startup."""

    airdrop: Optional[Keypair] = None
    house: Optional[Keypair] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Signers":
        return cls(
            airdrop=load_keypair(settings.airdrop_keypair) if settings.airdrop_keypair else None,
            house=load_keypair(settings.game_house_keypair) if settings.game_house_keypair else None,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level)
    app.state.ledger = LedgerClient(settings.rpc_url, timeout=settings.rpc_timeout_seconds)
    app.state.signers = Signers.from_settings(settings)
    app.state.rng = random.SystemRandom()
    logger.info("Serving Solana actions on %s via %s", settings.solana_cluster, settings.rpc_url)
    try:
        yield
    finally:
        await app.state.ledger.close()


def get_ledger(request: Request) -> LedgerClient:
    return request.app.state.ledger


def get_signers(request: Request) -> Signers:
    return request.app.state.signers


def get_rng(request: Request) -> random.Random:
    return request.app.state.rng


app = FastAPI(title="Blink Actions Service", version=__version__, lifespan=lifespan)

ACTIONS_PREFIX = "/api/actions/"


class ActionsCORSMiddleware(CORSMiddleware):
    """CORS middleware that lets preflights on action routes reach the app.

    Blink clients read the action metadata from the preflight response, so
    an ``OPTIONS`` carrying ``Access-Control-Request-Method`` on an action
    route is served by its route like any other request.  Other paths get
    the regular preflight reply.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["method"] == "OPTIONS" and scope["path"].startswith(ACTIONS_PREFIX):
            headers = Headers(scope=scope)
            if "origin" in headers and "access-control-request-method" in headers:
                await self.simple_response(scope, receive, send, request_headers=headers)
                return
        await super().__call__(scope, receive, send)


# -----------------------------------------------------------------------------
# CORS configuration
#
# Wallets and Blink renderers call these endpoints from arbitrary origins, so
# every origin is allowed.  The Actions header set below is additionally
# stamped on every response, errors included.
app.add_middleware(
    ActionsCORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Action-Version", "X-Blockchain-Ids"],
)


def action_headers() -> Dict[str, str]:
    settings = get_settings()
    return dict(
        ACTIONS_CORS_HEADERS,
        **{"X-Action-Version": settings.action_version, "X-Blockchain-Ids": settings.blockchain_id},
    )


@app.middleware("http")
async def add_action_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in action_headers().items():
        response.headers.setdefault(name, value)
    return response


# -----------------------------------------------------------------------------
# Error boundary
@app.exception_handler(ActionError)
async def action_error_handler(request: Request, exc: ActionError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_content(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return await action_error_handler(request, ClientInputError("Request body must be JSON with an account field"))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # runs outside the middleware stack
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        {"error": "An unexpected server error occurred"}, status_code=500, headers=action_headers()
    )


def _origin(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def metadata_route(path: str):
    """GET and OPTIONS both serve the action metadata."""
    return app.api_route(
        path, methods=["GET", "OPTIONS"], response_model=ActionGetResponse, response_model_exclude_none=True
    )


# -----------------------------------------------------------------------------
# Routes
@app.get("/actions.json")
async def actions_rules():
    """Map every action path to itself for Blink clients."""
    return {"rules": [{"pathPattern": "/api/actions/**", "apiPath": "/api/actions/**"}]}


@metadata_route("/api/actions/create-token")
async def create_token_metadata(request: Request) -> ActionGetResponse:
    return token_descriptor(TOKEN_2022, _origin(request), request.url.path)


@app.post("/api/actions/create-token", response_model=ActionPostResponse)
async def create_token(
    body: ActionPostRequest,
    request: Request,
    ledger: LedgerClient = Depends(get_ledger),
    settings: Settings = Depends(get_settings),
) -> ActionPostResponse:
    """Build a Token-2022 mint with metadata, co-signed by a fresh mint key."""
    return await handlers.create_token(TOKEN_2022, body.account, request.query_params, ledger, settings)


@metadata_route("/api/actions/meme-coin")
async def meme_coin_metadata(request: Request) -> ActionGetResponse:
    return token_descriptor(SPL_TOKEN, _origin(request), request.url.path)


@app.post("/api/actions/meme-coin", response_model=ActionPostResponse)
async def meme_coin(
    body: ActionPostRequest,
    request: Request,
    ledger: LedgerClient = Depends(get_ledger),
    settings: Settings = Depends(get_settings),
) -> ActionPostResponse:
    return await handlers.create_token(SPL_TOKEN, body.account, request.query_params, ledger, settings)


@metadata_route("/api/actions/donate")
async def donate_metadata(request: Request, settings: Settings = Depends(get_settings)) -> ActionGetResponse:
    return donate_descriptor(settings, _origin(request), request.url.path)


@app.post("/api/actions/donate", response_model=ActionPostResponse)
async def donate(
    body: ActionPostRequest,
    request: Request,
    ledger: LedgerClient = Depends(get_ledger),
    settings: Settings = Depends(get_settings),
) -> ActionPostResponse:
    return await handlers.donate(body.account, request.query_params, ledger, settings)


@metadata_route("/api/actions/claim")
async def claim_metadata(request: Request, settings: Settings = Depends(get_settings)) -> ActionGetResponse:
    if request.query_params.get("action") != "claim":
        raise ClientInputError("Invalid or missing parameters")
    return airdrop_descriptor(settings, request.url.path)


@app.post("/api/actions/claim", response_model=ActionPostResponse)
async def claim(
    body: ActionPostRequest,
    request: Request,
    ledger: LedgerClient = Depends(get_ledger),
    settings: Settings = Depends(get_settings),
    signers: Signers = Depends(get_signers),
) -> ActionPostResponse:
    """Transfer from the airdrop pool to an eligible account, signed by the pool."""
    return await handlers.claim_airdrop(
        request.query_params.get("action"), body.account, ledger, settings, signers.airdrop
    )


@metadata_route("/api/actions/game")
async def game_metadata(request: Request, settings: Settings = Depends(get_settings)) -> ActionGetResponse:
    return game_descriptor(settings, request.url.path)


@app.post("/api/actions/game", response_model=ActionPostResponse)
async def game(
    body: ActionPostRequest,
    request: Request,
    ledger: LedgerClient = Depends(get_ledger),
    settings: Settings = Depends(get_settings),
    signers: Signers = Depends(get_signers),
    rng: random.Random = Depends(get_rng),
) -> ActionPostResponse:
    return await handlers.play_game(body.account, request.query_params, ledger, settings, signers.house, rng)

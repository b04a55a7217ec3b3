"""Shared fixtures: an in-memory ledger and helpers to decode transactions."""

import base64
import random

import pytest
from httpx import ASGITransport
from solana.constants import LAMPORTS_PER_SOL
from solders.hash import Hash
from solders.keypair import Keypair
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.transaction import VersionedTransaction
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID

from blink_service.config import Settings, get_settings
from blink_service.ledger import BlockReference
from blink_service.main import Signers, app, get_ledger, get_rng, get_signers
from blink_service.tokens import INITIALIZE_METADATA_DISCRIMINATOR, UPDATE_FIELD_DISCRIMINATOR

TOKEN_INSTRUCTIONS = {
    0: "initialize_mint",
    20: "initialize_mint",
    7: "mint_to",
    14: "mint_to",
    39: "initialize_metadata_pointer",
}


class FakeLedger:
    """Ledger double recording every RPC method it serves."""

    def __init__(self, balance=100 * LAMPORTS_PER_SOL, token_balance=0, error=None):
        self.balance = balance
        self.balances = {}
        self.token_balance = token_balance
        self.error = error
        self.calls = []

    def _record(self, method):
        self.calls.append(method)
        if self.error is not None:
            raise self.error

    async def get_balance(self, account):
        self._record("get_balance")
        return self.balances.get(account, self.balance)

    async def get_minimum_balance_for_rent_exemption(self, size):
        self._record("get_minimum_balance_for_rent_exemption")
        return (size + 128) * 6960

    async def get_latest_blockhash(self):
        self._record("get_latest_blockhash")
        return BlockReference(blockhash=Hash.new_unique(), last_valid_block_height=1_000)

    async def get_token_balance(self, owner, mint):
        self._record("get_token_balance")
        return self.token_balance


class StubRandom(random.Random):
    """Always draws ``value``; counts the draws."""

    def __init__(self, value):
        super().__init__()
        self.value = value
        self.draws = 0

    def randint(self, a, b):
        self.draws += 1
        return self.value


def classify(program, data) -> str:
    data = bytes(data)
    if program == SYSTEM_PROGRAM_ID:
        return {0: "create_account", 2: "transfer"}[int.from_bytes(data[:4], "little")]
    if program == ASSOCIATED_TOKEN_PROGRAM_ID:
        return "create_associated_account"
    if program in (TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID):
        if data[:8] == INITIALIZE_METADATA_DISCRIMINATOR:
            return "initialize_metadata"
        if data[:8] == UPDATE_FIELD_DISCRIMINATOR:
            return "update_metadata_field"
        return TOKEN_INSTRUCTIONS[data[0]]
    return "other"


def decode(encoded: str) -> VersionedTransaction:
    return VersionedTransaction.from_bytes(base64.b64decode(encoded))


def instruction_kinds(tx: VersionedTransaction):
    keys = tx.message.account_keys
    return [classify(keys[ix.program_id_index], ix.data) for ix in tx.message.instructions]


def transfers(tx: VersionedTransaction):
    """(source, destination, lamports) of every system transfer."""
    keys = tx.message.account_keys
    result = []
    for ix in tx.message.instructions:
        if classify(keys[ix.program_id_index], ix.data) == "transfer":
            accounts = bytes(ix.accounts)
            lamports = int.from_bytes(bytes(ix.data)[4:12], "little")
            result.append((keys[accounts[0]], keys[accounts[1]], lamports))
    return result


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def signers():
    return Signers(airdrop=Keypair(), house=Keypair())


@pytest.fixture
def rng():
    return StubRandom(7)


@pytest.fixture
def wallet():
    return Keypair().pubkey()


@pytest.fixture
def transport(settings, ledger, signers, rng):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_signers] = lambda: signers
    app.dependency_overrides[get_rng] = lambda: rng
    yield ASGITransport(app=app)
    app.dependency_overrides.clear()


"""Compile instructions into the base64 transaction returned to wallets."""
import base64
from typing import List, Sequence

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.null_signer import NullSigner
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from .ledger import BlockReference


def encode_transaction(
    instructions: List[Instruction],
    payer: Pubkey,
    block: BlockReference,
    signers: Sequence[Keypair] = (),
) -> str:
    """Build a v0 transaction, sign it with ``signers`` and base64 encode it.

    Required signers that are not in ``signers`` (normally the wallet) get a
    placeholder signature for the wallet to fill in.
    """
    message = MessageV0.try_compile(
        payer=payer,
        instructions=instructions,
        address_lookup_table_accounts=[],
        recent_blockhash=block.blockhash,
    )
    signing = {kp.pubkey() for kp in signers}
    required = message.account_keys[: message.header.num_required_signatures]
    keypairs = [NullSigner(key) for key in required if key not in signing]
    tx = VersionedTransaction(message, keypairs + list(signers))
    return base64.b64encode(bytes(tx)).decode("utf-8")

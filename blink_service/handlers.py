"""Submission (POST) handlers.

Each handler runs the same gates in order and stops at the first failing
one: account parsing, parameter validation, ledger state checks,
instruction assembly, then the block reference is fetched and the
transaction compiled.  Nothing is returned unless every step succeeded.
"""
import logging
import random
from decimal import Decimal
from typing import Mapping, Optional

from solana.constants import LAMPORTS_PER_SOL
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer

from .config import Settings
from .descriptors import donate_rule, selected_number_rule
from .errors import ActionUnavailableError, ClientInputError, InsufficientFundsError, format_sol
from .game import GameRound, GameRules, round_instructions
from .ledger import LedgerClient, gather_reads
from .models import ActionPostResponse
from .tokens import TokenVariant, build_token_instructions, mint_layout, parse_token_request
from .transactions import encode_transaction
from .validation import parse_account, validate_params

logger = logging.getLogger(__name__)


async def require_balance(ledger: LedgerClient, account: Pubkey, required: int) -> None:
    balance = await ledger.get_balance(account)
    if balance < required:
        logger.info("Account %s holds %d lamports, %d required", account, balance, required)
        raise InsufficientFundsError(required=required, available=balance)


async def create_token(
    variant: TokenVariant,
    account: str,
    params: Mapping[str, str],
    ledger: LedgerClient,
    settings: Settings,
) -> ActionPostResponse:
    owner = parse_account(account)
    request = parse_token_request(variant, params)

    layout = mint_layout(variant, request)
    mint_rent, account_rent, balance = await gather_reads(
        ledger.get_minimum_balance_for_rent_exemption(layout.rent_size),
        ledger.get_minimum_balance_for_rent_exemption(variant.token_account_len),
        ledger.get_balance(owner),
    )
    required = mint_rent + account_rent
    if balance < required:
        logger.info("Account %s holds %d lamports, %d required", owner, balance, required)
        raise InsufficientFundsError(required=required, available=balance)

    # fresh per request, discarded once the transaction is signed
    mint = Keypair()
    instructions = build_token_instructions(
        variant,
        request,
        owner=owner,
        mint=mint.pubkey(),
        mint_rent=mint_rent,
        compute_unit_price=settings.compute_unit_price_micro_lamports,
    )
    block = await ledger.get_latest_blockhash()
    transaction = encode_transaction(instructions, payer=owner, block=block, signers=[mint])

    logger.info("Built %s mint %s for %s", variant.key, mint.pubkey(), owner)
    return ActionPostResponse(
        transaction=transaction,
        message=f"Creating {request.name} ({request.symbol}) with a supply of {request.supply:,}",
    )


async def donate(account: str, params: Mapping[str, str], ledger: LedgerClient, settings: Settings) -> ActionPostResponse:
    sender = parse_account(account)
    values = validate_params([donate_rule(settings)], params)
    lamports = int(Decimal(values["amount"]) * LAMPORTS_PER_SOL)
    recipient = Pubkey.from_string(settings.donation_wallet)

    await require_balance(ledger, sender, lamports)
    instructions = [transfer(TransferParams(from_pubkey=sender, to_pubkey=recipient, lamports=lamports))]
    block = await ledger.get_latest_blockhash()

    logger.info("Built donation of %d lamports from %s", lamports, sender)
    return ActionPostResponse(
        transaction=encode_transaction(instructions, payer=sender, block=block),
        message=f"Thank you for donating {format_sol(lamports)} SOL!",
    )


async def is_eligible(ledger: LedgerClient, account: Pubkey, settings: Settings) -> bool:
    balance = await ledger.get_balance(account)
    if balance < settings.airdrop_min_balance_lamports:
        return False
    if settings.airdrop_eligibility_mint:
        mint = Pubkey.from_string(settings.airdrop_eligibility_mint)
        return await ledger.get_token_balance(account, mint) > 0
    return True


async def claim_airdrop(
    action: Optional[str],
    account: str,
    ledger: LedgerClient,
    settings: Settings,
    pool: Optional[Keypair],
) -> ActionPostResponse:
    if action != "claim":
        raise ClientInputError("Invalid or missing parameters")
    claimant = parse_account(account)
    if pool is None:
        raise ActionUnavailableError("Airdrop is not configured")

    if not await is_eligible(ledger, claimant, settings):
        logger.info("Account %s is not eligible for the airdrop", claimant)
        raise ClientInputError("Not eligible for airdrop")

    amount = settings.airdrop_amount_lamports
    instructions = [transfer(TransferParams(from_pubkey=pool.pubkey(), to_pubkey=claimant, lamports=amount))]
    block = await ledger.get_latest_blockhash()
    transaction = encode_transaction(instructions, payer=pool.pubkey(), block=block, signers=[pool])

    logger.info("Built airdrop claim of %d lamports for %s", amount, claimant)
    return ActionPostResponse(
        transaction=transaction,
        message=f"Airdrop claim transaction created for {format_sol(amount)} SOL.",
    )


async def play_game(
    account: str,
    params: Mapping[str, str],
    ledger: LedgerClient,
    settings: Settings,
    house: Optional[Keypair],
    rng: random.Random,
) -> ActionPostResponse:
    player = parse_account(account)
    values = validate_params([selected_number_rule(settings)], params)
    if house is None:
        raise ActionUnavailableError("Game payouts are not configured")

    rules = GameRules(
        entry_fee=settings.game_entry_fee_lamports,
        prize_multiplier=settings.game_prize_multiplier,
        min_number=settings.game_min_number,
        max_number=settings.game_max_number,
        fee_collector=Pubkey.from_string(settings.game_fee_collector),
    )
    game = GameRound(selected_number=int(values["selectedNumber"]))
    # the house must cover a win before anything is drawn
    balance, house_balance = await gather_reads(ledger.get_balance(player), ledger.get_balance(house.pubkey()))
    if balance < rules.entry_fee:
        logger.info("Account %s holds %d lamports, %d required", player, balance, rules.entry_fee)
        raise InsufficientFundsError(required=rules.entry_fee, available=balance)
    if house_balance < rules.prize:
        logger.error("House account %s holds %d lamports, prize is %d", house.pubkey(), house_balance, rules.prize)
        raise ActionUnavailableError("Game payouts are temporarily unavailable")

    game.resolve(rules, rng)
    instructions = round_instructions(game, rules, player, house.pubkey())
    block = await ledger.get_latest_blockhash()
    transaction = encode_transaction(instructions, payer=player, block=block, signers=[house] if game.won else [])

    logger.info(
        "Game round for %s: picked %d, drew %d, %s",
        player,
        game.selected_number,
        game.winning_number,
        "won" if game.won else "lost",
    )
    return ActionPostResponse(transaction=transaction, message=game.message)

"""Metadata (GET/OPTIONS) responses for every action.

These functions do no I/O; they only combine static copy with the field
rules used by the submission handlers.
"""
from decimal import Decimal
from urllib.parse import urlencode

from .config import Settings
from .errors import format_sol
from .models import ActionGetResponse, ActionLink, ActionLinks
from .tokens import TokenVariant, token_rules
from .validation import integer_range_rule, sol_amount_rule

GAME_ICON = (
    "https://proxy.dial.to/image?url=https%3A%2F%2Fstorage.googleapis.com%2Fblink-man%2F"
    "irfan_50_-0.00_48_d1f59a6aa267446eba7db2affc4a52d4.png"
)
AIRDROP_ICON = "https://example.com/airdrop-icon.png"
TOKEN_ICON_PATH = "/token-creator-icon.jpg"
DONATE_ICON_PATH = "/donate-icon.jpg"


def _template(path: str, names) -> str:
    return path + "?" + "&".join(f"{name}={{{name}}}" for name in names)


def token_descriptor(variant: TokenVariant, origin: str, path: str) -> ActionGetResponse:
    rules = token_rules(variant)
    if variant.metadata_extension:
        title = "Create Your Token"
        description = "Create a Token-2022 token with on-chain name, symbol, description and image."
    else:
        title = "Create Your Meme Coin"
        description = "Fill in the details to create your own meme coin on Solana."
    return ActionGetResponse(
        icon=origin + TOKEN_ICON_PATH,
        title=title,
        description=description,
        label="Create Token",
        links=ActionLinks(
            actions=[
                ActionLink(
                    label="Create Token",
                    href=_template(path, [rule.name for rule in rules]),
                    parameters=[rule.parameter() for rule in rules],
                )
            ]
        ),
    )


def donate_rule(settings: Settings):
    return sol_amount_rule("amount", "Amount (SOL)", settings.donation_min_sol)


def donate_descriptor(settings: Settings, origin: str, path: str) -> ActionGetResponse:
    presets = [
        ActionLink(label=f"{_sol(amount)} SOL", href=f"{path}?{urlencode({'amount': _sol(amount)})}")
        for amount in settings.get_donation_presets()
    ]
    rule = donate_rule(settings)
    custom = ActionLink(label="Donate", href=_template(path, [rule.name]), parameters=[rule.parameter()])
    return ActionGetResponse(
        icon=origin + DONATE_ICON_PATH,
        title="Support the project",
        description=f"Send SOL to {settings.donation_wallet}.",
        label="Donate",
        links=ActionLinks(actions=presets + [custom]),
    )


def airdrop_descriptor(settings: Settings, path: str) -> ActionGetResponse:
    return ActionGetResponse(
        icon=AIRDROP_ICON,
        title="Claim Solana Airdrop",
        description=(
            f"Claim {format_sol(settings.airdrop_amount_lamports)} SOL if you meet the eligibility criteria. "
            "Connect your wallet to check and claim."
        ),
        label="Claim Airdrop",
        links=ActionLinks(actions=[ActionLink(label="Claim Airdrop", href=f"{path}?action=claim")]),
    )


def selected_number_rule(settings: Settings):
    return integer_range_rule(
        "selectedNumber", "Your Number", settings.game_min_number, settings.game_max_number, required=True
    )


def game_descriptor(settings: Settings, path: str) -> ActionGetResponse:
    fee = format_sol(settings.game_entry_fee_lamports)
    rule = selected_number_rule(settings)
    return ActionGetResponse(
        icon=GAME_ICON,
        title="Villain's Number Roulette",
        description=(
            f"Entry Fee: {fee} SOL | Guess the Villain's Number between "
            f"{settings.game_min_number} and {settings.game_max_number}!"
        ),
        label="Challenge the Villain",
        links=ActionLinks(
            actions=[
                ActionLink(
                    label=f"Bet {fee} SOL",
                    href=_template(path, [rule.name]),
                    parameters=[rule.parameter()],
                )
            ]
        ),
    )


def _sol(amount: Decimal) -> str:
    return format(amount.normalize(), "f")

"""Token mint construction for the classic SPL and Token-2022 programs.

Both "create token" actions share one builder keyed by a
:class:`TokenVariant`.  Token-2022 mints also carry a metadata pointer and
on-mint metadata; ``solana-py`` ships no encoders for those extension
instructions, so their layouts are defined here with ``construct`` the same
way ``spl.token._layouts`` defines the core token instructions.
"""
import hashlib
from dataclasses import dataclass
from typing import List, Mapping, Optional

from construct import Bytes, Int8ul, Int32ul, PascalString, PrefixedArray, Struct
from solders.compute_budget import set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from spl.token.constants import MINT_LEN, TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID
from spl.token.instructions import (
    InitializeMintParams,
    MintToParams,
    create_associated_token_account,
    get_associated_token_address,
    initialize_mint,
    mint_to,
)

from .errors import ParameterValidationError
from .validation import (
    U64_MAX,
    FieldRule,
    collect_errors,
    integer_range_rule,
    length_rule,
    max_length_rule,
    positive_integer_rule,
    url_rule,
)

# Token-2022 account layout: base mint padded to the token account length,
# one account-type byte, then type-length-value extension entries.
ACCOUNT_LEN = 165
ACCOUNT_TYPE_LEN = 1
TLV_HEADER_LEN = 4
METADATA_POINTER_LEN = 64
MINT_WITH_METADATA_POINTER_LEN = ACCOUNT_LEN + ACCOUNT_TYPE_LEN + TLV_HEADER_LEN + METADATA_POINTER_LEN
# Token-2022 associated accounts always carry the ImmutableOwner extension.
TOKEN_2022_ACCOUNT_LEN = ACCOUNT_LEN + ACCOUNT_TYPE_LEN + TLV_HEADER_LEN

METADATA_POINTER_EXTENSION = 39
METADATA_POINTER_INITIALIZE = 0
METADATA_FIELD_KEY = 3


def _interface_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"spl_token_metadata_interface:{name}".encode()).digest()[:8]


INITIALIZE_METADATA_DISCRIMINATOR = _interface_discriminator("initialize_account")
UPDATE_FIELD_DISCRIMINATOR = _interface_discriminator("updating_field")

BorshString = PascalString(Int32ul, "utf8")

INITIALIZE_METADATA_POINTER_LAYOUT = Struct(
    "instruction" / Int8ul,
    "pointer_instruction" / Int8ul,
    "authority" / Bytes(32),
    "metadata_address" / Bytes(32),
)

INITIALIZE_METADATA_LAYOUT = Struct(
    "discriminator" / Bytes(8),
    "name" / BorshString,
    "symbol" / BorshString,
    "uri" / BorshString,
)

UPDATE_FIELD_LAYOUT = Struct(
    "discriminator" / Bytes(8),
    "field" / Int8ul,
    "key" / BorshString,
    "value" / BorshString,
)

TOKEN_METADATA_LAYOUT = Struct(
    "update_authority" / Bytes(32),
    "mint" / Bytes(32),
    "name" / BorshString,
    "symbol" / BorshString,
    "uri" / BorshString,
    "additional_metadata" / PrefixedArray(Int32ul, Struct("key" / BorshString, "value" / BorshString)),
)


@dataclass(frozen=True)
class TokenVariant:
    """Configuration of one "create token" action."""

    key: str
    program_id: Pubkey
    metadata_extension: bool
    max_decimals: int
    default_decimals: int
    default_supply: int
    symbol_param: str
    symbol_label: str

    @property
    def token_account_len(self) -> int:
        return TOKEN_2022_ACCOUNT_LEN if self.metadata_extension else ACCOUNT_LEN


SPL_TOKEN = TokenVariant(
    key="spl",
    program_id=TOKEN_PROGRAM_ID,
    metadata_extension=False,
    max_decimals=9,
    default_decimals=9,
    default_supply=1_000_000_000,
    symbol_param="ticker",
    symbol_label="Ticker Symbol",
)

TOKEN_2022 = TokenVariant(
    key="token-2022",
    program_id=TOKEN_2022_PROGRAM_ID,
    metadata_extension=True,
    max_decimals=18,
    default_decimals=9,
    default_supply=1_000_000,
    symbol_param="symbol",
    symbol_label="Token Symbol",
)


@dataclass(frozen=True)
class TokenRequest:
    """Validated parameters of a token creation."""

    name: str
    symbol: str
    decimals: int
    supply: int
    description: Optional[str] = None
    image: Optional[str] = None

    @property
    def raw_amount(self) -> int:
        return self.supply * 10**self.decimals


@dataclass(frozen=True)
class MintLayout:
    """Space allocated for the mint and the size its rent must cover."""

    space: int
    rent_size: int


def metadata_len(variant: TokenVariant, request: TokenRequest) -> int:
    """Size of the packed token metadata TLV entry stored on the mint."""
    if not variant.metadata_extension:
        return 0
    additional = [dict(key="description", value=request.description)] if request.description else []
    packed = TOKEN_METADATA_LAYOUT.build(
        dict(
            update_authority=bytes(32),
            mint=bytes(32),
            name=request.name,
            symbol=request.symbol,
            uri=request.image or "",
            additional_metadata=additional,
        )
    )
    return TLV_HEADER_LEN + len(packed)


def mint_layout(variant: TokenVariant, request: TokenRequest) -> MintLayout:
    if not variant.metadata_extension:
        return MintLayout(space=MINT_LEN, rent_size=MINT_LEN)
    # The metadata entry is appended by the token program with a realloc, so
    # the account is created at pointer size but funded for the final size.
    return MintLayout(
        space=MINT_WITH_METADATA_POINTER_LEN,
        rent_size=MINT_WITH_METADATA_POINTER_LEN + metadata_len(variant, request),
    )


def initialize_metadata_pointer(mint: Pubkey, authority: Pubkey, program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = INITIALIZE_METADATA_POINTER_LAYOUT.build(
        dict(
            instruction=METADATA_POINTER_EXTENSION,
            pointer_instruction=METADATA_POINTER_INITIALIZE,
            authority=bytes(authority),
            metadata_address=bytes(mint),
        )
    )
    return Instruction(program_id, data, [AccountMeta(mint, is_signer=False, is_writable=True)])


def initialize_metadata(
    mint: Pubkey,
    update_authority: Pubkey,
    mint_authority: Pubkey,
    name: str,
    symbol: str,
    uri: str,
    program_id: Pubkey = TOKEN_2022_PROGRAM_ID,
) -> Instruction:
    data = INITIALIZE_METADATA_LAYOUT.build(
        dict(discriminator=INITIALIZE_METADATA_DISCRIMINATOR, name=name, symbol=symbol, uri=uri)
    )
    accounts = [
        AccountMeta(mint, is_signer=False, is_writable=True),
        AccountMeta(update_authority, is_signer=False, is_writable=False),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(mint_authority, is_signer=True, is_writable=False),
    ]
    return Instruction(program_id, data, accounts)


def update_metadata_field(
    mint: Pubkey, update_authority: Pubkey, key: str, value: str, program_id: Pubkey = TOKEN_2022_PROGRAM_ID
) -> Instruction:
    data = UPDATE_FIELD_LAYOUT.build(
        dict(discriminator=UPDATE_FIELD_DISCRIMINATOR, field=METADATA_FIELD_KEY, key=key, value=value)
    )
    accounts = [
        AccountMeta(mint, is_signer=False, is_writable=True),
        AccountMeta(update_authority, is_signer=True, is_writable=False),
    ]
    return Instruction(program_id, data, accounts)


def build_token_instructions(
    variant: TokenVariant,
    request: TokenRequest,
    owner: Pubkey,
    mint: Pubkey,
    mint_rent: int,
    compute_unit_price: int = 0,
) -> List[Instruction]:
    """Ordered instructions creating the mint and minting the supply to ``owner``.

    ``owner`` pays for everything and holds the mint, freeze and metadata
    update authorities.  ``mint`` must co-sign the transaction.
    """
    layout = mint_layout(variant, request)
    program_id = variant.program_id
    instructions = []
    if compute_unit_price:
        instructions.append(set_compute_unit_price(compute_unit_price))

    instructions.append(
        create_account(
            CreateAccountParams(
                from_pubkey=owner,
                to_pubkey=mint,
                lamports=mint_rent,
                space=layout.space,
                owner=program_id,
            )
        )
    )
    if variant.metadata_extension:
        # extensions must be initialised before the mint itself
        instructions.append(initialize_metadata_pointer(mint, owner, program_id))

    instructions.append(
        initialize_mint(
            InitializeMintParams(
                decimals=request.decimals,
                program_id=program_id,
                mint=mint,
                mint_authority=owner,
                freeze_authority=owner,
            )
        )
    )
    if variant.metadata_extension:
        instructions.append(
            initialize_metadata(mint, owner, owner, request.name, request.symbol, request.image or "", program_id)
        )
        if request.description:
            instructions.append(update_metadata_field(mint, owner, "description", request.description, program_id))

    associated = get_associated_token_address(owner, mint, program_id)
    instructions.append(create_associated_token_account(owner, owner, mint, program_id))
    instructions.append(
        mint_to(
            MintToParams(
                program_id=program_id,
                mint=mint,
                dest=associated,
                mint_authority=owner,
                amount=request.raw_amount,
            )
        )
    )
    return instructions


def token_rules(variant: TokenVariant) -> List[FieldRule]:
    rules = [
        length_rule("name", "Token Name", 3, 32),
        length_rule(variant.symbol_param, variant.symbol_label, 2, 10),
    ]
    if variant.metadata_extension:
        rules += [
            max_length_rule("description", "Description", 200),
            url_rule("image", "Image URL"),
        ]
    rules += [
        integer_range_rule("decimals", "Decimals", 0, variant.max_decimals),
        positive_integer_rule("supply", "Initial Supply"),
    ]
    return rules


def default_supply(variant: TokenVariant, decimals: int) -> int:
    """Variant default supply, capped so the raw amount still fits in a u64."""
    return min(variant.default_supply, U64_MAX // 10**decimals)


def parse_token_request(variant: TokenVariant, params: Mapping[str, str]) -> TokenRequest:
    """Validate the query parameters of a token creation.

    Raises :class:`ParameterValidationError` listing every violation.
    """
    errors = collect_errors(token_rules(variant), params)
    messages = list(errors.values())

    if "decimals" not in errors and "supply" not in errors:
        decimals = int(params.get("decimals") or variant.default_decimals)
        supply = int(params.get("supply") or default_supply(variant, decimals))
        if supply * 10**decimals > U64_MAX:
            messages.append(f"Initial Supply is too large for {decimals} decimals")

    if messages:
        raise ParameterValidationError(messages)
    # classic SPL mints have nowhere to store description and image
    metadata = params if variant.metadata_extension else {}
    return TokenRequest(
        name=params["name"],
        symbol=params[variant.symbol_param],
        decimals=decimals,
        supply=supply,
        description=metadata.get("description") or None,
        image=metadata.get("image") or None,
    )

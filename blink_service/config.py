"""
Configuration management using Pydantic Settings
"""
import json
from decimal import Decimal
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from solana.constants import LAMPORTS_PER_SOL
from solders.keypair import Keypair
from solders.pubkey import Pubkey

load_dotenv()

CLUSTER_RPC_URLS = {
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
}

# CAIP-2 chain ids advertised in the X-Blockchain-Ids header
CLUSTER_CHAIN_IDS = {
    "mainnet-beta": "solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp",
    "devnet": "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1",
    "testnet": "solana:4uhcVJyU9pJkvQyS88uRDiswHXSCkY3z",
}

DEFAULT_FEE_COLLECTOR = "JCSTecnYRdTTeFTGxQuoPJzJGHpsmv6PQkPnKMz9isvi"


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Network
    solana_cluster: str = Field(default="devnet", description="Solana cluster name")
    solana_rpc: Optional[str] = Field(default=None, description="RPC endpoint, defaults to the cluster's public node")
    rpc_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout applied to every RPC call")
    action_version: str = Field(default="2.1.3", description="Value of the X-Action-Version header")
    log_level: str = Field(default="INFO", description="Logging level")

    # Token creation
    compute_unit_price_micro_lamports: int = Field(
        default=1000, ge=0, description="Priority fee per compute unit, 0 disables the instruction"
    )

    # Game
    game_entry_fee_lamports: int = Field(default=10 * LAMPORTS_PER_SOL, gt=0)
    game_prize_multiplier: int = Field(default=2, ge=1)
    game_min_number: int = Field(default=1)
    game_max_number: int = Field(default=12)
    game_fee_collector: str = Field(default=DEFAULT_FEE_COLLECTOR)
    game_house_keypair: Optional[str] = Field(default=None, description="Keypair paying out winning rounds")

    # Donations
    donation_wallet: str = Field(default=DEFAULT_FEE_COLLECTOR)
    donation_presets: str = Field(default="0.1,0.5,1", description="Preset SOL amounts (comma-separated)")
    donation_min_sol: Decimal = Field(default=Decimal("0.0001"), gt=0)

    # Airdrop
    airdrop_keypair: Optional[str] = Field(default=None, description="Keypair of the airdrop pool")
    airdrop_amount_lamports: int = Field(default=LAMPORTS_PER_SOL // 10, gt=0)
    airdrop_min_balance_lamports: int = Field(default=LAMPORTS_PER_SOL // 10, ge=0)
    airdrop_eligibility_mint: Optional[str] = Field(default=None)

    @field_validator("solana_cluster")
    @classmethod
    def validate_cluster(cls, v):
        if v not in CLUSTER_RPC_URLS:
            raise ValueError(f"Unknown cluster {v!r}, expected one of {sorted(CLUSTER_RPC_URLS)}")
        return v

    @field_validator("game_fee_collector", "donation_wallet", "airdrop_eligibility_mint")
    @classmethod
    def validate_pubkey(cls, v):
        if v is not None:
            Pubkey.from_string(v)
        return v

    @field_validator("game_max_number")
    @classmethod
    def validate_number_range(cls, v, info):
        low = info.data.get("game_min_number")
        if low is not None and v < low:
            raise ValueError("game_max_number must not be below game_min_number")
        return v

    @property
    def rpc_url(self) -> str:
        return self.solana_rpc or CLUSTER_RPC_URLS[self.solana_cluster]

    @property
    def blockchain_id(self) -> str:
        return CLUSTER_CHAIN_IDS[self.solana_cluster]

    def get_donation_presets(self) -> List[Decimal]:
        return [Decimal(p.strip()) for p in self.donation_presets.split(",") if p.strip()]


def load_keypair(value: str) -> Keypair:
    """Parse a keypair given as a base58 secret or a JSON byte array.

    The JSON form is what ``solana-keygen`` writes to disk.
    """
    value = value.strip()
    if value.startswith("["):
        return Keypair.from_bytes(bytes(json.loads(value)))
    return Keypair.from_base58_string(value)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

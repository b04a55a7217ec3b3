"""Number-guessing game round.

A round is *pending* until :meth:`GameRound.resolve` draws the winning
number, after which it is *resolved* and its transfers are fixed.  Nothing is
persisted between rounds.

The draw happens server-side before the player signs, with no commit-reveal
scheme and no on-chain randomness: the player sees the outcome in the
returned message and may simply not sign a losing transaction.  The game is
only suitable for demos without real value at stake.
"""
import enum
import random
from dataclasses import dataclass
from typing import List, Optional

from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer

WIN_MESSAGE = "Villainous Victory! You cracked the code!"
LOSE_MESSAGE = "Foiled Again! Better luck next time, villain."


class RoundState(enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


@dataclass
class GameRules:
    entry_fee: int
    prize_multiplier: int
    min_number: int
    max_number: int
    fee_collector: Pubkey

    @property
    def prize(self) -> int:
        return self.entry_fee * self.prize_multiplier


@dataclass
class GameRound:
    selected_number: int
    winning_number: Optional[int] = None
    state: RoundState = RoundState.PENDING

    @property
    def won(self) -> bool:
        if self.state is not RoundState.RESOLVED:
            raise RuntimeError("round is not resolved yet")
        return self.selected_number == self.winning_number

    def resolve(self, rules: GameRules, rng: random.Random) -> None:
        if self.state is RoundState.RESOLVED:
            raise RuntimeError("round already resolved")
        self.winning_number = rng.randint(rules.min_number, rules.max_number)
        self.state = RoundState.RESOLVED

    @property
    def message(self) -> str:
        headline = WIN_MESSAGE if self.won else LOSE_MESSAGE
        return f"{headline} You picked {self.selected_number}, the villain's number was {self.winning_number}."


def round_instructions(game: GameRound, rules: GameRules, player: Pubkey, house: Pubkey) -> List[Instruction]:
    """Transfers of a resolved round.

    The entry fee always goes to the fee collector.  A win adds a prize
    transfer from the house account, which then has to co-sign.
    """
    instructions = [
        transfer(TransferParams(from_pubkey=player, to_pubkey=rules.fee_collector, lamports=rules.entry_fee))
    ]
    if game.won:
        instructions.append(transfer(TransferParams(from_pubkey=house, to_pubkey=player, lamports=rules.prize)))
    return instructions

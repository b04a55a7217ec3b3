"""Unit tests for the game round resolver."""

import random

import pytest
from solders.keypair import Keypair

from blink_service.game import GameRound, GameRules, RoundState, round_instructions

from conftest import StubRandom, classify


@pytest.fixture
def rules():
    return GameRules(
        entry_fee=10, prize_multiplier=2, min_number=1, max_number=12, fee_collector=Keypair().pubkey()
    )


def test_round_starts_pending():
    game = GameRound(selected_number=3)
    assert game.state is RoundState.PENDING
    with pytest.raises(RuntimeError):
        game.won


def test_matching_number_wins(rules):
    game = GameRound(selected_number=7)
    game.resolve(rules, StubRandom(7))
    assert game.state is RoundState.RESOLVED
    assert game.won
    assert "Victory" in game.message
    assert "was 7" in game.message


def test_other_number_loses(rules):
    game = GameRound(selected_number=3)
    game.resolve(rules, StubRandom(7))
    assert not game.won
    assert "Foiled" in game.message


def test_resolves_only_once(rules):
    game = GameRound(selected_number=3)
    game.resolve(rules, StubRandom(7))
    with pytest.raises(RuntimeError):
        game.resolve(rules, StubRandom(3))


def test_draw_stays_in_range(rules):
    rng = random.Random(1234)
    drawn = set()
    for _ in range(500):
        game = GameRound(selected_number=1)
        game.resolve(rules, rng)
        drawn.add(game.winning_number)
    assert drawn == set(range(1, 13))


def test_losing_round_pays_collector(rules):
    player, house = Keypair().pubkey(), Keypair().pubkey()
    game = GameRound(selected_number=3)
    game.resolve(rules, StubRandom(7))
    instructions = round_instructions(game, rules, player, house)
    assert [classify(ix.program_id, ix.data) for ix in instructions] == ["transfer"]
    assert instructions[0].accounts[0].pubkey == player
    assert instructions[0].accounts[1].pubkey == rules.fee_collector


def test_winning_round_pays_from_house(rules):
    player, house = Keypair().pubkey(), Keypair().pubkey()
    game = GameRound(selected_number=7)
    game.resolve(rules, StubRandom(7))
    fee, prize = round_instructions(game, rules, player, house)
    assert fee.accounts[1].pubkey == rules.fee_collector
    assert prize.accounts[0].pubkey == house
    assert prize.accounts[0].is_signer
    assert prize.accounts[1].pubkey == player
    assert int.from_bytes(bytes(prize.data)[4:12], "little") == rules.prize == 20

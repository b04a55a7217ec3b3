"""Unit tests for field rules and token parameter parsing."""

import re

import pytest
from solders.keypair import Keypair

from blink_service.config import Settings
from blink_service.descriptors import selected_number_rule
from blink_service.errors import InvalidAccountError, ParameterValidationError
from blink_service.tokens import SPL_TOKEN, TOKEN_2022, default_supply, parse_token_request, token_rules
from blink_service.validation import U64_MAX, number_range_pattern, parse_account, validate_params


def token_params(**overrides):
    params = {"name": "Villain Coin", "symbol": "VIL", "ticker": "VIL"}
    params.update(overrides)
    return {k: v for k, v in params.items() if v is not None}


class TestParseAccount:
    def test_valid_account(self):
        key = Keypair().pubkey()
        assert parse_account(str(key)) == key

    @pytest.mark.parametrize("account", ["", "not-a-key", "1111", "0" * 44])
    def test_invalid_account(self, account):
        with pytest.raises(InvalidAccountError):
            parse_account(account)


class TestTokenName:
    @pytest.mark.parametrize("name", ["abc", "x" * 32])
    def test_boundaries_pass(self, name):
        request = parse_token_request(TOKEN_2022, token_params(name=name))
        assert request.name == name

    @pytest.mark.parametrize("name", ["ab", "x" * 33])
    def test_boundaries_fail(self, name):
        with pytest.raises(ParameterValidationError) as exc:
            parse_token_request(TOKEN_2022, token_params(name=name))
        assert exc.value.errors == ["Token Name must be between 3 and 32 characters"]

    def test_missing_name(self):
        with pytest.raises(ParameterValidationError) as exc:
            parse_token_request(TOKEN_2022, token_params(name=None))
        assert exc.value.errors == ["Token Name is required"]


class TestDecimals:
    @pytest.mark.parametrize("variant", [SPL_TOKEN, TOKEN_2022])
    def test_zero_and_max_pass(self, variant):
        for decimals in (0, variant.max_decimals):
            request = parse_token_request(variant, token_params(decimals=str(decimals), supply="1"))
            assert request.decimals == decimals

    @pytest.mark.parametrize("variant", [SPL_TOKEN, TOKEN_2022])
    def test_out_of_range_fails(self, variant):
        for decimals in (-1, variant.max_decimals + 1):
            with pytest.raises(ParameterValidationError) as exc:
                parse_token_request(variant, token_params(decimals=str(decimals)))
            assert exc.value.errors == [f"Decimals must be an integer between 0 and {variant.max_decimals}"]

    @pytest.mark.parametrize("variant", [SPL_TOKEN, TOKEN_2022])
    def test_max_without_supply(self, variant):
        request = parse_token_request(variant, token_params(decimals=str(variant.max_decimals)))
        assert request.supply == default_supply(variant, variant.max_decimals)
        assert 0 < request.raw_amount <= U64_MAX

    def test_default_supply_capped(self):
        assert default_supply(TOKEN_2022, 18) == 18
        assert default_supply(TOKEN_2022, 9) == TOKEN_2022.default_supply

    def test_variant_default(self):
        request = parse_token_request(SPL_TOKEN, token_params())
        assert request.decimals == SPL_TOKEN.default_decimals
        assert request.supply == SPL_TOKEN.default_supply


class TestAccumulatedErrors:
    def test_name_and_ticker_both_reported(self):
        with pytest.raises(ParameterValidationError) as exc:
            parse_token_request(SPL_TOKEN, token_params(name="a", ticker="b"))
        assert exc.value.errors == [
            "Token Name must be between 3 and 32 characters",
            "Ticker Symbol must be between 2 and 10 characters",
        ]

    def test_every_rule_reported(self):
        params = {
            "name": "a",
            "symbol": "TOO-LONG-SYMBOL",
            "description": "d" * 201,
            "image": "ftp://example.com/a.png",
            "decimals": "19",
            "supply": "0",
        }
        with pytest.raises(ParameterValidationError) as exc:
            parse_token_request(TOKEN_2022, params)
        assert len(exc.value.errors) == 6
        assert exc.value.to_content() == {"errors": exc.value.errors}

    def test_supply_overflow(self):
        with pytest.raises(ParameterValidationError) as exc:
            parse_token_request(TOKEN_2022, token_params(decimals="18", supply="100"))
        assert exc.value.errors == ["Initial Supply is too large for 18 decimals"]

    def test_supply_overflow_skipped_when_decimals_invalid(self):
        with pytest.raises(ParameterValidationError) as exc:
            parse_token_request(TOKEN_2022, token_params(decimals="99", supply="100"))
        assert len(exc.value.errors) == 1


class TestOptionalFields:
    def test_description_and_image(self):
        request = parse_token_request(
            TOKEN_2022, token_params(description="Evil laughs", image="https://example.com/vil.png")
        )
        assert request.description == "Evil laughs"
        assert request.image == "https://example.com/vil.png"

    def test_empty_optional_fields_are_none(self):
        request = parse_token_request(TOKEN_2022, token_params(description="", image=""))
        assert request.description is None
        assert request.image is None

    @pytest.mark.parametrize("image", ["example.com/a.png", "https://", "https://exa mple.com"])
    def test_bad_image(self, image):
        with pytest.raises(ParameterValidationError) as exc:
            parse_token_request(TOKEN_2022, token_params(image=image))
        assert exc.value.errors == ["Image URL must be a valid http(s) URL"]


class TestPatternsMatchValidation:
    """The advertised pattern must accept exactly what the server accepts."""

    SAMPLES = ["", "a", "ab", "abc", "x" * 10, "x" * 11, "x" * 32, "x" * 33, "-1", "0", "9", "10", "18", "19", "007"]

    @pytest.mark.parametrize("variant", [SPL_TOKEN, TOKEN_2022])
    def test_token_rules(self, variant):
        for rule in token_rules(variant):
            if rule.check is not None:
                continue
            for value in self.SAMPLES:
                if not value:
                    continue
                assert bool(re.fullmatch(rule.pattern, value)) == (rule.validate(value) is None), (rule.name, value)

    def test_selected_number_rule(self):
        rule = selected_number_rule(Settings(_env_file=None))
        for n in range(-2, 16):
            accepted = rule.validate(str(n)) is None
            assert accepted == (1 <= n <= 12)
            assert bool(re.fullmatch(rule.pattern, str(n))) == accepted


def test_number_range_pattern():
    pattern = number_range_pattern(0, 9)
    assert re.fullmatch(pattern, "0")
    assert re.fullmatch(pattern, "9")
    assert not re.fullmatch(pattern, "10")
    assert not re.fullmatch(pattern, "01")


def test_validate_params_returns_values():
    rule = selected_number_rule(Settings(_env_file=None))
    assert validate_params([rule], {"selectedNumber": "4"}) == {"selectedNumber": "4"}


def test_classic_spl_has_no_metadata_rules():
    assert [rule.name for rule in token_rules(SPL_TOKEN)] == ["name", "ticker", "decimals", "supply"]
    request = parse_token_request(SPL_TOKEN, token_params(description="ignored", image="not a url"))
    assert request.description is None
    assert request.image is None

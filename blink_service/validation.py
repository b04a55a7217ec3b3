"""Request validation shared by the metadata and submission phases.

Each input field is described once as a :class:`FieldRule`.  The rule
produces the ``ActionParameter`` advertised in the descriptor and performs
the server-side check, so the pattern a wallet sees is the pattern the
service enforces.
"""
import re
from decimal import Decimal
from typing import Callable, Dict, Mapping, Optional, Sequence

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError
from solders.pubkey import Pubkey

from .errors import InvalidAccountError, ParameterValidationError
from .models import ActionParameter

U64_MAX = 2**64 - 1

_http_url = TypeAdapter(AnyHttpUrl)


def number_range_pattern(low: int, high: int) -> str:
    """Regex accepting exactly the integers ``low..high``."""
    return "^(" + "|".join(str(n) for n in range(low, high + 1)) + ")$"


def is_http_url(value: str) -> bool:
    try:
        _http_url.validate_python(value)
    except ValidationError:
        return False
    return True


class FieldRule:
    """Validation rule for a single query parameter."""

    def __init__(
        self,
        name: str,
        label: str,
        pattern: str,
        message: str,
        required: bool = False,
        pattern_description: Optional[str] = None,
        check: Optional[Callable[[str], bool]] = None,
    ):
        self.name = name
        self.label = label
        self.pattern = pattern
        self.message = message
        self.required = required
        self.pattern_description = pattern_description or message
        self.check = check

    def parameter(self) -> ActionParameter:
        return ActionParameter(
            name=self.name,
            label=self.label,
            required=self.required,
            pattern=self.pattern,
            patternDescription=self.pattern_description,
        )

    def validate(self, raw: Optional[str]) -> Optional[str]:
        """Return an error message, or None when the value is acceptable."""
        if raw is None or raw == "":
            return f"{self.label} is required" if self.required else None
        if not re.fullmatch(self.pattern, raw):
            return self.message
        if self.check is not None and not self.check(raw):
            return self.message
        return None


def length_rule(name: str, label: str, low: int, high: int, required: bool = True) -> FieldRule:
    return FieldRule(
        name,
        label,
        pattern=rf"^.{{{low},{high}}}$",
        message=f"{label} must be between {low} and {high} characters",
        required=required,
    )


def max_length_rule(name: str, label: str, high: int) -> FieldRule:
    return FieldRule(
        name,
        label,
        pattern=rf"^.{{0,{high}}}$",
        message=f"{label} must be at most {high} characters",
    )


def url_rule(name: str, label: str) -> FieldRule:
    return FieldRule(
        name,
        label,
        pattern=r"^https?://\S+$",
        message=f"{label} must be a valid http(s) URL",
        check=is_http_url,
    )


def integer_range_rule(name: str, label: str, low: int, high: int, required: bool = False) -> FieldRule:
    return FieldRule(
        name,
        label,
        pattern=number_range_pattern(low, high),
        message=f"{label} must be an integer between {low} and {high}",
        required=required,
    )


def positive_integer_rule(name: str, label: str) -> FieldRule:
    return FieldRule(
        name,
        label,
        pattern=r"^[1-9][0-9]*$",
        message=f"{label} must be a positive integer",
    )


def sol_amount_rule(name: str, label: str, minimum: Decimal) -> FieldRule:
    return FieldRule(
        name,
        label,
        pattern=r"^[0-9]+(\.[0-9]{1,9})?$",
        message=f"{label} must be a SOL amount of at least {minimum} with at most 9 decimal places",
        required=True,
        check=lambda raw: Decimal(raw) >= minimum,
    )


def parse_account(account: str) -> Pubkey:
    """Decode the wallet account of a POST body."""
    try:
        return Pubkey.from_string(account.strip())
    except (ValueError, TypeError):
        raise InvalidAccountError()


def collect_errors(rules: Sequence[FieldRule], params: Mapping[str, str]) -> Dict[str, str]:
    """Map each failing field to its message, in rule order."""
    errors = {}
    for rule in rules:
        error = rule.validate(params.get(rule.name))
        if error:
            errors[rule.name] = error
    return errors


def validate_params(rules: Sequence[FieldRule], params: Mapping[str, str]) -> Dict[str, Optional[str]]:
    """Apply every rule and raise one error listing all violations."""
    errors = collect_errors(rules, params)
    if errors:
        raise ParameterValidationError(list(errors.values()))
    return {rule.name: params.get(rule.name) or None for rule in rules}

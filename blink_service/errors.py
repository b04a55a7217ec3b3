"""Error taxonomy for action requests.

Every failure a handler can report is an :class:`ActionError`.  The FastAPI
app translates them into JSON bodies in one place, so handlers never build
error responses themselves and internal details never reach the client.
"""
from decimal import Decimal
from typing import Any, Dict, List

from solana.constants import LAMPORTS_PER_SOL


def format_sol(lamports: int) -> str:
    """Render a lamport amount as SOL without trailing zeros."""
    sol = Decimal(lamports) / LAMPORTS_PER_SOL
    text = f"{sol:.9f}".rstrip("0").rstrip(".")
    return text or "0"


class ActionError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_content(self) -> Dict[str, Any]:
        return {"error": self.message}


class ClientInputError(ActionError):
    """Malformed or unacceptable client input."""


class InvalidAccountError(ClientInputError):
    def __init__(self, message: str = "Invalid Solana account"):
        super().__init__(message)


class ParameterValidationError(ClientInputError):
    """Carries every violated field rule, not just the first one."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)

    def to_content(self) -> Dict[str, Any]:
        return {"errors": self.errors}


class InsufficientFundsError(ActionError):
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient balance: {format_sol(required)} SOL required, "
            f"{format_sol(available)} SOL available"
        )


class ActionUnavailableError(ActionError):
    """The action is not configured on this deployment."""

    status_code = 503


class UpstreamError(ActionError):
    """The Solana RPC node failed or timed out."""

    status_code = 500

    def __init__(self, message: str = "Failed to reach the Solana network, please try again"):
        super().__init__(message)

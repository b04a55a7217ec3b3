"""Wire models of the Solana Actions protocol."""
import re
from typing import List, Literal, Optional

from pydantic import BaseModel, model_validator


class ActionParameter(BaseModel):
    """One input field of an action link."""

    name: str
    label: str
    required: bool = False
    pattern: Optional[str] = None
    patternDescription: Optional[str] = None


class ActionLink(BaseModel):
    label: str
    href: str
    type: Literal["transaction"] = "transaction"
    parameters: List[ActionParameter] = []

    @model_validator(mode="after")
    def check_placeholders(self) -> "ActionLink":
        placeholders = set(re.findall(r"\{(\w+)\}", self.href))
        for param in self.parameters:
            if param.name not in placeholders:
                raise ValueError(f"parameter {param.name!r} has no placeholder in {self.href!r}")
        return self


class ActionLinks(BaseModel):
    actions: List[ActionLink]


class ActionGetResponse(BaseModel):
    """Metadata returned by GET/OPTIONS on an action route."""

    icon: str
    title: str
    description: str
    label: str
    links: ActionLinks


class ActionPostRequest(BaseModel):
    """Request body for POST on an action route."""

    account: str


class ActionPostResponse(BaseModel):
    """Response body for POST on an action route."""

    transaction: str
    message: str
    type: Literal["transaction"] = "transaction"

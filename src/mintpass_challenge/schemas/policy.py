"""Challenge policy options and their parsed, immutable form."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx
from eth_utils import is_address, to_checksum_address

from mintpass_challenge.core.settings import Settings
from mintpass_challenge.services.errors import ConfigurationError

DEFAULT_ERROR_TEMPLATE = (
    "You need a MintPass NFT to post in this community. "
    "Visit https://mintpass.org/request/{authorAddress} to get verified."
)
DEFAULT_REQUIRED_TOKEN_TYPE = "0"
DEFAULT_TRANSFER_COOLDOWN_SECONDS = "604800"  # 1 week
DEFAULT_BIND_TO_FIRST_AUTHOR = "true"

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES = frozenset({"false", "0", "no", "off"})


@dataclass(frozen=True)
class PolicyConfig:
    """Immutable policy applied to a single verification call."""

    chain_ticker: str
    contract_address: str
    required_token_type: int
    cooldown_seconds: int
    bind_to_first_author: bool
    error_template: str
    rpc_url: str | None = None


@dataclass(frozen=True)
class OptionInput:
    """Descriptor of one challenge option shown to community operators."""

    option: str
    label: str
    description: str
    default: str | None = None
    placeholder: str | None = None
    required: bool = False

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "option": self.option,
            "label": self.label,
            "description": self.description,
        }
        if self.default is not None:
            data["default"] = self.default
        if self.placeholder is not None:
            data["placeholder"] = self.placeholder
        if self.required:
            data["required"] = True
        return data


def option_inputs(settings: Settings) -> list[OptionInput]:
    """Return the option descriptors recognized by the challenge."""
    ticker = settings.default_chain_ticker
    return [
        OptionInput(
            option="chainTicker",
            label="Chain Ticker",
            default=ticker,
            description="The chain ticker where MintPass contract is deployed",
            placeholder=ticker,
            required=True,
        ),
        OptionInput(
            option="contractAddress",
            label="Contract Address",
            default=settings.default_contract_addresses.get(ticker),
            description="The MintPass contract address",
            placeholder="0x...",
            required=True,
        ),
        OptionInput(
            option="requiredTokenType",
            label="Required Token Type",
            default=DEFAULT_REQUIRED_TOKEN_TYPE,
            description=(
                "The token type required to pass (0 = SMS verification, 1 = Email, etc.)"
            ),
            placeholder="0",
            required=True,
        ),
        OptionInput(
            option="bindToFirstAuthor",
            label="Bind NFT to First Author (per community)",
            default=DEFAULT_BIND_TO_FIRST_AUTHOR,
            description=(
                "When enabled, the first author that uses a token in this community gets "
                "bound to that tokenId; subsequent different authors are rejected."
            ),
            placeholder="true",
        ),
        OptionInput(
            option="transferCooldownSeconds",
            label="Transfer Cooldown (seconds)",
            default=DEFAULT_TRANSFER_COOLDOWN_SECONDS,
            description=(
                "Cooldown period in seconds before a transferred NFT can be used by new owner"
            ),
            placeholder=DEFAULT_TRANSFER_COOLDOWN_SECONDS,
        ),
        OptionInput(
            option="error",
            label="Error Message",
            default=DEFAULT_ERROR_TEMPLATE,
            description="Error message shown to users who don't have the required NFT",
        ),
        OptionInput(
            option="rpcUrl",
            label="Custom RPC URL",
            default="",
            description=(
                "Optional custom RPC URL for blockchain calls (for testing). "
                "If not provided, uses default chain RPC."
            ),
            placeholder="http://127.0.0.1:8545",
        ),
    ]


def _option(options: Mapping[str, Any], name: str) -> str | None:
    value = options.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_non_negative_int(name: str, raw: str) -> int:
    try:
        value = int(raw, 10)
    except ValueError as err:
        raise ConfigurationError(f"Invalid {name} - must be a non-negative number") from err
    if value < 0:
        raise ConfigurationError(f"Invalid {name} - must be a non-negative number")
    return value


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid {name} - expected true or false")


def _parse_rpc_url(raw: str | None) -> str | None:
    if raw is None:
        return None
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL as err:
        raise ConfigurationError(f"Invalid rpcUrl {raw!r}") from err
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"Invalid rpcUrl {raw!r} - expected an http(s) URL")
    return raw


def build_policy(options: Mapping[str, Any] | None, settings: Settings) -> PolicyConfig:
    """Parse the string-valued challenge options into a `PolicyConfig`.

    Args:
        options: Options configured by the community operator.
        settings: Service settings providing defaults.

    Returns:
        The parsed policy.

    Raises:
        ConfigurationError: If an option is malformed or no contract address
            can be resolved for the chain ticker.
    """
    options = options or {}
    chain_ticker = _option(options, "chainTicker") or settings.default_chain_ticker
    contract_address = _option(options, "contractAddress") or settings.default_contract_addresses.get(
        chain_ticker
    )
    if not contract_address:
        raise ConfigurationError("Missing option contractAddress")
    if not is_address(contract_address):
        raise ConfigurationError(f"Invalid contractAddress {contract_address!r}")

    required_token_type = _parse_non_negative_int(
        "requiredTokenType",
        _option(options, "requiredTokenType") or DEFAULT_REQUIRED_TOKEN_TYPE,
    )
    cooldown_seconds = _parse_non_negative_int(
        "transferCooldownSeconds",
        _option(options, "transferCooldownSeconds") or DEFAULT_TRANSFER_COOLDOWN_SECONDS,
    )
    bind_to_first_author = _parse_bool(
        "bindToFirstAuthor",
        _option(options, "bindToFirstAuthor") or DEFAULT_BIND_TO_FIRST_AUTHOR,
    )

    return PolicyConfig(
        chain_ticker=chain_ticker,
        contract_address=to_checksum_address(contract_address),
        required_token_type=required_token_type,
        cooldown_seconds=cooldown_seconds,
        bind_to_first_author=bind_to_first_author,
        error_template=_option(options, "error") or DEFAULT_ERROR_TEMPLATE,
        rpc_url=_parse_rpc_url(_option(options, "rpcUrl")),
    )

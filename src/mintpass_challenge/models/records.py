# src/mintpass_challenge/models/records.py
"""Anti-abuse records persisted across challenge verifications."""


from sqlalchemy import BigInteger, Text
from sqlalchemy.orm import Mapped, mapped_column

from mintpass_challenge.db.session import Base


class WalletTimestamp(Base):
    """Last accepted wallet-proof timestamp, used to reject replayed signatures."""

    __tablename__ = "wallet_timestamp"

    chain_ticker: Mapped[str] = mapped_column(Text, primary_key=True)
    # Checksum form, so case variants of one wallet share a row.
    wallet_address: Mapped[str] = mapped_column(Text, primary_key=True)
    last_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)


class TokenUsage(Base):
    """Most recent successful use of a MintPass token."""

    __tablename__ = "token_usage"

    contract_address: Mapped[str] = mapped_column(Text, primary_key=True)
    # uint256 token ids do not fit BigInteger; stored as decimal text.
    token_id: Mapped[str] = mapped_column(Text, primary_key=True)
    author_address: Mapped[str] = mapped_column(Text, nullable=False)
    last_used_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class TokenBinding(Base):
    """Permanent binding of a token to the first author that used it in a community.

    An empty community id marks a binding made without community context.
    """

    __tablename__ = "token_binding"

    community_id: Mapped[str] = mapped_column(Text, primary_key=True)
    contract_address: Mapped[str] = mapped_column(Text, primary_key=True)
    token_id: Mapped[str] = mapped_column(Text, primary_key=True)
    author_address: Mapped[str] = mapped_column(Text, nullable=False)

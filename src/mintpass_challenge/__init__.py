"""NFT-gated anti-spam challenge backed by MintPass ownership."""

__version__ = "0.1.0"

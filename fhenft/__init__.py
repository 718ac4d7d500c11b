"""
FHENFT - confidential sealed-bid NFT auctions.

Bids stay encrypted from submission to settlement:
- Encrypted running maximum via compare + oblivious select
- One attested decryption of the final outcome
- Exactly-once release of the escrowed asset
"""

__version__ = "0.1.0"

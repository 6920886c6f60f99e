"""
Protocol-wide immutable parameters for the lucky draw ledger.

These values define the public rules of every draw.
Changing them changes how random values map to prizes and MUST be
publicly announced.
"""

# Probability space (basis points, 10000 = 100%)
BASIS_POINTS = 10_000

# Tier index recorded when the default prize (or nothing) was won
NO_TIER = 2**256 - 1

# 32 zero bytes, base58
ZERO_ADDRESS = "11111111111111111111111111111111"

# Label used to derive the ledger's own custody account
CUSTODY_LABEL = "lucky-draw-manager"

# Randomness request defaults
DEFAULT_CALLBACK_GAS_LIMIT = 2_500_000
DEFAULT_REQUEST_CONFIRMATIONS = 3
DEFAULT_NATIVE_PAYMENT = False
MIN_REQUEST_CONFIRMATIONS = 3
MAX_REQUEST_CONFIRMATIONS = 200
NUM_WORDS = 1

# Display only; ledger amounts are raw integers
DEFAULT_TOKEN_DECIMALS = 6

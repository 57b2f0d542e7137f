"""
Immutable parameters of the BlockLucky lottery.

These values define the public rules of every round.
Changing them changes what players pay and MUST be publicly announced.
"""

# Native currency uses 9 decimals (base units per whole coin)
NATIVE_DECIMALS = 9

# Fixed ticket price: 0.01 coin in base units
TICKET_PRICE = 10 ** (NATIVE_DECIMALS - 2)

# Batch purchases are limited to this many tickets per call
MAX_BATCH_QUANTITY = 25

# (minimum quantity, discount percent), highest tier first
DISCOUNT_TIERS = (
    (25, 20),
    (20, 15),
    (15, 10),
)

# Sentinel "no winner" identity: base58 of 32 zero bytes
ZERO_ADDRESS = "11111111111111111111111111111111"

# Default state file used by the CLI
DEFAULT_STATE_FILE = "blocklucky_state.json"

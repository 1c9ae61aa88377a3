"""
Chain-wide constants.
"""

ADDRESS_PREFIX = "mxw"
VAL_OPERATOR_ADDRESS_PREFIX = "mxwvaloper"
KYC_ADDRESS_PREFIX = "kyc"

ADDRESS_ZERO = "mxw1qqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqgcpfl3"
HASH_ZERO = "0x" + "0" * 64

SMALLEST_UNIT_NAME = "cin"
CIN_PER_MXW = 10 ** 18
MXW_DECIMALS = 18

ZERO_FEE = {
    "amount": [
        {
            "amount": "0",
            "denom": SMALLEST_UNIT_NAME,
        },
    ],
    "gas": "0",
}

MAX_UINT256 = 2 ** 256 - 1

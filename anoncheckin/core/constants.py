"""Application constants.

Magic strings and numbers shared by the ledger access layer. Centralizing
them keeps the wallet codes and sentinels consistent across services.
"""

# Network
# Sepolia testnet, the chain the contract is deployed to by default
SEPOLIA_CHAIN_ID = 11155111

# EIP-1193 provider error codes
WALLET_USER_REJECTED = 4001
WALLET_UNRECOGNIZED_CHAIN = 4902

# Placeholder record used when a meeting cannot be reconstructed
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
PLACEHOLDER_TITLE = "Invalid Meeting"

# Input limits
MAX_TITLE_LENGTH = 200
# uint256 upper bound for ids passed to the contract
MAX_UINT256 = 2**256 - 1

# Snapshot views (tabs in the dashboard)
VIEW_ALL = "all"
VIEW_ACTIVE = "active"
VIEW_COMPLETED = "completed"
MEETING_VIEWS = (VIEW_ALL, VIEW_ACTIVE, VIEW_COMPLETED)

POPULAR_MEETINGS_LIMIT = 3

"""Wallet engine for vibecoin-wallet.

Holds EVM account keys encrypted at rest under a password (PBKDF2 +
AES-256-GCM), and exposes a small set of operations that unlock a key for
one call: signing messages, sending transfers, and claiming fees or vested
tokens. Fee claims fall back to a gas-sponsored path through the launch
service when the wallet has no native balance.
"""

from vibecoin_wallet.wallet.errors import WalletError  # noqa: F401
from vibecoin_wallet.wallet.keystore import Keystore, KeystoreRecord  # noqa: F401
from vibecoin_wallet.wallet.manager import WalletManager  # noqa: F401
from vibecoin_wallet.wallet.results import OperationResult  # noqa: F401

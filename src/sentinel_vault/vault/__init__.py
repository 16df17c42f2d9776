# Sentinel Vault - Vault Module
#
# Envelope encryption (PBKDF2 + HKDF + AES-256-GCM), password strength,
# reuse/breach detection, the per-user credential vault and health alerts.

from .encryption import DerivedMaterial, KeyDerivation, VaultCipher
from .strength import generate_passphrase, generate_password, score, strength_label
from .breach import BreachOracle, DisabledBreachOracle, PwnedPasswordsClient, StaticBreachOracle
from .health import ReuseAndBreachDetector
from .vault_manager import CredentialVault, DecryptedCredential
from .alerts import ScanSummary, SecurityAlertService

__all__ = [
    "DerivedMaterial",
    "KeyDerivation",
    "VaultCipher",
    "score",
    "strength_label",
    "generate_password",
    "generate_passphrase",
    "BreachOracle",
    "PwnedPasswordsClient",
    "StaticBreachOracle",
    "DisabledBreachOracle",
    "ReuseAndBreachDetector",
    "CredentialVault",
    "DecryptedCredential",
    "SecurityAlertService",
    "ScanSummary",
]

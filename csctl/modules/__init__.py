"""
Install config, vault and cluster bootstrap modules.
"""
from .crypto import CryptoError
from .k0s_config import generate_k0s_config
from .manager import InstallConfigManager
from .models import DocumentError, InstallConfig, InstallVault
from .profiles import ProfileError
from .tracker import RegenerationError
from .validate import ConfigValidationError
from .vault import VaultError

# Failures a command reports to the operator instead of a traceback
COMMAND_ERRORS = (
    ConfigValidationError,
    CryptoError,
    DocumentError,
    ProfileError,
    RegenerationError,
    VaultError,
    OSError,
)

__all__ = [
    'COMMAND_ERRORS',
    'ConfigValidationError',
    'CryptoError',
    'DocumentError',
    'InstallConfig',
    'InstallConfigManager',
    'InstallVault',
    'ProfileError',
    'RegenerationError',
    'VaultError',
    'generate_k0s_config',
]

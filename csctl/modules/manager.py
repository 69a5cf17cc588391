"""
InstallConfigManager: holds one install config and its vault and exposes the
operations the commands are built from.
"""
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..utils import read_file, write_file
from .collector import ConfigCollector, InstallOptions
from .models import InstallConfig, InstallVault
from .profiles import apply_profile
from .prompt import Prompter
from .secret_generator import GeneratedSecrets, generate_secrets, place_secrets
from .validate import validate_certificates, validate_install_config, validate_vault
from .vault import extract_secrets_into_vault, merge_vault_into_config

logger = logging.getLogger("csctl.manager")

CONFIG_HEADER = """\
# Codesphere Installer Configuration
# Generated by csctl
#
# This file contains the main configuration for installing Codesphere Private Cloud.
# Review and modify as needed before running the installer.
#
# For more information, see the installation documentation.

"""

VAULT_HEADER = """\
# Codesphere Installer Secrets
# Generated by csctl
#
# IMPORTANT: This file contains sensitive information!
#
# Before storing or transmitting this file:
# 1. Install SOPS and Age: brew install sops age
# 2. Generate an Age keypair: age-keygen -o age_key.txt
# 3. Encrypt this file:
#    age-keygen -y age_key.txt  # Get public key
#    sops --encrypt --age <PUBLIC_KEY> --in-place prod.vault.yaml
#
# Keep the Age private key (age_key.txt) extremely secure!
#
# To edit the encrypted file later:
#    export SOPS_AGE_KEY_FILE=/path/to/age_key.txt
#    sops prod.vault.yaml

"""

PathLike = Union[str, Path]


class InstallConfigManager:
    """Install config and vault of one installation, plus their lifecycle."""

    def __init__(self, config: Optional[InstallConfig] = None, vault: Optional[InstallVault] = None):
        self.config = config if config is not None else InstallConfig()
        self.vault = vault if vault is not None else InstallVault()

    def apply_profile(self, name: str) -> None:
        self.config = apply_profile(self.config, name)

    def collect(self, options: Optional[InstallOptions] = None, prompter: Optional[Prompter] = None) -> None:
        """Fill every empty field from ``options``, then from ``prompter``."""
        collector = ConfigCollector(prompter or Prompter(interactive=False))
        self.config = collector.collect(self.config, options)

    def collect_interactively(self, options: Optional[InstallOptions] = None) -> None:
        self.collect(options, Prompter(interactive=True))

    def validate(self) -> List[str]:
        return validate_install_config(self.config)

    def validate_vault(self) -> List[str]:
        return validate_vault(self.vault)

    def validate_certificates(self) -> List[str]:
        return validate_certificates(self.config)

    def generate_secrets(self) -> GeneratedSecrets:
        """Generate a complete secret set and place it into the config."""
        generated = generate_secrets(self.config)
        place_secrets(self.config, generated)
        return generated

    def load_install_config_from_file(self, path: PathLike) -> None:
        logger.info(f"Loading install config from {path}")
        self.config = InstallConfig.unmarshal(read_file(path), source=str(path))

    def load_vault_from_file(self, path: PathLike) -> None:
        logger.info(f"Loading vault from {path}")
        self.vault = InstallVault.unmarshal(read_file(path), source=str(path))

    def merge_vault_into_config(self) -> None:
        merge_vault_into_config(self.config, self.vault)

    def extract_secrets_into_vault(self, only: Optional[Iterable[str]] = None) -> List[str]:
        return extract_secrets_into_vault(self.config, self.vault, only=only)

    def render_install_config(self, with_comments: bool = False) -> bytes:
        data = self.config.marshal()
        if with_comments:
            data = CONFIG_HEADER.encode("utf-8") + data
        return data

    def render_vault(self, with_comments: bool = False) -> bytes:
        data = self.vault.marshal()
        if with_comments:
            data = VAULT_HEADER.encode("utf-8") + data
        return data

    def write_install_config(self, path: PathLike, with_comments: bool = False) -> None:
        write_file(path, self.render_install_config(with_comments), "Configuration")

    def write_vault(self, path: PathLike, with_comments: bool = False) -> None:
        """Extract the config's secrets into the vault and write it."""
        self.extract_secrets_into_vault()
        write_file(path, self.render_vault(with_comments), "Secrets")

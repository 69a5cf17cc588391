"""
Init and update flows for the install config and vault documents.

Nothing is written until validation and secret generation have both
succeeded, and both documents are rendered before either one is written.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..utils import write_file
from .collector import InstallOptions
from .k0s_config import K0sConfig, generate_k0s_config
from .manager import InstallConfigManager, PathLike
from .prompt import Prompter
from .tracker import ConfigUpdate, SecretClass, SecretDependencyTracker, apply_updates, regenerate_secrets
from .validate import ConfigValidationError

logger = logging.getLogger("csctl.install_config")


@dataclass
class UpdateResult:
    changed_fields: List[str] = field(default_factory=list)
    regenerated: List[SecretClass] = field(default_factory=list)
    vault_entries: List[str] = field(default_factory=list)


def _raise_on(errors: List[str], subject: str) -> None:
    if errors:
        raise ConfigValidationError(errors, subject)


def _write_both(manager: InstallConfigManager, config_path: PathLike, vault_path: PathLike,
                with_comments: bool) -> None:
    config_data = manager.render_install_config(with_comments)
    vault_data = manager.render_vault(with_comments)
    write_file(config_path, config_data, "Configuration")
    write_file(vault_path, vault_data, "Secrets")


def validate_existing(config_path: PathLike, vault_path: Optional[PathLike] = None) -> InstallConfigManager:
    """Validate a config (and its vault, when the file exists) without writing anything.

    Raises:
        ConfigValidationError: With every violation found
    """
    manager = InstallConfigManager()
    manager.load_install_config_from_file(config_path)
    errors = manager.validate()
    if vault_path and Path(vault_path).expanduser().exists():
        manager.load_vault_from_file(vault_path)
        errors.extend(manager.validate_vault())
    _raise_on(errors, "configuration")
    logger.info(f"{config_path} is valid")
    return manager


def init_install_config(
    config_path: PathLike,
    vault_path: PathLike,
    profile: str = "",
    options: Optional[InstallOptions] = None,
    prompter: Optional[Prompter] = None,
    with_comments: bool = False,
) -> InstallConfigManager:
    """Create a new config and vault: profile, collect, validate, generate, write."""
    manager = InstallConfigManager()
    manager.apply_profile(profile)
    manager.collect(options, prompter)
    _raise_on(manager.validate(), "configuration")

    manager.generate_secrets()
    _raise_on(manager.validate_certificates(), "certificate")
    manager.extract_secrets_into_vault()
    _raise_on(manager.validate_vault(), "vault")

    _write_both(manager, config_path, vault_path, with_comments)
    return manager


def update_install_config(
    config_path: PathLike,
    vault_path: PathLike,
    update: ConfigUpdate,
    with_comments: bool = False,
) -> UpdateResult:
    """Apply overrides to an existing config and re-issue only what they invalidate.

    Vault entries that no changed field depends on are left exactly as they were.
    """
    manager = InstallConfigManager()
    manager.load_install_config_from_file(config_path)
    manager.load_vault_from_file(vault_path)
    manager.merge_vault_into_config()

    tracker = SecretDependencyTracker()
    result = UpdateResult(changed_fields=apply_updates(manager.config, update, tracker))
    _raise_on(manager.validate(), "configuration")

    if tracker.has_changes():
        logger.info("Regenerating affected secrets and certificates...")
        result.regenerated = regenerate_secrets(manager.config, tracker)
    else:
        logger.info("No changes detected that require secret regeneration")
    _raise_on(manager.validate_certificates(), "certificate")

    result.vault_entries = manager.extract_secrets_into_vault(only=tracker.affected_vault_entries())
    _write_both(manager, config_path, vault_path, with_comments)
    return result


def write_k0s_config(config_path: PathLike, output_path: PathLike) -> K0sConfig:
    """Compile the k0s ClusterConfig from a validated install config."""
    manager = InstallConfigManager()
    manager.load_install_config_from_file(config_path)
    _raise_on(manager.validate(), "configuration")
    k0s = generate_k0s_config(manager.config)
    write_file(output_path, k0s.marshal(), "k0s config")
    return k0s

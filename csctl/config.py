"""Configuration management for the csctl application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

class Config:
    """Application configuration with sensible defaults."""

    # Default document locations
    CONFIG_FILE: str = os.getenv("CSCTL_CONFIG_FILE", "config.yaml")
    VAULT_FILE: str = os.getenv("CSCTL_VAULT_FILE", "prod.vault.yaml")
    K0S_CONFIG_FILE: str = os.getenv("CSCTL_K0S_CONFIG_FILE", "k0s.yaml")

    # Secret generation
    PASSWORD_LENGTH: int = int(os.getenv("CSCTL_PASSWORD_LENGTH", "32"))
    CA_COUNTRY: str = os.getenv("CSCTL_CA_COUNTRY", "DE")
    CA_LOCALITY: str = os.getenv("CSCTL_CA_LOCALITY", "Karlsruhe")
    CA_ORGANIZATION: str = os.getenv("CSCTL_CA_ORGANIZATION", "Codesphere")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Security
    REDACT_KEYS: tuple = ("password", "secret", "private_key", "mac_key", "key_pem")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values."""
        problems = []
        if cls.PASSWORD_LENGTH < 16:
            problems.append(f"CSCTL_PASSWORD_LENGTH must be at least 16, got {cls.PASSWORD_LENGTH}")
        if not cls.CONFIG_FILE:
            problems.append("CSCTL_CONFIG_FILE cannot be empty")
        if not cls.VAULT_FILE:
            problems.append("CSCTL_VAULT_FILE cannot be empty")
        if problems:
            raise ValueError(f"Invalid configuration: {', '.join(problems)}")

# Don't validate on import to allow for dynamic configuration
# Call Config.validate() explicitly when needed

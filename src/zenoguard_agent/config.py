"""
Agent Configuration.

Settings are stored as YAML next to the agent's other runtime files and can be
overridden from the environment. The stored file is encrypted with AES-256-GCM
under a key derived from the machine's identity, so a copied config file is
useless on another host.
"""

import dataclasses
import getpass
import os
import platform
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import psutil
import yaml
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import ConfigError

DEFAULT_REPORT_INTERVAL = 300
DEFAULT_LOG_FILE = "/var/log/zenoguard/agent.log"

CONFIG_FILE_MODE = 0o600
CONFIG_DIR_MODE = 0o700

# Encrypted file layout: magic | salt | nonce | ciphertext+tag
ENCRYPTED_MAGIC = b"ZGCFG1\n"
SALT_SIZE = 16
NONCE_SIZE = 12
KDF_ITERATIONS = 100000

INT_FIELDS = (
    "report_interval",
    "request_timeout",
    "sample_interval",
    "max_retries",
    "initial_retry_delay",
    "max_retry_delay",
    "auth_grace_period",
)


def is_root() -> bool:
    """Check whether the agent runs with root privileges."""
    return hasattr(os, "geteuid") and os.geteuid() == 0


def default_config_dir() -> Path:
    """System directory when running as root, the user's home otherwise."""
    if is_root():
        return Path("/etc/zenoguard")
    return Path.home() / ".zenoguard"


def default_config_path() -> Path:
    """Location of the stored configuration file."""
    return default_config_dir() / "config.yaml"


def _first_mac_address() -> str:
    """First non-zero hardware address, in interface name order."""
    addrs = psutil.net_if_addrs()
    for name in sorted(addrs):
        for addr in addrs[name]:
            if addr.family == psutil.AF_LINK and addr.address and addr.address.strip("0:-"):
                return addr.address.lower()
    return ""


def machine_identity() -> bytes:
    """
    Identity the config key is derived from.

    Hostname plus the first MAC address (the user name when there is none),
    then OS and architecture.
    """
    identity = socket.gethostname()
    mac = _first_mac_address()
    identity += mac or getpass.getuser()
    identity += platform.system().lower() + platform.machine().lower()
    return identity.encode("utf-8")


def _derive_key(salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(machine_identity())


def encrypt_config(plaintext: bytes) -> bytes:
    """Encrypt serialized config for storage on this machine."""
    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(_derive_key(salt)).encrypt(nonce, plaintext, None)
    return ENCRYPTED_MAGIC + salt + nonce + ciphertext


def decrypt_config(data: bytes) -> bytes:
    """
    Decrypt a stored config.

    Files without the encryption header are returned unchanged, so configs
    written before encryption still load.
    """
    if not data.startswith(ENCRYPTED_MAGIC):
        return data

    body = data[len(ENCRYPTED_MAGIC):]
    if len(body) < SALT_SIZE + NONCE_SIZE:
        raise ConfigError("encrypted config is truncated")

    salt = body[:SALT_SIZE]
    nonce = body[SALT_SIZE:SALT_SIZE + NONCE_SIZE]
    try:
        return AESGCM(_derive_key(salt)).decrypt(nonce, body[SALT_SIZE + NONCE_SIZE:], None)
    except InvalidTag as e:
        raise ConfigError("failed to decrypt config (written on another machine?)") from e


@dataclass
class AgentConfig:
    """Main agent configuration."""
    # Collector server connection
    server_url: str = ""
    token: str = ""
    report_interval: int = DEFAULT_REPORT_INTERVAL  # seconds
    request_timeout: int = 30

    # Identity override (ZENOGUARD_HOSTNAME)
    hostname: Optional[str] = None

    # Traffic sampling
    sample_interval: int = 300

    # Retry policy
    max_retries: int = 5
    initial_retry_delay: int = 5
    max_retry_delay: int = 60
    auth_grace_period: int = 60

    # Logging
    log_level: str = "info"
    log_file: Optional[str] = DEFAULT_LOG_FILE

    @classmethod
    def load(cls, path: Optional[str] = None) -> "AgentConfig":
        """
        Load the stored configuration, then apply environment overrides.

        A missing file is not an error: the agent may be configured entirely
        from the environment.
        """
        config_path = Path(path) if path else default_config_path()
        if config_path.exists():
            config = cls.from_yaml(str(config_path))
        else:
            config = cls()
        config.apply_env()
        return config

    @classmethod
    def from_yaml(cls, path: str) -> "AgentConfig":
        """Load configuration from an encrypted or plaintext YAML file."""
        try:
            with open(path, 'rb') as f:
                raw = decrypt_config(f.read())
            data = yaml.safe_load(raw) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read config {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must contain a mapping")
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict) -> "AgentConfig":
        """Create config from dictionary, ignoring unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        values = {k: v for k, v in data.items() if k in known}

        for key in INT_FIELDS:
            if key not in values:
                continue
            try:
                values[key] = int(values[key])
            except (TypeError, ValueError):
                raise ConfigError(f"{key} must be an integer, got {values[key]!r}")

        return cls(**values)

    def apply_env(self) -> None:
        """Override settings with ZENOGUARD_* environment variables."""
        if os.getenv("ZENOGUARD_SERVER_URL"):
            self.server_url = os.getenv("ZENOGUARD_SERVER_URL")
        if os.getenv("ZENOGUARD_TOKEN"):
            self.token = os.getenv("ZENOGUARD_TOKEN")
        if os.getenv("ZENOGUARD_HOSTNAME"):
            self.hostname = os.getenv("ZENOGUARD_HOSTNAME")
        if os.getenv("ZENOGUARD_LOG_LEVEL"):
            self.log_level = os.getenv("ZENOGUARD_LOG_LEVEL")

        interval = os.getenv("ZENOGUARD_REPORT_INTERVAL")
        if interval:
            try:
                self.report_interval = int(interval)
            except ValueError:
                raise ConfigError(f"ZENOGUARD_REPORT_INTERVAL is not an integer: {interval!r}")

    def validate(self) -> None:
        """Check the settings the reporter cannot run without."""
        if not self.server_url or not self.token:
            raise ConfigError("server URL and token are required")
        if not self.server_url.startswith(("http://", "https://")):
            raise ConfigError("invalid server URL format (should start with http:// or https://)")
        if self.report_interval <= 0:
            raise ConfigError(f"report interval must be positive, got {self.report_interval}")
        if self.sample_interval <= 0:
            raise ConfigError(f"sample interval must be positive, got {self.sample_interval}")

    def to_yaml(self, path: Optional[str] = None) -> Path:
        """Save configuration encrypted, with owner-only permissions."""
        config_path = Path(path) if path else default_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)
        os.chmod(config_path.parent, CONFIG_DIR_MODE)

        plaintext = yaml.safe_dump(dataclasses.asdict(self), default_flow_style=False)
        data = encrypt_config(plaintext.encode("utf-8"))

        # Create the file with restrictive permissions before writing the token
        fd = os.open(config_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CONFIG_FILE_MODE)
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.chmod(config_path, CONFIG_FILE_MODE)
        return config_path


def validate_credentials(server_url: str, token: str) -> None:
    """Validate values given to the configure command."""
    if not server_url or not token:
        raise ConfigError("server URL and token are required")
    if len(server_url) < 10 or not server_url.startswith(("http://", "https://")):
        raise ConfigError("invalid server URL format (should start with http:// or https://)")
    if len(token) < 10:
        raise ConfigError("invalid token (too short)")


def check_permissions(path: Optional[str] = None) -> Optional[str]:
    """
    Report a problem with the stored config's permissions.

    Returns a warning message, or None when the file is missing or secure.
    """
    config_path = Path(path) if path else default_config_path()
    if not config_path.exists():
        return None

    mode = config_path.stat().st_mode & 0o777
    if mode & 0o077:
        return f"{config_path} is accessible by other users (mode {oct(mode)}), expected {oct(CONFIG_FILE_MODE)}"
    return None

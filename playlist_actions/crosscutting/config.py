import os
import json
from dataclasses import dataclass
from typing import Dict, Any, Optional
from pathlib import Path

from dotenv import dotenv_values

from playlist_actions.domain.entities import Session


class ConfigError(Exception):
    """Configuration error."""
    pass


ENV_PREFIX = 'PA_'
DEFAULT_TIMEOUT = 15.0


@dataclass(frozen=True)
class ServerConfig:
    """Connection settings for the music library server."""

    base_url: str
    username: str
    token: Optional[str] = None
    user_id: str = ''
    timeout: float = DEFAULT_TIMEOUT
    download_dir: Optional[str] = None


class SecretManager:
    """Manages server credentials and configuration."""

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize secret manager."""
        self.config_dir = Path(config_dir) if config_dir else Path.home() / '.playlist-actions'
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.tokens_file = self.config_dir / 'tokens.json'
        self.env_file = self.config_dir / '.env'

    def load_tokens(self) -> Dict[str, Any]:
        """Load tokens from tokens.json file."""
        if not self.tokens_file.exists():
            return {}

        try:
            with open(self.tokens_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to load tokens from {self.tokens_file}: {e}")

    def save_tokens(self, tokens: Dict[str, Any]) -> None:
        """Merge tokens into tokens.json file."""
        try:
            existing_tokens = self.load_tokens()
            existing_tokens.update(tokens)

            with open(self.tokens_file, 'w') as f:
                json.dump(existing_tokens, f, indent=2, ensure_ascii=False)

        except (ConfigError, IOError, TypeError) as e:
            raise ConfigError(f"Failed to save tokens to {self.tokens_file}: {e}")

    def get_server_token(self) -> Optional[str]:
        """Get the server session token from tokens.json."""
        tokens = self.load_tokens()
        return tokens.get('server', {}).get('token')

    def save_server_token(self, token: str) -> None:
        """Persist the server session token."""
        self.save_tokens({
            'server': {
                'token': token
            }
        })

    def load_env_vars(self) -> Dict[str, str]:
        """Load variables from the config directory's .env file."""
        if not self.env_file.exists():
            return {}
        try:
            values = dotenv_values(self.env_file)
        except (IOError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to load .env file {self.env_file}: {e}")
        return {key: value for key, value in values.items() if value is not None}

    def _get(self, name: str, env_vars: Dict[str, str]) -> Optional[str]:
        """Process environment overrides the .env file."""
        key = f"{ENV_PREFIX}{name}"
        value = os.getenv(key)
        if value is None or not value.strip():
            value = env_vars.get(key)
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    def get_server_config(self) -> ServerConfig:
        """Get server configuration from environment and stored tokens."""
        env_vars = self.load_env_vars()

        base_url = self._get('BASE_URL', env_vars)
        username = self._get('USERNAME', env_vars)
        token = self._get('TOKEN', env_vars) or self.get_server_token()

        if not base_url:
            raise ConfigError(f"{ENV_PREFIX}BASE_URL not found in environment")
        if not username:
            raise ConfigError(f"{ENV_PREFIX}USERNAME not found in environment")

        timeout_value = self._get('TIMEOUT', env_vars)
        try:
            timeout = float(timeout_value) if timeout_value else DEFAULT_TIMEOUT
        except ValueError:
            raise ConfigError(f"{ENV_PREFIX}TIMEOUT must be a number, got {timeout_value!r}")
        if timeout <= 0:
            raise ConfigError(f"{ENV_PREFIX}TIMEOUT must be positive, got {timeout}")

        return ServerConfig(
            base_url=base_url,
            username=username,
            token=token,
            user_id=self._get('USER_ID', env_vars) or '',
            timeout=timeout,
            download_dir=self._get('DOWNLOAD_DIR', env_vars),
        )

    def build_session(self, config: Optional[ServerConfig] = None) -> Session:
        """Build the explicit session identity handed to the action bar."""
        config = config or self.get_server_config()
        return Session(username=config.username, user_id=config.user_id, token=config.token)


_secret_manager: Optional[SecretManager] = None


def get_secret_manager() -> SecretManager:
    """Get global secret manager instance, creating it on first use."""
    global _secret_manager
    if _secret_manager is None:
        _secret_manager = SecretManager()
    return _secret_manager

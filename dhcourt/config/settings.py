import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).with_name("settings.yaml")


class Config:
    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._config = self._load_config()
        self._validate_config()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Build a config from an in-memory mapping (no file, no env overrides)."""
        config = cls.__new__(cls)
        config.config_path = None
        config._config = data
        config._validate_config()
        return config

    def _load_config(self) -> dict:
        with open(self.config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
        self._apply_env_overrides(config)
        return config

    def _apply_env_overrides(self, config: dict):
        """Apply environment variable overrides to config.

        Env vars format: DHCOURT__SECTION__KEY=value
        For nested dicts, use double underscore: DHCOURT__browser__headless=false
        """
        def _set_nested_value(d: dict, keys: list, value: str):
            for key in keys[:-1]:
                if not isinstance(d.get(key), dict):
                    d[key] = {}
                d = d[key]
            d[keys[-1]] = self._convert_value(value)

        prefix = "DHCOURT__"

        for env_key, env_value in os.environ.items():
            if not env_key.startswith(prefix):
                continue

            parts = env_key[len(prefix):].lower().split('__')
            if len(parts) < 2:
                continue  # Need at least section and key

            _set_nested_value(config, parts, env_value)

    def _convert_value(self, value: str) -> Any:
        """Convert string value to appropriate type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        if value.isdigit() or (value.startswith('-') and value[1:].isdigit()):
            return int(value)

        if '.' in value:
            try:
                return float(value)
            except ValueError:
                pass

        # List (comma-separated)
        if ',' in value:
            return [self._convert_value(item.strip()) for item in value.split(',')]

        return value

    def _validate_config(self):
        """Validate required configuration sections exist."""
        required_sections = ['site', 'browser', 'captcha', 'download', 'logging']
        for section in required_sections:
            if section not in self._config:
                raise ValueError(f"Missing required configuration section: {section}")

    def _section(self, name: str) -> Dict:
        return self._config.get(name) or {}

    # ========== SITE ==========
    @property
    def base_url(self) -> str:
        """Return target site base URL."""
        return self._section('site').get('base_url', 'https://delhihighcourt.nic.in').rstrip('/')

    @property
    def search_url(self) -> str:
        """Return absolute URL of the case-status search form."""
        path = self._section('site').get('search_path', '/case_status.asp')
        return f"{self.base_url}/{path.lstrip('/')}"

    # ========== BROWSER ==========
    @property
    def browser_config(self) -> Dict:
        return self._section('browser')

    @property
    def headless(self) -> bool:
        return self.browser_config.get('headless', True)

    @property
    def stealth_mode(self) -> bool:
        return self.browser_config.get('stealth', True)

    @property
    def user_agent(self) -> str:
        return self.browser_config.get(
            'user_agent',
            'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
            '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
        )

    @property
    def locale(self) -> str:
        return self.browser_config.get('locale', 'en-US')

    @property
    def timezone_id(self) -> str:
        return self.browser_config.get('timezone', 'Asia/Kolkata')

    @property
    def viewport(self) -> Dict[str, int]:
        return self.browser_config.get('viewport', {'width': 1366, 'height': 768})

    # ========== NAVIGATION ==========
    @property
    def navigation_config(self) -> Dict:
        return self._section('navigation')

    @property
    def navigation_max_attempts(self) -> int:
        return self.navigation_config.get('max_attempts', 3)

    @property
    def navigation_base_delay(self) -> float:
        """Seconds multiplied by the attempt number between navigation retries."""
        return self.navigation_config.get('base_delay', 2.0)

    @property
    def navigation_timeout(self) -> float:
        """Page load timeout in seconds."""
        return self.navigation_config.get('timeout', 30)

    # ========== CAPTCHA ==========
    @property
    def captcha_config(self) -> Dict:
        return self._section('captcha')

    @property
    def captcha_api_key(self) -> Optional[str]:
        """Return solving-service API key; falls back to TWOCAPTCHA_API_KEY."""
        return self.captcha_config.get('api_key') or os.environ.get('TWOCAPTCHA_API_KEY') or None

    @property
    def captcha_provider_url(self) -> str:
        return self.captcha_config.get('provider_url', 'http://2captcha.com').rstrip('/')

    @property
    def captcha_poll_interval(self) -> float:
        return self.captcha_config.get('poll_interval', 5.0)

    @property
    def captcha_max_polls(self) -> int:
        return self.captcha_config.get('max_polls', 30)

    @property
    def captcha_request_timeout(self) -> float:
        return self.captcha_config.get('request_timeout', 30)

    # ========== DOWNLOAD ==========
    @property
    def download_config(self) -> Dict:
        return self._section('download')

    @property
    def download_timeout(self) -> float:
        """Return download timeout in seconds."""
        return self.download_config.get('timeout', 30)

    @property
    def download_max_size(self) -> int:
        """Return maximum accepted response size in bytes."""
        return self.download_config.get('max_size_mb', 50) * 1024 * 1024

    @property
    def download_max_attempts(self) -> int:
        return self.download_config.get('max_attempts', 3)

    @property
    def chunk_size(self) -> int:
        return self.download_config.get('chunk_size', 65536)

    # ========== SCRAPE ==========
    @property
    def scrape_config(self) -> Dict:
        return self._section('scrape')

    @property
    def stage_timeouts(self) -> Dict[str, float]:
        """Per-stage time budgets in seconds."""
        defaults = {'navigation': 90, 'form': 60, 'captcha': 180, 'submit': 60}
        defaults.update(self.scrape_config.get('stage_timeouts') or {})
        return defaults

    @property
    def settle_delay(self) -> float:
        """Seconds to wait after submitting the search form."""
        return self.scrape_config.get('settle_delay', 3.0)

    # ========== LOGGING ==========
    @property
    def logging_config(self) -> Dict:
        return self._section('logging')

    @property
    def log_level(self) -> str:
        return self.logging_config.get('level', 'INFO')

    @property
    def log_file(self) -> Optional[str]:
        return self.logging_config.get('file')

    @property
    def log_max_size_mb(self) -> int:
        return self.logging_config.get('max_size_mb', 10)

    @property
    def log_backup_count(self) -> int:
        return self.logging_config.get('backup_count', 5)

"""Fingerprint spoofing to evade automation detection."""

import json
import random
from typing import Any, Dict, List, Optional

from dhcourt.utils.logger import get_logger

logger = get_logger(__name__)


class FingerprintSpoofer:
    """Masks automation markers and spoofs navigator properties on a browser context."""

    HARDWARE_PROFILES = [
        {"platform": "Win32", "hardware_concurrency": 8, "device_memory": 8},
        {"platform": "Win32", "hardware_concurrency": 4, "device_memory": 4},
        {"platform": "Linux x86_64", "hardware_concurrency": 4, "device_memory": 8},
    ]

    PLUGINS = [
        "PDF Viewer",
        "Chrome PDF Viewer",
        "Chromium PDF Viewer",
        "Microsoft Edge PDF Viewer",
        "WebKit built-in PDF",
    ]

    def __init__(self, locale: str = "en-US", timezone_id: str = "Asia/Kolkata",
                 rng: Optional[random.Random] = None):
        self.locale = locale
        self.timezone_id = timezone_id
        self._rng = rng or random.Random()

    @property
    def languages(self) -> List[str]:
        primary = self.locale.split("-")[0]
        return [self.locale, primary] if primary != self.locale else [self.locale]

    def get_random_fingerprint(self) -> Dict[str, Any]:
        """Return a hardware profile merged with the configured locale settings."""
        fingerprint = self._rng.choice(self.HARDWARE_PROFILES).copy()
        fingerprint.update({
            "languages": self.languages,
            "plugins": list(self.PLUGINS),
            "timezone": self.timezone_id,
        })
        return fingerprint

    def build_script(self, fingerprint: Dict[str, Any]) -> str:
        """Render the init script that runs before any page script."""
        return f"""
        // Hide automation flag
        Object.defineProperty(Navigator.prototype, 'webdriver', {{
            get: () => undefined
        }});

        Object.defineProperty(navigator, 'languages', {{
            get: () => {json.dumps(fingerprint["languages"])}
        }});

        Object.defineProperty(navigator, 'plugins', {{
            get: () => {json.dumps(fingerprint["plugins"])}.map((name) => ({{ name, filename: 'internal-pdf-viewer' }}))
        }});

        Object.defineProperty(navigator, 'platform', {{
            get: () => {json.dumps(fingerprint["platform"])}
        }});

        Object.defineProperty(navigator, 'hardwareConcurrency', {{
            get: () => {fingerprint["hardware_concurrency"]}
        }});

        Object.defineProperty(navigator, 'deviceMemory', {{
            get: () => {fingerprint["device_memory"]}
        }});

        if (navigator.permissions && navigator.permissions.query) {{
            const originalQuery = navigator.permissions.query.bind(navigator.permissions);
            navigator.permissions.query = (parameters) => (
                parameters.name === 'notifications'
                    ? Promise.resolve({{ state: Notification.permission }})
                    : originalQuery(parameters)
            );
        }}

        window.chrome = window.chrome || {{ runtime: {{}} }};
        """

    async def apply_to_context(self, context):
        """Apply fingerprint spoofing to browser context."""
        fingerprint = self.get_random_fingerprint()
        logger.debug(f"Applying fingerprint: {fingerprint['platform']} / {fingerprint['languages']}")
        await context.add_init_script(self.build_script(fingerprint))
        logger.info("Fingerprint spoofing applied")

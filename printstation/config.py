"""Configuration management for PrintStation agent."""

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Store key holding the agent configuration
CONFIG_KEY = "config"

# Mapping key used when no document-type mapping matches
DEFAULT_MAPPING_KEY = "default"

# Legacy camelCase keys written by earlier agent generations
_LEGACY_KEYS = {
    "clientId": "client_id",
    "apiUrl": "api_url",
    "apiKey": "api_key",
    "printerMappings": "printer_mappings",
    "logLevel": "log_level",
}


class NotConfiguredError(Exception):
    """The agent has no client id, API URL or API key yet."""

    pass


@dataclass
class PrintStationConfig:
    """Configuration for the PrintStation agent.

    Attributes:
        client_id: Client identifier sent with every poll.
        api_url: Base URL of the print API (actions are query parameters).
        api_key: API key used to obtain a token.
        token: Bearer token returned by the validate action.
        printer_mappings: Document type -> printer name, plus a "default" key.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """

    client_id: str = ""
    api_url: str = ""
    api_key: str = ""
    token: str = ""
    printer_mappings: dict[str, str] = field(default_factory=dict)
    log_level: str = "INFO"

    def is_configured(self) -> bool:
        """Check if the agent has been configured.

        Returns:
            bool: True if client_id, api_key and api_url are set.
        """
        return bool(self.client_id and self.api_key and self.api_url)

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "api_url": self.api_url,
            "api_key": self.api_key,
            "token": self.token,
            "printer_mappings": dict(self.printer_mappings),
            "log_level": self.log_level,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "PrintStationConfig":
        """Build a config from a stored dict.

        Accepts both the canonical snake_case form and the camelCase form
        written by earlier versions.

        Args:
            data: Stored config dict (None or empty = unconfigured).

        Returns:
            PrintStationConfig: Normalized configuration.
        """
        if not data:
            return cls()

        normalized = {}
        for key, value in data.items():
            normalized[_LEGACY_KEYS.get(key, key)] = value

        return cls(
            client_id=normalized.get("client_id") or "",
            api_url=(normalized.get("api_url") or "").rstrip("/"),
            api_key=normalized.get("api_key") or "",
            token=normalized.get("token") or "",
            printer_mappings=_clean_mappings(normalized.get("printer_mappings")),
            log_level=normalized.get("log_level") or "INFO",
        )

    def save(self, store) -> None:
        """Persist the config to the store.

        Args:
            store: Key/value store.
        """
        store.set(CONFIG_KEY, self.to_dict())

    @classmethod
    def load(cls, store) -> "PrintStationConfig":
        """Load the config from the store.

        Args:
            store: Key/value store.

        Returns:
            PrintStationConfig: Loaded configuration or default.
        """
        return cls.from_dict(store.get(CONFIG_KEY))


def reset_config(store) -> None:
    """Factory reset: clear the stored config to empty.

    Args:
        store: Key/value store.
    """
    store.set(CONFIG_KEY, {})
    logger.info("Configuration cleared")


def _clean_mappings(mappings: Any) -> dict[str, str]:
    """Keep only non-empty string printer names."""
    if not isinstance(mappings, dict):
        return {}
    return {
        str(doc_type): printer
        for doc_type, printer in mappings.items()
        if isinstance(printer, str) and printer
    }


def normalize_printer_mappings(response: dict, existing: dict[str, str] | None = None) -> dict:
    """Turn a validate response into the canonical mapping form.

    Servers answer either with a mapping object (document type -> printer)
    or with a plain list of printers. A list says nothing about document
    types, so the existing mappings are kept and only "default" is filled
    from the first listed printer when missing.

    Args:
        response: JSON body of the validate action.
        existing: Mappings currently stored locally.

    Returns:
        dict: Printer mappings in {document_type: printer_name} form.
    """
    existing = _clean_mappings(existing)

    for key in ("printer_mappings", "printerMappings"):
        mappings = response.get(key)
        if isinstance(mappings, dict):
            return _clean_mappings(mappings)

    printers = response.get("printers")
    if isinstance(printers, list):
        names = []
        for printer in printers:
            if isinstance(printer, dict):
                printer = printer.get("name")
            if isinstance(printer, str) and printer:
                names.append(printer)

        mappings = dict(existing)
        if names and not mappings.get(DEFAULT_MAPPING_KEY):
            mappings[DEFAULT_MAPPING_KEY] = names[0]
        return mappings

    return existing


def get_config(store) -> PrintStationConfig:
    """Get the current configuration.

    Args:
        store: Key/value store.

    Returns:
        PrintStationConfig: Current configuration.
    """
    return PrintStationConfig.load(store)

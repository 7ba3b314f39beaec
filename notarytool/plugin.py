"""Docker CLI plugin metadata."""

from __future__ import annotations

import json
from dataclasses import dataclass

PLUGIN_METADATA_COMMAND_NAME = "docker-cli-plugin-metadata"

_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass
class PluginMetadata:
    """Plugin metadata presented to the docker CLI."""

    schema_version: str = ""
    vendor: str = ""
    version: str = ""
    short_description: str = ""
    url: str = ""
    experimental: bool = False

    def to_json(self) -> str:
        """Return compact JSON text, omitting empty fields, without a trailing newline."""
        fields = [
            ("SchemaVersion", self.schema_version),
            ("Vendor", self.vendor),
            ("Version", self.version),
            ("ShortDescription", self.short_description),
            ("URL", self.url),
            ("Experimental", self.experimental),
        ]
        payload = {key: value for key, value in fields if value}
        text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        return "".join(_ESCAPES.get(char, char) for char in text)
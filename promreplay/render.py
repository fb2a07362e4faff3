"""Output rendering for the record inspection commands."""

import json
import sys

import yaml

from promreplay.errors import ConfigurationError

FORMATS = ("json", "yaml")


def render(value, fmt: str = "json", out=None):
    out = out or sys.stdout
    fmt = fmt.lower()
    if fmt == "json":
        json.dump(value, out, indent="\t", ensure_ascii=False)
        out.write("\n")
    elif fmt == "yaml":
        yaml.safe_dump(value, out, sort_keys=False, allow_unicode=True)
    else:
        raise ConfigurationError(f'unexpected format: "{fmt}"')

"""Reading project settings from ``tsconfig.json``."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from code_relocate.models import ProjectConfig
from code_relocate.resolver.paths import normalize_path, to_posix

logger = logging.getLogger(__name__)

_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def _strip_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments outside of string literals."""
    out: list[str] = []
    i = 0
    in_string = False
    while i < len(text):
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < len(text):
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = len(text) if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = len(text) if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def read_tsconfig(path: Path) -> dict:
    """Parse a tsconfig file, tolerating comments and trailing commas."""
    text = _strip_comments(path.read_text(encoding="utf-8"))
    text = _TRAILING_COMMA_RE.sub(r"\1", text)
    return json.loads(text)


def load_tsconfig(path: Path | str, config: ProjectConfig | None = None) -> ProjectConfig:
    """Fill ``base_url`` and ``paths`` of a config from a tsconfig file.

    ``extends`` chains are not followed.
    """
    path = Path(path)
    config = config or ProjectConfig(root_dir=path.parent)
    config.tsconfig_path = path

    try:
        data = read_tsconfig(path)
    except (OSError, ValueError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return config

    if "extends" in data:
        logger.debug("Ignoring 'extends' in %s", path)

    options = data.get("compilerOptions") or {}
    config_dir = to_posix(str(path.parent.resolve()))
    base_url = options.get("baseUrl")
    paths = options.get("paths") or {}

    if base_url is not None:
        config.base_url = normalize_path(base_url, config_dir)
    elif paths:
        config.base_url = config_dir
    config.paths = {key: list(value) for key, value in paths.items()}
    return config

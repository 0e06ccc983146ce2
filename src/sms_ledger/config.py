"""Configuration loading, writing, and project initialization.

Reads TOML config files using stdlib ``tomllib`` and writes them using
``tomli_w``.  Depends only on ``models.py``.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

import tomli_w

from sms_ledger.models import AppConfig, Category

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

_CONFIG_HEADER = "# SMS Ledger configuration\n\n"

_DEFAULT_CATEGORIES_TOML = """\
# Default transaction categories, used until categories are first edited.
# icon is a reference understood by the presentation layer.

[[categories]]
id = 1
name = "حقوق"
icon = "salary"

[[categories]]
id = 2
name = "خواروبار"
icon = "groceries"

[[categories]]
id = 3
name = "حمل و نقل"
icon = "transport"

[[categories]]
id = 4
name = "قبوض"
icon = "bills"

[[categories]]
id = 5
name = "سرگرمی"
icon = "entertainment"

[[categories]]
id = 6
name = "متفرقه"
icon = "other"
"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(root: Path) -> AppConfig:
    """Load ``config.toml`` (and ``categories.toml``) from *root*.

    Args:
        root: Project root directory containing ``config.toml``.

    Returns:
        A fully-populated :class:`AppConfig` instance. ``categories`` is
        empty if ``categories.toml`` is absent.

    Raises:
        FileNotFoundError: If ``config.toml`` does not exist.
    """
    data = _read_toml(root / "config.toml")

    storage = data.get("storage", {})
    parser = data.get("parser", {})

    categories_path = root / "categories.toml"
    categories = load_categories(root) if categories_path.is_file() else []

    return AppConfig(
        data_dir=storage.get("data_dir", "data"),
        parser_provider=parser.get("provider", "anthropic"),
        parser_model=parser.get("model", "claude-sonnet-4-20250514"),
        parser_api_key_env=parser.get("api_key_env", "ANTHROPIC_API_KEY"),
        parser_timeout=float(parser.get("timeout", 30.0)),
        categories=categories,
    )


def load_categories(root: Path) -> list[Category]:
    """Load ``categories.toml`` and return the default categories in file order.

    Raises:
        FileNotFoundError: If ``categories.toml`` does not exist.
    """
    data = _read_toml(root / "categories.toml")
    return [
        Category(id=int(c["id"]), name=c["name"], icon=c.get("icon", "other"))
        for c in data.get("categories", [])
    ]


def render_config(config: AppConfig) -> str:
    """Serialize the settings of *config* to ``config.toml`` text."""
    body = tomli_w.dumps(
        {
            "storage": {"data_dir": config.data_dir},
            "parser": {
                "provider": config.parser_provider,
                "model": config.parser_model,
                "api_key_env": config.parser_api_key_env,
                "timeout": config.parser_timeout,
            },
        }
    )
    return _CONFIG_HEADER + body


def initialize(target_dir: Path, data_dir: str = "data") -> None:
    """Create the data directory and default config files.

    Idempotent: existing directories are left alone and existing files
    are **not** overwritten.

    Args:
        target_dir: The project root to initialize.
        data_dir: Data directory to record in ``config.toml``, relative to
            *target_dir*.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    (target_dir / data_dir).mkdir(parents=True, exist_ok=True)

    _write_if_missing(target_dir / "config.toml", render_config(AppConfig(data_dir=data_dir)))
    _write_if_missing(target_dir / "categories.toml", _DEFAULT_CATEGORIES_TOML)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    """Read and parse a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _write_if_missing(path: Path, content: str) -> None:
    """Write *content* to *path* only if the file does not already exist."""
    if not path.exists():
        path.write_text(content, encoding="utf-8")

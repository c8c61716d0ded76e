from pathlib import Path

from platformdirs import user_data_dir, user_log_dir

APP_NAME = "tied_siren"
DEV_OUTPUT_DIR = "outputs"


def get_checkout_root() -> Path | None:
    """The source checkout this module runs from, if any."""
    candidate = Path(__file__).resolve().parents[3]
    if (candidate / "pyproject.toml").exists() and (candidate / ".git").exists():
        return candidate
    return None


def _dev_dir(kind: str) -> Path | None:
    root = get_checkout_root()
    return root / DEV_OUTPUT_DIR / kind if root else None


def get_default_data_dir() -> Path:
    """Sessions, blocklists and queued notifications live here."""
    return _dev_dir("data") or Path(user_data_dir(appname=APP_NAME))


def get_default_log_dir() -> Path:
    return _dev_dir("logs") or Path(user_log_dir(appname=APP_NAME))

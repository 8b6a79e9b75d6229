import os
from typing import Tuple

from dotenv import load_dotenv

from .constants import DEFAULT_ESPORTS_TERMS, DEFAULT_WELL_KNOWN_LEAGUE_IDS

# Load .env from repo root (dotenv auto-walks up from CWD)
load_dotenv()


def _get_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _read_secret_file(path: str | None) -> str | None:
    if not path:
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read().strip()
    except OSError:
        return None


def _get_int_list(name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
    raw = os.getenv(name)
    if not raw:
        return tuple(default)
    values = []
    for tok in raw.split(","):
        tok = tok.strip()
        if tok.isdigit():
            values.append(int(tok))
    return tuple(values) or tuple(default)


def _get_str_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return tuple(default)
    values = tuple(tok.strip().lower() for tok in raw.split(",") if tok.strip())
    return values or tuple(default)


# --- API-Football (RapidAPI) ---
RAPID_API_KEY = os.getenv("RAPID_API_KEY") or _read_secret_file(os.getenv("RAPID_API_KEY_FILE"))
API_FOOTBALL_HOST = os.getenv("API_FOOTBALL_HOST", "api-football-v1.p.rapidapi.com")
API_FOOTBALL_BASE = os.getenv("API_FOOTBALL_BASE", f"https://{API_FOOTBALL_HOST}/v3")

# --- Persistence ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///cssport.db")
DATABASE_ECHO = _get_bool("DATABASE_ECHO", False)

# --- Internal API base used by ApiWrapper ---
CSSPORT_API_BASE = os.getenv("CSSPORT_API_BASE", "http://127.0.0.1:5000")

# --- Heuristic lists (deployment data, not algorithm) ---
WELL_KNOWN_LEAGUE_IDS = _get_int_list("WELL_KNOWN_LEAGUE_IDS", DEFAULT_WELL_KNOWN_LEAGUE_IDS)
ESPORTS_TERMS = _get_str_list("ESPORTS_TERMS", DEFAULT_ESPORTS_TERMS)

# --- Logo manager ---
LOGO_BACKGROUND_CLEANUP = _get_bool("LOGO_BACKGROUND_CLEANUP", True)

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from bookmap.errors import MissingConfiguration

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_SNAPSHOT = "data/books.json"
DEFAULT_ALLOWED_ORIGINS = ["http://localhost:3000"]

# keys accepted in the YAML settings file
TUNING_KEYS = ("primary_attempts", "fallback_attempts", "cooldown_ms", "timeout_s")


def _strip_inline_comment(val: str) -> str:
    in_single = False
    in_double = False
    for i, ch in enumerate(val):
        if ch == "'" and not in_double:
            in_single = not in_single
            continue
        if ch == '"' and not in_single:
            in_double = not in_double
            continue
        if ch == "#" and not in_single and not in_double:
            return val[:i].rstrip()
    return val.rstrip()


def _parse_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        logger.warning("cannot read %s: %r", path, e)
        return
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        k, v = line.split("=", 1)
        k = k.strip()
        v = _strip_inline_comment(v.strip())
        if len(v) >= 2 and v[0] == v[-1] and v[0] in ("'", '"'):
            v = v[1:-1]
        if k and k not in os.environ:
            os.environ[k] = v


def load_dotenv(path: str = ".env") -> Optional[str]:
    """
    Loads environment variables from a .env file.

    Search order:
    1) ENV_PATH (if set)
    2) explicit `path` as provided (relative to CWD or absolute)
    3) project root (parent of the bookmap package directory)
    4) current working directory

    Variables already present in the environment win. Returns the resolved
    .env path used, or None if not found.
    """
    override = os.getenv("ENV_PATH")
    candidates: List[Path] = []
    if override:
        candidates.append(Path(override).expanduser())

    p = Path(path).expanduser()
    candidates.append(p if p.is_absolute() else (Path.cwd() / p))

    project_root = Path(__file__).resolve().parent.parent
    candidates.append(project_root / ".env")
    candidates.append(Path.cwd() / ".env")

    seen = set()
    for c in candidates:
        c = c.resolve()
        if str(c) in seen:
            continue
        seen.add(str(c))
        if c.exists() and c.is_file():
            _parse_env_file(c)
            return str(c)

    return None


def read_settings_file(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except FileNotFoundError as e:
        raise SystemExit(f"Settings file not found: {path}") from e
    except (OSError, yaml.YAMLError) as e:
        raise SystemExit(f"Failed to read settings file: {path} ({e})") from e
    if not isinstance(data, dict):
        raise SystemExit(f"Settings file must be a mapping: {path}")
    unknown = sorted(set(data) - set(TUNING_KEYS))
    if unknown:
        logger.warning("ignoring unknown settings in %s: %s", path, ", ".join(unknown))
    logger.info("Loaded settings file: %s", path)
    return {k: data[k] for k in TUNING_KEYS if k in data}


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _split_csv(s: str) -> List[str]:
    return [x.strip() for x in (s or "").split(",") if x.strip()]


@dataclass
class AppConfig:
    aladin_ttb_key: str = ""
    seoji_key: str = ""
    kolis_key: str = ""

    remote_url: str = ""
    local_snapshot: str = DEFAULT_LOCAL_SNAPSHOT

    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    allow_vercel_preview: bool = True

    primary_attempts: int = 3
    fallback_attempts: int = 2
    cooldown_s: float = 0.25
    # None keeps the transport default
    timeout_s: Optional[float] = None

    @classmethod
    def from_env(cls, settings_path: Optional[str] = None) -> "AppConfig":
        seoji = (os.getenv("SEOJI_KEY") or "").strip()
        cfg = cls(
            aladin_ttb_key=(os.getenv("ALADIN_TTB_KEY") or "").strip(),
            seoji_key=seoji,
            kolis_key=(os.getenv("KOLIS_KEY") or "").strip() or seoji,
            remote_url=(os.getenv("BOOKMAP_REMOTE_URL") or "").strip(),
            local_snapshot=(os.getenv("BOOKMAP_LOCAL_SNAPSHOT") or "").strip() or DEFAULT_LOCAL_SNAPSHOT,
            allowed_origins=_split_csv(os.getenv("BOOKMAP_ALLOWED_ORIGINS") or "") or list(DEFAULT_ALLOWED_ORIGINS),
            allow_vercel_preview=_env_flag("BOOKMAP_ALLOW_VERCEL_PREVIEW", True),
        )
        path = settings_path or (os.getenv("BOOKMAP_SETTINGS") or "").strip()
        if path:
            cfg.apply_settings(read_settings_file(Path(path)))
        return cfg

    def apply_settings(self, settings: Dict[str, Any]) -> None:
        if "primary_attempts" in settings:
            self.primary_attempts = int(settings["primary_attempts"])
        if "fallback_attempts" in settings:
            self.fallback_attempts = int(settings["fallback_attempts"])
        if "cooldown_ms" in settings:
            self.cooldown_s = float(settings["cooldown_ms"]) / 1000.0
        if "timeout_s" in settings:
            val = settings["timeout_s"]
            self.timeout_s = None if val in (None, "", 0) else float(val)
        self.validate()

    def validate(self) -> None:
        if self.primary_attempts < 0 or self.fallback_attempts < 0:
            raise SystemExit("primary_attempts/fallback_attempts must be >= 0.")
        if self.primary_attempts + self.fallback_attempts < 1:
            raise SystemExit("At least one lookup attempt is required.")
        if self.cooldown_s < 0:
            raise SystemExit("cooldown_ms must be >= 0.")

    def require_aladin_key(self) -> str:
        if not self.aladin_ttb_key:
            raise MissingConfiguration("ALADIN_TTB_KEY")
        return self.aladin_ttb_key

    def require_korlib_keys(self) -> tuple:
        if not self.seoji_key and not self.kolis_key:
            raise MissingConfiguration("SEOJI_KEY")
        return self.seoji_key or self.kolis_key, self.kolis_key or self.seoji_key

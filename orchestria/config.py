from __future__ import annotations
from dataclasses import dataclass, field, fields
from pathlib import Path
import tomllib, os

PROFILES = ["safe", "balanced", "danger"]

DEFAULT_CONSTRAINTS = [
    "Rester dans le périmètre de la sous-tâche.",
    "Ne pas modifier les livrables des autres workers.",
    "Signaler toute hypothèse non vérifiée.",
]

@dataclass
class General:
    profile: str = "safe"
    dry_run: bool = False
    log_dir: str = "data/logs"
    kill_switch_path: str = "data/kill.switch"

@dataclass
class Engine:
    concurrency: int = 5
    max_attempts: int = 3
    initial_backoff_sec: float = 1.0
    backoff_multiplier: float = 2.0
    timeout_sec: float = 300.0

@dataclass
class Decomposer:
    default_worker: str = "generalist"
    constraints: list[str] = field(default_factory=lambda: list(DEFAULT_CONSTRAINTS))
    deliverable: str = "Livrer un résultat autonome, directement exploitable par les tâches suivantes."

@dataclass
class Security:
    chain_secret: str = ""

@dataclass
class Memory:
    db_path: str = "data/memory.db"
    persist_runs: bool = False

@dataclass
class Settings:
    general: General
    engine: Engine
    decomposer: Decomposer
    security: Security
    memory: Memory
    # worker_id -> mots-clés, l'ordre de déclaration départage les égalités
    workers: dict[str, list[str]] = field(default_factory=dict)

def default_settings() -> Settings:
    return Settings(general=General(), engine=Engine(), decomposer=Decomposer(), security=Security(), memory=Memory())

def _load_toml_if_exists(path: Path) -> dict:
    if path.exists():
        with path.open("rb") as f:
            return tomllib.load(f)
    return {}

def _read_profile_toml(config_path: Path, profile: str) -> dict:
    """
    Cherche dans:
      - config/defaults.toml et config/<profile>.toml
      - puis fallback: config/profiles/defaults.toml et config/profiles/<profile>.toml
    Un chemin de fichier explicite (ex: config/custom.toml) remplace le profil.
    """
    if config_path.is_file():
        base = _load_toml_if_exists(config_path.parent / "defaults.toml")
        prof = _load_toml_if_exists(config_path)
    else:
        cfg_dir = config_path
        base = _load_toml_if_exists(cfg_dir / "defaults.toml")
        if not base:
            base = _load_toml_if_exists(cfg_dir / "profiles" / "defaults.toml")
        prof = _load_toml_if_exists(cfg_dir / f"{profile}.toml")
        if not prof:
            prof = _load_toml_if_exists(cfg_dir / "profiles" / f"{profile}.toml")

    # Fusion superficielle defaults <- profil
    for k, v in prof.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k].update(v)
        else:
            base[k] = v
    return base

def _filter_for_dataclass(cls, data: dict) -> dict:
    """Ne garde que les clés connues du dataclass (évite TypeError sur clés en trop)."""
    allowed = {f.name for f in fields(cls)}
    return {k: v for k, v in (data or {}).items() if k in allowed}

def _read_workers(raw: dict) -> dict[str, list[str]]:
    out: dict[str, list[str]] = {}
    for worker_id, spec in (raw or {}).items():
        if isinstance(spec, dict):
            keywords = spec.get("keywords") or []
        else:
            keywords = spec or []
        out[str(worker_id)] = [str(k).lower() for k in keywords]
    return out

def load_settings(config: str | None, profile: str, overrides: dict | None = None) -> Settings:
    config_path = Path(config) if config else Path("config")
    raw = _read_profile_toml(config_path, profile)

    # Secret HMAC via env prioritaire
    if "security" not in raw:
        raw["security"] = {}
    env_secret = os.environ.get("ORCHESTRIA_CHAIN_SECRET")
    if env_secret:
        raw["security"]["chain_secret"] = env_secret

    g = General(**_filter_for_dataclass(General, raw.get("general")))
    if "profile" not in (raw.get("general") or {}):
        g.profile = profile
    e = Engine(**_filter_for_dataclass(Engine, raw.get("engine")))
    d = Decomposer(**_filter_for_dataclass(Decomposer, raw.get("decomposer")))
    s = Security(**_filter_for_dataclass(Security, raw.get("security")))
    mem = Memory(**_filter_for_dataclass(Memory, raw.get("memory")))

    # Overrides CLI: General puis Engine (None = non fourni)
    if overrides:
        for k, v in overrides.items():
            if v is None:
                continue
            if hasattr(g, k):
                setattr(g, k, v)
            elif hasattr(e, k):
                setattr(e, k, v)

    return Settings(general=g, engine=e, decomposer=d, security=s, memory=mem, workers=_read_workers(raw.get("workers")))

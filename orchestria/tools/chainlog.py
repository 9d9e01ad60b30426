from __future__ import annotations
from dataclasses import dataclass, asdict
from hashlib import sha256
import hmac, json, time
from pathlib import Path
from typing import List, Optional

GENESIS = "0" * 64
AUDIT_NAME = "audit.jsonl"

@dataclass
class ChainEntry:
    ts: str
    kind: str
    level: str
    message: str
    data: dict
    prev_hash: str
    hash: str
    sig: Optional[str] = None  # HMAC hex

def _digest(ts: str, kind: str, level: str, message: str, data: dict, prev: str) -> str:
    base = json.dumps(
        {"ts": ts, "kind": kind, "level": level, "message": message, "data": data, "prev_hash": prev},
        separators=(",", ":"), ensure_ascii=False, default=str,
    )
    return sha256(base.encode("utf-8")).hexdigest()

def _sign(secret: str, digest: str) -> str:
    return hmac.new(secret.encode("utf-8"), digest.encode("utf-8"), sha256).hexdigest()

class ChainLogger:
    """Append-only audit trail of orchestration events, each line chained to the previous hash."""

    def __init__(self, path: str | Path, *, secret: str = "") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.secret = secret or ""
        self._prev: Optional[str] = None

    @classmethod
    def from_settings(cls, settings) -> "ChainLogger":
        return cls(Path(settings.general.log_dir) / AUDIT_NAME, secret=settings.security.chain_secret)

    def _last_hash(self) -> str:
        if self._prev is not None:
            return self._prev
        entries = read_entries(self.path)
        return entries[-1].hash if entries else GENESIS

    def log(self, kind: str, level: str, message: str, data: dict | None = None) -> ChainEntry:
        # aller-retour JSON pour que le hash porte sur ce qui est réellement écrit
        data = json.loads(json.dumps(data or {}, ensure_ascii=False, default=str))
        prev = self._last_hash()
        ts = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        digest = _digest(ts, kind, level, message, data, prev)
        entry = ChainEntry(ts, kind, level, message, data, prev, digest, _sign(self.secret, digest) if self.secret else None)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(asdict(entry), ensure_ascii=False) + "\n")
        self._prev = digest
        return entry

    @staticmethod
    def verify(path: str | Path, *, secret: str = "") -> bool:
        """Verify the chain and HMAC (if secret provided)."""
        prev = GENESIS
        try:
            entries = read_entries(path)
        except (ValueError, KeyError, TypeError):
            return False
        for e in entries:
            if e.prev_hash != prev or _digest(e.ts, e.kind, e.level, e.message, e.data, prev) != e.hash:
                return False
            if secret and e.sig != _sign(secret, e.hash):
                return False
            prev = e.hash
        return True

def read_entries(path: str | Path) -> List[ChainEntry]:
    p = Path(path)
    if not p.exists():
        return []
    out = []
    for line in p.read_text(encoding="utf-8").splitlines():
        if line.strip():
            out.append(ChainEntry(**json.loads(line)))
    return out

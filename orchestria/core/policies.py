from __future__ import annotations
from pathlib import Path
from typing import List, Optional, Sequence

def load_constraints(defaults: Sequence[str], path: Optional[str | Path] = None) -> List[str]:
    """Contraintes permanentes: fichier (une par ligne, '-' optionnel) sinon valeurs de config."""
    candidates = [Path(path)] if path else [Path.cwd() / "constraints.md"]
    for candidate in candidates:
        if candidate.exists():
            lines = []
            for raw in candidate.read_text(encoding="utf-8").splitlines():
                line = raw.strip().lstrip("-*").strip()
                if line and not line.startswith("#"):
                    lines.append(line)
            if lines:
                return lines
    return list(defaults)

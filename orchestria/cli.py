from __future__ import annotations
import argparse
import asyncio
import json
import sys
from pathlib import Path
from . import __version__
from .config import PROFILES, Settings, load_settings
from .core.errors import PlanError
from .core.orchestrator import execute_plan, load_artifacts, plan_goal
from .core.planner import plan_to_dict
from .core.types import OrchestrationPlan, OrchestrationResult

# === Affichage ================================================================
def _print_banner(s: Settings) -> None:
    print(f"Orchestria v{__version__} — profil {s.general.profile}")

def _print_settings(goal: str, s: Settings, worker: str) -> None:
    e = s.engine
    print(f"goal    = {goal!r}")
    print(f"dry_run = {s.general.dry_run}")
    print(f"worker  = {worker}")
    print(f"engine  = {{concurrency={e.concurrency}, attempts={e.max_attempts}, backoff={e.initial_backoff_sec}x{e.backoff_multiplier}, timeout={e.timeout_sec}s}}")
    print(f"workers = {', '.join(s.workers) or '(aucun)'} (défaut: {s.decomposer.default_worker})")

def _print_plan(plan: OrchestrationPlan) -> None:
    print("\n=== PLAN ===")
    for phase in plan.phases:
        print(f"Phase {phase.id} [{phase.mode.value}]")
        for sid in phase.subtask_ids:
            sub = plan.subtasks[sid]
            print(f"  - {sub.id} [{sub.assigned_worker}] {sub.name}")
            if sub.depends_on:
                deps = ", ".join(f"{d} ({sub.kind_of(d).value})" for d in sub.depends_on)
                print(f"      dépend de: {deps}")

def _print_result(result: OrchestrationResult) -> None:
    print("\n=== RÉSULTATS ===")
    for sub in result.plan.subtasks.values():
        r = sub.result
        line = f"{sub.id} {sub.status.value}"
        if r is not None:
            line += f" (tentative {r.attempt}, {r.duration_ms:.1f} ms)"
            if r.error:
                line += f" :: {r.error}"
        print(line)
    for w in result.warnings:
        print(f"[warn] {w}")
    for err in result.errors:
        print(f"[error] {err}")
    print(f"\nSTATUS: {'ok' if result.success else 'failed'}")

def result_to_dict(result: OrchestrationResult) -> dict:
    return {
        "success": result.success,
        "duration_ms": result.duration_ms,
        "errors": result.errors,
        "warnings": result.warnings,
        "aggregated": result.aggregated,
        "plan": plan_to_dict(result.plan),
    }

def _read_requirements(args) -> list[str]:
    reqs = list(args.requirement or [])
    if args.requirements_file:
        for line in Path(args.requirements_file).read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                reqs.append(line)
    return reqs

# === Arguments ================================================================
def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser("orchestria", description="Orchestria — décomposition de tâches et exécution par phases")
    ap.add_argument("--goal", help="Objectif global (string).")
    ap.add_argument("--requirement", "-r", action="append", help="Exigence (répétable, ordre conservé).")
    ap.add_argument("--requirements-file", help="Fichier d'exigences, une par ligne ('#' = commentaire).")
    ap.add_argument("--artifact", action="append", help="Artefact de contexte (chemin, répétable).")
    ap.add_argument("--config", default="config", help="Chemin vers le dossier de configuration.")
    ap.add_argument("--profile", choices=PROFILES, default="safe", help="Profil d'exécution.")
    ap.add_argument("--dry-run", action="store_true", help="Simulation: ne pas déléguer aux workers.")
    ap.add_argument("--concurrency", type=int, default=None, help="Taille du pool pour les phases parallèles.")
    ap.add_argument("--worker", default="echo", help="echo | dummy | tag Ollama (ex: llama3.1:8b-instruct).")
    ap.add_argument("--plan-only", action="store_true", help="Afficher le plan sans l'exécuter.")
    ap.add_argument("--json", action="store_true", help="Sortie JSON (plan ou résultat).")
    ap.add_argument("--persist-run", action="store_true", help="Persister l'exécution (SQLite).")
    ap.add_argument("--memory-db", default=None, help="Chemin DB SQLite (défaut: config memory.db_path).")
    ap.add_argument("--version", action="store_true", help="Afficher la version et quitter.")
    return ap

# === Main ====================================================================
def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.version:
        print(__version__)
        return 0

    s = load_settings(
        config=args.config,
        profile=args.profile,
        overrides={"dry_run": True if args.dry_run else None, "concurrency": args.concurrency},
    )
    if args.memory_db:
        s.memory.db_path = args.memory_db
    persist = True if args.persist_run else s.memory.persist_runs

    reqs = _read_requirements(args)
    if not args.goal or not reqs:
        print("ERR: --goal et au moins une exigence (--requirement/--requirements-file) sont requis.", file=sys.stderr)
        return 2

    try:
        plan = plan_goal(s, args.goal, reqs, load_artifacts(args.artifact or []))
    except PlanError as e:
        print(f"ERR: {e}", file=sys.stderr)
        return 2

    if not args.json:
        _print_banner(s)
        _print_settings(args.goal, s, args.worker)
        _print_plan(plan)

    if args.plan_only:
        if args.json:
            print(json.dumps(plan_to_dict(plan), ensure_ascii=False, indent=2, default=str))
        return 0

    from .workers import build_workers
    try:
        workers = build_workers(args.worker)
    except RuntimeError as e:
        print(f"ERR: {e}", file=sys.stderr)
        return 2

    result = asyncio.run(execute_plan(s, plan, workers=workers, persist=persist))
    if args.json:
        print(json.dumps(result_to_dict(result), ensure_ascii=False, indent=2, default=str))
    else:
        _print_result(result)
        if persist:
            print(f"[memory] run persisté dans {s.memory.db_path}")
    return 0 if result.success else 1

if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

"""
subnetfund.cli.inspect
----------------------

Inspect a settlement snapshot written by `AppStoreService.dump()`:
- registered applications with their remaining budget and price version,
- provider accruals (pending / locked reward, unlock time),
- the effective configuration.

Examples
--------
# Applications in a snapshot
python -m subnetfund.cli.inspect apps --state state.json

# Accruals of application 1 that still hold a reward, JSON
python -m subnetfund.cli.inspect accruals --state state.json --subject 1 --nonzero --json

# Effective configuration (env + SUBNETFUND_CONFIG_FILE)
python -m subnetfund.cli.inspect config
"""

import json
import shutil
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from ..config import pretty
from ..store.accruals import AccrualStore
from ..store.applications import ApplicationStore

app = typer.Typer(
    name="subnetfund-inspect",
    add_completion=False,
    no_args_is_help=True,
    help="Inspect applications, accruals and configuration of a subnet fund snapshot.",
)

# -------------------- utils --------------------


def _width(default: int = 100) -> int:
    return shutil.get_terminal_size((default, 20)).columns


def _pad(s: str, n: int) -> str:
    if len(s) <= n:
        return s + " " * (n - len(s))
    if n <= 4:
        return s[:n]
    return s[: n - 1] + "…"


def _short(x: Optional[str], n: int = 12) -> str:
    if not x:
        return "-"
    if len(x) <= n:
        return x
    return x[: n - 1] + "…"


def _fmt_tokens(amount: int, decimals: int = 18) -> str:
    whole, frac = divmod(int(amount), 10**decimals)
    if not frac:
        return str(whole)
    return f"{whole}.{str(frac).rjust(decimals, '0')[:6].rstrip('0') or '0'}"


def _fmt_unlock(unlock_at: int, now: int) -> str:
    if not unlock_at:
        return "-"
    left = unlock_at - now
    if left <= 0:
        return "unlocked"
    if left < 3600:
        return f"{left // 60}m"
    if left < 86_400:
        return f"{left // 3600}h"
    return f"{left // 86_400}d"


def _read_state(path: Path) -> Dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        typer.secho(f"snapshot not found: {path}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)
    except json.JSONDecodeError as e:
        typer.secho(f"snapshot is not valid JSON: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)


def _print_table(headers: List[str], rows: List[List[str]]) -> None:
    width = _width()
    col = max(8, width // max(1, len(headers)))
    typer.echo("".join(_pad(h, col) for h in headers))
    typer.echo("-" * min(width, col * len(headers)))
    for r in rows:
        typer.echo("".join(_pad(c, col) for c in r))


# -------------------- commands --------------------


@app.command("apps")
def cmd_apps(
    state: Path = typer.Option(..., "--state", "-s", help="Snapshot JSON produced by AppStoreService.dump()."),
    owner: Optional[str] = typer.Option(None, help="Only applications owned by this address."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
) -> None:
    """List applications."""
    store = ApplicationStore.load(_read_state(state))
    apps = store.list()
    if owner:
        apps = [a for a in apps if a.owner == owner.lower()]

    if as_json:
        typer.echo(json.dumps([a.to_dict() for a in apps], indent=2))
        return
    rows = [
        [str(a.id), a.symbol, _short(a.owner), _fmt_tokens(a.remaining_budget), a.reward_mode.value,
         a.signer_policy.value, str(a.price_version)]
        for a in apps
    ]
    _print_table(["ID", "SYMBOL", "OWNER", "REMAINING", "MODE", "SIGNERS", "PRICE_V"], rows)


@app.command("accruals")
def cmd_accruals(
    state: Path = typer.Option(..., "--state", "-s", help="Snapshot JSON produced by AppStoreService.dump()."),
    subject: Optional[int] = typer.Option(None, "--subject", help="Only accruals of this application."),
    nonzero: bool = typer.Option(False, "--nonzero", help="Hide accruals with nothing outstanding."),
    now: Optional[int] = typer.Option(None, help="Reference time (unix seconds); defaults to now."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
) -> None:
    """List provider accruals."""
    store = AccrualStore.load(_read_state(state))
    items = store.for_subject(subject) if subject is not None else store.list()
    if nonzero:
        items = [a for a in items if a.outstanding]

    if as_json:
        typer.echo(json.dumps([a.to_dict() for a in items], indent=2))
        return
    ref = now if now is not None else int(time.time())
    rows = [
        [str(a.subject_id), str(a.provider_id), _fmt_tokens(a.pending_reward), _fmt_tokens(a.locked_reward),
         _fmt_unlock(a.unlock_at, ref), _fmt_tokens(a.total_claimed)]
        for a in items
    ]
    _print_table(["SUBJECT", "PROVIDER", "PENDING", "LOCKED", "UNLOCK", "CLAIMED"], rows)
    typer.echo(f"\n{len(items)} accrual(s), {_fmt_tokens(sum(a.outstanding for a in items))} outstanding")


@app.command("config")
def cmd_config() -> None:
    """Print the effective configuration."""
    typer.echo(pretty())


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()

"""Dependency doctor – checks that every runtime package imports.

Run as ``storefront check-deps``. Exit code 0 means all present; 1 lists
what is missing together with the distribution to install.
"""

from __future__ import annotations

import importlib

from rich.console import Console

# import name → distribution name on the package index
PACKAGES: dict[str, str] = {
    "fastapi": "fastapi",
    "uvicorn": "uvicorn",
    "pydantic": "pydantic",
    "multipart": "python-multipart",
    "httpx": "httpx",
    "stripe": "stripe",
    "yaml": "pyyaml",
    "rich": "rich",
    "click": "click",
}


def missing_packages(packages: dict[str, str] | None = None) -> list[str]:
    """Distribution names whose import module cannot be loaded."""
    missing = []
    for module, dist in (packages or PACKAGES).items():
        try:
            importlib.import_module(module)
        except ImportError:
            missing.append(dist)
    return missing


def main(console: Console | None = None) -> int:
    console = console or Console()
    missing = set(missing_packages())
    for module, dist in PACKAGES.items():
        if dist in missing:
            console.print(f"  [red]✗[/red] {dist:20s} MISSING  →  pip install {dist}")
        else:
            version = getattr(importlib.import_module(module), "__version__", "?")
            console.print(f"  [green]✓[/green] {dist:20s} {version}")

    console.print()
    if missing:
        console.print("[yellow]Fix: run  pip install -e .  to install everything at once.[/yellow]")
        return 1
    console.print("[green]All dependencies present ✓[/green]")
    return 0

"""Shared test fixtures for the brain store."""

import json
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def brain_path(tmp_path):
    """Path to a not-yet-created brain.jsonl inside a temp brain dir."""
    brain_dir = tmp_path / "brain"
    brain_dir.mkdir()
    return brain_dir / "brain.jsonl"


@pytest.fixture
def write_lines():
    """Write raw JSONL (dicts are dumped, strings written verbatim)."""

    def _write(path: Path, lines, trailing_newline: bool = True):
        text = "\n".join(json.dumps(l) if isinstance(l, dict) else l for l in lines)
        if trailing_newline and lines:
            text += "\n"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def rho_env(tmp_path, monkeypatch):
    """Isolated HOME/cwd with RHO_DIR pointing at a temp ~/.rho."""
    home = tmp_path / "home"
    rho_dir = home / ".rho"
    (rho_dir / "brain").mkdir(parents=True)
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("RHO_DIR", str(rho_dir))
    monkeypatch.delenv("RHO_BRAIN_DIR", raising=False)
    monkeypatch.delenv("RHO_BRAIN_PATH", raising=False)
    monkeypatch.chdir(work)
    return {
        "home": home,
        "rho_dir": rho_dir,
        "brain_dir": rho_dir / "brain",
        "brain_path": rho_dir / "brain" / "brain.jsonl",
        "work": work,
    }

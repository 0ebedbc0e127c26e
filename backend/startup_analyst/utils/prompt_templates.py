"""
Prompt template loading

Prompts are versioned text files under startup_analyst/prompts/ using
string.Template placeholders ($name).
"""

from functools import lru_cache
from pathlib import Path
from string import Template

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"


@lru_cache(maxsize=None)
def load_prompt(name: str) -> Template:
    path = PROMPTS_DIR / f"{name}.txt"
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {path}")
    return Template(path.read_text(encoding="utf-8"))


def render_prompt(name: str, **values) -> str:
    """Render a prompt template; every placeholder must be supplied"""
    return load_prompt(name).substitute(**values).strip()

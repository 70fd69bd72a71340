"""Load LLM system prompts stored as .txt files in this directory."""

from pathlib import Path

_DIR = Path(__file__).parent


def load_prompt(name: str) -> str:
    """Load a prompt by name (without extension), e.g. "fallback_agent". Returns the text stripped."""
    path = _DIR / f"{name}.txt"
    if not path.exists():
        raise FileNotFoundError(f"No prompt named {name!r} in {_DIR}")
    return path.read_text(encoding="utf-8").strip()

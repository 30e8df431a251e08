import re
from pathlib import Path

PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def _pyproject() -> str:
    return PYPROJECT.read_text(encoding="utf-8")


def test_mediapipe_range_keeps_solutions_api():
    match = re.search(r'"mediapipe([^"]*)"', _pyproject())
    assert match is not None
    # 0.10.30 起不再提供 mp.solutions
    assert "<0.10.30" in match.group(1)


def test_entry_script_is_not_installed():
    text = _pyproject()
    modules = re.search(r"py-modules\s*=\s*\[([^\]]*)\]", text)
    assert modules is not None
    assert '"main"' not in modules.group(1)
    assert "[project.scripts]" not in text


def test_no_internal_document_as_readme():
    assert "readme" not in _pyproject()

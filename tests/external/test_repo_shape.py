from __future__ import annotations

from pathlib import Path


_README_ANCHORS = (
    # One-line summary
    "Generate strongly typed identifier structs for C#",
    # Prerequisites section
    "Prerequisites",
    # Quick start
    "--output-dir",
    "--emit-marker",
    # Options table
    "--marker",
    "--strict",
    ".g.cs",
    # Discovery section
    "--list",
    # Testing instructions
    "pytest",
)


def _tool_root() -> Path:
    return Path(__file__).resolve().parents[2]


def test_required_project_files_exist() -> None:
    tool_root = _tool_root()
    required_paths = {
        "idgen.py",
        "pyproject.toml",
        "README.md",
        "tests/conftest.py",
        "tests/test_cli.py",
        "tests/test_lexer.py",
        "tests/test_scanner.py",
        "tests/test_qualifier.py",
        "tests/test_emitter.py",
        "tests/test_writer.py",
        "tests/test_discovery.py",
        "tests/test_pipeline.py",
        "tests/test_summary.py",
        "tests/fixtures/shop/Catalog.cs",
        "tests/fixtures/shop/Ids.cs",
        "tests/fixtures/shop/Orders/OrderId.cs",
        "tests/external/test_external_cli.py",
        "tests/external/test_repo_shape.py",
        "tests/external/test_dotnet_compile.py",
    }

    missing = sorted(path for path in required_paths if not (tool_root / path).exists())
    assert missing == []


def test_no_generated_output_is_checked_in_outside_fixtures() -> None:
    tool_root = _tool_root()
    fixtures = tool_root / "tests" / "fixtures"

    stray = [
        path
        for path in tool_root.rglob("*.g.cs")
        if fixtures not in path.parents
    ]
    assert stray == []


def test_readme_includes_required_sections_and_quick_start() -> None:
    readme = _tool_root() / "README.md"
    assert readme.exists(), "README.md must exist"
    content = readme.read_text(encoding="utf-8")
    missing = [anchor for anchor in _README_ANCHORS if anchor not in content]
    assert missing == [], f"README.md missing required anchors: {missing}"

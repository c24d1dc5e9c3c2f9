from __future__ import annotations

import argparse
import ast
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

FRAMEWORK_MODULES = frozenset(
    {
        "fastapi",
        "starlette",
        "httpx",
        "requests",
        "opentelemetry",
    }
)

_PACKAGE_ROOT = Path(__file__).resolve().parents[1] / "src" / "albtrace"

# Layer name -> modules that layer must not import.
LAYER_RULES: dict[str, frozenset[str]] = {
    "domain": FRAMEWORK_MODULES
    | {"albtrace.application", "albtrace.api", "albtrace.infrastructure"},
    "application": FRAMEWORK_MODULES | {"albtrace.api", "albtrace.infrastructure"},
}


@dataclass(frozen=True)
class Violation:
    file_path: Path
    line: int
    module: str


def _python_files(root: Path) -> Iterable[Path]:
    if root.is_file() and root.suffix == ".py":
        yield root
        return
    if root.is_dir():
        yield from root.rglob("*.py")


def _matches_forbidden(module: str, forbidden_modules: frozenset[str]) -> bool:
    for forbidden in forbidden_modules:
        if module == forbidden or module.startswith(f"{forbidden}."):
            return True
    return False


def _imported_modules(tree: ast.AST) -> Iterable[tuple[int, str]]:
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield node.lineno, alias.name
        elif isinstance(node, ast.ImportFrom) and node.module:
            yield node.lineno, node.module


def _scan_file(file_path: Path, forbidden_modules: frozenset[str]) -> list[Violation]:
    tree = ast.parse(file_path.read_text(encoding="utf-8"), filename=str(file_path))
    return [
        Violation(file_path=file_path, line=line, module=module)
        for line, module in _imported_modules(tree)
        if _matches_forbidden(module, forbidden_modules)
    ]


def _rules_for(path: Path) -> frozenset[str]:
    """Pick the rule set of the innermost layer directory on the path."""
    for part in reversed(path.resolve().parts):
        if part in LAYER_RULES:
            return LAYER_RULES[part]
    return LAYER_RULES["application"]


def find_violations(paths: Sequence[Path]) -> list[Violation]:
    violations: list[Violation] = []
    for path in paths:
        forbidden_modules = _rules_for(path)
        for file_path in _python_files(path):
            violations.extend(_scan_file(file_path, forbidden_modules))
    return violations


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import policy check for the albtrace domain and application layers."
    )
    parser.add_argument(
        "--path",
        action="append",
        default=[],
        help="Path to scan (repeatable). Defaults to src/albtrace/domain and src/albtrace/application.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.path:
        scan_paths = [Path(item) for item in args.path]
    else:
        scan_paths = [_PACKAGE_ROOT / layer for layer in LAYER_RULES]

    violations = find_violations(scan_paths)
    if not violations:
        print("depcheck passed")
        return 0

    print("depcheck failed: forbidden imports detected")
    for violation in violations:
        print(f"{violation.file_path}:{violation.line} -> {violation.module}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

import ast
from pathlib import Path


def test_entrypoint_defines_main_and_sidebar():
    source = Path(__file__).resolve().parent.parent.joinpath("app.py").read_text(encoding="utf-8")
    tree = ast.parse(source)
    names = {n.name for n in tree.body if isinstance(n, ast.FunctionDef)}
    assert {"main", "sidebar"} <= names

from pathlib import Path

import pytest

from kestrel import Interpreter, Parser

EXAMPLES = Path(__file__).resolve().parent.parent / 'examples'


@pytest.fixture
def program_source():
    def load(name: str) -> str:
        with open(EXAMPLES / name, 'r', encoding='utf-8') as f:
            return f.read()
    return load


@pytest.fixture
def evaluate():
    """Parse and evaluate a source snippet in a fresh root environment."""
    parser = Parser()

    def run_source(source: str):
        interp = Interpreter()
        return interp.run(parser.parse(source))
    return run_source

import pytest
import yaml
from pathlib import Path

from testlang import execute

# --- Test Setup and Fixtures ---

PROGRAMS_PATH = Path(__file__).parent / "programs.yaml"


def load_programs():
    with open(PROGRAMS_PATH, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


PROGRAMS = load_programs()


def run_and_capture(source: str) -> str:
    lines = []
    execute(source, log=lines.append)
    return "".join(f"{line}\n" for line in lines)


def fizzbuzz(n: int) -> str:
    out = []
    for i in range(1, n + 1):
        word = ("Fizz" if i % 3 == 0 else "") + ("Buzz" if i % 5 == 0 else "")
        out.append(word or str(i))
    return "\n".join(out) + "\n"


# --- Test Cases ---

@pytest.mark.parametrize(
    "name",
    [name for name, program in PROGRAMS.items() if "expected" in program],
)
def test_program_gives_expected_output(name):
    program = PROGRAMS[name]
    assert run_and_capture(program["source"]) == program["expected"]


def test_fizzbuzz():
    assert run_and_capture(PROGRAMS["fizzbuzz"]["source"]) == fizzbuzz(99)


def test_default_log_writes_to_stdout(capsys):
    execute('print("to stdout", 1);')
    assert capsys.readouterr().out == "to stdout 1\n"


def test_each_print_is_one_log_call():
    calls = []
    execute('print(1, 2); print(); print("x");', log=lambda *values: calls.append(values))
    assert calls == [("1 2",), ("",), ("x",)]


def test_verbose_sections_go_to_debug():
    lines, debug = [], []
    execute("print(1);", verbose=True, log=lines.append, debug=debug.append)
    assert lines == ["1"]
    assert debug[0] == "Program:"
    assert debug[1] == "print(1);"
    assert "Tokens:" in debug
    assert "[identifier(print), lbracket, int(1), rbracket, semicolon, eof]" in debug
    assert "Program from AST:" in debug
    assert "print(1);\n" in debug
    assert debug[-1] == "Program output:"
    assert debug.count("-" * 50) == 3

import argparse
import asyncio
import sys
from pathlib import Path

from testlang.tl_runtime import ScriptRunner

EXIT_ERROR = 1
EXIT_AMBIGUOUS_INPUT = 101


# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tstl",
        description="An interpreter for a silly test language.",
    )
    parser.add_argument("input_file", nargs="?", help="Program file to run.")
    parser.add_argument("-e", "--execute", metavar="CODE",
                        help="The code to execute, can be used instead of providing a file with code.")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Display a lot of debugging information along with the output of the program.")
    return parser


def print_side_effects(result):
    for effect in result.side_effects:
        if effect.get('topics') in (['stdout'], ['debug']):
            print(effect.get('message', ''))


async def run_source(source: str, verbose: bool = False) -> int:
    """Run a program non-interactively and return the exit status."""
    runner = ScriptRunner(verbose=verbose)
    result = await runner.handle_script(source)
    print_side_effects(result)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        return EXIT_ERROR
    return 0


async def repl():
    print("testlang REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")
    runner = ScriptRunner()

    while True:
        try:
            raw = await ainput(">> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if not line:
                continue
            if line == "exit":
                break

            result = await runner.handle_script(line)
            print_side_effects(result)
            if result.status == 'error':
                print(result.format_error(), file=sys.stderr)

        except EOFError:
            print("\nExiting.")
            break


async def main(argv=None) -> int:
    """Run a file or `-e` code when given, otherwise start the interactive REPL."""
    args = build_arg_parser().parse_args(argv)

    if args.input_file is not None and args.execute is not None:
        print("error: only a file *or* --execute can be specified.",
              "Providing both gives ambiguity in which one should be used.")
        return EXIT_AMBIGUOUS_INPUT

    if args.input_file is not None:
        try:
            source = Path(args.input_file).read_text(encoding="utf-8")
        except FileNotFoundError:
            print(f"Error: file not found: {args.input_file}", file=sys.stderr)
            return EXIT_ERROR
        return await run_source(source, args.verbose)

    if args.execute is not None:
        return await run_source(args.execute, args.verbose)

    await repl()
    return 0


def run():
    try:
        raise SystemExit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nExiting.")


if __name__ == "__main__":
    run()

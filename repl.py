import sys
from pathlib import Path

from smath.smath_runtime import Session


# A basic input prompt; tests replace it.
def read_line(prompt: str) -> str:
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return sys.stdin.readline()


def run_script_file(file_path: str):
    """Evaluate each non-blank line of a file and exit non-zero on the first error."""
    session = Session()
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    for lineno, line in enumerate(source.splitlines(), start=1):
        if not line.strip():
            continue
        result = session.handle_line(line)
        if result.status == 'error':
            print(f"Error on line {lineno}: {result.format_error()}", file=sys.stderr)
            raise SystemExit(1)
        print(session.format_value(result.value))


def main():
    """Run a script file when provided, otherwise start the interactive REPL."""
    if len(sys.argv) > 1:
        arg = sys.argv[1]
        if not arg.startswith("-"):
            run_script_file(arg)
            return

    print("smath REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    session = Session()

    while True:
        raw = read_line(">> ")
        if raw == "":
            print("\nExiting.")
            break
        line = raw.strip()

        if not line:
            continue
        if line == "exit":
            break

        result = session.handle_line(line)
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            continue

        print(session.format_value(result.value))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")

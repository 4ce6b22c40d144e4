"""Command line front end: compile a story script into story JSON."""

from __future__ import annotations

import sys
from os import PathLike
from pathlib import Path
from typing import Optional, Sequence, Union

from .parser import ParseError, parse

DEFAULT_OUTPUT = "juego.json"

_HELP = (
    "Uso: compiler <archivo_entrada.sst> [opciones]\n"
    "\n"
    "Opciones:\n"
    "  -o <archivo_salida>   Especifica el nombre del archivo de historia de "
    f"salida (por defecto: '{DEFAULT_OUTPUT}').\n"
    "  -h, --help              Muestra este mensaje de ayuda.\n"
)


class _UsageError(Exception):
    """Raised for invalid command line arguments."""


def compile_source(text: str) -> str:
    """Parse script text and return the story JSON it compiles to."""
    return parse(text).generate_code(0)


def compile_file(
    input_path: Union[str, "PathLike[str]"],
    output_path: Union[str, "PathLike[str]"] = DEFAULT_OUTPUT,
) -> Path:
    """Compile the script at ``input_path`` and write story JSON to ``output_path``."""
    source = Path(input_path).read_text(encoding="utf-8")
    story_json = compile_source(source)
    output = Path(output_path)
    output.write_text(story_json, encoding="utf-8")
    return output


def _parse_arguments(args: Sequence[str]) -> Optional[tuple]:
    """Return ``(input, output)``, or ``None`` when help was requested."""
    input_file = ""
    output_file = DEFAULT_OUTPUT
    remaining = iter(args)
    for arg in remaining:
        if arg in ("-h", "--help"):
            return None
        if arg == "-o":
            value = next(remaining, None)
            if value is None:
                raise _UsageError("La opción '-o' requiere un argumento.")
            output_file = value
        elif not input_file:
            input_file = arg
        else:
            raise _UsageError("Se especificó un archivo de entrada más de una vez.")
    if not input_file:
        raise _UsageError("No se especificó ningún archivo de entrada.")
    return input_file, output_file


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the compiler command and return its exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print(_HELP, end="")
        return 1

    try:
        parsed = _parse_arguments(args)
    except _UsageError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if parsed is None:
        print(_HELP, end="")
        return 0

    input_file, output_file = parsed
    try:
        output = compile_file(input_file, output_file)
    except (ParseError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Compilación exitosa. Historia generada en: {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
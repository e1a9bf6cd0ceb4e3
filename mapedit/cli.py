from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from core.density import compute_entity_stats, get_density_for_window
from core.entity_models import EntitySnapshot
from core.entity_store import apply_command, get_all_events_as_array
from core.errors import SerializationError
from core.serializer import map_from_external, map_to_external


# exit codes (keep stable)
EXIT_OK = 0
EXIT_BAD_INPUT = 2
EXIT_BAD_ARGS = 5


def _print_err(msg: str) -> None:
    print(msg, file=sys.stderr)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e


def _load_external(path: Path) -> EntitySnapshot:
    payload = _read_json(path)
    if not isinstance(payload, dict):
        raise ValueError(f"{path}: expected a JSON object with _events/_notes/_obstacles")
    return apply_command(EntitySnapshot.empty(), map_from_external(payload))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mapedit", description="mapedit CLI (map conversion & metrics)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    # ------------------------------------------------------------
    # convert: external map <-> internal snapshot JSON
    # ------------------------------------------------------------
    c = sub.add_parser("convert", help="Convert between external map JSON and snapshot JSON")
    c.add_argument("input", type=str, help="Input JSON file")
    c.add_argument("output", type=str, help="Output JSON file")
    c.add_argument(
        "--to",
        dest="to",
        default="internal",
        choices=["internal", "external"],
        help="internal: external map -> snapshot; external: snapshot -> external map",
    )
    c.add_argument("--indent", type=int, default=2, help="JSON indent")

    # ------------------------------------------------------------
    # stats: entity counts of an external map
    # ------------------------------------------------------------
    s = sub.add_parser("stats", help="Entity statistics of an external map")
    s.add_argument("input", type=str, help="External map JSON")

    # ------------------------------------------------------------
    # density: notes (or events) per second in a beat window
    # ------------------------------------------------------------
    d = sub.add_parser("density", help="Density (per second) within a beat window")
    d.add_argument("input", type=str, help="External map JSON")
    d.add_argument("--bpm", type=float, required=True, help="Song tempo")
    d.add_argument("--start", type=float, default=0.0, help="Window start beat")
    d.add_argument("--beats", type=float, default=16.0, help="Window length in beats")
    d.add_argument("--view", default="notes", choices=["notes", "events"], help="Which entities to count")

    return p


def cmd_convert(args: argparse.Namespace) -> int:
    in_path = Path(args.input)
    out_path = Path(args.output)

    try:
        if args.to == "internal":
            snapshot = _load_external(in_path)
            text = snapshot.model_dump_json(by_alias=True, indent=args.indent)
        else:
            snapshot = EntitySnapshot.model_validate(_read_json(in_path))
            text = json.dumps(map_to_external(snapshot), indent=args.indent)
    except FileNotFoundError as e:
        _print_err(str(e))
        return EXIT_BAD_ARGS
    except (ValidationError, SerializationError, ValueError) as e:
        _print_err(str(e))
        return EXIT_BAD_INPUT

    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")
    print(str(out_path))
    return EXIT_OK


def cmd_stats(args: argparse.Namespace) -> int:
    try:
        snapshot = _load_external(Path(args.input))
    except FileNotFoundError as e:
        _print_err(str(e))
        return EXIT_BAD_ARGS
    except (ValidationError, SerializationError, ValueError) as e:
        _print_err(str(e))
        return EXIT_BAD_INPUT

    print(compute_entity_stats(snapshot).model_dump_json(indent=2))
    return EXIT_OK


def cmd_density(args: argparse.Namespace) -> int:
    if args.bpm <= 0 or args.beats <= 0:
        _print_err("--bpm and --beats must be positive")
        return EXIT_BAD_ARGS

    try:
        snapshot = _load_external(Path(args.input))
    except FileNotFoundError as e:
        _print_err(str(e))
        return EXIT_BAD_ARGS
    except (ValidationError, SerializationError, ValueError) as e:
        _print_err(str(e))
        return EXIT_BAD_INPUT

    entities = get_all_events_as_array(snapshot) if args.view == "events" else snapshot.notes
    density = get_density_for_window(entities, args.start, args.beats, args.bpm)
    print(f"{density:.3f}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.cmd == "convert":
        return cmd_convert(args)
    if args.cmd == "stats":
        return cmd_stats(args)
    if args.cmd == "density":
        return cmd_density(args)

    _print_err("Unknown command.")
    return EXIT_BAD_ARGS


if __name__ == "__main__":
    raise SystemExit(main())

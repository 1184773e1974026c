#!/usr/bin/env python3
"""
Piano Synthesizer - CLI Entry Point

Play additive piano notes through the speakers, into WAV files, or serve
them over HTTP.

Usage:
    python main.py                         # three-note demo sequence
    python main.py A4 E4 C4 --gap 0.5      # your own sequence
    python main.py 440 --sink wav          # by frequency, written to output/
    python main.py C --simple              # single-sine confirmation tone
    python main.py --server --port 3000    # HTTP server

Features:
    - 8-partial additive synthesis with per-partial decay
    - High-pass / low-pass filter chain with a darkening cutoff
    - Speaker, WAV or in-memory output
"""

import argparse
import sys
from pathlib import Path

from colorama import init, Fore, Style

from piano_synth import (
    InvalidArgument,
    NoteScheduler,
    PianoSynthError,
    SynthConfig,
    demo_scheduler,
    get_config_loader,
    play_note,
)
from piano_synth.config_loader import ConfigLoader
from piano_synth.engine import create_note
from piano_synth.server.config import setup_logging
from piano_synth.sinks import SINK_KINDS

init()

# Sink used when neither --sink nor --config picks one
DEFAULT_SINK = "device"


def print_banner():
    """Print application banner."""
    banner = """
╔══════════════════════════════════════════════╗
║            🎹 PIANO SYNTHESIZER 🎹           ║
║                                              ║
║   Partials → Envelopes → Filters → Output    ║
╚══════════════════════════════════════════════╝
    """
    print(f"{Fore.CYAN}{banner}{Style.RESET_ALL}")


def print_step(step: str, message: str):
    """Print a step indicator."""
    print(f"{Fore.GREEN}[{step}]{Style.RESET_ALL} {message}")


def print_info(message: str):
    """Print info message."""
    print(f"{Fore.CYAN}ℹ{Style.RESET_ALL}  {message}")


def print_warning(message: str):
    """Print warning message."""
    print(f"{Fore.YELLOW}⚠{Style.RESET_ALL}  {message}")


def print_error(message: str):
    """Print error message."""
    print(f"{Fore.RED}✗{Style.RESET_ALL}  {message}")


def print_success(message: str):
    """Print success message."""
    print(f"{Fore.GREEN}✓{Style.RESET_ALL}  {message}")


def parse_note(value: str):
    """A note symbol (``A4``, ``C``) stays a string; anything numeric becomes Hz."""
    try:
        return float(value)
    except ValueError:
        return value


def load_config(args) -> SynthConfig:
    """Preset from ``--config`` (a YAML path or preset name), then CLI overrides."""
    if args.config:
        path = Path(args.config)
        if path.suffix in (".yaml", ".yml"):
            config = ConfigLoader(path.parent).load(path.stem)
        else:
            config = get_config_loader().load(args.config)
    else:
        config = get_config_loader().load_or_default()

    data = config.to_dict()
    if args.sink:
        data["sink"] = args.sink
    elif not args.config:
        # The bundled preset stays silent for library use; the CLI plays aloud
        data["sink"] = DEFAULT_SINK
    if args.output:
        data["output_dir"] = args.output
    if args.duration:
        data["note_duration"] = args.duration
    return SynthConfig.from_dict(data)


def run_sequence(args, config: SynthConfig) -> int:
    """Play the requested notes (or the demo) and wait for all of them."""
    if args.simple:
        trigger = lambda hz: play_note(hz, config)  # noqa: E731
    else:
        trigger = lambda hz: create_note(hz, config)  # noqa: E731

    if args.notes:
        scheduler = NoteScheduler(trigger=trigger)
        for note in args.notes:
            scheduler.add(parse_note(note), args.gap)
    else:
        scheduler = demo_scheduler(trigger=trigger)

    print_step("1/2", f"Playing {len(scheduler)} note(s) to '{config.sink}' sink...")
    completions = scheduler.run()

    print_step("2/2", "Waiting for notes to ring out...")
    for step, completion in zip(scheduler.steps, completions):
        completion.result()
        print_success(f"{step.label} finished")

    if config.sink == "wav":
        print_info(f"WAV files written to {Path(config.output_dir or 'output').absolute()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        description="Additive piano note synthesizer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s A4 E4 C4 --gap 0.5
  %(prog)s 440 --sink wav --output ./notes
  %(prog)s C --simple
  %(prog)s --server --port 3000

Note symbols:
  C4 D4 E4 F4 G4 A4 B4 C5, bare letters C..B (4th octave), or a frequency in Hz
        """,
    )

    parser.add_argument(
        "notes",
        nargs="*",
        help="Notes to play in order (default: the A4, E4, C4 demo)",
    )
    parser.add_argument(
        "--gap", "-g",
        type=float,
        default=0.5,
        help="Seconds between note triggers (default: 0.5)",
    )
    parser.add_argument(
        "--simple",
        action="store_true",
        help="Single-sine tone instead of the full piano voice",
    )
    parser.add_argument(
        "--sink", "-s",
        choices=SINK_KINDS,
        default=None,
        help="Output: device (speakers), wav (files) or null (discard). "
             "Default: device, or the sink named by --config",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output directory for --sink wav",
    )
    parser.add_argument(
        "--duration", "-d",
        type=float,
        default=None,
        help="Seconds each note lives before teardown",
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Voicing preset name or YAML file",
    )
    parser.add_argument(
        "--server",
        action="store_true",
        help="Run the HTTP note server instead of playing",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Server bind address (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=3000,
        help="Server port (default: 3000)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--no-banner",
        action="store_true",
        help="Suppress banner output",
    )
    return parser


def main():
    """Main CLI entry point."""
    args = build_parser().parse_args()

    if not args.no_banner:
        print_banner()

    setup_logging(args.verbose)

    if args.server:
        from piano_synth.server import run_server

        print_info(f"Server: http://{args.host}:{args.port}")
        run_server(
            host=args.host,
            port=args.port,
            verbose=args.verbose,
            sink=args.sink or DEFAULT_SINK,
            output_dir=args.output,
        )
        return 0

    try:
        config = load_config(args)
        return run_sequence(args, config)

    except KeyboardInterrupt:
        print_warning("\nPlayback cancelled by user")
        return 130

    except InvalidArgument as e:
        print_error(f"Invalid note: {e}")
        return 2

    except PianoSynthError as e:
        print_error(f"Playback failed: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())

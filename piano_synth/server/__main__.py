"""
Entry point for running the note server as a module.

Usage:
    python -m piano_synth.server [--verbose] [--port PORT] [--sink KIND]
"""

import argparse

from ..sinks import SINK_KINDS
from .config import ServerConfig


def main():
    defaults = ServerConfig.from_env()

    parser = argparse.ArgumentParser(
        description="Piano Synthesizer HTTP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m piano_synth.server --verbose
    python -m piano_synth.server --port 3000 --sink wav --output-dir output
        """
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})"
    )

    parser.add_argument(
        "--host", "-H",
        type=str,
        default=defaults.host,
        help=f"Host address to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--sink", "-s",
        choices=SINK_KINDS,
        default=defaults.sink,
        help=f"Where played notes go (default: {defaults.sink})"
    )

    parser.add_argument(
        "--output-dir", "-o",
        type=str,
        default=defaults.output_dir,
        help="Directory for WAV output when --sink wav"
    )

    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write logs to this file"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        default=defaults.verbose,
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    # Import here to avoid the RuntimeWarning
    from .http_server import run_server

    print("🎹 Starting Piano Synthesizer HTTP Server")
    print(f"   Listening on: http://{args.host}:{args.port}")
    print(f"   Sink: {args.sink}")
    print(f"   Verbose: {args.verbose}")
    print()

    run_server(
        host=args.host,
        port=args.port,
        verbose=args.verbose,
        sink=args.sink,
        output_dir=args.output_dir,
        sample_rate=defaults.sample_rate,
        log_file=args.log_file,
    )


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
zip-visualizer: Interactive zip operator demo

Main entry point. This service:
1. Runs the zip engine (two event sources, zip combinator, drain coordinator)
2. Serves the demo page and JSON/SSE API so a browser can drive and watch it
3. Optionally replays a scripted sequence of triggers headlessly

Usage:
    # Serve the demo page
    zip-visualizer --config /etc/zip-visualizer/config.toml

    # Headless: replay triggers and log each committed pair
    zip-visualizer --script "a,a,b,reset,b" --highlight-ms 50 --move-ms 50
"""

import argparse
import copy
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
import toml

# Set up logging before imports that use it
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger('zip-visualizer')

from .engine.zip_engine import ZipEngine
from .interfaces.display_state import Pair


DEFAULT_CONFIG: Dict[str, Any] = {
    'animation': {
        'highlight_ms': 500,
        'move_ms': 500,
        'move_distance_px': 80,
    },
    'web': {
        'port': 8080,
        'bind_address': '0.0.0.0',
    },
}

SCRIPT_ACTIONS = ('a', 'b', 'reset')


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge overrides into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def validate_config(config: Dict[str, Any]):
    """
    Check values that would otherwise fail later and less clearly.

    Raises:
        ValueError: on a negative duration, distance or port
    """
    animation = config.get('animation', {})
    for key in ('highlight_ms', 'move_ms', 'move_distance_px'):
        value = animation.get(key, 0)
        if not isinstance(value, (int, float)) or value < 0:
            raise ValueError(f"animation.{key} must be a non-negative number, got {value!r}")

    port = config.get('web', {}).get('port', 0)
    if not isinstance(port, int) or not 0 <= port <= 65535:
        raise ValueError(f"web.port must be 0-65535, got {port!r}")


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from TOML file, falling back to defaults."""
    if config_path:
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path} - using defaults")
            return copy.deepcopy(DEFAULT_CONFIG)
        with open(path, 'r') as f:
            return _merge(DEFAULT_CONFIG, toml.load(f))

    return copy.deepcopy(DEFAULT_CONFIG)


def parse_script(script: str) -> List[str]:
    """
    Parse a comma-separated trigger script such as "a,a,b,reset".

    Raises:
        ValueError: on an unknown action
    """
    actions = [part.strip().lower() for part in script.split(',') if part.strip()]
    for action in actions:
        if action not in SCRIPT_ACTIONS:
            raise ValueError(f"Unknown script action '{action}' (expected one of {', '.join(SCRIPT_ACTIONS)})")
    return actions


def build_engine(config: Dict[str, Any]) -> ZipEngine:
    animation = config.get('animation', {})
    return ZipEngine(
        highlight_ms=float(animation.get('highlight_ms', 500)),
        move_ms=float(animation.get('move_ms', 500)),
        move_distance_px=float(animation.get('move_distance_px', 80)),
    )


def run_script(engine: ZipEngine, actions: List[str], timeout: float = 30.0) -> List[Pair]:
    """
    Replay triggers against a running engine and wait for the drain to finish.

    Returns:
        Committed pairs, in commit order
    """
    committed: List[Pair] = []

    def record(pair: Pair):
        committed.append(pair)
        logger.info(f"  Output: {pair.text}")

    engine.on_commit = record

    logger.info("=" * 60)
    logger.info("SCRIPT MODE")
    logger.info(f"  Actions: {', '.join(actions)}")
    logger.info("=" * 60)

    for action in actions:
        if action == 'a':
            engine.emit_a()
        elif action == 'b':
            engine.emit_b()
        else:
            engine.reset()

    if not engine.wait_until_idle(timeout=timeout):
        logger.warning(f"Engine still busy after {timeout:.0f}s")

    snapshot = engine.snapshot()
    logger.info("=" * 60)
    logger.info(f"Script complete: {len(committed)} pair(s) committed")
    logger.info(f"  Queue A: {[item.text for item in snapshot.queue_a]}")
    logger.info(f"  Queue B: {[item.text for item in snapshot.queue_b]}")
    logger.info(f"  Output: {snapshot.output_text}")
    logger.info("=" * 60)
    return committed


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='zip-visualizer: Interactive zip operator demo',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Serve the demo page on the configured port
    zip-visualizer --config /etc/zip-visualizer/config.toml

    # Faster animations on another port
    zip-visualizer --port 9000 --highlight-ms 200 --move-ms 200

    # Headless replay
    zip-visualizer --script "a,b,a,b"
        """
    )

    parser.add_argument(
        '--config', '-c',
        help='Path to TOML configuration file'
    )
    parser.add_argument(
        '--port',
        type=int,
        help='HTTP port for the demo page (overrides config, 0 to disable)'
    )
    parser.add_argument(
        '--highlight-ms',
        type=float,
        help='Highlight phase delay in milliseconds (overrides config)'
    )
    parser.add_argument(
        '--move-ms',
        type=float,
        help='Move phase duration in milliseconds (overrides config)'
    )
    parser.add_argument(
        '--script',
        help='Comma-separated triggers to replay headlessly (a, b, reset)'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    # Load configuration
    config = load_config(args.config)

    # Apply command-line overrides
    if args.port is not None:
        config.setdefault('web', {})['port'] = args.port
    if args.highlight_ms is not None:
        config.setdefault('animation', {})['highlight_ms'] = args.highlight_ms
    if args.move_ms is not None:
        config.setdefault('animation', {})['move_ms'] = args.move_ms

    try:
        validate_config(config)
        actions = parse_script(args.script) if args.script else None
    except ValueError as e:
        logger.error(str(e))
        sys.exit(2)

    engine = build_engine(config)

    if actions is not None:
        engine.start()
        try:
            run_script(engine, actions)
        finally:
            engine.stop()
        return

    # Interactive mode: web page drives the engine
    web_server = None
    web_config = config.get('web', {})
    if web_config.get('port', 0) > 0:
        from .web import WebServer
        web_server = WebServer(
            port=web_config['port'],
            bind_address=web_config.get('bind_address', '0.0.0.0')
        )
        web_server.set_engine(engine)
        web_server.start()
    else:
        logger.warning("Web server disabled - nothing can trigger the engine")

    try:
        engine.run()
    finally:
        if web_server:
            web_server.stop()


if __name__ == '__main__':
    main()

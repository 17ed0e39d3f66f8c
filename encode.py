#!/usr/bin/env python3
"""
Command-line front end for the alphabet codec pipeline.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from pipeline_configs import CodecOptions, ConfigPresets, QueueConfig
from resilience_patterns import ProcessingError
from codec_pipeline.stages.alphabet import PREDEFINED_ALPHABETS
from codec_pipeline.stages.formatting import OutputFormatter
from codec_pipeline.workers import BatchQueue, ProcessingEngine
from base_classes import QueueItemStatus

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Encode and decode data with configurable 64-symbol alphabets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Predefined alphabets: {', '.join(PREDEFINED_ALPHABETS)}

Examples:
  encode.py -text "Hello World!"              # Encode a string
  encode.py -encode logo.png                  # Encode a file, print data URI formats
  encode.py -encode *.png --export css        # Batch encode to a CSS sheet
  encode.py -decode payload.txt --alphabet url --output out/
        """
    )

    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument('-encode', nargs='+', metavar='FILE', dest='encode_files',
                            help='Encode one or more files')
    mode_group.add_argument('-decode', metavar='FILE', dest='decode_file',
                            help='Decode a file containing encoded text')
    mode_group.add_argument('-text', metavar='STRING',
                            help='Encode a string')

    parser.add_argument('--alphabet', default='standard',
                        help='Predefined alphabet name or 64 custom symbols (default: standard)')
    parser.add_argument('--no-chunking', action='store_true',
                        help='Encode in a single pass without progress events')
    parser.add_argument('--no-worker', action='store_true',
                        help='Run on the calling process instead of a worker process')
    parser.add_argument('--export', choices=['json', 'html', 'css'],
                        help='Export batch results in the given format')
    parser.add_argument('--output', metavar='DIR',
                        help='Write results to DIR instead of stdout')
    parser.add_argument('--max-concurrent', type=int, default=3,
                        help='Files encoded at the same time (default: 3)')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable debug logging')

    return parser.parse_args(argv)


def _write(output_dir: Optional[Path], name: str, content, binary: bool = False) -> None:
    if output_dir is None:
        if binary:
            sys.stdout.buffer.write(content)
            sys.stdout.flush()
        else:
            print(content)
        return
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / name
    if binary:
        target.write_bytes(content)
    else:
        target.write_text(content, encoding='utf-8')
    print(f"Wrote {target}", file=sys.stderr)


async def _encode_single(engine: ProcessingEngine, args, options: CodecOptions,
                         output_dir: Optional[Path]) -> int:
    with tqdm(total=100, desc="Encoding", unit="%") as pbar:
        def on_progress(progress: float) -> None:
            pbar.update(round(progress * 100) - pbar.n)

        if args.text is not None:
            result = await engine.encode_text(args.text, options, on_progress)
            name = 'text.b64'
        else:
            path = Path(args.encode_files[0])
            result = await engine.encode_file(path, options, on_progress)
            name = f"{path.name}.b64"

    if args.export:
        _write(output_dir, f"export.{args.export}", OutputFormatter().format_results([result], args.export))
    else:
        _write(output_dir, name, result.encoded_text)
    logger.info(f"Encoded {result.byte_size} bytes ({result.mime_type})")
    return 0


async def _decode(engine: ProcessingEngine, args, options: CodecOptions,
                  output_dir: Optional[Path]) -> int:
    path = Path(args.decode_file)
    text = path.read_text(encoding='utf-8')
    result = await engine.decode(text, options)
    if output_dir is None and result.decoded_text is not None:
        print(result.decoded_text)
    else:
        _write(output_dir, f"{path.stem}.bin" if path.suffix else f"{path.name}.bin",
               result.decoded_bytes, binary=True)
    logger.info(f"Decoded {result.byte_size} bytes ({result.mime_type})")
    return 0


async def _encode_batch(engine: ProcessingEngine, args, options: CodecOptions,
                        output_dir: Optional[Path]) -> int:
    rejected = []
    config = QueueConfig(max_concurrent=args.max_concurrent, options=options)

    with tqdm(total=len(args.encode_files), desc="Encoding files", unit="files") as pbar:
        def on_update(snapshot) -> None:
            done = sum(1 for item in snapshot if item.status.is_terminal)
            if done > pbar.n:
                pbar.update(done - pbar.n)

        queue = BatchQueue(engine, config, on_update=on_update, on_rejected=rejected.append)
        ids = queue.add_files(args.encode_files)
        pbar.total = len(ids)
        pbar.refresh()
        await queue.join()
        snapshot = queue.get_snapshot()
        await queue.aclose()

    for error in rejected:
        print(f"Rejected: {error}", file=sys.stderr)

    results = []
    failures = len(rejected)
    for item in snapshot:
        if item.status is QueueItemStatus.COMPLETED:
            results.append(item.result)
            if not args.export:
                _write(output_dir, f"{item.file_ref.name}.b64", item.result.encoded_text)
        else:
            failures += 1
            print(f"Failed: {item.file_ref.name}: {item.error}", file=sys.stderr)

    if args.export and results:
        _write(output_dir, f"export.{args.export}", OutputFormatter().format_results(results, args.export))

    print(f"Encoded {len(results)} of {len(args.encode_files)} file(s)", file=sys.stderr)
    return 1 if failures else 0


async def run(args) -> int:
    engine_config, _ = ConfigPresets.in_process() if args.no_worker else ConfigPresets.default()
    options = CodecOptions(alphabet=args.alphabet, chunked=not args.no_chunking)
    output_dir = Path(args.output) if args.output else None

    async with ProcessingEngine(engine_config) as engine:
        if args.decode_file:
            return await _decode(engine, args, options, output_dir)
        if args.text is not None or len(args.encode_files) == 1:
            return await _encode_single(engine, args, options, output_dir)
        return await _encode_batch(engine, args, options, output_dir)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format=LOG_FORMAT)

    if args.max_concurrent <= 0:
        print("Error: --max-concurrent must be positive", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        return 1
    except (ProcessingError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

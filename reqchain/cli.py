# cli.py

import argparse
import asyncio
import sys
import time
from typing import List, Optional
from urllib.parse import urlparse

from reqchain import __version__
from reqchain.batch import BatchExecutor
from reqchain.chain import ChainExecutor
from reqchain.config import DEFAULT_TIMEOUT, load_config
from reqchain.context import RunContext
from reqchain.errors import InvalidURL, ReqChainError
from reqchain.log import configure_logging, logger
from reqchain.report import ReqResult, ResultRecorder, print_error, print_request_result, print_response
from reqchain.transport import AiohttpClient

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


def validate_url(url: str) -> str:
    """Accepts only absolute http(s) URLs with a host."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidURL(f"invalid URL: {url}")
    return url


async def run_simple(args: argparse.Namespace) -> int:
    try:
        validate_url(args.url)
    except InvalidURL as e:
        print_error(e)
        return EXIT_FAILED

    ctx = RunContext(timeout=args.timeout)
    result = ReqResult(name="", method=args.method.upper(), url=args.url)
    start = time.monotonic()
    async with AiohttpClient(timeout=args.timeout) as client:
        executor = BatchExecutor(ctx, client=client)
        try:
            response = await executor.execute_simple(args.url, args.method, args.header or "", args.json or "")
        except ReqChainError as e:
            result.duration = time.monotonic() - start
            result.success = False
            result.error = e
            print_error(e)
            print_request_result(result)
            return EXIT_FAILED

    result.duration = time.monotonic() - start
    result.status_code = response.status_code
    print_request_result(result)
    print_response(response)
    return EXIT_OK


async def run_batch(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ReqChainError as e:
        print_error(e)
        return EXIT_FAILED

    ctx = RunContext(timeout=config.timeout)
    recorder = ResultRecorder(show_variables=False)
    error = None
    async with AiohttpClient(timeout=config.timeout) as client:
        executor = BatchExecutor(ctx, client=client)
        executor.set_result_collector(recorder)
        try:
            await executor.execute(config)
        except ReqChainError as e:
            error = e

    recorder.summary()
    if error is not None:
        logger.error(f"Batch run failed: {error}")
        print_error(error)
        return EXIT_FAILED
    return EXIT_OK


async def run_chain(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ReqChainError as e:
        print_error(e)
        return EXIT_FAILED

    ctx = RunContext(timeout=config.timeout)
    recorder = ResultRecorder()
    error = None
    async with AiohttpClient(timeout=config.timeout) as client:
        executor = ChainExecutor(client=client, dependencies_first=args.dependencies_first)
        executor.set_result_collector(recorder)
        try:
            await executor.execute(ctx, config)
        except ReqChainError as e:
            error = e

    recorder.summary()
    if error is not None:
        logger.error(f"Chain run {executor.state.value}: {error}")
        print_error(error)
        return EXIT_FAILED
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reqchain",
        description="HTTP client tool for single, batch and chained requests.",
        epilog="Examples:\n  reqchain req GET https://example.com\n  reqchain bat config.toml\n  reqchain chain config.toml",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    req = subparsers.add_parser("req", help="Execute a simple HTTP request")
    req.add_argument("method", help="HTTP method (GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS)")
    req.add_argument("url", help="Absolute URL including scheme and host")
    req.add_argument("-H", "--header", default="", help="One header in 'Key: Value' form")
    req.add_argument("-j", "--json", default="", help="JSON body (POST, PUT and PATCH only)")
    req.add_argument("-t", "--timeout", type=float, default=float(DEFAULT_TIMEOUT), help="Request timeout in seconds")
    req.set_defaults(handler=run_simple)

    bat = subparsers.add_parser("bat", help="Execute batch requests from a config file")
    bat.add_argument("config", help="Path to the TOML config file")
    bat.set_defaults(handler=run_batch)

    chain = subparsers.add_parser("chain", help="Execute chained requests with variable passing")
    chain.add_argument("config", help="Path to the TOML config file")
    chain.add_argument(
        "--dependencies-first",
        dest="dependencies_first",
        action="store_true",
        help="Run each request after the request it depends on instead of the default reversed order",
    )
    chain.set_defaults(handler=run_chain)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug)
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(args.handler(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user, exiting.")
        loop.run_until_complete(asyncio.sleep(0))
        return EXIT_INTERRUPTED
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
        asyncio.set_event_loop(None)


if __name__ == "__main__":
    sys.exit(main())

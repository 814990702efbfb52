import sys

# Argument parsing
from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

import orjson

from loguru import logger

from lt.interceptor.interceptor import LocalTileInterceptor, create_interceptor
from lt.model.models import HttpRequest, HttpRequestError, HttpResponse, HttpResponseData, ResolutionStrategy


def get_args(argv: Optional[List[str]] = None) -> Namespace:
    """Reads command line arguments and returns a Namespace object with them

    Returns:
        Namespace: Namespace object with the command line arguments
    """
    parser = ArgumentParser(
        prog='localtiles',
        description='Inspect a local MBTiles storage directory and resolve https://local URLs against it'
    )

    # Add a positional argument for the storage directory
    parser.add_argument(
        "positional_dir",
        nargs="?",  # Optional positional argument
        default=None,
        help="Storage directory holding the .mbtiles archives"
    )

    # Add the -d/--dir option
    parser.add_argument(
        "-d", "--dir",
        action="store",
        dest="storage_dir",
        help="Storage directory holding the .mbtiles archives"
    )

    # Add the -l/--list option
    parser.add_argument(
        "-l", "--list",
        action="store_true",
        dest="list",
        help="Print the archive catalog as JSON"
    )

    # Add the -u/--url option
    parser.add_argument(
        "-u", "--url",
        action="store",
        dest="url",
        help="Resolve a URL as the interceptor would"
    )

    # Add the -o/--output option
    parser.add_argument(
        "-o", "--output",
        action="store",
        dest="output",
        help="Write the resolved body to this file instead of stdout"
    )

    # Add the -s/--strategy option
    parser.add_argument(
        "-s", "--strategy",
        action="store",
        dest="strategy",
        choices=[s.value for s in ResolutionStrategy],
        default=None,
        help="Tile resolution strategy"
    )

    args = parser.parse_args(argv)

    # Use the positional argument if -d/--dir is not provided
    if args.storage_dir is None:
        args.storage_dir = args.positional_dir

    if not args.list and not args.url:
        parser.error("Nothing to do. Use -l/--list and/or -u/--url <url>.")

    return args


def resolve_url(interceptor: LocalTileInterceptor, url: str) -> HttpResponse:
    """Run a synthetic request for `url` through the interceptor hooks.

    The transport's own outcome for a local URL is modelled as a request error,
    so a passthrough is recognisable by `is_error`.
    """
    request = interceptor.on_request(HttpRequest(url=url))
    response = HttpResponse(request=request, result=HttpRequestError(type="connection", message="not fetched"))
    return interceptor.on_response(response)


def run(interceptor: LocalTileInterceptor, args: Namespace) -> int:
    if (catalog := interceptor.catalog) is None:
        logger.error("No archive catalog available. Check the storage directory.")
        return 1

    if args.list:
        sys.stdout.write(orjson.dumps(catalog.summary(), option=orjson.OPT_INDENT_2).decode() + "\n")

    if args.url:
        response = resolve_url(interceptor, args.url)
        if not isinstance(response.result, HttpResponseData):
            logger.error(f"{args.url} was not served locally")
            return 1
        data = response.result.data
        logger.info(f"{args.url} resolved to {len(data)} bytes")
        if args.output:
            Path(args.output).write_bytes(data)
        else:
            sys.stdout.buffer.write(data)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    # Load environment variables
    load_dotenv('.env')

    # Get the command line arguments
    args = get_args(argv)

    try:
        interceptor = create_interceptor(storage_dir=args.storage_dir, resolution=args.strategy)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        return run(interceptor, args)
    finally:
        interceptor.close()


# Main
if __name__ == '__main__':
    sys.exit(main())

"""Command line entry point for one-off requests."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Sequence

from .client import request
from .exceptions import HttpRequestError
from .request_options import RequestOptions
from .response import Response


def _pairs(values: Sequence[str] | None, separator: str, parser: argparse.ArgumentParser) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for item in values or []:
        name, found, value = item.partition(separator)
        if not found or not name.strip():
            parser.error(f"expected NAME{separator}VALUE, got {item!r}")
        pairs[name.strip()] = value.strip() if separator == ":" else value
    return pairs


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="oidc-http", description="Send one HTTP request and print the response.")
    parser.add_argument("url")
    parser.add_argument("-X", "--method", default="GET")
    parser.add_argument("-H", "--header", action="append", help="NAME:VALUE, repeatable")
    parser.add_argument("-p", "--param", action="append", help="query parameter NAME=VALUE, repeatable")
    body = parser.add_mutually_exclusive_group()
    body.add_argument("--json", dest="json_body", help="JSON document to send")
    body.add_argument("--form", action="append", help="form field NAME=VALUE, repeatable")
    body.add_argument("--data", help="raw request body")
    parser.add_argument("--timeout", type=float, help="seconds")
    parser.add_argument("--http2", action="store_true")
    parser.add_argument("--response-type", default="buffer")
    parser.add_argument("--ca")
    parser.add_argument("--cert")
    parser.add_argument("--key")
    parser.add_argument("--pfx")
    parser.add_argument("--passphrase")
    parser.add_argument("--mtls", action="store_true", help="require client certificate material")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def _build_options(args: argparse.Namespace, parser: argparse.ArgumentParser) -> RequestOptions:
    json_body = None
    if args.json_body is not None:
        try:
            json_body = json.loads(args.json_body)
        except ValueError as exc:
            parser.error(f"--json is not valid JSON: {exc}")
    return RequestOptions(
        url=args.url,
        method=args.method,
        headers=_pairs(args.header, ":", parser) or None,
        search_params=_pairs(args.param, "=", parser) or None,
        json=json_body,
        form=_pairs(args.form, "=", parser) if args.form else None,
        body=args.data,
        timeout=args.timeout,
        http2=args.http2 or None,
        ca=args.ca,
        cert=args.cert,
        key=args.key,
        pfx=args.pfx,
        passphrase=args.passphrase,
        response_type=args.response_type,
    )


def _print_response(response: Response) -> None:
    print(f"{response.http_version} {response.status_code}")
    for name, value in response.headers.items():
        print(f"{name}: {value}")
    body = response.body
    if body is None:
        return
    print()
    if isinstance(body, bytes):
        print(body.decode("utf-8", errors="replace"))
    else:
        print(json.dumps(body, indent=2))


def _main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    options = _build_options(args, parser)
    try:
        response = asyncio.run(request(options, mtls=args.mtls))
        _print_response(response)
    except HttpRequestError as exc:
        print(f"request failed: {exc}", file=sys.stderr)
        return 1
    return 0


def main() -> None:
    raise SystemExit(_main())

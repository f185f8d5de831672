"""
Main CLI entry point for h2raw.

This module provides the command-line interface for the tool: sending a
single hand-built request and running the bundled set of example probes.
"""

import asyncio
import logging
import os
import sys
import urllib.parse
from typing import Callable, List, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape

from h2raw.clients.http2 import HTTP2Client
from h2raw.clients.request import Request
from h2raw.clients.response import Response
from h2raw.errors import H2RawError
from h2raw.utils.logging import get_logger, printable_text, setup_logging
from h2raw.utils.tls import TrustConfig

console = Console()


def render_response(response: Response) -> str:
    """Render a response as text: headers, then a blank line and the body."""
    lines = [
        f"{printable_text(name)}: {printable_text(value)}"
        for name, value in response.fields
    ]
    text = "\n".join(lines) + ("\n" if lines else "")
    if response.body is not None:
        text += "\n" + response.body.decode('utf-8', errors='replace')
    return text


def parse_header(header: str) -> Tuple[str, str]:
    """Split a ``Name: value`` option into name and value.

    A leading colon belongs to the name, so ``:path: /x`` yields ``:path``.
    The name is kept exactly as given, casing included.
    """
    offset = 1 if header.startswith(':') else 0
    index = header.find(':', offset)
    if index < 0:
        raise click.BadParameter(f"Invalid header format: {header!r} (expected 'Name: Value')")
    return header[:index], header[index + 1:].lstrip()


def parse_url(url: str) -> Tuple[str, str, str, str]:
    """Split a URL into (scheme, endpoint, authority, path)."""
    parsed = urllib.parse.urlparse(url)
    scheme = parsed.scheme.lower()
    if scheme not in ('http', 'https'):
        raise click.BadParameter(f"Invalid URL scheme: {scheme!r}. Must be http or https.")
    if not parsed.hostname:
        raise click.BadParameter(f"Missing host in URL: {url!r}")

    try:
        port = parsed.port or (443 if scheme == 'https' else 80)
    except ValueError as e:
        raise click.BadParameter(f"Invalid port in URL: {e}")

    host = parsed.hostname
    endpoint = f"[{host}]:{port}" if ':' in host else f"{host}:{port}"

    path = parsed.path or '/'
    if parsed.query:
        path = f"{path}?{parsed.query}"

    return scheme, endpoint, parsed.netloc, path


@click.group()
@click.version_option(package_name='h2raw')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--log-file', help='Log file path')
def cli(debug: bool, log_file: Optional[str]):
    """h2raw: raw HTTP/2 requests for protocol testing.

    Builds requests exactly as given, including ones a conformant client
    would refuse to send, and shows how the server reacts.
    """
    setup_logging(level=logging.DEBUG if debug else logging.INFO, log_file=log_file, verbose=debug)


@cli.command()
@click.argument('url')
@click.option('--method', '-X', default='GET', help='HTTP method, sent verbatim')
@click.option('--header', '-H', multiple=True, help='Header "Name: Value" (repeatable, casing kept)')
@click.option('--authority', help='Value of the :authority pseudo-header')
@click.option('--data', '-d', help='Request body')
@click.option('--data-file', type=click.Path(exists=True, dir_okay=False), help='Read the request body from a file')
@click.option('--content-length', help='Add a content-length header with this exact value')
@click.option('--stream-id', default=1, show_default=True, help='Stream identifier for the request')
@click.option('--allow-illegal/--strict', default=True, show_default=True, help='Skip frame conformance checks')
@click.option('--verify-ssl', is_flag=True, help='Verify SSL certificates')
@click.option('--timeout', '-t', type=float, help='Deadline for the response in seconds')
@click.option('--connect-timeout', '-c', default=5.0, show_default=True, help='Connection timeout in seconds')
@click.option('--max-body-size', type=int, help='Fail if the response body grows beyond this many bytes')
@click.option('--output', '-o', help='Write the response body to this file')
@click.option('--verbose', '-v', is_flag=True, help='Log the full request and every received frame')
def request(
    url: str,
    method: str,
    header: List[str],
    authority: Optional[str],
    data: Optional[str],
    data_file: Optional[str],
    content_length: Optional[str],
    stream_id: int,
    allow_illegal: bool,
    verify_ssl: bool,
    timeout: Optional[float],
    connect_timeout: float,
    max_body_size: Optional[int],
    output: Optional[str],
    verbose: bool,
):
    """Send one raw HTTP/2 request.

    URL should be in the format http(s)://hostname[:port]/path. http URLs use
    plain TCP with prior knowledge, https URLs use TLS.
    """
    logger = get_logger()

    scheme, endpoint, netloc, path = parse_url(url)
    req = Request(method, scheme, authority if authority is not None else netloc, path)

    for h in header:
        name, value = parse_header(h)
        req.add_header(name, value)
    if content_length is not None:
        req.add_header('content-length', content_length)

    if data_file:
        with open(data_file, 'rb') as f:
            req.body = f.read()
    elif data is not None:
        req.body = data.encode('utf-8')

    client = HTTP2Client(
        use_tls=scheme == 'https',
        trust=TrustConfig(verify=verify_ssl) if verify_ssl else TrustConfig.insecure(),
        allow_illegal=allow_illegal,
        verbose=verbose,
        timeout=timeout,
        connect_timeout=connect_timeout,
        max_body_size=max_body_size,
    )

    try:
        response = asyncio.run(client.request(endpoint, req, stream_id))
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Request cancelled by user[/]")
        sys.exit(130)
    except H2RawError as e:
        console.print(f"[bold red]Error:[/] {type(e).__name__}: {escape(str(e))}", highlight=False)
        logger.debug("Exchange failed", exc_info=True)
        sys.exit(1)

    console.print(render_response(response), markup=False, highlight=False)

    if output:
        with open(output, 'wb') as f:
            f.write(response.body or b"")
        console.print(f"[bold green]Response body saved to:[/] {escape(output)}")


def example_simple_get(authority: str) -> Request:
    """GET with a host header and a custom header."""
    req = Request("GET", "https", authority, "/example/simpleget")
    req.add_header("host", authority)
    req.add_header("x-demo-header", "just some header value")
    return req


def example_fat_get(authority: str) -> Request:
    """GET carrying a body."""
    return Request("GET", "https", authority, "/example/fatget", body=b"This GET request has a body!")


def example_simple_post(authority: str) -> Request:
    """POST with a body mixing text and random binary data."""
    body = (
        b"First some text. Next binary data follows."
        + os.urandom(100)
        + b"And finally some text again"
    )
    return Request("POST", "https", authority, "/example/post", body=body)


def example_lying_content_length(authority: str) -> Request:
    """POST whose content-length header disagrees with the body."""
    req = Request("POST", "https", authority, "/example/post", body=b"Some body longer than 2 bytes!")
    req.add_header("content-length", "2")
    return req


def example_junk_method(authority: str) -> Request:
    """Request with a method that is not even a token."""
    req = Request("JUNK method 1234", "https", authority, "/example/simpleget")
    req.add_header("x-demo-header", "just some header value")
    return req


EXAMPLES: List[Tuple[str, Callable[[str], Request]]] = [
    ('simple-get', example_simple_get),
    ('fat-get', example_fat_get),
    ('simple-post', example_simple_post),
    ('lying-content-length', example_lying_content_length),
    ('junk-method', example_junk_method),
]


async def _run_examples(client: HTTP2Client, endpoint: str, authority: str, scheme: str) -> int:
    """Run every example on its own connection. Returns the number of failures."""
    logger = get_logger()
    failures = 0
    for name, build in EXAMPLES:
        req = build(authority)
        req.scheme = scheme
        console.print(f"\n[bold cyan]Running {name}...[/]")
        try:
            response = await client.request(endpoint, req)
        except H2RawError as e:
            failures += 1
            logger.error(f"{name} failed: {type(e).__name__}: {e}")
            continue
        console.print(f"Response:\n{render_response(response)}", markup=False, highlight=False)
    return failures


@cli.command()
@click.argument('endpoint')
@click.argument('authority')
@click.option('--plain', is_flag=True, help='Use plain TCP (h2c prior knowledge) instead of TLS')
@click.option('--allow-illegal/--strict', default=True, show_default=True, help='Skip frame conformance checks')
@click.option('--timeout', '-t', type=float, default=15.0, show_default=True, help='Deadline per response in seconds')
@click.option('--verbose', '-v', is_flag=True, help='Log the full request and every received frame')
def examples(
    endpoint: str,
    authority: str,
    plain: bool,
    allow_illegal: bool,
    timeout: float,
    verbose: bool,
):
    """Run the bundled example probes against ENDPOINT (host:port).

    Each probe uses its own connection. A failing probe is logged and the
    run continues with the next one.
    """
    client = HTTP2Client(
        use_tls=not plain,
        trust=TrustConfig.insecure(),
        allow_illegal=allow_illegal,
        verbose=verbose,
        timeout=timeout,
        connect_timeout=5.0,
    )
    failures = asyncio.run(_run_examples(client, endpoint, authority, 'http' if plain else 'https'))

    console.print(f"\n[bold cyan]Summary:[/] {len(EXAMPLES) - failures}/{len(EXAMPLES)} examples completed")
    if failures:
        sys.exit(1)


def main():
    """Main entry point for the CLI."""
    try:
        cli()
    except Exception as e:
        console.print(f"[bold red]Unexpected error:[/] {escape(str(e))}")
        get_logger().exception("Unhandled exception in main")
        sys.exit(1)


if __name__ == '__main__':
    main()

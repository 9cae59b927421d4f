"""
imageslot CLI
Command-line interface for previewing and uploading the slot image.
"""

import asyncio
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Optional

import click

from .errors import ImageSlotError


def _policy_from_options(mode: Optional[str], preset: Optional[str], quality_pct: Optional[int]):
    """Build a policy from command-line options, or None to keep the saved one."""
    from .models import LosslessPolicy, ManualPolicy, PresetPolicy

    if mode == "none":
        return LosslessPolicy()
    if mode == "manual" or (mode is None and quality_pct is not None):
        return ManualPolicy(factor=(quality_pct if quality_pct is not None else 80) / 100)
    if mode == "preset" or preset is not None:
        return PresetPolicy(tier=preset or "medium")
    return None


def _guess_mime(path: Path) -> Optional[str]:
    mime, _ = mimetypes.guess_type(path.name)
    return mime


def _fail(e: Exception):
    click.echo(f"❌ {e}", err=True)
    sys.exit(1)


def _print_preview(result):
    from .estimator import format_file_size

    click.echo(f"   Original: {result.original_width}x{result.original_height} "
               f"{result.original_format.upper()} ({format_file_size(result.original_size)})")
    click.echo(f"   Output:   {result.width}x{result.height} JPEG @ {round(result.quality * 100)}% "
               f"(~{format_file_size(result.estimated_size)})")


compression_options = [
    click.option("--mode", type=click.Choice(["none", "preset", "manual"]), help="Compression mode"),
    click.option("--preset", type=click.Choice(["high", "medium", "low"]), help="Preset tier"),
    click.option("--quality", "quality_pct", type=click.IntRange(10, 100), help="Manual quality (10-100)"),
]


def with_compression_options(func):
    for option in reversed(compression_options):
        func = option(func)
    return func


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def cli(verbose: bool):
    """imageslot - Single image slot manager"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command()
@click.option("--port", "-p", default=None, type=int, help="API server port")
@click.option("--host", default=None, help="API server host")
def serve(port: Optional[int], host: Optional[str]):
    """Start the API server."""
    import subprocess

    from .config import settings

    settings.ensure_directories()
    port = port or settings.api_port
    host = host or settings.api_host

    click.echo(f"🖼️  Starting imageslot API on port {port}...")
    click.echo(f"🔑 API Token: {settings.api_token[:16]}...")
    click.echo("\nPress Ctrl+C to stop")

    proc = subprocess.Popen([
        sys.executable, "-m", "uvicorn",
        "imageslot.main:app",
        "--host", host,
        "--port", str(port),
    ])
    try:
        proc.wait()
    except KeyboardInterrupt:
        click.echo("\nShutting down...")
        proc.terminate()


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@with_compression_options
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the JPEG here")
def preview(path: str, mode: Optional[str], preset: Optional[str], quality_pct: Optional[int], output: Optional[str]):
    """Show what an upload of PATH would look like."""
    from .config import settings
    from .preferences import PreferenceStore
    from .transcoder import load_source_image, transcode

    path = Path(path)
    policy = _policy_from_options(mode, preset, quality_pct) or PreferenceStore().load()

    try:
        source = load_source_image(path.read_bytes(), _guess_mime(path), limit=settings.max_upload_bytes)
        result = transcode(source, policy, max_dimension=settings.max_dimension)
    except ImageSlotError as e:
        _fail(e)

    click.echo(f"🖼️  {path.name}")
    _print_preview(result)

    if output:
        Path(output).write_bytes(result.data)
        click.echo(f"✅ Wrote {output}")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@with_compression_options
@click.option("--yes", "-y", is_flag=True, help="Upload without asking")
@click.option("--wait", is_flag=True, help="Wait until the new image is visible")
def upload(path: str, mode: Optional[str], preset: Optional[str], quality_pct: Optional[int], yes: bool, wait: bool):
    """Resize, recompress and upload PATH to the slot."""
    from .session import ImageSlotSession

    path = Path(path)
    policy = _policy_from_options(mode, preset, quality_pct)

    async def run():
        session = ImageSlotSession()
        try:
            if policy is not None:
                session.set_policy(policy)
            result = session.load_candidate(path.read_bytes(), _guess_mime(path))

            click.echo(f"🖼️  {path.name}")
            _print_preview(result)
            if not yes and not click.confirm("Upload?", default=True):
                click.echo("Cancelled")
                return

            receipt = await session.confirm_upload()
            click.echo(f"✅ Uploaded {receipt.filename} to {receipt.resource_path}")
            click.echo(f"   {receipt.message}")
            await _finish(session, wait)
        finally:
            await session.aclose()

    try:
        asyncio.run(run())
    except ImageSlotError as e:
        _fail(e)


@cli.command()
@click.argument("record_id")
@click.option("--wait", is_flag=True, help="Wait until the image is visible")
def reuse(record_id: str, wait: bool):
    """Upload a recent image again."""
    from .session import ImageSlotSession

    async def run():
        session = ImageSlotSession()
        try:
            receipt = await session.reuse(record_id)
            click.echo(f"✅ Re-uploaded {record_id[:8]} to {receipt.resource_path}")
            await _finish(session, wait)
        finally:
            await session.aclose()

    try:
        asyncio.run(run())
    except ImageSlotError as e:
        _fail(e)


async def _finish(session, wait: bool):
    if not wait:
        click.echo(f"⏳ The new image will be visible at {session.public_url()} shortly")
        return
    click.echo("⏳ Waiting for the repository to catch up...")
    await session.scheduler.wait()
    current = session.scheduler.current
    if current:
        click.echo(f"✅ Current version: {current.sha[:8]} ({current.size} bytes)")
    if session.scheduler.last_error:
        click.echo(f"⚠️  Re-read failed: {session.scheduler.last_error}")


@cli.command()
def status():
    """Show the image currently in the slot."""
    from .estimator import format_file_size
    from .session import ImageSlotSession

    async def run():
        session = ImageSlotSession()
        try:
            return await session.refresh(), session.public_url()
        finally:
            await session.aclose()

    try:
        current, url = asyncio.run(run())
    except ImageSlotError as e:
        _fail(e)

    click.echo("📊 Current Image")
    click.echo("=" * 40)
    if current is None:
        click.echo("No image uploaded yet")
    else:
        click.echo(f"Version: {current.sha}")
        click.echo(f"Size:    {format_file_size(current.size)}")
        click.echo(f"Raw:     {current.read_url}")
    click.echo(f"Public:  {url}")


@cli.command()
@click.option("--clear", is_flag=True, help="Delete all recent uploads")
def recent(clear: bool):
    """List recent uploads."""
    from .estimator import format_file_size
    from .recent import RecentUploadStore

    store = RecentUploadStore()
    if clear:
        store.clear()
        click.echo("✅ Recent images cleared")
        return

    records = store.list()
    if not records:
        click.echo("No recent uploads.")
        return

    for r in records:
        click.echo(f"{r.id[:8]}  {r.timestamp:%Y-%m-%d %H:%M}  {format_file_size(r.size):>9}  {r.id}")


@cli.command()
def config():
    """Print the current configuration."""
    from .config import settings
    from .errors import ConfigError
    from .store import public_url

    try:
        url = public_url(settings.repo_path)
    except ConfigError:
        url = "(not configured)"

    token = settings.github_token
    click.echo(f"Repository: {settings.repo_path or '(not set)'}")
    click.echo(f"Token:      {token[:4] + '...' if token else '(not set)'}")
    click.echo(f"File:       {settings.resource_filename} on {settings.branch}")
    click.echo(f"Public URL: {url}")
    click.echo(f"Storage:    {settings.storage_path}")


def main():
    cli()


if __name__ == "__main__":
    main()

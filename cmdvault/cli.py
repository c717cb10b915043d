"""CLI for cmdvault."""
import asyncio
import json
import sys
from typing import Optional

import click

from cmdvault.dependencies import Container, get_container
from cmdvault.errors import CanonicalizationError, VaultError


def _container(ctx: click.Context) -> Container:
    if ctx.obj is None:
        ctx.obj = get_container()
    return ctx.obj


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _read_text(text: str) -> str:
    """``-`` reads the text from stdin."""
    return click.get_text_stream("stdin").read() if text == "-" else text


@click.group()
@click.option("--log-level", default=None, help="Override CMDVAULT_LOG_LEVEL")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]):
    """cmdvault: secure values and reference resolution for stored commands."""
    from cmdvault.logging_hardening import setup_logging
    from cmdvault.settings import settings
    setup_logging(log_level or settings.log_level)


# --- keys ---

@cli.group()
def keys():
    """Manage encryption key versions."""
    pass


@keys.command("status")
@click.option("--format", "fmt", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def key_status(ctx: click.Context, fmt: str):
    """Show key versions and how many values each one seals."""
    c = _container(ctx)
    info = c.secure_values.key_info()
    versions = c.key_manager.list_versions()
    if fmt == "json":
        click.echo(json.dumps({
            "active_version": info.active_version,
            "value_count": info.value_count,
            "stale_counts": info.stale_counts,
            "versions": [v.model_dump(mode="json") for v in versions],
        }, indent=2))
        return
    click.echo(f"\n{'Version':<10} {'Fingerprint':<28} {'Active':<8} {'Material':<10}")
    click.echo("-" * 58)
    for kv in versions:
        present = "ok" if c.key_manager.verify(kv.version) else "MISSING"
        active = "*" if kv.is_active else ""
        click.echo(f"v{kv.version:<9} {kv.fingerprint:<28} {active:<8} {present:<10}")
    stale = sum(info.stale_counts.values())
    click.echo(f"\n{info.value_count} value(s) under v{info.active_version}, {stale} behind")


@keys.command("rotate")
@click.pass_context
def rotate_key(ctx: click.Context):
    """Create a new key version and make it active."""
    try:
        version = _container(ctx).key_manager.rotate()
    except VaultError as e:
        _fail(e.message)
    click.echo(f"✓ Active key is now v{version}")


@keys.command("rotate-all")
@click.option("--batch-size", default=100, type=int)
@click.pass_context
def rotate_all(ctx: click.Context, batch_size: int):
    """Re-seal every value that is behind the active key."""
    report = _container(ctx).secure_values.rotate_all_to_current_key(batch_size=batch_size)
    click.echo(f"✓ v{report.target_version}: scanned={report.scanned} "
               f"rotated={report.rotated} failed={report.failed}")
    if report.failed:
        sys.exit(1)


# --- secure ---

@cli.group()
def secure():
    """Manage secure values."""
    pass


@secure.command("add")
@click.option("--label", default=None, help="Unique label")
@click.option("--value", prompt=True, hide_input=True, help="Plaintext (prompted when omitted)")
@click.pass_context
def add_secure(ctx: click.Context, label: Optional[str], value: str):
    """Encrypt a value and print its reference."""
    store = _container(ctx).secure_values
    try:
        ref_id = store.with_label(value, label) if label else store.encrypt(value)[0]
    except VaultError as e:
        _fail(e.message)
    click.echo(ref_id)


@secure.command("list")
@click.option("--format", "fmt", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def list_secure(ctx: click.Context, fmt: str):
    """List secure values (metadata only)."""
    values = _container(ctx).secure_values.list_values()
    if fmt == "json":
        click.echo(json.dumps(values, indent=2))
        return
    click.echo(f"\n{'Ref':<10} {'Label':<30} {'Key':<6}")
    click.echo("-" * 48)
    for v in values:
        click.echo(f"{v['ref_id']:<10} {v['label'] or '':<30} v{v['key_version']:<5}")


@secure.command("set")
@click.argument("ref_id")
@click.option("--value", prompt=True, hide_input=True)
@click.pass_context
def set_secure(ctx: click.Context, ref_id: str, value: str):
    """Replace the plaintext of a secure value."""
    try:
        _container(ctx).secure_values.update_value(ref_id, value)
    except VaultError as e:
        _fail(e.message)
    click.echo(f"✓ Updated {ref_id}")


@secure.command("label")
@click.argument("ref_id")
@click.argument("label", required=False)
@click.pass_context
def label_secure(ctx: click.Context, ref_id: str, label: Optional[str]):
    """Set (or clear, when LABEL is omitted) the label of a secure value."""
    try:
        _container(ctx).secure_values.set_label(ref_id, label)
    except VaultError as e:
        _fail(e.message)
    click.echo(f"✓ {ref_id} label: {label or '(none)'}")


@secure.command("reveal")
@click.argument("ref_id")
@click.pass_context
def reveal_secure(ctx: click.Context, ref_id: str):
    """Print the plaintext of a secure value."""
    try:
        click.echo(_container(ctx).secure_values.decrypt(ref_id))
    except VaultError as e:
        _fail(e.message)


@secure.command("delete")
@click.argument("ref_id")
@click.pass_context
def delete_secure(ctx: click.Context, ref_id: str):
    if not _container(ctx).secure_values.delete(ref_id):
        _fail(f"Secure value '{ref_id}' not found")
    click.echo(f"✓ Deleted {ref_id}")


# --- var ---

@cli.group("var")
def var():
    """Manage plaintext variables."""
    pass


@var.command("set")
@click.argument("value")
@click.option("--label", default=None)
@click.option("--id", "ref_id", default=None, help="Update this variable instead of creating one")
@click.pass_context
def set_var(ctx: click.Context, value: str, label: Optional[str], ref_id: Optional[str]):
    try:
        variable = _container(ctx).variables.set(value, label=label, ref_id=ref_id)
    except VaultError as e:
        _fail(e.message)
    click.echo(variable.ref_id)


@var.command("get")
@click.argument("ref_id")
@click.pass_context
def get_var(ctx: click.Context, ref_id: str):
    value = _container(ctx).variables.get(ref_id)
    if value is None:
        _fail(f"Variable '{ref_id}' not found")
    click.echo(value)


@var.command("list")
@click.pass_context
def list_vars(ctx: click.Context):
    for v in _container(ctx).variables.list():
        click.echo(f"{v.ref_id:<10} {v.label or '':<30} {v.value}")


@var.command("delete")
@click.argument("ref_id")
@click.pass_context
def delete_var(ctx: click.Context, ref_id: str):
    if not _container(ctx).variables.delete(ref_id):
        _fail(f"Variable '{ref_id}' not found")
    click.echo(f"✓ Deleted {ref_id}")


# --- text ---

@cli.command("canonicalize")
@click.argument("text")
@click.pass_context
def canonicalize(ctx: click.Context, text: str):
    """Rewrite author placeholders in TEXT ('-' for stdin) to canonical form."""
    source = _read_text(text)
    try:
        click.echo(_container(ctx).canonicalizer.canonicalize(source))
    except CanonicalizationError as e:
        start, end = e.span
        click.echo(f"Error: {e.error.code}: {e.message} at {start}-{end}: {source[start:end]}", err=True)
        sys.exit(1)


@cli.command("resolve")
@click.argument("text")
@click.pass_context
def resolve(ctx: click.Context, text: str):
    """Substitute references in canonical TEXT ('-' for stdin)."""
    click.echo(asyncio.run(_container(ctx).engine.resolve(_read_text(text))))


@cli.command("display")
@click.argument("text")
@click.pass_context
def display(ctx: click.Context, text: str):
    """Show canonical TEXT with references as [label]."""
    click.echo(_container(ctx).canonicalizer.to_display(_read_text(text)))


@cli.command("run")
@click.argument("command_id")
@click.pass_context
def run(ctx: click.Context, command_id: str):
    """Run a stored command with its references resolved."""
    try:
        result = asyncio.run(_container(ctx).runner.execute(command_id))
    except VaultError as e:
        _fail(e.message)
    if result.error:
        click.echo(result.text)
        _fail(result.error)
    click.echo(result.text)


@cli.command("serve")
@click.option("--host", default="127.0.0.1")
@click.option("--port", default=8765, type=int)
def serve(host: str, port: int):
    """Run the admin API."""
    import uvicorn
    uvicorn.run("cmdvault.main:app", host=host, port=port)


if __name__ == "__main__":
    cli()

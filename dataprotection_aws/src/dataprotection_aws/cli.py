# Typer CLI for inspecting and seeding a key repository.
from __future__ import annotations

import asyncio
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

import click
import typer
from botocore.exceptions import BotoCoreError, ClientError

from .clients import create_kms_client, create_s3_client, persist_keys_to_s3, protect_keys_with_kms
from .config import AppConfig, dump_default_config, load_config
from .core.exceptions import DataProtectionError
from .kms.decryptor import KmsXmlDecryptor
from .kms.encryptor import KmsXmlEncryptor
from .logging import configure_logging
from .storage.s3_repository import S3XmlRepository
from .utils.validation import is_safe_key
from .utils.xml import parse_element, serialize_element
from .version import __version__

app = typer.Typer(help="DataProtection AWS key repository CLI")

# Reported as a one-line error with exit code 1 rather than a traceback.
_FAILURES = (DataProtectionError, ET.ParseError, ClientError, BotoCoreError)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dataprotection-aws {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", metavar="PATH", help="YAML configuration file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="critical|error|warning|info|debug"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True),
) -> None:
    try:
        ctx.obj = load_config(config)
    except DataProtectionError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)
    configure_logging(log_level or ctx.obj.logging.normalized_level())


def _app_config() -> AppConfig:
    return click.get_current_context().obj


def _repository() -> S3XmlRepository:
    config = _app_config()
    if config.s3 is None:
        typer.echo("No 's3' section in configuration", err=True)
        raise typer.Exit(code=2)
    client = create_s3_client(region=config.s3.region, endpoint_url=config.s3.endpoint_url)
    return persist_keys_to_s3(config.s3.to_runtime(), client)


def _kms_pair() -> tuple[KmsXmlEncryptor, KmsXmlDecryptor, Optional[str]]:
    config = _app_config()
    if config.kms is None:
        typer.echo("No 'kms' section in configuration", err=True)
        raise typer.Exit(code=2)
    client = create_kms_client(region=config.kms.region, endpoint_url=config.kms.endpoint_url)
    encryptor, decryptor = protect_keys_with_kms(config.kms.to_runtime(), client)
    return encryptor, decryptor, config.kms.discriminator


def _emit(data: bytes, output: Optional[Path]) -> None:
    if output is None:
        typer.echo(data.decode("utf-8"))
    else:
        output.write_bytes(data)


@app.command("list")
def list_elements() -> None:
    """Print every key document stored under the configured prefix"""
    repository = _repository()
    try:
        elements = asyncio.run(repository.get_all_elements())
    except _FAILURES as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    if not elements:
        typer.echo("No keys found")
        raise typer.Exit(code=0)
    for element in elements:
        typer.echo(serialize_element(element).decode("utf-8"))


@app.command("store")
def store(
    path: Path = typer.Argument(..., exists=True, readable=True, help="XML key document"),
    name: str = typer.Option(..., "--name", help="Friendly name recorded as metadata"),
) -> None:
    """Upload an XML key document"""
    repository = _repository()
    try:
        element = parse_element(path.read_bytes())
        asyncio.run(repository.store_element(element, name))
    except _FAILURES as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Stored {name}")


@app.command("wrap")
def wrap(
    path: Path = typer.Argument(..., exists=True, readable=True),
    discriminator: Optional[str] = typer.Option(None, "--discriminator", help="Application discriminator"),
    output: Optional[Path] = typer.Option(None, "-o", "--output"),
) -> None:
    """Encrypt an XML document into a KMS envelope"""
    encryptor, _, configured = _kms_pair()
    try:
        element = parse_element(path.read_bytes())
        info = asyncio.run(encryptor.encrypt(element, discriminator=discriminator or configured))
    except _FAILURES as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    _emit(serialize_element(info.element), output)


@app.command("unwrap")
def unwrap(
    path: Path = typer.Argument(..., exists=True, readable=True),
    discriminator: Optional[str] = typer.Option(None, "--discriminator", help="Application discriminator"),
    output: Optional[Path] = typer.Option(None, "-o", "--output"),
) -> None:
    """Decrypt a KMS envelope back into the original XML document"""
    _, decryptor, configured = _kms_pair()
    try:
        element = parse_element(path.read_bytes())
        plaintext = asyncio.run(decryptor.decrypt(element, discriminator=discriminator or configured))
    except _FAILURES as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    _emit(serialize_element(plaintext), output)


@app.command("check-key")
def check_key(candidate: str = typer.Argument(...)) -> None:
    """Report whether a key name or prefix is safe for S3"""
    if is_safe_key(candidate):
        typer.echo("safe")
        return
    typer.echo("unsafe")
    raise typer.Exit(code=1)


@app.command("init")
def init(
    target: Path = typer.Argument(..., help="Where to write the configuration file"),
    bucket: str = typer.Option(..., "--bucket"),
    key_id: str = typer.Option("", "--key-id", help="KMS key id, alias or ARN"),
) -> None:
    """Write a configuration file with default settings"""
    dump_default_config(target, bucket=bucket, key_id=key_id)
    typer.echo(f"Wrote {target}")


if __name__ == "__main__":  # pragma: no cover
    app()

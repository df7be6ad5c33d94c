"""Main CLI entry point for acmestore."""

import logging
import sys
from typing import Optional, Tuple

import click
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from ..acme.client import HttpAcmeClient
from ..acme.jws import JWSSigner
from ..config import Config, load_config
from ..core.models import StoredCertificate, Target
from ..service import CertificateService

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def build_service(config: Config, with_client: bool = False) -> CertificateService:
    """Create the certificate service, with an ACME client when one is needed."""
    if not with_client:
        return CertificateService(config)

    if not config.account_key_path:
        rprint("[red]Error: ACMESTORE_ACCOUNT_KEY environment variable is required.[/red]")
        sys.exit(1)

    signer = JWSSigner.from_pem_file(config.account_key_path)
    client = HttpAcmeClient(config.base_uri, signer, timeout=config.request_timeout)
    return CertificateService(config, client)


def certificate_table(title: str, certificate: StoredCertificate) -> Table:
    table = Table(title=title)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Friendly Name", certificate.friendly_name or "N/A")
    table.add_row("Thumbprint", certificate.thumbprint)
    table.add_row("Subject", certificate.subject)
    table.add_row("Issuer", certificate.issuer)
    table.add_row("Not Before", certificate.certificate.not_valid_before_utc.strftime("%Y-%m-%d %H:%M:%S"))
    table.add_row("Not After", certificate.certificate.not_valid_after_utc.strftime("%Y-%m-%d %H:%M:%S"))
    table.add_row("Private Key", "yes" if certificate.has_private_key else "no")
    return table


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Request ACME certificates and manage them in certificate stores."""
    ctx.ensure_object(dict)
    config = load_config()
    ctx.obj["config"] = config
    setup_logging(verbose or config.verbose)


@cli.command()
def version() -> None:
    """Show version information."""
    from .. import __version__

    table = Table(title="acmestore")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("acmestore", __version__)
    table.add_row(
        "Python",
        f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
    )

    console.print(table)


@cli.command()
@click.pass_context
def env(ctx: click.Context) -> None:
    """Show environment configuration."""
    config: Config = ctx.obj["config"]

    table = Table(title="Environment Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Base URI", config.base_uri)
    table.add_row("Config Path", config.config_path)
    table.add_row("Certificate Path", config.certificate_path or "Not set")
    table.add_row("Certificate Store", config.certificate_store)
    table.add_row("Store Root", config.store_directory)
    table.add_row("RSA Key Bits", str(config.rsa_key_bits) if config.rsa_key_bits else "Default")
    table.add_row("PFX Password", "Set" if config.pfx_password else "Not set")
    table.add_row("Private Key Exportable", str(config.private_key_exportable))
    table.add_row("Account Key", config.account_key_path or "Not set")

    console.print(table)


@cli.group()
def certs() -> None:
    """Request and manage certificates."""
    pass


@certs.command("request")
@click.option("--host", "-n", required=True, help="Primary host name")
@click.option("--alt", "-a", "alternative_names", multiple=True, help="Alternative host name")
@click.option("--install", is_flag=True, help="Install the certificate after issuance")
@click.option("--store", "-s", help="Certificate store to install into")
@click.pass_context
def request_certificate(
    ctx: click.Context, host: str, alternative_names: Tuple[str, ...], install: bool, store: Optional[str]
) -> None:
    """Request a certificate for a host and its alternative names."""
    try:
        target = Target(host=host, alternative_names=list(alternative_names))
        service = build_service(ctx.obj["config"], with_client=True)

        with console.status(f"Requesting certificate for '{host}'..."):
            certificate = service.request_certificate(target)

        rprint(f"[green]✓ Certificate issued: {certificate.friendly_name}[/green]")
        rprint(f"[blue]✓ Artifacts saved to {service.certificate_path}[/blue]")

        if install:
            added = service.install_certificate(certificate, store)
            rprint(f"[green]✓ Installed {added} certificate(s)[/green]")

        console.print(certificate_table("Issued Certificate", certificate))

    except Exception as e:
        rprint(f"[red]Error: {e}[/red]")
        if logger.isEnabledFor(logging.DEBUG):
            logger.exception("Certificate request failed")
        sys.exit(1)


@certs.command("install")
@click.option("--host", "-n", required=True, help="Primary host name of the issued certificate")
@click.option("--store", "-s", help="Certificate store to install into")
@click.pass_context
def install_certificate(ctx: click.Context, host: str, store: Optional[str]) -> None:
    """Install a previously issued certificate from its PFX archive."""
    try:
        service = build_service(ctx.obj["config"])
        certificate = service.load_certificate(host)
        added = service.install_certificate(certificate, store)
        rprint(f"[green]✓ Installed {added} certificate(s) for '{host}'[/green]")
    except Exception as e:
        rprint(f"[red]Error: {e}[/red]")
        sys.exit(1)


@certs.command("uninstall")
@click.option("--thumbprint", "-t", required=True, help="Thumbprint of the certificate")
@click.option("--store", "-s", help="Certificate store to remove from")
@click.pass_context
def uninstall_certificate(ctx: click.Context, thumbprint: str, store: Optional[str]) -> None:
    """Remove certificates by thumbprint."""
    try:
        service = build_service(ctx.obj["config"])
        removed = service.uninstall_certificate(thumbprint, store)
        if not removed:
            rprint(f"[yellow]No certificate with thumbprint {thumbprint} found[/yellow]")
            return
        rprint(f"[green]✓ Removed {removed} certificate(s)[/green]")
    except Exception as e:
        rprint(f"[red]Error: {e}[/red]")
        sys.exit(1)


@certs.command("get")
@click.option("--host", "-n", required=True, help="Primary host name")
@click.option("--store", "-s", help="Certificate store to search")
@click.pass_context
def get_certificate(ctx: click.Context, host: str, store: Optional[str]) -> None:
    """Find the installed certificate for a host."""
    try:
        service = build_service(ctx.obj["config"])
        certificate = service.get_certificate(host, store)
        if certificate is None:
            rprint(f"[yellow]No certificate found for {host}[/yellow]")
            return
        console.print(certificate_table(f"Certificate - {host}", certificate))
    except Exception as e:
        rprint(f"[red]Error: {e}[/red]")
        sys.exit(1)


@certs.command("ls")
@click.option("--store", "-s", help="Certificate store to list")
@click.pass_context
def list_certificates(ctx: click.Context, store: Optional[str]) -> None:
    """List the certificates in a store."""
    try:
        service = build_service(ctx.obj["config"])
        certificates = service.list_certificates(store)

        if not certificates:
            rprint("[yellow]No certificates found[/yellow]")
            return

        table = Table(title=f"Certificates - {store or service.config.certificate_store}")
        table.add_column("Thumbprint", style="cyan")
        table.add_column("Friendly Name", style="green")
        table.add_column("Issuer", style="blue")
        table.add_column("Not After", style="magenta")
        table.add_column("Key", style="dim")

        for certificate in certificates:
            table.add_row(
                certificate.thumbprint,
                certificate.friendly_name or "N/A",
                certificate.issuer,
                certificate.certificate.not_valid_after_utc.strftime("%Y-%m-%d"),
                "yes" if certificate.has_private_key else "no",
            )

        console.print(table)
    except Exception as e:
        rprint(f"[red]Error: {e}[/red]")
        sys.exit(1)


def main() -> None:
    """Main CLI entry point."""
    cli()

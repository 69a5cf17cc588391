import logging
from typing import List, Optional

import typer
from rich.console import Console

from csctl.config import Config
from csctl.modules import COMMAND_ERRORS
from csctl.modules.collector import InstallOptions
from csctl.modules.install_config import init_install_config, validate_existing
from csctl.modules.prompt import Prompter

app = typer.Typer()
console = Console()
logger = logging.getLogger("csctl.commands.init")


def split_values(values: Optional[List[str]]) -> Optional[List[str]]:
    """Accept both repeated options and comma separated values."""
    if not values:
        return None
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


@app.command("install-config")
def init_install_config_cmd(
    profile: str = typer.Option("", "--profile", "-p", help="Profile preset: dev, prod or minimal"),
    config: str = typer.Option(Config.CONFIG_FILE, "--config", "-c", help="Output path of the install config"),
    vault: str = typer.Option(Config.VAULT_FILE, "--vault", help="Output path of the vault"),
    interactive: bool = typer.Option(False, "--interactive", "-i", help="Prompt for every missing value"),
    validate_only: bool = typer.Option(False, "--validate-only", help="Validate existing files without writing"),
    with_comments: bool = typer.Option(False, "--with-comments", help="Add explanatory headers to the files"),
    dc_id: Optional[int] = typer.Option(None, "--dc-id", help="Datacenter ID"),
    dc_name: Optional[str] = typer.Option(None, "--dc-name", help="Datacenter name"),
    dc_city: Optional[str] = typer.Option(None, "--dc-city", help="Datacenter city"),
    dc_country: Optional[str] = typer.Option(None, "--dc-country", help="Datacenter country code"),
    secrets_dir: Optional[str] = typer.Option(None, "--secrets-dir", help="Secrets base directory"),
    registry_server: Optional[str] = typer.Option(None, "--registry-server", help="Container registry server"),
    postgres_mode: Optional[str] = typer.Option(None, "--postgres-mode", help="install or external"),
    postgres_primary_ip: Optional[str] = typer.Option(None, "--postgres-primary-ip"),
    postgres_primary_hostname: Optional[str] = typer.Option(None, "--postgres-primary-hostname"),
    postgres_replica_ip: Optional[str] = typer.Option(None, "--postgres-replica-ip"),
    postgres_replica_name: Optional[str] = typer.Option(None, "--postgres-replica-name"),
    postgres_server_address: Optional[str] = typer.Option(None, "--postgres-server-address",
                                                          help="External PostgreSQL address"),
    ceph_subnet: Optional[str] = typer.Option(None, "--ceph-subnet", help="Ceph nodes subnet (CIDR)"),
    k8s_managed: Optional[bool] = typer.Option(None, "--k8s-managed/--k8s-external",
                                               help="Install k0s or use an existing cluster"),
    k8s_api_server: Optional[str] = typer.Option(None, "--k8s-api-server"),
    k8s_control_plane: Optional[List[str]] = typer.Option(None, "--k8s-control-plane",
                                                          help="Control plane IP (repeatable)"),
    k8s_worker: Optional[List[str]] = typer.Option(None, "--k8s-worker", help="Worker IP (repeatable)"),
    k8s_pod_cidr: Optional[str] = typer.Option(None, "--k8s-pod-cidr"),
    k8s_service_cidr: Optional[str] = typer.Option(None, "--k8s-service-cidr"),
    gateway_type: Optional[str] = typer.Option(None, "--gateway-type", help="LoadBalancer or ExternalIP"),
    gateway_ip: Optional[List[str]] = typer.Option(None, "--gateway-ip"),
    public_gateway_type: Optional[str] = typer.Option(None, "--public-gateway-type"),
    public_gateway_ip: Optional[List[str]] = typer.Option(None, "--public-gateway-ip"),
    acme_enabled: Optional[bool] = typer.Option(None, "--acme/--no-acme", help="Configure an ACME issuer"),
    acme_email: Optional[str] = typer.Option(None, "--acme-email"),
    acme_server: Optional[str] = typer.Option(None, "--acme-server"),
    acme_dns01_provider: Optional[str] = typer.Option(None, "--acme-dns01-provider"),
    domain: Optional[str] = typer.Option(None, "--domain", help="Main Codesphere domain"),
    workspace_domain: Optional[str] = typer.Option(None, "--workspace-domain"),
    custom_domain: Optional[str] = typer.Option(None, "--custom-domain", help="Custom domain CNAME base"),
    public_ip: Optional[str] = typer.Option(None, "--public-ip"),
    dns_server: Optional[List[str]] = typer.Option(None, "--dns-server", help="DNS server (repeatable)"),
):
    """Create a new install config and vault with freshly generated secrets."""
    try:
        if validate_only:
            validate_existing(config, vault)
            console.print(f"✅ {config} is valid")
            return

        options = InstallOptions(
            datacenter_id=dc_id,
            datacenter_name=dc_name,
            datacenter_city=dc_city,
            datacenter_country_code=dc_country,
            secrets_base_dir=secrets_dir,
            registry_server=registry_server,
            postgres_mode=postgres_mode,
            postgres_primary_ip=postgres_primary_ip,
            postgres_primary_hostname=postgres_primary_hostname,
            postgres_replica_ip=postgres_replica_ip,
            postgres_replica_name=postgres_replica_name,
            postgres_server_address=postgres_server_address,
            ceph_subnet=ceph_subnet,
            k8s_managed=k8s_managed,
            k8s_api_server=k8s_api_server,
            k8s_control_planes=split_values(k8s_control_plane),
            k8s_workers=split_values(k8s_worker),
            k8s_pod_cidr=k8s_pod_cidr,
            k8s_service_cidr=k8s_service_cidr,
            gateway_type=gateway_type,
            gateway_ips=split_values(gateway_ip),
            public_gateway_type=public_gateway_type,
            public_gateway_ips=split_values(public_gateway_ip),
            acme_enabled=acme_enabled,
            acme_email=acme_email,
            acme_server=acme_server,
            acme_dns01_provider=acme_dns01_provider,
            domain=domain,
            workspace_base_domain=workspace_domain,
            custom_domain_base_domain=custom_domain,
            public_ip=public_ip,
            dns_servers=split_values(dns_server),
        )
        manager = init_install_config(
            config,
            vault,
            profile=profile,
            options=options,
            prompter=Prompter(interactive=interactive, console=console),
            with_comments=with_comments,
        )
    except COMMAND_ERRORS as e:
        logger.debug("init install-config failed", exc_info=True)
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)

    console.print("\n[green]✅ Configuration files successfully generated![/green]")
    console.print(f"   Datacenter: {manager.config.data_center.name}")
    console.print(f"   Config:     {config}")
    console.print(f"   Vault:      {vault} ({len(manager.vault.secrets)} secrets)")
    console.print("\n⚠️  The vault holds private keys and passwords. Encrypt it (e.g. with SOPS/age) before storing it.")

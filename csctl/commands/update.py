import logging
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from csctl.commands.init import split_values
from csctl.config import Config
from csctl.modules import COMMAND_ERRORS
from csctl.modules.install_config import update_install_config
from csctl.modules.tracker import ConfigUpdate

app = typer.Typer()
console = Console()
logger = logging.getLogger("csctl.commands.update")


@app.command("install-config")
def update_install_config_cmd(
    config: str = typer.Option(Config.CONFIG_FILE, "--config", "-c", help="Path to the existing install config"),
    vault: str = typer.Option(Config.VAULT_FILE, "--vault", help="Path to the existing vault"),
    with_comments: bool = typer.Option(False, "--with-comments", help="Add explanatory headers to the files"),
    postgres_primary_ip: Optional[str] = typer.Option(None, "--postgres-primary-ip"),
    postgres_primary_hostname: Optional[str] = typer.Option(None, "--postgres-primary-hostname"),
    postgres_replica_ip: Optional[str] = typer.Option(None, "--postgres-replica-ip"),
    postgres_replica_name: Optional[str] = typer.Option(None, "--postgres-replica-name"),
    postgres_server_address: Optional[str] = typer.Option(None, "--postgres-server-address"),
    ceph_nodes_subnet: Optional[str] = typer.Option(None, "--ceph-nodes-subnet"),
    k8s_api_server: Optional[str] = typer.Option(None, "--k8s-api-server"),
    k8s_pod_cidr: Optional[str] = typer.Option(None, "--k8s-pod-cidr"),
    k8s_service_cidr: Optional[str] = typer.Option(None, "--k8s-service-cidr"),
    gateway_service_type: Optional[str] = typer.Option(None, "--cluster-gateway-service-type"),
    gateway_ips: Optional[List[str]] = typer.Option(None, "--cluster-gateway-ips"),
    public_gateway_service_type: Optional[str] = typer.Option(None, "--cluster-public-gateway-service-type"),
    public_gateway_ips: Optional[List[str]] = typer.Option(None, "--cluster-public-gateway-ips"),
    acme_enabled: bool = typer.Option(False, "--acme-enabled", help="Enable and update the ACME issuer"),
    acme_issuer_name: Optional[str] = typer.Option(None, "--acme-issuer-name"),
    acme_email: Optional[str] = typer.Option(None, "--acme-email"),
    acme_server: Optional[str] = typer.Option(None, "--acme-server"),
    acme_eab_key_id: Optional[str] = typer.Option(None, "--acme-eab-key-id"),
    acme_eab_mac_key: Optional[str] = typer.Option(None, "--acme-eab-mac-key"),
    acme_dns01_provider: Optional[str] = typer.Option(None, "--acme-dns01-provider"),
    domain: Optional[str] = typer.Option(None, "--domain", help="Main Codesphere domain"),
    public_ip: Optional[str] = typer.Option(None, "--public-ip"),
    workspace_hosting_base_domain: Optional[str] = typer.Option(None, "--workspace-hosting-base-domain"),
    custom_domains_cname_base_domain: Optional[str] = typer.Option(None, "--custom-domains-cname-base-domain"),
    dns_servers: Optional[List[str]] = typer.Option(None, "--dns-servers", help="DNS servers (comma-separated)"),
):
    """Update fields of an existing install config, regenerating only dependent secrets."""
    update = ConfigUpdate(
        postgres_primary_ip=postgres_primary_ip,
        postgres_primary_hostname=postgres_primary_hostname,
        postgres_replica_ip=postgres_replica_ip,
        postgres_replica_name=postgres_replica_name,
        postgres_server_address=postgres_server_address,
        ceph_nodes_subnet=ceph_nodes_subnet,
        k8s_api_server=k8s_api_server,
        k8s_pod_cidr=k8s_pod_cidr,
        k8s_service_cidr=k8s_service_cidr,
        gateway_service_type=gateway_service_type,
        gateway_ips=split_values(gateway_ips),
        public_gateway_service_type=public_gateway_service_type,
        public_gateway_ips=split_values(public_gateway_ips),
        acme_enabled=acme_enabled,
        acme_issuer_name=acme_issuer_name,
        acme_email=acme_email,
        acme_server=acme_server,
        acme_eab_key_id=acme_eab_key_id,
        acme_eab_mac_key=acme_eab_mac_key,
        acme_dns01_provider=acme_dns01_provider,
        domain=domain,
        public_ip=public_ip,
        workspace_hosting_base_domain=workspace_hosting_base_domain,
        custom_domains_cname_base_domain=custom_domains_cname_base_domain,
        dns_servers=split_values(dns_servers),
    )
    try:
        result = update_install_config(config, vault, update, with_comments=with_comments)
    except COMMAND_ERRORS as e:
        logger.debug("update install-config failed", exc_info=True)
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)

    if not result.changed_fields:
        console.print("ℹ️  No fields changed")
        return

    table = Table(title="Updated install config")
    table.add_column("Field")
    for path in result.changed_fields:
        table.add_row(path)
    console.print(table)
    if result.regenerated:
        console.print("🔐 Regenerated: " + ", ".join(secret.value for secret in result.regenerated))
    if result.vault_entries:
        console.print("🗝️  Vault entries updated: " + ", ".join(result.vault_entries))
    console.print(f"[green]✅ {config} and {vault} updated[/green]")

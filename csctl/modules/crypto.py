"""
Key, certificate and password generation for an installation.
"""
import base64
import ipaddress
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

import paramiko
from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

logger = logging.getLogger("csctl.crypto")

CA_KEY_BITS = 2048
SERVER_KEY_BITS = 4096
SSH_KEY_BITS = 4096

CA_VALIDITY_YEARS = 3
SERVER_VALIDITY_YEARS = 2

SERVER_ORGANIZATION = "Codesphere"

_KEY_USAGE_OFF = dict(
    digital_signature=False,
    content_commitment=False,
    key_encipherment=False,
    data_encipherment=False,
    key_agreement=False,
    key_cert_sign=False,
    crl_sign=False,
    encipher_only=False,
    decipher_only=False,
)


class CryptoError(Exception):
    """Raised when key material cannot be generated, encoded or parsed."""
    pass


def _add_years(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        # Feb 29 in a non leap year
        return moment + (datetime(moment.year + years, 3, 1) - datetime(moment.year, 3, 1))


def _serial_number() -> int:
    return secrets.randbits(128) or 1


def _rsa_key(bits: int) -> rsa.RSAPrivateKey:
    logger.debug(f"Generating RSA-{bits} key")
    return rsa.generate_private_key(public_exponent=65537, key_size=bits)


def _private_pem(key) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def _certificate_pem(cert: x509.Certificate) -> str:
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


def load_private_key(key_pem: str):
    """Parse a PEM private key (PKCS#1, SEC1 or PKCS#8)."""
    try:
        return serialization.load_pem_private_key(key_pem.encode("ascii"), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CryptoError(f"failed to parse private key: {e}") from e


def load_certificate(cert_pem: str) -> x509.Certificate:
    """Parse a PEM certificate."""
    if not cert_pem or not cert_pem.strip():
        raise CryptoError("failed to parse certificate: empty PEM")
    try:
        return x509.load_pem_x509_certificate(cert_pem.encode("ascii"))
    except (ValueError, TypeError, UnicodeEncodeError) as e:
        raise CryptoError(f"failed to parse certificate: {e}") from e


def generate_ssh_key_pair() -> Tuple[str, str]:
    """Generate an RSA key pair for SSH access.

    Returns:
        Tuple of (private key as PKCS#1 PEM, public key in authorized_keys format)
    """
    try:
        key = _rsa_key(SSH_KEY_BITS)
        private_pem = _private_pem(key)
        public = paramiko.RSAKey(key=key)
        public_key = f"{public.get_name()} {public.get_base64()}"
    except (ValueError, TypeError, paramiko.SSHException) as e:
        raise CryptoError(f"failed to generate SSH key pair: {e}") from e
    return private_pem, public_key


def generate_ca(cn: str, country: str, locality: str, organization: str) -> Tuple[str, str]:
    """Generate a self-signed certificate authority.

    Args:
        cn: Common name of the CA
        country: Country code (C)
        locality: Locality (L)
        organization: Organization (O)

    Returns:
        Tuple of (CA private key PEM, CA certificate PEM)
    """
    try:
        key = _rsa_key(CA_KEY_BITS)
        name = x509.Name([
            x509.NameAttribute(NameOID.COMMON_NAME, cn),
            x509.NameAttribute(NameOID.COUNTRY_NAME, country),
            x509.NameAttribute(NameOID.LOCALITY_NAME, locality),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
        ])
        now = datetime.now(timezone.utc)
        cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(_serial_number())
            .not_valid_before(now)
            .not_valid_after(_add_years(now, CA_VALIDITY_YEARS))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(**dict(_KEY_USAGE_OFF, key_cert_sign=True, crl_sign=True)),
                critical=True,
            )
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
            .sign(key, hashes.SHA256())
        )
    except (ValueError, TypeError) as e:
        raise CryptoError(f"failed to generate CA '{cn}': {e}") from e

    logger.debug(f"Generated CA '{cn}'")
    return _private_pem(key), _certificate_pem(cert)


def generate_server_certificate(
    ca_key_pem: str,
    ca_cert_pem: str,
    cn: str,
    ip_addresses: Sequence[str],
) -> Tuple[str, str]:
    """Issue a server certificate signed by the given CA.

    Only IP addresses end up in the subject alternative names. The common name
    is not repeated as a DNS name.

    Returns:
        Tuple of (server private key PEM, server certificate PEM)
    """
    ca_key = load_private_key(ca_key_pem)
    ca_cert = load_certificate(ca_cert_pem)

    sans: List[x509.GeneralName] = []
    for address in ip_addresses:
        try:
            sans.append(x509.IPAddress(ipaddress.ip_address(address)))
        except ValueError:
            logger.warning(f"Skipping invalid IP address '{address}' for certificate '{cn}'")

    try:
        key = _rsa_key(SERVER_KEY_BITS)
        subject = x509.Name([
            x509.NameAttribute(NameOID.COMMON_NAME, cn),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, SERVER_ORGANIZATION),
        ])
        now = datetime.now(timezone.utc)
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(ca_cert.subject)
            .public_key(key.public_key())
            .serial_number(_serial_number())
            .not_valid_before(now)
            .not_valid_after(_add_years(now, SERVER_VALIDITY_YEARS))
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(**dict(_KEY_USAGE_OFF, digital_signature=True, key_encipherment=True)),
                critical=True,
            )
            .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_cert.public_key()),
                critical=False,
            )
        )
        if sans:
            builder = builder.add_extension(x509.SubjectAlternativeName(sans), critical=False)
        cert = builder.sign(ca_key, hashes.SHA256())
    except (ValueError, TypeError) as e:
        raise CryptoError(f"failed to generate server certificate '{cn}': {e}") from e

    logger.debug(f"Issued server certificate '{cn}' for {', '.join(ip_addresses) or 'no IPs'}")
    return _private_pem(key), _certificate_pem(cert)


def generate_ecdsa_key_pair() -> Tuple[str, str]:
    """Generate a P-256 key pair.

    Returns:
        Tuple of (SEC1 "EC PRIVATE KEY" PEM, SubjectPublicKeyInfo "PUBLIC KEY" PEM)
    """
    try:
        key = ec.generate_private_key(ec.SECP256R1())
        public_pem = key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")
    except (ValueError, TypeError) as e:
        raise CryptoError(f"failed to generate ECDSA key pair: {e}") from e
    return _private_pem(key), public_pem


def generate_password(length: int) -> str:
    """Random password of ``length`` base64 characters."""
    if length <= 0:
        raise CryptoError(f"password length must be positive, got {length}")
    return base64.b64encode(secrets.token_bytes(length)).decode("ascii")[:length]


def certificate_ip_addresses(cert_pem: str) -> List[str]:
    """IP addresses listed in the certificate's subject alternative names."""
    cert = load_certificate(cert_pem)
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return [str(address) for address in san.value.get_values_for_type(x509.IPAddress)]


def certificate_common_name(cert_pem: str) -> Optional[str]:
    cert = load_certificate(cert_pem)
    names = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    return names[0].value if names else None


def verify_issued_by(cert_pem: str, ca_cert_pem: str) -> None:
    """Check that ``cert_pem`` is signed by the CA and currently valid.

    Raises:
        CryptoError: If the chain or the validity window does not check out
    """
    cert = load_certificate(cert_pem)
    ca_cert = load_certificate(ca_cert_pem)
    try:
        cert.verify_directly_issued_by(ca_cert)
    except (ValueError, TypeError, InvalidSignature) as e:
        raise CryptoError(f"certificate '{certificate_common_name(cert_pem)}' is not issued by the CA: {e}") from e

    now = datetime.now(timezone.utc)
    if not cert.not_valid_before_utc - timedelta(minutes=5) <= now <= cert.not_valid_after_utc:
        raise CryptoError(f"certificate '{certificate_common_name(cert_pem)}' is outside its validity period")


def key_matches_certificate(key_pem: str, cert_pem: str) -> bool:
    """True if the private key belongs to the certificate's public key."""
    key = load_private_key(key_pem)
    cert = load_certificate(cert_pem)
    public_format = serialization.PublicFormat.SubjectPublicKeyInfo
    return key.public_key().public_bytes(serialization.Encoding.DER, public_format) == \
        cert.public_key().public_bytes(serialization.Encoding.DER, public_format)

"""Shared test fixtures."""

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from sheets_api.client import SheetClient
from sheets_api.credentials import ServiceAccountCredential
from sheets_api.row_mapper import RowMapper
from tests.fakes import FakeClock, FakeSheetsBackend, create_http_client

SPREADSHEET_ID = "sheet123"


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """One RSA key for the whole session; generation is slow."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> str:
    """The session key as unencrypted PKCS8 PEM."""
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def credential(private_key_pem: str) -> ServiceAccountCredential:
    return ServiceAccountCredential(
        email="bot@test-project.iam.gserviceaccount.com",
        private_key=private_key_pem,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> FakeSheetsBackend:
    """Backend with one spreadsheet: a headed tab, a header-only tab, an empty tab."""
    backend = FakeSheetsBackend()
    backend.add_spreadsheet(
        SPREADSHEET_ID,
        "Motobarn",
        {
            "Leads": [["a", "b", "c"]],
            "Archive": [["name", "email"]],
            "Empty": [],
        },
    )
    return backend


@pytest.fixture
def client(
    backend: FakeSheetsBackend, credential: ServiceAccountCredential, clock: FakeClock
) -> SheetClient:
    """SheetClient wired to the fake backend, real signing and token cache."""
    return SheetClient(credential, http_client=create_http_client(backend), clock=clock)


@pytest.fixture
def mapper(client: SheetClient) -> RowMapper:
    return RowMapper(client)

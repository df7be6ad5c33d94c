"""Tests for key and CSR generation."""

import logging

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from pydantic import ValidationError

from acmestore.core.models import Target
from acmestore.security.pki import (
    DEFAULT_KEY_BITS,
    csr_alternative_names,
    csr_common_name,
    csr_record,
    generate_csr,
    generate_private_key,
    load_csr_record,
    load_private_key_record,
    private_key_record,
    select_key_bits,
)


@pytest.mark.parametrize(
    "identifiers",
    [
        ["example.com"],
        ["example.com", "www.example.com"],
        ["b.example.org", "a.example.org", "c.example.org"],
    ],
)
def test_csr_names_cover_identifier_set(certificate_request, identifiers):
    csr = generate_csr(certificate_request.private_key, identifiers)

    assert csr_common_name(csr) == identifiers[0]
    assert set(csr_alternative_names(csr)) == set(identifiers)
    assert isinstance(csr.signature_hash_algorithm, hashes.SHA256)
    assert csr.is_signature_valid


def test_csr_requires_identifiers(certificate_request):
    with pytest.raises(ValueError):
        generate_csr(certificate_request.private_key, [])


@pytest.mark.parametrize("configured", [None, 0, 512, 1023, -1])
def test_small_or_missing_key_bits_fall_back_to_default(configured, caplog):
    with caplog.at_level(logging.WARNING):
        assert select_key_bits(configured) == DEFAULT_KEY_BITS
    assert any(record.levelno == logging.WARNING for record in caplog.records)


def test_configured_key_bits_are_used():
    assert select_key_bits(1024) == 1024
    assert select_key_bits(4096) == 4096


def test_generate_private_key_never_raises_on_bad_size():
    key = generate_private_key(512)
    assert key.key_size == DEFAULT_KEY_BITS


def test_generate_request_uses_configured_size(certificate_request):
    assert certificate_request.key_bits == 2048
    assert certificate_request.identifiers == ["example.com", "www.example.com"]
    assert certificate_request.csr.public_key().public_numbers() == (
        certificate_request.private_key.public_key().public_numbers()
    )


def test_generator_records_can_be_reimported(certificate_request):
    key_json = private_key_record(certificate_request.private_key).model_dump_json(by_alias=True)
    assert '"bitLength":2048' in key_json.replace(" ", "")
    key = load_private_key_record(key_json.encode())
    assert key.private_numbers() == certificate_request.private_key.private_numbers()

    record = csr_record(certificate_request)
    assert record.details.common_name == "example.com"
    csr = load_csr_record(record.model_dump_json(by_alias=True).encode())
    assert csr.public_bytes(serialization.Encoding.DER) == certificate_request.csr_der()


class TestTarget:
    def test_hosts_start_with_primary_and_drop_duplicates(self):
        target = Target(host="example.com", alternative_names=["www.example.com", "example.com"])
        assert target.get_hosts() == ["example.com", "www.example.com"]
        assert target.file_name_part == "example.com"

    def test_accepts_camel_case_alias(self):
        target = Target.model_validate({"host": "example.com", "alternativeNames": ["a.example.com"]})
        assert target.alternative_names == ["a.example.com"]

    @pytest.mark.parametrize("host", ["", "-bad.example.com", "exa mple.com", "a" * 64 + ".com"])
    def test_rejects_invalid_host(self, host):
        with pytest.raises(ValidationError):
            Target(host=host)

    def test_rejects_invalid_alternative_name(self):
        with pytest.raises(ValidationError):
            Target(host="example.com", alternative_names=["bad_name!"])

    def test_accepts_wildcard(self):
        assert Target(host="*.example.com").host == "*.example.com"

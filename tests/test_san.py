import ipaddress

import pytest
from cryptography import x509

from certhelper.crypto.san import normalize_sans, parse_san_list
from certhelper.errors import EncodingFailure


def test_classifies_and_drops_blanks():
    sans = normalize_sans(["a.example.com", "10.0.0.5", "  ", "xn--valid"])
    assert sans.dns_names == ["a.example.com", "xn--valid"]
    assert sans.ip_addresses == [ipaddress.ip_address("10.0.0.5")]


def test_unicode_hostname_is_punycoded():
    assert normalize_sans(["bücher.example"]).dns_names == ["xn--bcher-kva.example"]


def test_ipv6_and_duplicates():
    sans = normalize_sans(["svc.local", "::1", "svc.local", "::1"])
    assert sans.dns_names == ["svc.local"]
    assert sans.ip_addresses == [ipaddress.ip_address("::1")]


def test_bad_hostname_fails_whole_list():
    with pytest.raises(EncodingFailure):
        normalize_sans(["ok.example", "a..b.example"])


def test_to_extension():
    ext = normalize_sans(["svc.local", "10.0.0.5"]).to_extension()
    assert ext.get_values_for_type(x509.DNSName) == ["svc.local"]
    assert ext.get_values_for_type(x509.IPAddress) == [ipaddress.ip_address("10.0.0.5")]


def test_parse_san_list():
    assert parse_san_list(" a, b ,,c ") == ["a", "b", "c"]
    assert parse_san_list("") == []

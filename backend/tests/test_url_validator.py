"""
URL validator tests

Run:
    cd backend
    pytest tests/test_url_validator.py -v
"""

import pytest

from image_proxy.url_validator import is_blocked_hostname, is_valid_image_url, normalize_ipv4_host


class TestSchemes:
    """Only http and https are accepted"""

    @pytest.mark.parametrize("url", [
        "http://example.com/a.png",
        "https://example.com/a.png",
        "HTTPS://Example.com/a.png",
        "https://cdn.example.com:8443/img/a.webp?size=large",
    ])
    def test_http_and_https_allowed(self, url):
        assert is_valid_image_url(url) is True

    @pytest.mark.parametrize("url", [
        "ftp://example.com/a.png",
        "file:///etc/passwd",
        "data:image/png;base64,AAAA",
        "javascript:alert(1)",
        "gopher://example.com/",
    ])
    def test_other_schemes_rejected(self, url):
        assert is_valid_image_url(url) is False


class TestBlockedHosts:
    """Loopback and private hosts are rejected lexically"""

    @pytest.mark.parametrize("url", [
        "http://localhost/x",
        "http://LOCALHOST:8080/x",
        "http://localhost./x",
        "http://127.0.0.1/x",
        "http://127.1.2.3/x",
        "http://10.0.0.5/x",
        "http://192.168.1.1/x",
        "http://172.16.0.1/x",
        "http://0.0.0.0/x",
        "http://2130706433/x",
        "http://0x7f000001/x",
        "http://0177.0.0.1/x",
        "http://127.1/x",
        "http://0/x",
        "http://0x0a000001/x",
        "http://3232235777/x",
        "http://0xC0.0250.1.1/x",
        "http://10.1/x",
    ])
    def test_blocked(self, url):
        assert is_valid_image_url(url) is False

    def test_172_outside_16_passes_by_default(self):
        assert is_valid_image_url("http://172.20.1.1/x") is True

    def test_full_172_block_when_enabled(self):
        assert is_valid_image_url("http://172.20.1.1/x", block_full_private_172=True) is False
        assert is_valid_image_url("http://172.31.255.255/x", block_full_private_172=True) is False
        assert is_valid_image_url("http://172.32.0.1/x", block_full_private_172=True) is True

    def test_public_ip_allowed(self):
        assert is_valid_image_url("http://93.184.216.34/x") is True

    def test_hostname_is_not_resolved(self):
        # Names are never resolved, only matched as text
        assert is_blocked_hostname("internal.example.com") is False

    def test_numeric_spelling_of_public_ip_allowed(self):
        # 1572395042 == 93.184.216.34
        assert is_valid_image_url("http://1572395042/x") is True

    def test_numeric_spelling_in_full_172_block(self):
        # 0xac140101 == 172.20.1.1
        assert is_valid_image_url("http://0xac140101/x", block_full_private_172=True) is False

    @pytest.mark.parametrize("url", [
        "http://1.2.3.4.5/x",
        "http://256.0.0.1/x",
        "http://1.2.3.256/x",
        "http://4294967296/x",
        "http://08.0.0.1/x",
        "http://1..2/x",
        "http://foo.1/x",
    ])
    def test_invalid_numeric_hosts_rejected(self, url):
        assert is_valid_image_url(url) is False


class TestMalformed:
    """Malformed input returns False instead of raising"""

    @pytest.mark.parametrize("url", [
        "",
        "not a url",
        "example.com/a.png",
        "http://",
        "http:///a.png",
        "http://example.com:notaport/a.png",
        "http://[::1/a.png",
    ])
    def test_malformed_rejected(self, url):
        assert is_valid_image_url(url) is False


class TestNormalizeIPv4:
    """Numeric hosts are rewritten to dotted-quad form"""

    @pytest.mark.parametrize("host,expected", [
        ("2130706433", "127.0.0.1"),
        ("0x7f000001", "127.0.0.1"),
        ("0177.0.0.1", "127.0.0.1"),
        ("127.1", "127.0.0.1"),
        ("0", "0.0.0.0"),
        ("0x0a000001", "10.0.0.1"),
        ("3232235777", "192.168.1.1"),
        ("192.168.0x1.01", "192.168.1.1"),
        ("8.8.8.8", "8.8.8.8"),
    ])
    def test_numeric_forms(self, host, expected):
        assert normalize_ipv4_host(host) == expected

    @pytest.mark.parametrize("host", ["example.com", "localhost", "1.2.example", "0x1g", "cdn-01"])
    def test_names_left_alone(self, host):
        assert normalize_ipv4_host(host) is None

    @pytest.mark.parametrize("host", ["256.1.1.1", "1.2.3.4.5", "1.2.0x1g.4", "1_0.1"])
    def test_invalid_numbers_raise(self, host):
        with pytest.raises(ValueError):
            normalize_ipv4_host(host)

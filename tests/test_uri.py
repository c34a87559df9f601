import pytest

from webinf_recon.errors import MalformedURIError
from webinf_recon.uri import derive_class_uri, marker_uri, split_base


def test_class_uri_layout():
    assert (
        derive_class_uri("http", "example.com:8080", "com.acme.Foo")
        == "http://example.com:8080/WEB-INF/classes/com/acme/Foo.class"
    )


@pytest.mark.parametrize("identifier", ["com.acme.Foo", "a.B", "org.x_y.z9.Inner_1", "1.0"])
def test_class_uri_is_deterministic_and_contains_the_path(identifier):
    first = derive_class_uri("https", "host", identifier)
    second = derive_class_uri("https", "host", identifier)
    assert first == second
    assert identifier.replace(".", "/") in first
    assert first.endswith(".class")


@pytest.mark.parametrize("identifier", ["", "com.acme.Foo Bar", "com.acme/Foo", "com.acme.Foo?x", "a.b%2e"])
def test_class_uri_rejects_illegal_identifiers(identifier):
    with pytest.raises(MalformedURIError):
        derive_class_uri("http", "host", identifier)


@pytest.mark.parametrize("scheme, authority", [("", "host"), ("ht tp", "host"), ("http", ""), ("http", "ho st"), ("http", "host/x")])
def test_class_uri_rejects_bad_base(scheme, authority):
    with pytest.raises(MalformedURIError):
        derive_class_uri(scheme, authority, "com.acme.Foo")


def test_marker_uri():
    assert marker_uri("http", "host", "web.xml") == "http://host/WEB-INF/web.xml"
    assert marker_uri("http", "host", "/spring/app.xml") == "http://host/WEB-INF/spring/app.xml"
    with pytest.raises(MalformedURIError):
        marker_uri("http", "host", "web xml")


def test_split_base():
    assert split_base("https://example.com:8443/some/path?q=1") == ("https", "example.com:8443")
    with pytest.raises(MalformedURIError):
        split_base("example.com")

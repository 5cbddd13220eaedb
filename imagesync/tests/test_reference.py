import pytest

from imagesync.core.errors import InvalidReferenceError
from imagesync.core.reference import ImageReference, parse_image_reference


@pytest.mark.parametrize(
    "text, expected",
    [
        ("registry.example.com/app:v1", ImageReference("registry.example.com", "app", "v1")),
        ("localhost:5000/team/app", ImageReference("localhost:5000", "team/app")),
        ("alpine:3.19", ImageReference("docker.io", "alpine", "3.19")),
        ("coreos/etcd", ImageReference("docker.io", "coreos/etcd")),
        (
            "quay.io/coreos/etcd@sha256:" + "b" * 64,
            ImageReference("quay.io", "coreos/etcd", None, "sha256:" + "b" * 64),
        ),
    ],
)
def test_parse_image_reference(text, expected):
    assert parse_image_reference(text) == expected


def test_reference_renders_with_host():
    ref = parse_image_reference("alpine:3.19")

    assert str(ref) == "docker.io/alpine:3.19"
    assert ref.registry_host() == "docker.io"


def test_registry_host_keeps_port():
    ref = parse_image_reference("mirror.example.com:8443/platform/app:v1")

    assert ref.registry_host() == "mirror.example.com:8443"


@pytest.mark.parametrize(
    "text", ["", "   ", "registry.example.com/app@md5:abc", "https://host/app"]
)
def test_invalid_references(text):
    with pytest.raises(InvalidReferenceError):
        parse_image_reference(text)

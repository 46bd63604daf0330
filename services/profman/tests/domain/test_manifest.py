from profman.domain.flakeref import parse_flake_ref
from profman.domain.manifest import (
    MANIFEST_VERSION,
    ProfileElement,
    ProfileElementSource,
    ProfileManifest,
)

REV = "1028bb33859f8dfad7f98e1c8d185f3d1aaa7340"


def _element() -> ProfileElement:
    return ProfileElement(
        store_paths=frozenset({"/store/b-hello", "/store/a-hello-man"}),
        source=ProfileElementSource(
            original_ref=parse_flake_ref("nixpkgs"),
            resolved_ref=parse_flake_ref(f"nixpkgs/{REV}"),
            attr_path="packages.x86_64-linux.hello",
        ),
    )


def test_element_json_sorts_store_paths_and_carries_provenance() -> None:
    assert _element().to_json() == {
        "storePaths": ["/store/a-hello-man", "/store/b-hello"],
        "active": True,
        "originalUri": "nixpkgs",
        "uri": f"nixpkgs/{REV}",
        "attrPath": "packages.x86_64-linux.hello",
    }


def test_element_without_source_has_no_provenance_keys() -> None:
    element = ProfileElement(store_paths=frozenset({"/store/x-tool"}), active=False)
    assert element.to_json() == {"storePaths": ["/store/x-tool"], "active": False}


def test_missing_or_empty_uri_means_no_source() -> None:
    element = ProfileElement.from_json(
        {"storePaths": ["/store/x-tool"], "active": True, "uri": "", "attrPath": "tool"}
    )
    assert element.source is None


def test_original_uri_defaults_to_uri() -> None:
    element = ProfileElement.from_json(
        {"storePaths": ["/store/x-tool"], "uri": f"nixpkgs/{REV}", "attrPath": "tool"}
    )
    assert element.source is not None
    assert element.source.original_ref == element.source.resolved_ref
    assert element.active


def test_manifest_json_preserves_order_and_version() -> None:
    second = ProfileElement(store_paths=frozenset({"/store/c-other"}))
    manifest = ProfileManifest(elements=[_element(), second])
    doc = manifest.to_json()
    assert doc["version"] == MANIFEST_VERSION
    assert ProfileManifest.from_json(doc) == manifest


def test_describe_helpers() -> None:
    source = _element().source
    assert source is not None
    assert source.describe_original() == "nixpkgs#packages.x86_64-linux.hello"
    assert source.describe_resolved() == f"nixpkgs/{REV}#packages.x86_64-linux.hello"

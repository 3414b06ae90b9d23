import pytest

from pkgdef.domain.entities import get_source_urls, parse_package_spec
from pkgdef.domain.errors import DuplicatePackageError, MissingInputError, PackageNotFoundError, PkgdefError


@pytest.fixture
def populated(repo, hello):
    repo.add(hello)
    repo.add(hello.derive(version="2.9"))
    repo.add(hello.derive(version="2.12"))
    repo.add(
        hello.derive(
            name="gettext",
            version="0.21",
            synopsis="Tools and documentation for translation",
            description="gettext provides tools for producing multi-lingual messages.",
            outputs=["out", "doc"],
        )
    )
    return repo


def test_parse_package_spec():
    assert parse_package_spec("hello") == ("hello", None)
    assert parse_package_spec("hello@2.10") == ("hello", "2.10")
    with pytest.raises(PackageNotFoundError):
        parse_package_spec("hello@")
    with pytest.raises(PackageNotFoundError):
        parse_package_spec("@2.10")


def test_find_latest_and_specific(populated):
    assert populated.find("hello").version == "2.12"
    assert populated.find("hello", "2.9").version == "2.9"
    assert populated.find_spec("hello@2.10").version == "2.10"

    with pytest.raises(PackageNotFoundError, match="known versions: 2.12, 2.10, 2.9"):
        populated.find("hello", "3.0")
    with pytest.raises(PackageNotFoundError):
        populated.find("nonexistent")


def test_add_refuses_duplicates_unless_replace(populated, hello):
    with pytest.raises(DuplicatePackageError):
        populated.add(hello)
    changed = hello.derive(synopsis="Changed")
    populated.add(changed, replace=True)
    assert populated.find("hello", "2.10").synopsis == "Changed"


def test_remove(populated):
    populated.remove("hello", "2.12")
    assert populated.find("hello").version == "2.10"
    populated.remove("hello")
    assert populated.get_package("hello") is None


def test_search(populated):
    assert [p.name for p in populated.search()] == ["gettext", "hello"]
    assert [p.name for p in populated.search("translation")] == ["gettext"]
    assert [p.name for p in populated.search("GNU")] == ["hello"]
    assert [p.name for p in populated.search("get*", "Wildcard")] == ["gettext"]
    # name-only match types do not look at the synopsis
    assert populated.search("Tools", "StartsWith") == []


def test_package_summary(populated):
    summary = populated.get_package("hello").get_summary()
    assert summary["Versions"] == ["2.12", "2.10", "2.9"]
    assert summary["License"] == ["gpl3+"]


def test_resolve_inputs(populated, hello):
    pkg = hello.derive(
        name="hello-intl",
        inputs=["gettext:doc"],
        native_inputs=["hello@2.9"],
    )
    resolved = populated.resolve_inputs(pkg)
    assert resolved["gettext:doc"].full_name == "gettext@0.21"
    assert resolved["hello@2.9"].full_name == "hello@2.9"


def test_resolve_inputs_reports_every_missing_one(populated, hello):
    pkg = hello.derive(
        name="hello-intl",
        inputs=["gettext:bin", "zlib"],
        propagated_inputs=["hello@1.0"],
    )
    with pytest.raises(MissingInputError) as info:
        populated.resolve_inputs(pkg)
    assert info.value.missing == ["gettext:bin", "zlib", "hello@1.0"]


def test_get_source_urls(hello):
    mirrors = {"gnu": ["https://ftp.gnu.org/gnu/"]}
    assert get_source_urls(hello, mirrors) == ["https://ftp.gnu.org/gnu/hello/hello-2.10.tar.gz"]


def test_add_all_stores_nothing_when_one_is_a_duplicate(populated, hello):
    fresh = hello.derive(name="hello-gtk")
    with pytest.raises(DuplicatePackageError, match="already in the collection"):
        populated.add_all([fresh, hello])
    assert populated.get_package("hello-gtk") is None

    with pytest.raises(DuplicatePackageError, match="more than once"):
        populated.add_all([fresh, fresh.derive(synopsis="Same name and version")], replace=True)
    assert populated.get_package("hello-gtk") is None

    populated.add_all([fresh, hello.derive(synopsis="Replaced")], replace=True)
    assert populated.find("hello-gtk").version == "2.10"
    assert populated.find("hello", "2.10").synopsis == "Replaced"


def test_search_rejects_unknown_match_type(populated):
    with pytest.raises(PkgdefError, match="Unknown match type"):
        populated.search("hello", "FuzzySubstring")

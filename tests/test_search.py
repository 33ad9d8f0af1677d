from __future__ import annotations

import pytest

from lumina.entities import Document, Moc
from lumina.errors import ValidationError
from lumina.search import sanitize_query


def _document(context, title: str, content: str) -> Document:
    document = Document.create(context, title, content)
    document.save()
    return document


def _moc(context, name: str) -> Moc:
    moc = Moc.create(context, name)
    moc.save()
    return moc


def test_sanitize_query_strips_like_metacharacters() -> None:
    assert sanitize_query("50%_off\\now") == "50offnow"


def test_search_by_title_is_case_insensitive_substring(context) -> None:
    doc = _document(context, "Quantum Entanglement", "spooky")
    moc = _moc(context, "Quantum Topics")
    _document(context, "Classical Mechanics", "apples")

    matches = context.search.search_by_title("quantum")

    assert [(m.kind, m.id) for m in matches] == [("document", doc.id), ("moc", moc.id)]


def test_search_by_title_ignores_wildcards(context) -> None:
    _document(context, "Alpha", "x")
    assert context.search.search_by_title("%") == []
    assert context.search.search_by_title("_") == []


def test_search_by_content_requires_every_token(context) -> None:
    both = _document(context, "One", "The quick brown fox")
    _document(context, "Two", "A quick red car")
    _document(context, "Three", "Brown bread")

    matches = context.search.search_by_content("QUICK brown")

    assert [m.id for m in matches] == [both.id]
    assert matches[0].kind == "document"


def test_search_by_content_never_returns_mocs(context) -> None:
    _moc(context, "fox den")
    assert context.search.search_by_content("fox") == []


def test_search_by_content_paginates_matches(context) -> None:
    docs = [_document(context, f"Doc {i}", "shared token") for i in range(5)]
    _document(context, "Noise", "unrelated")

    page = context.search.search_by_content("shared", limit=2, offset=1)

    assert [m.id for m in page] == [docs[1].id, docs[2].id]


def test_search_all_fuses_and_deduplicates(context) -> None:
    test_doc = _document(context, "Test Document", "Regular content")
    regular_doc = _document(context, "Regular Document", "Test content")
    test_moc = _moc(context, "Test MOC")

    results = context.search.search_all("test")

    ids = [m.id for m in results]
    assert sorted(ids) == sorted([test_doc.id, regular_doc.id, test_moc.id])
    assert len(ids) == len(set(ids))


def test_search_all_keeps_title_match_first(context) -> None:
    doc = _document(context, "Test twice", "test in content as well")

    results = context.search.search_all("test")

    assert [m.id for m in results] == [doc.id]


@pytest.mark.parametrize("query", ["", "   "])
def test_empty_queries_are_rejected(context, query: str) -> None:
    with pytest.raises(ValidationError):
        context.search.search_by_title(query)
    with pytest.raises(ValidationError):
        context.search.search_by_content(query)
    with pytest.raises(ValidationError):
        context.search.search_all(query)
    with pytest.raises(ValidationError):
        context.search.contextual_search(query)


def test_contextual_search_ranks_by_similarity(context) -> None:
    near = _document(context, "zzz", "zzzz zzz")
    _document(context, "abc", "abcabc")
    moc = _moc(context, "zz topic")

    matches = context.search.contextual_search("zzzzzz", limit=2)

    assert {m.id for m in matches} == {near.id, moc.id}
    kinds = {m.id: m.kind for m in matches}
    assert kinds[moc.id] == "moc"
    assert kinds[near.id] == "document"


def test_contextual_search_skips_orphan_vectors(context) -> None:
    _document(context, "kept", "kept")
    context.store.upsert_vector("ghost", [1.0] * 26, {"kind": "memory"})

    matches = context.search.contextual_search("kept", limit=5)

    assert [m.title for m in matches] == ["kept"]


def test_search_match_payload(context) -> None:
    moc = _moc(context, "Payload")
    [match] = context.search.search_by_title("Payload")
    assert match.to_payload() == {"kind": "moc", "id": moc.id, "title": "Payload"}

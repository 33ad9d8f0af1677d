from __future__ import annotations

import pytest

from lumina.browser import KnowledgeBrowser
from lumina.entities import Document, Moc
from lumina.errors import ContentUnreadable, NotFoundError


def test_lists_and_fetches_mocs_and_documents(context) -> None:
    moc = Moc.create(context, "Reading list")
    document = Document.create(context, "Dune", "Spice must flow.")
    moc.add_child(document)
    browser = KnowledgeBrowser(context)

    assert browser.list_mocs() == [{"id": moc.id, "name": "Reading list"}]
    assert browser.list_documents() == [{"id": document.id, "name": "Dune"}]
    assert browser.get_moc(moc.id) == {"name": "Reading list", "documents": [document.id]}
    assert browser.get_document(document.id) == {
        "id": document.id,
        "name": "Dune",
        "content": "Spice must flow.",
    }


def test_unknown_ids_are_not_found(context) -> None:
    browser = KnowledgeBrowser(context)
    with pytest.raises(NotFoundError):
        browser.get_moc("missing")
    with pytest.raises(NotFoundError):
        browser.get_document("missing")
    with pytest.raises(NotFoundError):
        browser.get_moc("../db/lumina")


def test_orphan_content_files_are_skipped(context) -> None:
    (context.documents_dir / "orphan.txt").write_text("stray", encoding="utf-8")
    assert KnowledgeBrowser(context).list_documents() == []


def test_corrupt_mirror_is_unreadable(context) -> None:
    (context.mocs_dir / "broken.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ContentUnreadable):
        KnowledgeBrowser(context).get_moc("broken")

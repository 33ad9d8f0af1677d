from __future__ import annotations

import io

from conftest import FakeEmbeddingClient, FakeLLMClient, assistant, tool_call
from lumina.entities import Moc
from lumina.prompts import ROOT_MOC_NAME
from lumina.runtime import AgentRuntime, _run_repl


def _runtime(tmp_path, llm) -> AgentRuntime:
    return AgentRuntime(
        root=str(tmp_path / "kb"),
        workspace_root=str(tmp_path),
        llm_client=llm,
        embedding_client=FakeEmbeddingClient(),
        enable_reference=False,
    )


def test_root_moc_is_created_once_and_reused(tmp_path) -> None:
    first = _runtime(tmp_path, FakeLLMClient([]))
    root_id = first.root_moc.id
    first.close()

    second = _runtime(tmp_path, FakeLLMClient([]))
    try:
        assert second.root_moc.id == root_id
        assert second.context.store.find_by_name_and_kind(ROOT_MOC_NAME, "moc").id == root_id
        assert root_id in second.controller.system_prompt
        assert "{ROOT_MOC_ID}" not in second.controller.system_prompt
    finally:
        second.close()


def test_custom_system_prompt_template(tmp_path) -> None:
    template = tmp_path / "prompt.txt"
    template.write_text("Root is {ROOT_MOC_ID}.", encoding="utf-8")
    runtime = AgentRuntime(
        root=str(tmp_path / "kb"),
        llm_client=FakeLLMClient([]),
        embedding_client=FakeEmbeddingClient(),
        enable_reference=False,
        system_prompt_path=str(template),
    )
    try:
        assert runtime.controller.system_prompt == f"Root is {runtime.root_moc.id}."
    finally:
        runtime.close()


def test_chat_files_memory_under_root(tmp_path) -> None:
    llm = FakeLLMClient([])
    runtime = _runtime(tmp_path, llm)
    try:
        llm.replies = [
            assistant(
                "",
                [
                    tool_call(
                        "c1",
                        "create_memory",
                        {"title": "Fact", "content": "Sky is blue", "moc_id": runtime.root_moc.id},
                    )
                ],
            ),
            assistant("Saved it."),
        ]

        assert runtime.chat("remember the sky is blue") == "Saved it."
        root = Moc.load_by_id(runtime.context, runtime.root_moc.id)
        assert len(root.children) == 1
        assert runtime.browser.get_document(root.children[0])["content"] == "Sky is blue"
    finally:
        runtime.close()


def test_repl_answers_until_exit(tmp_path) -> None:
    runtime = _runtime(tmp_path, FakeLLMClient([assistant("pong")]))
    out = io.StringIO()
    try:
        _run_repl(runtime, io.StringIO("ping\n\nexit\nignored\n"), out)
    finally:
        runtime.close()

    assert "Lumina: pong" in out.getvalue()
    assert out.getvalue().count("Lumina:") == 1

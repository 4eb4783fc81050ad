"""Typer commands driven through CliRunner."""

from pathlib import Path

from openai import APIConnectionError
from typer.testing import CliRunner

from kbchat.cli import main as cli_main
from kbchat.core.retrieval import rank_top_k
from kbchat.core.storage.knowledge_loader import load_knowledge_base
from kbchat.search.service import KnowledgeSearchService

SAMPLE_KB = Path(__file__).resolve().parents[2] / "data" / "knowledge_base.json"

runner = CliRunner()


class _CountingBackend:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0
        self.knowledge_base = load_knowledge_base(SAMPLE_KB)

    async def search(self, query, top_k):
        self.calls += 1
        if self.error:
            raise self.error
        return rank_top_k(query, self.knowledge_base, top_k)


def _use_backend(monkeypatch, backend):
    monkeypatch.setattr(cli_main, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(
        cli_main,
        "build_search_service",
        lambda config, knowledge_base, backend_type=None: KnowledgeSearchService(backend),
    )


def test_search_queries_backend_once(monkeypatch):
    backend = _CountingBackend()
    _use_backend(monkeypatch, backend)

    result = runner.invoke(cli_main.app, ["search", "什么是人工智能？"])

    assert result.exit_code == 0, result.output
    assert "> Match" in result.output
    assert backend.calls == 1


def test_search_backend_failure_is_no_match(monkeypatch):
    backend = _CountingBackend(error=APIConnectionError(request=None))
    _use_backend(monkeypatch, backend)

    result = runner.invoke(cli_main.app, ["search", "什么是人工智能？"])

    assert result.exit_code == 0, result.output
    assert "Search backend unavailable" in result.output
    assert "No match" in result.output
    assert backend.calls == 1


def test_search_rejects_bad_threshold(monkeypatch):
    _use_backend(monkeypatch, _CountingBackend())

    result = runner.invoke(cli_main.app, ["search", "x", "--threshold", "1.5"])

    assert result.exit_code == 1


def test_kb_stats(monkeypatch):
    monkeypatch.setattr(cli_main, "setup_logging", lambda **kwargs: None)
    monkeypatch.setenv("KBCHAT_KNOWLEDGE_PATH", str(SAMPLE_KB))

    result = runner.invoke(cli_main.app, ["kb-stats"])

    assert result.exit_code == 0, result.output
    assert "hierarchical" in result.output

import json

from recipe_enricher import cli
from recipe_enricher.errors import ConfigurationError
from recipe_enricher.orchestrator import EnrichmentMode


class _DummyStore:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class _DummyOrchestrator:
    batch_size = 5

    def __init__(self, result=None, error: Exception | None = None):
        self.result = result or {"success": True, "processed": 2, "total": 3}
        self.error = error
        self.modes = []

    def run_scheduled(self, mode):
        self.modes.append(mode)
        if self.error is not None:
            raise self.error
        return self.result


def _install(monkeypatch, orchestrator):
    store = _DummyStore()
    captured = {}

    def fake_build(store_obj, notifier=None):
        captured["store"] = store_obj
        captured["notifier"] = notifier
        return orchestrator

    monkeypatch.setattr(cli.NotionRecipeStore, "from_env", classmethod(lambda cls: store))
    monkeypatch.setattr(cli, "build_orchestrator", fake_build)
    monkeypatch.delenv("DRY_RUN", raising=False)
    return store, captured


def test_dry_run_skips_email_and_prints_summary(monkeypatch, capsys):
    orchestrator = _DummyOrchestrator()
    store, captured = _install(monkeypatch, orchestrator)

    exit_code = cli.main(["--dry-run", "--mode", "rescrape"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert captured["notifier"] is None
    assert orchestrator.modes == [EnrichmentMode.RESCRAPE]
    assert store.closed
    assert "[done] 2/3 recipe(s) processed" in output
    summary_line = next(line for line in output.splitlines() if line.startswith("[summary] "))
    assert json.loads(summary_line[len("[summary] "):]) == {
        "Processed": 2,
        "Total": 3,
        "Mode": "rescrape",
        "Email": "skipped",
    }


def test_email_notifier_is_wired_without_dry_run(monkeypatch):
    orchestrator = _DummyOrchestrator()
    _, captured = _install(monkeypatch, orchestrator)

    assert cli.main([]) == 0
    assert isinstance(captured["notifier"], cli.EmailNotifier)
    assert orchestrator.modes == [EnrichmentMode.STANDARD]


def test_missing_credentials_exit_nonzero(monkeypatch, capsys):
    def missing(cls):
        raise ConfigurationError("Missing NOTION_TOKEN environment variable")

    monkeypatch.setattr(cli.NotionRecipeStore, "from_env", classmethod(missing))

    assert cli.main([]) == 1
    assert "[error] Missing NOTION_TOKEN" in capsys.readouterr().out


def test_failed_run_exits_nonzero_and_closes_store(monkeypatch, capsys):
    orchestrator = _DummyOrchestrator(error=RuntimeError("boom"))
    store, _ = _install(monkeypatch, orchestrator)

    assert cli.main(["--dry-run"]) == 1
    assert store.closed
    assert "[error] Enrichment run failed: boom" in capsys.readouterr().out

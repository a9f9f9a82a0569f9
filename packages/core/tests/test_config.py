"""Tests for configuration loading."""

import pytest

from sentinel_core.config import DEFAULT_CONFIG, load_config, load_context_files


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("GITHUB_TOKEN", "ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY", "OLLAMA_BASE_URL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["llm"]["provider"] == "openai"
    assert config["llm"]["model"] is None
    assert config["review"]["mode"] == "quick"
    assert config["review"]["max_iterations"] == 10
    assert config["review"]["categories"] == ["security", "architecture", "bugs"]
    assert config["ignore"] == {"paths": [], "authors": []}


def test_defaults_not_mutated(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("ignore:\n  paths: [vendor/]\n")
    load_config(config_path=str(cfg))
    assert DEFAULT_CONFIG["ignore"]["paths"] == []


def test_nested_values_deep_merged(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("llm:\n  provider: anthropic\nreview:\n  mode: deep\n")
    config = load_config(config_path=str(cfg))
    assert config["llm"]["provider"] == "anthropic"
    assert config["llm"]["base_url"] is None
    assert config["review"]["mode"] == "deep"
    assert config["review"]["min_severity"] == "suggestion"


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("llm:\n  provider: anthropic\n")
    config = load_config(config_path=str(cfg), cli_overrides={"provider": "ollama", "mode": "deep"})
    assert config["llm"]["provider"] == "ollama"
    assert config["review"]["mode"] == "deep"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("llm:\n  model: gpt-4o-mini\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model": None})
    assert config["llm"]["model"] == "gpt-4o-mini"


def test_null_section_restored_before_overrides(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("llm: null\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model": "gpt-4o"})
    assert config["llm"]["provider"] == "openai"
    assert config["llm"]["model"] == "gpt-4o"


def test_non_mapping_file_rejected(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("- just\n- a list\n")
    with pytest.raises(ValueError, match="mapping"):
        load_config(config_path=str(cfg))


def test_empty_file_uses_defaults(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("")
    assert load_config(config_path=str(cfg))["llm"]["provider"] == "openai"


@pytest.mark.parametrize(
    "yaml_text, section, key, expected",
    [
        ("llm:\n  provider: bard\n", "llm", "provider", "openai"),
        ("review:\n  mode: thorough\n", "review", "mode", "quick"),
        ("review:\n  min_severity: major\n", "review", "min_severity", "suggestion"),
        ("review:\n  max_iterations: 0\n", "review", "max_iterations", 10),
        ("review:\n  max_parallel_tools: many\n", "review", "max_parallel_tools", 4),
        ("review:\n  skip_if_effort_below: true\n", "review", "skip_if_effort_below", 1),
        ("review:\n  timeout_seconds: soon\n", "review", "timeout_seconds", None),
        ("review:\n  timeout_seconds: -5\n", "review", "timeout_seconds", None),
        ("review:\n  timeout_seconds: true\n", "review", "timeout_seconds", None),
    ],
)
def test_invalid_values_fall_back_with_warning(tmp_path, caplog, yaml_text, section, key, expected):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text(yaml_text)
    with caplog.at_level("WARNING", logger="sentinel_core.config"):
        config = load_config(config_path=str(cfg))
    assert config[section][key] == expected
    assert any(key in r.getMessage() for r in caplog.records)


def test_timeout_seconds_coerced_to_float(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text('review:\n  timeout_seconds: "30"\n')
    assert load_config(config_path=str(cfg))["review"]["timeout_seconds"] == 30.0


def test_timeout_seconds_defaults_to_none(tmp_path):
    assert load_config(config_path=str(tmp_path / "none.yml"))["review"]["timeout_seconds"] is None


def test_stack_entries_stringified(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("stack: [Django, 5]\n")
    assert load_config(config_path=str(cfg))["stack"] == ["Django", "5"]


def test_non_list_stack_ignored(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("stack: Django\n")
    assert load_config(config_path=str(cfg))["stack"] == []


def test_unknown_categories_filtered(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("review:\n  categories: [security, style, performance]\n")
    assert load_config(config_path=str(cfg))["review"]["categories"] == ["security", "performance"]


def test_all_unknown_categories_fall_back_to_defaults(tmp_path):
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("review:\n  categories: [style]\n")
    assert load_config(config_path=str(cfg))["review"]["categories"] == ["security", "architecture", "bugs"]


def test_credentials_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "gh-tok")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-test")
    monkeypatch.setenv("GEMINI_API_KEY", "gem-test")
    config = load_config(config_path=str(tmp_path / "none.yml"))
    assert config["github_token"] == "gh-tok"
    assert config["openai_api_key"] == "sk-test"
    assert config["anthropic_api_key"] == "ant-test"
    assert config["gemini_api_key"] == "gem-test"


def test_ollama_base_url_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("OLLAMA_BASE_URL", "http://box:11434/v1")
    assert load_config(config_path=str(tmp_path / "none.yml"))["llm"]["base_url"] == "http://box:11434/v1"


def test_configured_base_url_wins_over_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("OLLAMA_BASE_URL", "http://env:11434/v1")
    cfg = tmp_path / ".sentinel.yml"
    cfg.write_text("llm:\n  base_url: http://file:11434/v1\n")
    assert load_config(config_path=str(cfg))["llm"]["base_url"] == "http://file:11434/v1"


# ---------------------------------------------------------------------------
# load_context_files
# ---------------------------------------------------------------------------


def _config(**context_files):
    settings = {"enabled": True, "paths": [], "search_defaults": True}
    settings.update(context_files)
    return {"context_files": settings}


def test_context_files_found_in_root_and_subdirs(tmp_path):
    (tmp_path / "CLAUDE.md").write_text("Use type hints.")
    (tmp_path / ".github").mkdir()
    (tmp_path / ".github" / "copilot-instructions.md").write_text("Prefer small PRs.")
    found = load_context_files(_config(), str(tmp_path))
    names = [f.name for f in found]
    assert "CLAUDE.md" in names
    assert "copilot-instructions.md" in names
    assert found[0].content == "Use type hints."


def test_context_files_deduplicated(tmp_path):
    # ".github/copilot-instructions.md" is reachable both as a default name and
    # as "copilot-instructions.md" looked up inside .github/.
    (tmp_path / ".github").mkdir()
    (tmp_path / ".github" / "copilot-instructions.md").write_text("x")
    found = load_context_files(_config(paths=["copilot-instructions.md"]), str(tmp_path))
    assert len(found) == 1


def test_context_files_disabled(tmp_path):
    (tmp_path / "AGENTS.md").write_text("x")
    assert load_context_files(_config(enabled=False), str(tmp_path)) == []


def test_only_configured_paths_when_defaults_off(tmp_path):
    (tmp_path / "AGENTS.md").write_text("x")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "STYLE.md").write_text("style")
    found = load_context_files(_config(search_defaults=False, paths=["STYLE.md"]), str(tmp_path))
    assert [f.name for f in found] == ["STYLE.md"]


def test_no_context_files(tmp_path):
    assert load_context_files(_config(), str(tmp_path)) == []

"""Eval test fixtures -- mock LLM, sample rules, registry, store."""

import pytest

from stylecoach.style_guide import CategoryRegistry, Rule, RuleStore

from evals.fakes import scripted_llm, text


@pytest.fixture
def mock_llm():
    """Mock LLM client that finds nothing relevant, without API calls."""
    client = scripted_llm()
    client.call.side_effect = None
    client.call.return_value = text("[]")
    return client


@pytest.fixture
def sample_rules():
    return [
        Rule(
            id="r1",
            principle="Prefer plain words over ornate ones",
            categories=["diction"],
            avoid=["utilize"],
            prefer=["use"],
            original_example="She utilized the key.",
            better_version="She used the key.",
        ),
        Rule(id="r2", principle="Vary sentence length to control pace", categories=["pacing"]),
    ]


@pytest.fixture
def sample_registry():
    return CategoryRegistry({
        "diction": "Word choice and register",
        "pacing": "Rhythm and speed of the prose",
    })


@pytest.fixture
def sample_store(sample_rules):
    return RuleStore(sample_rules)

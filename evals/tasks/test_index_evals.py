"""
Category Index Evals -- the category -> rule id map the pipeline filters by.

The index must contain exactly one entry per (rule, category) tag, keep a
deterministic order, and never go stale relative to the store's rules.
"""

from types import SimpleNamespace

from stylecoach.style_guide import Rule, RuleStore, build_category_index, lookup_rule_ids


def _rules():
    return [
        Rule(id="r1", principle="p1", categories=["diction", "tone"]),
        Rule(id="r2", principle="p2", categories=["pacing"]),
        Rule(id="r3", principle="p3", categories=["tone"]),
    ]


class TestIndexCompleteness:
    """Eval: Every tag is indexed, and nothing else is."""

    def test_every_tag_indexed(self):
        """Each (rule, category) tag appears exactly once."""
        index = build_category_index(_rules())
        assert index == {"diction": ["r1"], "tone": ["r1", "r3"], "pacing": ["r2"]}

    def test_empty_rule_list(self):
        """No rules gives an empty index."""
        assert build_category_index([]) == {}

    def test_untagged_rule_unreachable(self):
        """A rule without categories is in no bucket."""
        rules = _rules() + [Rule(id="r4", principle="untagged")]
        index = build_category_index(rules)
        assert all("r4" not in ids for ids in index.values())

    def test_malformed_rules_skipped(self):
        """Rules with missing or non-list categories are skipped."""
        rules = [
            SimpleNamespace(id="bad1", categories=None),
            SimpleNamespace(id="bad2"),
            SimpleNamespace(id="bad3", categories="diction"),
            SimpleNamespace(id="ok", categories=["diction", 7]),
        ]
        assert build_category_index(rules) == {"diction": ["ok"]}

    def test_repeated_category_listed_once(self):
        """A category listed twice on one rule indexes it once."""
        rules = [Rule(id="r1", principle="p", categories=["tone", "tone"])]
        assert build_category_index(rules) == {"tone": ["r1"]}


class TestIndexDeterminism:
    """Eval: Same rules, same index, same order."""

    def test_idempotent(self):
        """Building twice from the same rules gives the same index."""
        rules = _rules()
        assert build_category_index(rules) == build_category_index(rules)

    def test_key_order_is_first_occurrence(self):
        """Keys appear in first-occurrence order across the rules."""
        assert list(build_category_index(_rules())) == ["diction", "tone", "pacing"]

    def test_bucket_order_follows_rules(self):
        """Ids inside a bucket follow rule-list order."""
        reversed_rules = list(reversed(_rules()))
        assert build_category_index(reversed_rules)["tone"] == ["r3", "r1"]


class TestLookup:
    def test_union_over_categories(self):
        """Lookup unions the buckets of every given category."""
        index = build_category_index(_rules())
        assert lookup_rule_ids(index, ["diction", "pacing"]) == {"r1", "r2"}

    def test_unknown_category_contributes_nothing(self):
        """A category with no bucket adds no ids."""
        index = build_category_index(_rules())
        assert lookup_rule_ids(index, ["imagery"]) == set()


class TestIndexFreshness:
    """Eval: Does the store's cached index follow every rule edit?"""

    def test_add_rule_reindexes(self):
        """An added rule shows up in the next index."""
        store = RuleStore(_rules())
        assert "imagery" not in store.category_index()
        store.add_rule("Show, don't tell", categories=["imagery"], rule_id="r9")
        assert store.category_index()["imagery"] == ["r9"]

    def test_update_categories_reindexes(self):
        """Retagging a rule moves it between buckets."""
        store = RuleStore(_rules())
        store.update_rule("r2", categories=["tone"])
        index = store.category_index()
        assert "pacing" not in index
        assert index["tone"] == ["r1", "r2", "r3"]

    def test_remove_rule_reindexes(self):
        """A removed rule leaves every bucket."""
        store = RuleStore(_rules())
        store.remove_rule("r1")
        index = store.category_index()
        assert "diction" not in index
        assert index["tone"] == ["r3"]

    def test_snapshot_index_matches_snapshot_rules(self):
        """The snapshot's index is built from the snapshot's rules."""
        store = RuleStore(_rules())
        rules, index = store.snapshot()
        assert index == build_category_index(rules)

    def test_returned_index_is_a_copy(self):
        """Mutating a returned index leaves the cache untouched."""
        store = RuleStore(_rules())
        store.category_index()["tone"].append("intruder")
        assert store.category_index()["tone"] == ["r1", "r3"]

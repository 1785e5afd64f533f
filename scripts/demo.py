#!/usr/bin/env python3
"""
Demo - Resolve a few sentences against the sample style guide.

Usage: python scripts/demo.py

No API keys required -- uses a keyword-matching mock model for demonstration.
"""

import asyncio
import json
import re
import sys
from pathlib import Path

# Add src/ to path
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))

DATA_DIR = ROOT / "evals" / "data"

SENTENCES = [
    "She endeavored to utilize the ancient key.",
    '"Close the door," she exclaimed.',
    "He ran. He stopped. He looked. He waited.",
    "The kettle boiled.",
]

# Category -> words that make the mock model pick it
CATEGORY_CUES = {
    "diction": ["utilize", "endeavor", "commence"],
    "dialogue": ['"', "exclaimed", "said"],
    "pacing": ["ran.", "stopped."],
}


class MockModel:
    """Answers each stage prompt from keyword cues, the way a model would in JSON."""

    supports_structured_output = False

    async def call(self, prompt, **kwargs):
        from stylecoach.llm.client import TextResponse

        text = re.search(r'Text:\n"(.*?)"\n\n', prompt, re.DOTALL).group(1).lower()

        if prompt.startswith("Analyze this creative writing text"):
            matched = [c for c, cues in CATEGORY_CUES.items() if any(cue in text for cue in cues)]
            return TextResponse(content=json.dumps(matched), model="mock")

        evaluations = []
        for rule_id, avoid in re.findall(r"Rule (\S+): .*?(?:\n  Avoid: ([^\n]*))?(?=\n|$)", prompt):
            hits = [a for a in avoid.split("; ") if a and a.lower() in text]
            evaluations.append({
                "ruleId": rule_id,
                "assessment": "violates" if hits else "follows",
                "note": f"uses {', '.join(hits)}" if hits else "",
            })
        return TextResponse(
            content=f"Here is my evaluation:\n```json\n{json.dumps(evaluations)}\n```",
            model="mock",
        )


async def main():
    from stylecoach import load_category_registry, load_style_guide, resolve_rules

    store = load_style_guide(DATA_DIR / "style-guide.json")
    registry = load_category_registry(DATA_DIR / "category-registry.json")

    print("\n" + "=" * 60)
    print("  RULE RESOLUTION DEMO")
    print(f"  {len(store)} rules, {len(registry)} categories")
    print("=" * 60 + "\n")

    llm = MockModel()
    for sentence in SENTENCES:
        print(f"Text: {sentence}")
        result = await resolve_rules(
            sentence,
            llm_client=llm,
            store=store,
            registry=registry,
            on_stage_complete=lambda stage, data: print(f"  {stage}: {len(data)}"),
        )
        if not result.evaluations:
            print("  -> no rules apply\n")
            continue
        for ev in result.evaluations:
            note = f" ({ev.note})" if ev.note else ""
            print(f"  -> [{ev.assessment.upper()}] {ev.rule_id}{note}")
        print()

    print("=" * 60 + "\n")


if __name__ == "__main__":
    asyncio.run(main())

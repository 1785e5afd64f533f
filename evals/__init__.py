"""
Evaluation infrastructure -- deterministic eval tasks for the resolution pipeline.

Run evals: pytest evals/ -v
Run one area: pytest evals/tasks/test_pipeline_evals.py -v

Live-model evals use the CLI instead: stylecoach eval evals/data/resolution-cases.json
"""

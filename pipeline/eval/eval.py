"""Evaluation harness for quote extraction.

Runs the quote parser over a labelled set of supplier emails and computes metrics.
"""

import json
import logging
from pathlib import Path
from typing import Any

from bids.extraction.schema import EmailInput
from bids.extraction.service import QuoteEmailParser
from bids.shared.config import Settings, get_settings
from pipeline.eval.metrics import ExpectedQuote, evaluate_extraction

logger = logging.getLogger(__name__)

DEFAULT_GOLD_FILE = Path("data/gold/quotes.json")


def load_gold_dataset(gold_file: Path) -> list[tuple[EmailInput, ExpectedQuote]]:
    """Load gold dataset from JSON file.

    Each item holds an "email" object (subject, body, from, received_at) and
    an "expected" object with the ground-truth field values.

    Args:
        gold_file: Path to gold dataset JSON

    Returns:
        List of (email, expected) tuples
    """
    with open(gold_file, encoding="utf-8") as f:
        data = json.load(f)

    return [
        (EmailInput.model_validate(item["email"]), ExpectedQuote.model_validate(item["expected"]))
        for item in data
    ]


def run_evaluation(gold_file: Path, settings: Settings | None = None) -> dict[str, Any]:
    """Run evaluation on gold dataset.

    Args:
        gold_file: Path to gold dataset JSON file
        settings: Application settings (loaded from the environment if omitted)

    Returns:
        Evaluation results dict
    """
    parser = QuoteEmailParser(settings or get_settings())
    samples = load_gold_dataset(gold_file)
    logger.info(f"Evaluating quote extraction on {len(samples)} emails from {gold_file}")

    expected_list = [expected for _, expected in samples]
    predicted_list = [parser.parse(email).quote for email, _ in samples]

    report = evaluate_extraction(expected_list, predicted_list)

    return {
        "total_samples": report.total_samples,
        "macro_f1": round(report.macro_f1, 4),
        "field_metrics": {
            field: {
                "precision": round(metrics.precision, 4),
                "recall": round(metrics.recall, 4),
                "f1": round(metrics.f1, 4),
                "support": metrics.support,
            }
            for field, metrics in report.field_metrics.items()
        },
    }


if __name__ == "__main__":
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    results = run_evaluation(DEFAULT_GOLD_FILE, settings)

    print("\n" + "=" * 60)
    print("QUOTE EXTRACTION EVALUATION RESULTS")
    print("=" * 60)
    print(f"\nTotal Samples: {results['total_samples']}")
    print(f"Macro F1 Score: {results['macro_f1']:.1%}\n")

    print("Per-Field Metrics:")
    print("-" * 60)
    print(f"{'Field':<20} {'Precision':<12} {'Recall':<12} {'F1':<12}")
    print("-" * 60)

    for field, metrics in results["field_metrics"].items():
        print(
            f"{field:<20} {metrics['precision']:<12.1%} "
            f"{metrics['recall']:<12.1%} {metrics['f1']:<12.1%}"
        )

    print("=" * 60)

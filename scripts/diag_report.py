#!/usr/bin/env python3
import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pitchai.backend.analysis import AnalysisAssembler  # noqa: E402
from pitchai.backend.deck_extractor import DeckTextExtractor  # noqa: E402
from pitchai.backend.llm_gateway import ChatCompletionGateway  # noqa: E402
from pitchai.backend.report import ReportAssembler  # noqa: E402
from pitchai.backend.storage import InMemoryRecordStore, Repositories  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Analyze a local deck and write an HTML report.")
    parser.add_argument("--deck", required=True, help="Path to a local PDF or PPTX deck.")
    parser.add_argument("--title", default="Diagnostic pitch", help="Report title.")
    parser.add_argument("--out", default="pitchai-report.html", help="Where to write the rendered report.")
    parser.add_argument("--with-qa", action="store_true", help="Also generate investor Q&A from the deck text.")
    args = parser.parse_args()

    deck_path = Path(args.deck).expanduser().resolve()
    if not deck_path.exists():
        raise FileNotFoundError(f"Deck file not found: {deck_path}")

    deck_text = DeckTextExtractor().extract_text(str(deck_path))
    print(f"extracted chars: {len(deck_text)}")

    analysis = AnalysisAssembler(ChatCompletionGateway())
    deck_analysis = analysis.analyze_deck(deck_text, args.title)
    print(f"deck overall: {deck_analysis.overall_score}")

    investor_qa = None
    if args.with_qa:
        investor_qa = analysis.generate_investor_qa(deck_text, user_id="diag")
        print(f"investor questions: {len(investor_qa.questions)}")

    reports = ReportAssembler(Repositories(InMemoryRecordStore()))
    report = reports.assemble("diag", args.title, deck_analysis, None, investor_qa)
    content, _ = reports.export_report(report)

    out_path = Path(args.out).expanduser().resolve()
    out_path.write_bytes(content)
    print(f"report written: {out_path}")


if __name__ == "__main__":
    main()

"""CLI entry point for Household Checkup.

Examples:
    # Show the version
    household-checkup version

    # List the checkup questions with codes, categories and reverse flags
    household-checkup questions --type checkup

    # Score a JSON file of raw selections ({"checkup_q01": 3, "checkup_q02": null, ...})
    household-checkup score --type checkup answers.json --skip-policy exclude
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from uuid import uuid4

import household_checkup
from household_checkup.config import LoggingSettings, ScoringSettings, get_settings
from household_checkup.domain.entities import Answer
from household_checkup.domain.enums import AssessmentType, SkipPolicy
from household_checkup.domain.exceptions import RecalculationError
from household_checkup.domain.value_objects import SKIPPED_VALUE
from household_checkup.infrastructure.logging import setup_logging
from household_checkup.questionnaires.catalog import get_questionnaire
from household_checkup.services.answer_transform import transform
from household_checkup.services.scoring import ScoringEngine


def _print_questions(assessment_type: AssessmentType) -> int:
    questionnaire = get_questionnaire(assessment_type)
    for index, question in enumerate(questionnaire.questions):
        reverse = " (reverse)" if question.is_reverse else ""
        print(
            f"{index + 1:>2}  {question.code:<12} {question.category:<20} "
            f"{question.answer_type:<12} {question.text}{reverse}"
        )
        if index == questionnaire.interlude_index:
            print("    --- interlude ---")
    return 0


def _load_answers(path: Path, assessment_type: AssessmentType) -> list[Answer]:
    """Read raw selections and convert them to stored answers.

    Raises:
        ValueError: On unknown question codes or values off the scale.
    """
    raw: dict[str, int | None] = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Answer file must be a JSON object of question code to value")

    questionnaire = get_questionnaire(assessment_type)
    assessment_id = uuid4()
    answers: list[Answer] = []
    for code, value in raw.items():
        question = questionnaire.question_by_code(code)
        if question is None:
            raise ValueError(f"Unknown question code for {assessment_type.value}: {code}")
        if value is None:
            value = SKIPPED_VALUE
        elif value not in question.scale.values:
            raise ValueError(f"{code}: value {value} not in {list(question.scale.values)}")
        answers.append(
            Answer(
                assessment_id=assessment_id,
                question_id=question.id,
                question_code=question.code,
                category=question.category,
                value=transform(value, question.is_reverse),
                answer_type=question.answer_type,
                step_number=questionnaire.questions.index(question) + 1,
            )
        )
    return answers


def _score(args: argparse.Namespace) -> int:
    assessment_type = AssessmentType(args.type)
    base = get_settings().scoring
    scoring_settings = ScoringSettings(
        skip_policy=SkipPolicy(args.skip_policy) if args.skip_policy else base.skip_policy,
        cutoffs_path=args.cutoffs or base.cutoffs_path,
    )
    try:
        answers = _load_answers(args.answers, assessment_type)
        engine = ScoringEngine(scoring_settings)
        summary = engine.score_summary(assessment_type, answers)
    except (OSError, ValueError, RecalculationError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    print(json.dumps(summary, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="household-checkup",
        description="Household mental-health checkup: questionnaires and scoring",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at INFO level (default: errors only)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("version", help="Print the version")

    questions = sub.add_parser("questions", help="List a questionnaire")
    questions.add_argument(
        "--type",
        choices=[t.value for t in AssessmentType],
        default=AssessmentType.CHECKUP.value,
    )

    score = sub.add_parser("score", help="Score a JSON file of raw answers")
    score.add_argument(
        "--type",
        choices=[t.value for t in AssessmentType],
        default=AssessmentType.CHECKUP.value,
    )
    score.add_argument("answers", type=Path, help="JSON object of question code to raw value")
    score.add_argument(
        "--skip-policy",
        choices=[p.value for p in SkipPolicy],
        default=None,
        help="Override SCORING_SKIP_POLICY",
    )
    score.add_argument(
        "--cutoffs",
        type=Path,
        default=None,
        help="Override SCORING_CUTOFFS_PATH",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the Household Checkup CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(LoggingSettings(level="INFO" if args.verbose else "ERROR", format="console"))

    if args.command == "questions":
        return _print_questions(AssessmentType(args.type))
    if args.command == "score":
        return _score(args)

    print(f"Household Checkup v{household_checkup.__version__}")
    if args.command is None:
        print("Run with --help for usage information.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

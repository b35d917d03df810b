# run_validation.py
import json
import sys

from xref_engine.review import LoanReviewer


def main():
    if len(sys.argv) < 2:
        print("usage: python run_validation.py <loanId> [--no-save]")
        sys.exit(2)
    loan_id = sys.argv[1]
    save = "--no-save" not in sys.argv[2:]

    reviewer = LoanReviewer()
    print(f"Running review for loan ID: {loan_id}")

    result = reviewer.review_loan(loan_id, save=save)

    print("\nFINAL RESULT" + (" (Saved to DB & UI Ready)" if save else ""))
    print("-----------------------------------")
    print(json.dumps(result, indent=2, default=str))

    card = result["scorecard"]
    stats = result["matrix"]["stats"]
    queue = result["dispositionStats"]

    print("\nReview Summary:")
    print("------------------")
    print(f"Overall Score: {card['overallScore']}")
    print(f"Ready To Close: {card['readyToClose']}")
    print(f"Matrix: {stats['matches']} match / {stats['mismatches']} mismatch / {stats['na']} n/a")
    print(f"Dispositions: {queue['open']} open ({queue['high']} high priority)")


if __name__ == "__main__":
    main()

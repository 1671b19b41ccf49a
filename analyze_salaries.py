#!/usr/bin/env python3
"""CLI tool for the NBA salary regression analysis.

Usage:
    python analyze_salaries.py                          # Run the full analysis
    python analyze_salaries.py --data salaries.csv      # Use a specific CSV
    python analyze_salaries.py --summary                # Data summary only
    python analyze_salaries.py --player "Player Name"   # Predicted vs actual salary

Examples:
    python analyze_salaries.py --test-size 100 --seed 7
    python analyze_salaries.py --player "Jokic"
"""

import argparse
import logging
import sys
import warnings

from nba_salary.data_pipeline import get_data_summary, load_and_clean_data
from nba_salary.modeling import load_model, predict_salary
from nba_salary.report import run_full_analysis
from nba_salary.utils import RANDOM_STATE, TEST_SIZE

# Suppress statsmodels/matplotlib warnings for cleaner output
warnings.filterwarnings("ignore", category=UserWarning)


def print_summary(data_path):
    """Print summary statistics of the cleaned dataset."""
    df = load_and_clean_data(data_path)
    summary = get_data_summary(df)

    print("\nData Summary:")
    print("=" * 40)
    for key, value in summary.items():
        print(f"  {key}: {value}")


def predict_player(player_name: str, data_path):
    """Show the saved model's salary prediction for one player's rows."""
    model, metadata = load_model()
    df = load_and_clean_data(data_path)

    rows = df[df["player"] == player_name]
    if rows.empty:
        matches = sorted(p for p in df["player"].unique() if player_name.lower() in p.lower())
        if len(matches) == 1:
            rows = df[df["player"] == matches[0]]
        elif matches:
            print(f"Player '{player_name}' not found. Did you mean:")
            for m in matches[:5]:
                print(f"  - {m}")
            return
        else:
            print(f"Player '{player_name}' not found in data.")
            return

    predictions = predict_salary(model, rows)
    if predictions.empty:
        print(f"Model '{model.name}' cannot predict for {player_name} (unseen team or position, or a missing stat).")
        return

    print(f"\nModel: {model.name}")
    print(f"Formula: {model.spec.formula}")
    print("=" * 60)
    for idx, predicted in predictions.items():
        row = rows.loc[idx]
        actual = row["salary"]
        print(f"  {row['player']} ({row['team']}, {row['position']}, age {row['age']})")
        print(f"    Actual salary:    ${actual:>14,.0f}")
        print(f"    Predicted salary: ${predicted:>14,.0f}")
        print(f"    Difference:       ${actual - predicted:>+14,.0f}")


def main():
    parser = argparse.ArgumentParser(
        description="NBA Salary Regression Analysis CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--data",
        metavar="CSV",
        default=None,
        help="Path to the player salary CSV (default: data/nba_salaries.csv or $NBA_SALARY_DATA)",
    )
    parser.add_argument(
        "--test-size",
        type=int,
        default=TEST_SIZE,
        help=f"Rows held out for testing (default: {TEST_SIZE})",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=RANDOM_STATE,
        help=f"Random seed for the train/test split (default: {RANDOM_STATE})",
    )
    parser.add_argument(
        "--no-figures",
        action="store_true",
        help="Skip writing figures",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print a summary of the cleaned data and exit",
    )
    parser.add_argument(
        "--player",
        metavar="NAME",
        help="Predict salary for a player with the saved model",
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.summary:
            print_summary(args.data)
            return 0

        if args.player:
            predict_player(args.player, args.data)
            return 0

        run_full_analysis(
            filepath=args.data,
            test_size=args.test_size,
            random_state=args.seed,
            save_figures=not args.no_figures,
        )
    except FileNotFoundError as e:
        print(f"File not found: {e.filename}", file=sys.stderr)
        print("Run the full analysis first, or pass --data.", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

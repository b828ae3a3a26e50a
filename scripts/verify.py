"""
Ledger Verification Script

Verifies data integrity of the Excel order ledger.
Run from project root: python scripts/verify.py
"""

import argparse
import os
from datetime import datetime

import pandas as pd

LEDGER_FILE = os.path.join(os.getenv("DATA_DIRECTORY", "data"), os.getenv("LEDGER_FILENAME", "orders.xlsx"))


def verify_ledger(path: str = LEDGER_FILE) -> bool:
    """Verify ledger integrity after a simulation."""

    print("=" * 60)
    print("LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"File: {path}")
    print("=" * 60)

    if not os.path.exists(path):
        print("\nLedger file not found!")
        print("   Enable LEDGER_EXPORT_ENABLED, start a Celery worker and place some orders.")
        return False

    try:
        df = pd.read_excel(path, engine="openpyxl")
        print("\nFile loaded successfully!")
    except Exception as e:
        print(f"\nCould not read ledger file: {e}")
        return False

    ok = True

    print("\nSTATISTICS:")
    print(f"   Rows: {len(df)}")
    if "event" in df.columns:
        for event, count in df["event"].value_counts().items():
            print(f"   {event}: {count}")

    required = ["order_number", "event", "srn", "total_amount", "received"]
    missing = [col for col in required if col not in df.columns]
    if missing:
        print(f"\nMissing Columns: {missing}")
        return False
    print("\nAll required columns present")

    placed = df[df["event"] == "placed"]

    duplicates = placed["order_number"].duplicated().sum()
    if duplicates > 0:
        print(f"\n{duplicates} order numbers were placed more than once!")
        ok = False
    else:
        print("No order number placed twice")

    # Latest received state per order
    flags = df[df["event"].isin(["received", "unreceived"])]
    latest = flags.groupby("order_number")["event"].last()
    collected = set(latest[latest == "received"].index)
    pending = placed[~placed["order_number"].isin(collected)]

    orphans = set(flags["order_number"]) - set(placed["order_number"])
    if orphans:
        print(f"\n{len(orphans)} orders have pickup events but no placed event")
        ok = False

    print("\nPICKUPS:")
    print(f"   Collected: {len(collected)}")
    print(f"   Pending: {len(pending)}")

    print("\nREVENUE:")
    print(f"   Total: Rs {placed['total_amount'].sum():.2f}")
    if len(placed) > 0:
        print(f"   Average: Rs {placed['total_amount'].mean():.2f}")

    print("\nRECENT EVENTS:")
    print("-" * 60)
    if len(df) > 0:
        print(df[["order_number", "event", "srn", "total_amount"]].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("VERIFICATION COMPLETE" if ok else "VERIFICATION FOUND PROBLEMS")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Ledger Verification Script")
    parser.add_argument("--file", default=LEDGER_FILE, help="Path to the ledger workbook")
    args = parser.parse_args()

    verify_ledger(args.file)

#!/usr/bin/env python3
"""Sample workbook generation script.

Generates a synthetic workbook with three sheets whose rows reference each
other by sequence number, suitable for trying the importer end to end:

- Customers:    customer_no, name, phone
- Transactions: sale_no, customer_no, cost, extra, installment, count, start
- Payments:     sale_no, customer_no, paid, paid_on

Row 1 of every sheet is the header. Import the sheets in that order
(customers, then transactions, then payments) so the references resolve.
A few deliberately broken rows can be mixed in with --bad-rows.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd


def generate_customers(rows: int, rng: np.random.Generator) -> pd.DataFrame:
    return pd.DataFrame({
        "customer_no": np.arange(1, rows + 1),
        "name": [f"Customer {i}" for i in range(1, rows + 1)],
        "phone": [f"9{n:07d}" for n in rng.integers(0, 10_000_000, rows)],
    })


def generate_transactions(customers: int, rows: int, rng: np.random.Generator) -> pd.DataFrame:
    cost = np.round(rng.uniform(50, 2000, rows), 2)
    extra = np.round(cost * rng.uniform(0.05, 0.3, rows), 2)
    count = rng.integers(3, 25, rows)
    start = pd.date_range("2023-01-01", "2024-12-31", periods=100)
    return pd.DataFrame({
        "sale_no": np.arange(1, rows + 1),
        "customer_no": rng.integers(1, customers + 1, rows),
        "cost": cost,
        "extra": extra,
        "installment": np.round((cost + extra) / count, 2),
        "count": count,
        "start": rng.choice(start, rows),
    })


def generate_payments(transactions: pd.DataFrame, rows: int, rng: np.random.Generator) -> pd.DataFrame:
    picks = transactions.iloc[rng.integers(0, len(transactions), rows)]
    return pd.DataFrame({
        "sale_no": picks["sale_no"].to_numpy(),
        "customer_no": picks["customer_no"].to_numpy(),
        "paid": picks["installment"].to_numpy(),
        "paid_on": pd.Timestamp("2025-01-01") + pd.to_timedelta(rng.integers(0, 180, rows), unit="D"),
    })


def inject_bad_rows(df: pd.DataFrame, column: str, count: int, value: object) -> pd.DataFrame:
    """Overwrite ``column`` of the last ``count`` rows with an invalid ``value``."""
    if count <= 0 or df.empty:
        return df
    df = df.astype({column: object})
    df.iloc[-count:, df.columns.get_loc(column)] = value
    return df


def create_workbook(
    output_path: Path,
    customers: int,
    transactions: int,
    payments: int,
    bad_rows: int = 0,
    seed: int = 42,
) -> None:
    rng = np.random.default_rng(seed)
    cust_df = generate_customers(customers, rng)
    tx_df = generate_transactions(customers, transactions, rng)
    pay_df = generate_payments(tx_df, payments, rng)

    tx_out = inject_bad_rows(tx_df, "cost", bad_rows, "-5")
    pay_out = inject_bad_rows(pay_df, "sale_no", bad_rows, "999999")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        cust_df.to_excel(writer, sheet_name="Customers", index=False)
        tx_out.to_excel(writer, sheet_name="Transactions", index=False)
        pay_out.to_excel(writer, sheet_name="Payments", index=False)

    print(f"Created workbook: {output_path}")
    print(f"  Customers: {customers}  Transactions: {transactions}  Payments: {payments}")
    if bad_rows:
        print(f"  Bad rows per dependent sheet: {bad_rows}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a sample customers / transactions / payments workbook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s sample.xlsx
  %(prog)s large.xlsx --customers 5000 --transactions 20000 --payments 50000
  %(prog)s broken.xlsx --bad-rows 3
        """,
    )
    parser.add_argument("output", type=Path, help="Output workbook path")
    parser.add_argument("--customers", type=int, default=100)
    parser.add_argument("--transactions", type=int, default=300)
    parser.add_argument("--payments", type=int, default=600)
    parser.add_argument("--bad-rows", type=int, default=0, help="Invalid rows appended to dependent sheets")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if min(args.customers, args.transactions, args.payments) <= 0:
        print("Error: row counts must be positive", file=sys.stderr)
        return 1
    if args.bad_rows < 0:
        print("Error: --bad-rows must not be negative", file=sys.stderr)
        return 1

    create_workbook(
        args.output, args.customers, args.transactions, args.payments, args.bad_rows, args.seed
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

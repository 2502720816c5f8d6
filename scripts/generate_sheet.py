"""
Listing sheet generator for the server catalog.

Writes deterministic pseudo-random server listings in the provider sheet
layout (Model, RAM, HDD, Location, Price) as CSV or XLSX, for import load
tests and demos.
"""

from __future__ import annotations

import csv
import random
import sys
import time
from pathlib import Path
from typing import Iterator, List

import typer
from openpyxl import Workbook

app = typer.Typer(help="Generate synthetic server listing sheets (CSV or XLSX).")

HEADER = ["Model", "RAM", "HDD", "Location", "Price"]

_MODELS = [
    "Dell R210Intel Xeon X3440",
    "HP DL180G62x Intel Xeon E5620",
    "HP DL380eG82x Intel Xeon E5-2420",
    "Dell R730XD2x Intel Xeon E5-2650v4",
    "Supermicro SC846Intel Xeon E5-1650v3",
    "IBM X3650M42x Intel Xeon E5-2620",
    "HP DL120G7Intel G850",
    "Dell R9304x Intel Xeon E7-8890v4",
]
_RAM = ["2GBDDR3", "4GBDDR3", "8GBDDR3", "16GBDDR3", "32GBDDR4", "64GBDDR4", "96GBDDR4", "128GBDDR4"]
_DISKS = [
    "2x500GBSATA2",
    "4x480GBSSD",
    "2x120GBSSD",
    "8x2TBSATA2",
    "2x2TBSATA2",
    "4x300GBSAS",
    "2x1TBSATA2",
    "24x1TBSATA2",
    "4x4TBSATA2",
]
_LOCATIONS = [
    ("AmsterdamAMS-01", "€"),
    ("FrankfurtFRA-10", "€"),
    ("Washington D.C.WDC-01", "$"),
    ("San FranciscoSFO-12", "$"),
    ("DallasDAL-10", "$"),
    ("SingaporeSIN-11", "S$"),
    ("Hong KongHKG-10", "$"),
]


def _generate_rows(rows: int, seed: int) -> Iterator[List[str]]:
    rng = random.Random(seed)
    for _ in range(rows):
        location, symbol = rng.choice(_LOCATIONS)
        price = round(rng.uniform(20, 2_500), 2)
        yield [
            rng.choice(_MODELS),
            rng.choice(_RAM),
            rng.choice(_DISKS),
            location,
            f"{symbol}{price:.2f}",
        ]


def _write_csv(path: Path, rows: int, seed: int) -> None:
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        writer.writerows(_generate_rows(rows, seed))


def _write_xlsx(path: Path, rows: int, seed: int) -> None:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Servers"
    sheet.append(HEADER)
    for row in _generate_rows(rows, seed):
        sheet.append(row)
    workbook.save(path)


def _generate_sheet(path: Path, rows: int, seed: int = 42) -> Path:
    """
    Write a listing sheet; the format follows the file extension.
    """
    suffix = path.suffix.lower()
    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".csv":
        _write_csv(path, rows, seed)
    elif suffix in (".xlsx", ".xlsm"):
        _write_xlsx(path, rows, seed)
    else:
        raise ValueError(f"Unsupported output format '{suffix}'. Use .csv or .xlsx")
    return path


@app.command()
def main(
    output: Path = typer.Argument(..., help="Output path (.csv or .xlsx)."),
    rows: int = typer.Option(1_000, "--rows", "-r", min=0, help="Number of listings to generate."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
) -> None:
    """
    Generate a synthetic listing sheet.
    """
    start = time.perf_counter()
    typer.echo(f"Generating {rows:,} listings -> {output} (seed={seed})")
    try:
        _generate_sheet(output, rows=rows, seed=seed)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)
    duration = time.perf_counter() - start
    typer.echo(f"Sheet written in {duration:.2f}s")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)

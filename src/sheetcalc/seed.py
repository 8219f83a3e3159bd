from sheetcalc.sheet import Sheet

SEED_SHEET_ID = "seed-sheet-1"


def create_seed_sheet() -> Sheet:
    """A small budget sheet: revenue and cost rows with totals, plus a pair
    of cells that reference each other."""
    return Sheet.from_contents(
        id=SEED_SHEET_ID,
        name="Budget Calculator",
        rows=20,
        cols=10,
        contents={
            "A1": "Revenue",
            "B1": "Cost",
            "C1": "Profit",
            "A3": 1000,
            "B3": 300,
            "C3": "=A3-B3",
            "D3": "=A3-B3",
            "A4": 2000,
            "B4": 1250,
            "C4": "=A4-B4",
            "A5": "=SUM(A3:A4)",
            "B5": "=SUM(B3:B4)",
            "C5": "=SUM(C3:C4)",
            "C6": "=C7+1",
            "C7": "=C6+1",
        },
    )

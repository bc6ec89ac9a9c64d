# tools/print_quotes.py
#
# Mini-CLI per leggere /stocks dal feed StockDash e stamparli in modo leggibile.

import json
from urllib.request import urlopen, Request
from urllib.error import URLError, HTTPError


BASE_URL = "http://127.0.0.1:8000"  # modifica se il servizio gira altrove


def fetch_quotes() -> list:
    url = f"{BASE_URL}/stocks"
    req = Request(url, headers={"Accept": "application/json"})

    with urlopen(req, timeout=5) as resp:
        body = json.load(resp)
    return body.get("data", [])


def format_float(x) -> str:
    if x is None:
        return "-"
    return f"{x:.2f}"


def main():
    try:
        quotes = fetch_quotes()
    except HTTPError as e:
        print(f"[HTTP ERROR] {e.code} {e.reason}")
        return
    except URLError as e:
        print(f"[CONNECTION ERROR] {e.reason}")
        print("Assicurati che il feed sia avviato (uvicorn app.main:app --app-dir services/stockdash).")
        return

    print("===================================")
    print(" StockDash Feed - Quotes snapshot")
    print("===================================\n")

    print(f"{'Symbol':<7} {'Price':>10} {'Change':>8} {'Chg %':>7} {'Volume':>12}")
    for q in quotes:
        print(
            f"{q.get('symbol', '?'):<7} "
            f"{format_float(q.get('currentPrice')):>10} "
            f"{format_float(q.get('change')):>8} "
            f"{format_float(q.get('changePercent')):>7} "
            f"{q.get('volume', 0):>12,}"
        )
    print()


if __name__ == "__main__":
    main()

# tools/check_health.py
#
# Mini-CLI per chiamare /health del feed StockDash e stampare uno stato leggibile.

import json
from urllib.request import urlopen, Request
from urllib.error import URLError, HTTPError

# Modifica qui se il servizio gira su un host/porta diversi
BASE_URL = "http://127.0.0.1:8000"

BANNER = (
    "===================================\n"
    " StockDash Feed - Health check \n"
    "===================================\n"
)


def main() -> None:
    url = f"{BASE_URL}/health"
    req = Request(url, headers={"Accept": "application/json"})

    try:
        with urlopen(req, timeout=5) as resp:
            status_code = resp.getcode()
            try:
                data = json.load(resp)
            except json.JSONDecodeError:
                data = None
    except HTTPError as e:
        print(BANNER)
        print(f"[HTTP ERROR] {e.code} {e.reason}")
        print(f"URL: {url}")
        return
    except URLError as e:
        print(BANNER)
        print(f"[CONNECTION ERROR] {e.reason}")
        print("Assicurati che il feed sia avviato, ad esempio:")
        print("  uvicorn app.main:app --app-dir services/stockdash --reload")
        return

    print(BANNER)
    print(f"HTTP status code : {status_code}")

    if data is None or not isinstance(data, dict):
        print("Body JSON        : <non valido / non parseable>")
        return

    status = data.get("status")
    if status is not None:
        print(f"Service status   : {status}")
    else:
        print("Service status   : <campo 'status' non presente>")

    for label, key in (
        ("Environment     ", "environment"),
        ("Version         ", "version"),
        ("Uptime (s)      ", "uptime_sec"),
        ("Tracked symbols ", "tracked_symbols"),
        ("Listeners       ", "listeners"),
        ("Ticker running  ", "ticker_running"),
        ("Ticker interval ", "ticker_interval_sec"),
        ("History window  ", "history_window"),
    ):
        value = data.get(key)
        if value is not None:
            print(f"{label} : {value}")

    print(f"Raw JSON         : {data}")


if __name__ == "__main__":
    main()

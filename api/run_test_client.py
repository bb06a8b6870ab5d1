import json
import sys
from typing import Any, Dict, Iterable, Iterator, Optional

import requests

SERVER_URL = "http://localhost:3000"

DEFAULT_SCENARIO = {
    "revenueAmount": 1000,
    "epochs": [1, 2, 3],
}


def is_running(url: str = SERVER_URL) -> bool:
    try:
        response = requests.get(f"{url}/health", timeout=5)
        return response.ok and response.json().get("status") == "ok"
    except requests.RequestException:
        return False


def iter_events(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """Decode the `data:` frames of an SSE stream into event dicts."""
    for line in lines:
        if not line or not line.startswith("data:"):
            continue
        payload = line[len("data:"):].strip()
        if payload:
            yield json.loads(payload)


def run_scenario(config: Dict[str, Any], url: str = SERVER_URL) -> Optional[Dict[str, Any]]:
    with requests.post(f"{url}/run-test", json=config, stream=True, timeout=(5, None)) as response:
        if response.status_code != 200:
            print(f"Server rejected the run ({response.status_code}):", response.json().get("error"))
            return None

        for event in iter_events(response.iter_lines(decode_unicode=True)):
            kind = event.get("type")
            if kind == "start":
                print("Test started.")
            elif kind == "stdout":
                print(event["data"])
            elif kind == "stderr":
                print(event["data"], file=sys.stderr)
            elif kind in ("complete", "error"):
                return event
    return None


def load_scenario(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return dict(DEFAULT_SCENARIO)
    with open(path) as f:
        return json.load(f)


if __name__ == "__main__":
    if not is_running():
        print(f"POWA dev server is not reachable at {SERVER_URL}")
        sys.exit(2)

    scenario = load_scenario(sys.argv[1] if len(sys.argv) > 1 else None)
    final = run_scenario(scenario)
    if final is None:
        sys.exit(2)
    if final["type"] == "error":
        print("Run failed:", final.get("error"))
        sys.exit(1)
    print("Run finished with exit code", final.get("code"))
    sys.exit(final.get("code") or 0)

from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(SCRIPT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


def load_env_file(env_path: str) -> None:
    if not os.path.exists(env_path):
        return
    with open(env_path, "r", encoding="utf-8") as env_file:
        for line in env_file:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            os.environ.setdefault(key, value)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check spend and sales alignment for one agent over one or more dates."
    )
    parser.add_argument(
        "--env-file",
        default=os.path.join(PROJECT_ROOT, ".env"),
        help="Path to .env file.",
    )
    parser.add_argument("--agent-id", required=True, help="Sales agent id.")
    parser.add_argument("--branch-id", required=True, help="Branch id.")
    parser.add_argument(
        "--dates",
        nargs="*",
        type=date.fromisoformat,
        default=None,
        help="ISO dates to check (default: today).",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    load_env_file(os.path.abspath(args.env_file))

    from src.api.dependencies import get_consistency_service
    from src.schemas.consistency import ConsistencyBatchRequest

    service = get_consistency_service()
    result = service.check_batch(
        ConsistencyBatchRequest(agent_id=args.agent_id, branch_id=args.branch_id, dates=args.dates or None)
    )
    print(json.dumps(result.model_dump(by_alias=True), indent=2, default=str))


if __name__ == "__main__":
    main()
